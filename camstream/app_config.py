from pydantic import BaseModel

from camstream.shared.config import config


class AppEnvironConfig(BaseModel):
    DEBUG: bool = config.get_bool("DEBUG")

    API_HOST: str = (config.get("API_HOST") or "").strip() or "0.0.0.0"
    API_PORT: int = int((config.get("API_PORT") or "").strip() or 8000)
    API_WORKERS: int = int((config.get("API_WORKERS") or "").strip() or 1)

    # Transcoder executable, resolved through PATH when not absolute
    VIDEO_PROCESSOR: str = (config.get("VIDEO_PROCESSOR") or "").strip() or "ffmpeg"
    # Maximum simultaneous transcodes across all cameras; 0 disables the limit
    MAX_STREAM_SESSIONS: int = int((config.get("MAX_STREAM_SESSIONS") or "").strip() or 0)
    STREAM_RESTART_DELAY: float = float((config.get("STREAM_RESTART_DELAY") or "").strip() or 1.5)
    # Seconds a Redis session slot survives without renewal (crashed workers)
    SESSION_SLOT_TTL: int = int((config.get("SESSION_SLOT_TTL") or "").strip() or 30)

    CAMERAS_CONFIG_PATH: str = (config.get("CAMERAS_CONFIG_PATH") or "").strip() or "cameras.json"
    SETTINGS_DB_PATH: str = (config.get("SETTINGS_DB_PATH") or "").strip() or "database.json"

    # local | redis
    SESSION_LIMITER: str = (config.get("SESSION_LIMITER") or "").strip().lower() or "local"
    BROADCASTER: str = (config.get("BROADCASTER") or "").strip().lower() or "local"

    SERVICE_CODE: str = (config.get("SERVICE_CODE") or "").strip() or "camstream"
    REDIS_LABEL: str = (config.get("REDIS_LABEL") or "").strip() or "default"


_app_environ_config = AppEnvironConfig()


def get_app_environ_config() -> AppEnvironConfig:
    return _app_environ_config
