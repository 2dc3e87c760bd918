"""Stream domain service - registry of transcoder sessions keyed by camera name."""

import asyncio
from pathlib import Path
from typing import Optional

import orjson
from loguru import logger
from pydantic import ValidationError

from camstream.schemas import Camera
from camstream.services.broadcaster import Broadcaster
from camstream.services.session_limiter import SessionLimiter
from camstream.services.settings_store import SettingsStore
from camstream.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

from .stream_models import StreamStatus
from .stream_session import DEFAULT_RESTART_DELAY, StreamSession


def load_cameras(path: str | Path) -> list[Camera]:
    """Load camera definitions from a `{"cameras": [...]}` JSON document.

    Invalid entries are logged and skipped; a missing file yields no cameras.
    """
    path = Path(path)
    if not path.exists():
        logger.warning("Cameras config {} not found", path)
        return []

    data = orjson.loads(path.read_bytes())
    entries = data.get("cameras", []) if isinstance(data, dict) else data

    cameras = []
    for entry in entries:
        try:
            cameras.append(Camera.model_validate(entry))
        except ValidationError as e:
            logger.warning("Skipping invalid camera entry in {}: {}", path, e)

    logger.info("Loaded {} cameras from {}", len(cameras), path)
    return cameras


class StreamService:
    """Creates, looks up and tears down the stream session of every camera.

    All sessions share the same admission limiter, so the limit applies across
    cameras.
    """

    def __init__(
        self,
        *,
        session_limiter: SessionLimiter,
        broadcaster: Broadcaster,
        settings_store: Optional[SettingsStore] = None,
        video_processor: str = "ffmpeg",
        restart_delay: float = DEFAULT_RESTART_DELAY,
    ):
        self.session_limiter = session_limiter
        self.broadcaster = broadcaster
        self.settings_store = settings_store
        self.video_processor = video_processor
        self.restart_delay = restart_delay
        self._sessions: dict[str, StreamSession] = {}

    # ==================== CAMERAS ====================

    async def add_camera(self, camera: Camera) -> StreamSession:
        """Create the session of a new camera and apply its stored settings.

        Raises AppError if a camera with the same name is already registered.
        """
        if camera.name in self._sessions:
            raise AppError(
                errcode=AppErrorCode.E_ALREADY_EXISTS,
                errmesg=f"Camera {camera.name} already registered",
                status_code=HttpStatusCode.CONFLICT,
            )

        session = StreamSession(
            camera,
            session_limiter=self.session_limiter,
            broadcaster=self.broadcaster,
            settings_store=self.settings_store,
            video_processor=self.video_processor,
            restart_delay=self.restart_delay,
        )
        await session.configure_stream_options()

        self._sessions[camera.name] = session
        logger.info("Camera {} registered", camera.name)
        return session

    async def remove_camera(self, camera_name: str) -> None:
        """Tear down and forget a camera's session.

        Raises AppError if the camera is unknown.
        """
        session = self.get_session(camera_name)
        del self._sessions[camera_name]
        await session.close()
        logger.info("Camera {} removed", camera_name)

    def get_session(self, camera_name: str) -> StreamSession:
        """Raises AppError if the camera is unknown."""
        session = self._sessions.get(camera_name)
        if session is None:
            raise AppError(
                errcode=AppErrorCode.E_NOT_FOUND,
                errmesg=f"Camera {camera_name} not found",
                status_code=HttpStatusCode.NOT_FOUND,
            )
        return session

    def list_streams(self) -> list[StreamStatus]:
        return [session.status() for session in self._sessions.values()]

    # ==================== STREAMS ====================

    async def start(self, camera_name: str) -> bool:
        return await self.get_session(camera_name).start()

    async def stop(self, camera_name: str) -> bool:
        return await self.get_session(camera_name).stop()

    async def restart(self, camera_name: str) -> bool:
        return await self.get_session(camera_name).restart()

    async def configure(self, camera_name: str) -> StreamStatus:
        session = self.get_session(camera_name)
        await session.configure_stream_options()
        return session.status()

    async def shutdown(self, timeout: float = 5.0) -> None:
        """Close every session and wait for the processes to exit.

        Processes still alive after `timeout` seconds are killed.
        """
        sessions = list(self._sessions.values())
        self._sessions.clear()
        if not sessions:
            return

        logger.info("Shutting down {} stream sessions", len(sessions))
        for session in sessions:
            await session.close()

        try:
            await asyncio.wait_for(
                asyncio.gather(*(session.wait_stopped() for session in sessions)),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            for session in sessions:
                if await session.kill():
                    logger.warning("[{}] Stream did not stop in {}s, killed", session.camera_name, timeout)
