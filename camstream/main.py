import time
import traceback
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse
from granian import Granian
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from camstream.api.v1.errors import app_error_handler
from camstream.api.v1.routers import stream
from camstream.app_config import AppEnvironConfig, get_app_environ_config
from camstream.domain.stream.stream_domain import StreamService, load_cameras
from camstream.services.broadcaster import Broadcaster, LocalBroadcaster, RedisBroadcaster
from camstream.services.session_limiter import LocalSessionLimiter, RedisSessionLimiter, SessionLimiter
from camstream.services.settings_store import JsonSettingsStore
from camstream.shared.api import health
from camstream.shared.api.utils import api_failure, init_logger, validation_exception_handler
from camstream.shared.storage.redis import get_redis_manager
from camstream.utils.app_errors import AppError, AppErrorCode


class HTTPLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):  # type: ignore
        start_time = time.time()
        request_id = str(uuid.uuid4())[:8]

        logger.info(f"[{request_id}] {request.method} {request.url.path}")

        try:
            response = await call_next(request)

            process_time = (time.time() - start_time) * 1000
            logger.info(
                f"[{request_id}] {request.method} {request.url.path} - "
                f"Status: {response.status_code} - "
                f"Duration: {process_time:.2f}ms"
            )

            return response

        except Exception as exc:
            process_time = (time.time() - start_time) * 1000
            logger.error(
                f"[{request_id}] Unhandled exception in {request.method} {request.url.path} - "
                f"Duration: {process_time:.2f}ms - "
                f"Error: {type(exc).__name__}: {exc}\n"
                f"Traceback:\n{traceback.format_exc()}"
            )

            failure = api_failure(
                errcode=AppErrorCode.E_INTERNAL_ERROR.value,
                errmesg=f"Internal server error (request_id: {request_id})",
            )
            return ORJSONResponse(status_code=500, content=failure.model_dump())


def build_session_limiter(cfg: AppEnvironConfig) -> SessionLimiter:
    if cfg.SESSION_LIMITER == "redis":
        redis_client = get_redis_manager().get_client(cfg.REDIS_LABEL)
        return RedisSessionLimiter(
            redis_client,
            cfg.MAX_STREAM_SESSIONS,
            key=f"{cfg.SERVICE_CODE}:stream:sessions",
            slot_ttl=cfg.SESSION_SLOT_TTL,
        )
    return LocalSessionLimiter(cfg.MAX_STREAM_SESSIONS)


def build_broadcaster(cfg: AppEnvironConfig) -> Broadcaster:
    if cfg.BROADCASTER == "redis":
        broadcaster = RedisBroadcaster(get_redis_manager().get_client(cfg.REDIS_LABEL))
        broadcaster.start()
        return broadcaster
    return LocalBroadcaster()


@asynccontextmanager
async def lifespan(server: FastAPI):
    init_logger()

    logger.info("Application startup...")

    cfg = get_app_environ_config()
    broadcaster = build_broadcaster(cfg)
    session_limiter = build_session_limiter(cfg)
    service = StreamService(
        session_limiter=session_limiter,
        broadcaster=broadcaster,
        settings_store=JsonSettingsStore(cfg.SETTINGS_DB_PATH),
        video_processor=cfg.VIDEO_PROCESSOR,
        restart_delay=cfg.STREAM_RESTART_DELAY,
    )
    for camera in load_cameras(cfg.CAMERAS_CONFIG_PATH):
        await service.add_camera(camera)

    server.state.stream_service = service
    server.state.broadcaster = broadcaster

    yield

    logger.info("Application shutdown...")

    await service.shutdown()
    if isinstance(session_limiter, RedisSessionLimiter):
        await session_limiter.close()
    if isinstance(broadcaster, RedisBroadcaster):
        await broadcaster.close()
    await get_redis_manager().close_all()


app = FastAPI(
    version="1.0",
    title="camstream API",
    docs_url=None,
    redoc_url=None,
    openapi_url=None,
    default_response_class=ORJSONResponse,
    lifespan=lifespan,
)

app.add_middleware(HTTPLoggingMiddleware)

app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore
app.add_exception_handler(AppError, app_error_handler)  # type: ignore

app.include_router(health.router, prefix="/api/v1")
app.include_router(stream.router, prefix="/api/v1")


def build_granian_kwargs():
    cfg = get_app_environ_config()
    return {
        "interface": "asgi",
        "address": cfg.API_HOST,
        "port": cfg.API_PORT,
        "workers": cfg.API_WORKERS,
        "reload": cfg.DEBUG,
    }


if __name__ == "__main__":
    Granian("camstream.main:app", **build_granian_kwargs()).serve()
