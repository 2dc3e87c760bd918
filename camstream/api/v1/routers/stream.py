from fastapi import APIRouter

from camstream.api.v1.dependency import StreamServiceDep
from camstream.api.v1.schemas.base import ApiOut
from camstream.api.v1.schemas.stream import (
    DelStreamOptionsIn,
    ListStreamsOut,
    SetStreamOptionsIn,
    SetStreamSourceIn,
    StreamActionOut,
    StreamStatusOut,
)
from camstream.domain.stream.stream_models import StreamStatus

router = APIRouter(prefix="/stream")


def _status_out(status: StreamStatus) -> StreamStatusOut:
    return StreamStatusOut(**status.model_dump())


def _action_out(accepted: bool, status: StreamStatus) -> ApiOut[StreamActionOut]:
    return ApiOut[StreamActionOut](
        results=StreamActionOut(accepted=accepted, status=_status_out(status))
    )


@router.get("/list_streams")
async def list_streams(service: StreamServiceDep) -> ApiOut[ListStreamsOut]:
    """List the stream session of every camera."""
    streams = [_status_out(status) for status in service.list_streams()]
    return ApiOut[ListStreamsOut](results=ListStreamsOut(streams=streams))


@router.get("/{camera_name}/status")
async def get_stream_status(camera_name: str, service: StreamServiceDep) -> ApiOut[StreamStatusOut]:
    """Get the stream session of a camera."""
    session = service.get_session(camera_name)
    return ApiOut[StreamStatusOut](results=_status_out(session.status()))


@router.post("/{camera_name}/start")
async def start_stream(camera_name: str, service: StreamServiceDep) -> ApiOut[StreamActionOut]:
    """Start the transcoder; not accepted when already running or the session limit is reached."""
    session = service.get_session(camera_name)
    accepted = await session.start()
    return _action_out(accepted, session.status())


@router.post("/{camera_name}/stop")
async def stop_stream(camera_name: str, service: StreamServiceDep) -> ApiOut[StreamActionOut]:
    """Signal the transcoder to stop; the session goes idle once the process exits."""
    session = service.get_session(camera_name)
    accepted = await session.stop()
    return _action_out(accepted, session.status())


@router.post("/{camera_name}/restart")
async def restart_stream(camera_name: str, service: StreamServiceDep) -> ApiOut[StreamActionOut]:
    """Restart the transcoder to apply changed source or options."""
    session = service.get_session(camera_name)
    accepted = await session.restart()
    return _action_out(accepted, session.status())


@router.post("/{camera_name}/configure")
async def configure_stream(camera_name: str, service: StreamServiceDep) -> ApiOut[StreamStatusOut]:
    """Re-apply the camera's stored settings (resolution, audio)."""
    status = await service.configure(camera_name)
    return ApiOut[StreamStatusOut](results=_status_out(status))


@router.post("/{camera_name}/source")
async def set_stream_source(
    camera_name: str,
    body: SetStreamSourceIn,
    service: StreamServiceDep,
) -> ApiOut[StreamActionOut]:
    """Replace the input specification; rejected unless it contains an -i input."""
    session = service.get_session(camera_name)
    accepted = session.set_stream_source(body.source)
    return _action_out(accepted, session.status())


@router.post("/{camera_name}/options")
async def set_stream_options(
    camera_name: str,
    body: SetStreamOptionsIn,
    service: StreamServiceDep,
) -> ApiOut[StreamActionOut]:
    """Insert or overwrite transcoder flags, applied on the next start."""
    session = service.get_session(camera_name)
    session.set_stream_options(body.options)
    return _action_out(True, session.status())


@router.post("/{camera_name}/options/delete")
async def del_stream_options(
    camera_name: str,
    body: DelStreamOptionsIn,
    service: StreamServiceDep,
) -> ApiOut[StreamActionOut]:
    """Remove transcoder flags, applied on the next start."""
    session = service.get_session(camera_name)
    session.del_stream_options(body.flags)
    return _action_out(True, session.status())
