"""Stream domain models."""

from pydantic import BaseModel, Field

from camstream.schemas import StreamState


class StreamStatus(BaseModel):
    """Point-in-time view of a camera's transcoder session."""

    camera_name: str
    state: StreamState
    pid: int | None = None
    source: str
    options: dict[str, str | list[str]] = Field(default_factory=dict)
    args: list[str] = Field(default_factory=list)
    restart_pending: bool = False
