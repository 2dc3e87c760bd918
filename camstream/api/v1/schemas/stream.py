from pydantic import BaseModel, Field, field_validator

from camstream.schemas import StreamState


class StreamStatusOut(BaseModel):
    camera_name: str = Field(description="Camera name, also the broadcast channel id")
    state: StreamState = Field(description="Session state: idle, running or stopping")
    pid: int | None = Field(default=None, description="Transcoder process id while running")
    source: str = Field(description="Transcoder input specification")
    options: dict[str, str | list[str]] = Field(description="Transcoder flags in emission order")
    args: list[str] = Field(default_factory=list, description="Argument list the next start will use")
    restart_pending: bool = Field(description="Whether a deferred restart is scheduled")


class ListStreamsOut(BaseModel):
    streams: list[StreamStatusOut]


class StreamActionOut(BaseModel):
    accepted: bool = Field(description="Whether the action changed anything")
    status: StreamStatusOut


class SetStreamSourceIn(BaseModel):
    source: str = Field(description="Input specification, must contain an -i input")


class SetStreamOptionsIn(BaseModel):
    options: dict[str, str | int | float | list[str] | None] = Field(
        description="Flags to insert or overwrite; an empty value emits a bare flag"
    )

    @field_validator("options")
    @classmethod
    def validate_flags(cls, v: dict) -> dict:
        for flag in v:
            if not flag.startswith("-"):
                raise ValueError(f"Option {flag!r} must start with '-'")
        return v


class DelStreamOptionsIn(BaseModel):
    flags: list[str] = Field(description="Flags to remove", min_length=1)


__all__ = [
    "DelStreamOptionsIn",
    "ListStreamsOut",
    "SetStreamOptionsIn",
    "SetStreamSourceIn",
    "StreamActionOut",
    "StreamStatusOut",
]
