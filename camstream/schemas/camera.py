"""Camera configuration schemas."""

from pydantic import BaseModel, ConfigDict, Field


class CameraStreamConfig(BaseModel):
    """Static video configuration of a camera, fixed for the camera's lifetime."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    # Transcoder input specification, e.g. "-rtsp_transport tcp -i rtsp://host/live"
    source: str
    max_width: int = Field(1280, alias="maxWidth", gt=0)
    max_height: int = Field(720, alias="maxHeight", gt=0)
    max_bitrate: int = Field(299, alias="maxBitrate", gt=0)
    max_fps: int = Field(15, alias="maxFPS", gt=0)
    encoder_options: str = Field("ultrafast", alias="encoderOptions")
    map_video: str | None = Field(None, alias="mapvideo")
    map_audio: str | None = Field(None, alias="mapaudio")
    video_filter: str | None = Field(None, alias="videoFilter")
    audio: bool = False
    debug: bool = False


class Camera(BaseModel):
    """A configured camera."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str = Field(..., min_length=1)
    video_config: CameraStreamConfig = Field(..., alias="videoConfig")


class CameraSetting(BaseModel):
    """Persisted per-camera override record."""

    model_config = ConfigDict(extra="ignore")

    name: str
    resolution: str | None = None
    audio: bool | None = None
