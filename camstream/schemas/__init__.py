"""Pydantic schemas for cameras and stream sessions."""

from .camera import Camera, CameraSetting, CameraStreamConfig
from .stream_state import StreamState

__all__ = [
    "Camera",
    "CameraSetting",
    "CameraStreamConfig",
    "StreamState",
]
