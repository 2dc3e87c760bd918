"""Read-only access to persisted per-camera stream settings.

The settings document is owned by the UI and looks like::

    {"settings": {"cameras": [{"name": "Front Door", "resolution": "640x480", "audio": true}]}}

It is re-read on every lookup so changes made by the UI are picked up the next
time a session is configured.
"""

import asyncio
from pathlib import Path
from typing import Protocol, runtime_checkable

import orjson
from loguru import logger
from pydantic import ValidationError

from camstream.schemas import CameraSetting


@runtime_checkable
class SettingsStore(Protocol):
    async def get_camera_setting(self, camera_name: str) -> CameraSetting | None: ...


class JsonSettingsStore:
    def __init__(self, path: str | Path):
        self.path = Path(path)

    async def get_camera_setting(self, camera_name: str) -> CameraSetting | None:
        """Return the first settings record named `camera_name`, if any."""
        cameras = await self._read_cameras()

        for record in cameras:
            if not isinstance(record, dict) or record.get("name") != camera_name:
                continue
            try:
                return CameraSetting.model_validate(record)
            except ValidationError as e:
                logger.warning("Invalid camera setting for {} in {}: {}", camera_name, self.path, e)
                return None

        return None

    async def _read_cameras(self) -> list:
        try:
            raw = await asyncio.to_thread(self.path.read_bytes)
        except FileNotFoundError:
            logger.debug("Settings database {} not found", self.path)
            return []
        except OSError as e:
            logger.error("Failed to read settings database {}: {}", self.path, e)
            return []

        try:
            data = orjson.loads(raw)
        except orjson.JSONDecodeError as e:
            logger.error("Settings database {} is not valid JSON: {}", self.path, e)
            return []

        settings = data.get("settings") if isinstance(data, dict) else None
        cameras = settings.get("cameras") if isinstance(settings, dict) else None
        return cameras if isinstance(cameras, list) else []
