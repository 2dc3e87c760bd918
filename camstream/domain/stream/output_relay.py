"""Relay of transcoder output to the camera's broadcast channel."""

import asyncio
import re

from loguru import logger

from camstream.services.broadcaster import Broadcaster

CHUNK_SIZE = 64 * 1024

_LINE_ENDINGS = re.compile(r"\r\n|\n|\r")


class OutputRelay:
    """Pass-through from the process pipes to the broadcaster and the log.

    stdout chunks go to the broadcast channel named after the camera, unchanged
    and in arrival order. stderr chunks are logged at error level and never
    broadcast.
    """

    def __init__(self, camera_name: str, broadcaster: Broadcaster, *, debug: bool = False):
        self.camera_name = camera_name
        self.broadcaster = broadcaster
        self.debug = debug

    def start(self, stdout: asyncio.StreamReader, stderr: asyncio.StreamReader) -> list[asyncio.Task]:
        return [
            asyncio.create_task(self.relay_output(stdout), name=f"relay-stdout:{self.camera_name}"),
            asyncio.create_task(self.relay_errors(stderr), name=f"relay-stderr:{self.camera_name}"),
        ]

    async def relay_output(self, stream: asyncio.StreamReader) -> None:
        try:
            while True:
                chunk = await stream.read(CHUNK_SIZE)
                if not chunk:
                    break

                self.broadcaster.publish(self.camera_name, chunk)

                if self.debug:
                    logger.debug("[{}] {}", self.camera_name, chunk.decode(errors="replace"))
        except Exception as e:
            logger.error("[{}] stdout relay error: {}", self.camera_name, e)

    async def relay_errors(self, stream: asyncio.StreamReader) -> None:
        try:
            while True:
                chunk = await stream.read(CHUNK_SIZE)
                if not chunk:
                    break

                message = _LINE_ENDINGS.sub("", chunk.decode(errors="replace"))
                if message:
                    logger.error("[{}] {}", self.camera_name, message)
        except Exception as e:
            logger.error("[{}] stderr relay error: {}", self.camera_name, e)
