"""
Broadcast channels for live stream bytes.

`publish()` never blocks and never awaits: it is called from the output relay
for every chunk the transcoder writes. Viewers subscribe per camera.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import Optional, Protocol, runtime_checkable

from loguru import logger
from redis.asyncio import Redis


@runtime_checkable
class Broadcaster(Protocol):
    def publish(self, channel_id: str, data: bytes) -> None: ...


class LocalBroadcaster:
    """In-process fan-out to unbounded subscriber queues."""

    def __init__(self):
        self._subscribers: dict[str, set[asyncio.Queue]] = defaultdict(set)

    def subscribe(self, channel_id: str) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers[channel_id].add(queue)
        logger.debug("Subscribed to {} ({} subscribers)", channel_id, len(self._subscribers[channel_id]))
        return queue

    def unsubscribe(self, channel_id: str, queue: asyncio.Queue) -> None:
        subscribers = self._subscribers.get(channel_id)
        if not subscribers:
            return
        subscribers.discard(queue)
        if not subscribers:
            del self._subscribers[channel_id]

    def subscriber_count(self, channel_id: str) -> int:
        return len(self._subscribers.get(channel_id, ()))

    def publish(self, channel_id: str, data: bytes) -> None:
        for queue in self._subscribers.get(channel_id, ()):
            queue.put_nowait(data)


class RedisBroadcaster:
    """Publishes chunks to Redis pub/sub channel `<prefix><camera>`.

    Chunks are queued locally and published in order by a single background
    task, so the relay is never held up by the Redis round trip.
    """

    def __init__(self, redis_client: Redis, *, channel_prefix: str = "stream/"):
        self._redis_client = redis_client
        self.channel_prefix = channel_prefix
        self._queue: asyncio.Queue[tuple[str, bytes]] = asyncio.Queue()
        self._publish_task: Optional[asyncio.Task] = None

    def start(self) -> None:
        if self._publish_task and not self._publish_task.done():
            return
        self._publish_task = asyncio.create_task(self._publish_loop(), name="broadcaster:redis")

    async def close(self) -> None:
        if self._publish_task is None:
            return

        await self._queue.join()
        self._publish_task.cancel()
        try:
            await self._publish_task
        except asyncio.CancelledError:
            pass
        self._publish_task = None

    def publish(self, channel_id: str, data: bytes) -> None:
        if self._publish_task is None:
            self.start()
        self._queue.put_nowait((channel_id, data))

    async def _publish_loop(self) -> None:
        while True:
            channel_id, data = await self._queue.get()
            channel = f"{self.channel_prefix}{channel_id}"
            try:
                await self._redis_client.publish(channel, data)
            except Exception as e:
                logger.error("Failed to publish to {}: {}", channel, e)
            finally:
                self._queue.task_done()
