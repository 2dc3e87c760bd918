"""
Admission control for concurrent transcodes.

Every session asks for a slot before spawning its process and returns it when
the process exits. Two implementations share the same interface:

- `LocalSessionLimiter`: in-process counter, for a single worker.
- `RedisSessionLimiter`: slots stored in Redis, shared by every worker that
  points at the same key. Check-and-add runs as a Lua script so concurrent
  acquires can never exceed the limit, and slots expire unless renewed.
"""

from __future__ import annotations

import asyncio
import os
import socket
import threading
import uuid
from typing import Optional, Protocol, runtime_checkable

from loguru import logger
from redis.asyncio import Redis


@runtime_checkable
class SessionLimiter(Protocol):
    async def try_acquire(self) -> bool: ...

    async def release(self) -> None: ...


class LocalSessionLimiter:
    """Counter-based limiter; `max_sessions <= 0` means unlimited."""

    def __init__(self, max_sessions: int = 0):
        self.max_sessions = int(max_sessions)
        self._active = 0
        self._lock = threading.Lock()

    @property
    def active(self) -> int:
        return self._active

    async def try_acquire(self) -> bool:
        with self._lock:
            if 0 < self.max_sessions <= self._active:
                logger.debug("Session limit reached: active={} max={}", self._active, self.max_sessions)
                return False
            self._active += 1
            logger.debug("Session slot acquired: active={} max={}", self._active, self.max_sessions)
            return True

    async def release(self) -> None:
        with self._lock:
            if self._active == 0:
                logger.warning("Session slot released without an active session")
                return
            self._active -= 1
            logger.debug("Session slot released: active={} max={}", self._active, self.max_sessions)


def default_owner_id() -> str:
    """Identify this worker's slots (host:pid:uuid8)."""
    return f"{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex[:8]}"


# Slots live in a sorted set scored by expiry (Redis server time, seconds).
# Expired slots, left behind by a worker that died, are purged before counting.
_ACQUIRE_LUA = """
local limit = tonumber(ARGV[1])
local ttl = tonumber(ARGV[2])
local now = tonumber(redis.call('TIME')[1])
redis.call('ZREMRANGEBYSCORE', KEYS[1], '-inf', now)
if limit > 0 and redis.call('ZCARD', KEYS[1]) >= limit then
    return 0
end
redis.call('ZADD', KEYS[1], now + ttl, ARGV[3])
return 1
"""

# Push the expiry of the slots that still exist; returns how many were renewed
_REFRESH_LUA = """
local expiry = tonumber(redis.call('TIME')[1]) + tonumber(ARGV[1])
local renewed = 0
for i = 2, #ARGV do
    if redis.call('ZSCORE', KEYS[1], ARGV[i]) then
        redis.call('ZADD', KEYS[1], expiry, ARGV[i])
        renewed = renewed + 1
    end
end
return renewed
"""

_ACTIVE_LUA = """
redis.call('ZREMRANGEBYSCORE', KEYS[1], '-inf', tonumber(redis.call('TIME')[1]))
return redis.call('ZCARD', KEYS[1])
"""

DEFAULT_SLOT_TTL = 30


class RedisSessionLimiter:
    """Limiter backed by a Redis sorted set shared across processes.

    Each granted slot is a member `<owner>:<n>` with an expiry. A background
    task renews the expiry of this worker's slots while any are held, so slots
    of a crashed worker lapse after `slot_ttl` seconds instead of leaking.
    """

    def __init__(
        self,
        redis_client: Redis,
        max_sessions: int = 0,
        *,
        key: str = "camstream:stream:sessions",
        slot_ttl: int = DEFAULT_SLOT_TTL,
        refresh_interval: Optional[float] = None,
        owner: Optional[str] = None,
    ):
        self._redis_client = redis_client
        self.max_sessions = int(max_sessions)
        self.key = key
        self.slot_ttl = int(slot_ttl)
        self.refresh_interval = refresh_interval or max(1.0, self.slot_ttl / 3)
        self.owner = owner or default_owner_id()

        self._slots: list[str] = []
        self._seq = 0
        self._refresh_task: Optional[asyncio.Task] = None

    async def try_acquire(self) -> bool:
        self._seq += 1
        slot = f"{self.owner}:{self._seq}"
        try:
            allowed = await self._eval(_ACQUIRE_LUA, [self.key], [self.max_sessions, self.slot_ttl, slot])
        except Exception as e:
            logger.error("Session limiter acquire failed: key={} error={}", self.key, e)
            return False

        if not int(allowed):
            logger.debug("Session slot denied: key={} max={}", self.key, self.max_sessions)
            return False

        self._slots.append(slot)
        self._start_refresh()
        logger.debug("Session slot acquired: key={} slot={}", self.key, slot)
        return True

    async def release(self) -> None:
        if not self._slots:
            logger.warning("Session slot released without an active session: key={}", self.key)
            return

        slot = self._slots.pop()
        if not self._slots:
            self._stop_refresh()

        try:
            removed = int(await self._redis_client.zrem(self.key, slot))
        except Exception as e:
            logger.error("Session limiter release failed: key={} slot={} error={}", self.key, slot, e)
            return

        if removed:
            logger.debug("Session slot released: key={} slot={}", self.key, slot)
        else:
            logger.warning("Session slot had already expired: key={} slot={}", self.key, slot)

    async def refresh(self) -> int:
        """Renew the expiry of every slot held by this worker."""
        if not self._slots:
            return 0

        renewed = int(await self._eval(_REFRESH_LUA, [self.key], [self.slot_ttl, *self._slots]))
        if renewed < len(self._slots):
            logger.warning(
                "Session slots expired before renewal: key={} held={} renewed={}",
                self.key, len(self._slots), renewed
            )
        return renewed

    async def active(self) -> int:
        return int(await self._eval(_ACTIVE_LUA, [self.key], []))

    async def close(self) -> None:
        """Stop renewing and give back every slot this worker still holds."""
        self._stop_refresh()
        if not self._slots:
            return

        slots, self._slots = self._slots, []
        try:
            await self._redis_client.zrem(self.key, *slots)
            logger.info("Released {} session slots on close: key={}", len(slots), self.key)
        except Exception as e:
            logger.error("Session limiter close failed: key={} error={}", self.key, e)

    def _start_refresh(self) -> None:
        if self._refresh_task and not self._refresh_task.done():
            return
        self._refresh_task = asyncio.create_task(self._refresh_loop(), name="session-limiter:refresh")

    def _stop_refresh(self) -> None:
        if self._refresh_task and not self._refresh_task.done():
            self._refresh_task.cancel()
        self._refresh_task = None

    async def _refresh_loop(self) -> None:
        while self._slots:
            await asyncio.sleep(self.refresh_interval)
            try:
                await self.refresh()
            except Exception as e:
                logger.error("Session slot renewal failed: key={} error={}", self.key, e)

    async def _eval(self, script: str, keys: list[str], args: list) -> int:
        return await self._redis_client.eval(script, len(keys), *keys, *args)
