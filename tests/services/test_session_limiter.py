"""Tests for the session limiters."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from camstream.services.session_limiter import (
    LocalSessionLimiter,
    RedisSessionLimiter,
    SessionLimiter,
)


class TestLocalSessionLimiter:
    async def test_grants_up_to_limit(self):
        limiter = LocalSessionLimiter(max_sessions=2)

        assert await limiter.try_acquire() is True
        assert await limiter.try_acquire() is True
        assert await limiter.try_acquire() is False
        assert limiter.active == 2

    async def test_release_frees_slot(self):
        limiter = LocalSessionLimiter(max_sessions=1)
        await limiter.try_acquire()

        await limiter.release()

        assert limiter.active == 0
        assert await limiter.try_acquire() is True

    async def test_zero_means_unlimited(self):
        limiter = LocalSessionLimiter(max_sessions=0)

        results = [await limiter.try_acquire() for _ in range(50)]

        assert all(results)
        assert limiter.active == 50

    async def test_concurrent_acquires_never_exceed_limit(self):
        limiter = LocalSessionLimiter(max_sessions=3)

        results = await asyncio.gather(*(limiter.try_acquire() for _ in range(10)))

        assert results.count(True) == 3
        assert limiter.active == 3

    async def test_release_without_acquire_stays_at_zero(self, log_records):
        limiter = LocalSessionLimiter(max_sessions=1)

        await limiter.release()

        assert limiter.active == 0
        assert [r["level"].name for r in log_records] == ["WARNING"]

    def test_satisfies_protocol(self):
        assert isinstance(LocalSessionLimiter(), SessionLimiter)


OWNER = "host:1:abcd1234"


@pytest.fixture
def redis_client() -> AsyncMock:
    client = AsyncMock()
    client.eval.return_value = 1
    client.zrem.return_value = 1
    return client


@pytest.fixture
async def redis_limiter(redis_client):
    limiter = RedisSessionLimiter(redis_client, 4, key="svc:stream:sessions", slot_ttl=30, owner=OWNER)
    yield limiter
    await limiter.close()


class TestRedisSessionLimiter:
    async def test_acquire_adds_expiring_slot(self, redis_limiter, redis_client):
        """Test a granted slot is a per-owner member with an expiry."""
        assert await redis_limiter.try_acquire() is True

        script, numkeys, key, limit, ttl, slot = redis_client.eval.await_args.args
        assert "ZREMRANGEBYSCORE" in script
        assert "ZADD" in script
        assert (numkeys, key, limit, ttl) == (1, "svc:stream:sessions", 4, 30)
        assert slot == f"{OWNER}:1"

    async def test_slots_are_unique_per_acquire(self, redis_limiter, redis_client):
        await redis_limiter.try_acquire()
        await redis_limiter.try_acquire()

        slots = [c.args[-1] for c in redis_client.eval.await_args_list]
        assert slots == [f"{OWNER}:1", f"{OWNER}:2"]

    async def test_acquire_denied(self, redis_limiter, redis_client):
        redis_client.eval.return_value = 0

        assert await redis_limiter.try_acquire() is False
        assert redis_limiter._refresh_task is None

    async def test_acquire_error_denies(self, redis_limiter, redis_client, log_records):
        redis_client.eval.side_effect = ConnectionError("redis down")

        assert await redis_limiter.try_acquire() is False
        assert any("redis down" in r["message"] for r in log_records if r["level"].name == "ERROR")

    async def test_release_removes_own_slot(self, redis_limiter, redis_client):
        await redis_limiter.try_acquire()

        await redis_limiter.release()

        redis_client.zrem.assert_awaited_once_with("svc:stream:sessions", f"{OWNER}:1")
        assert redis_limiter._refresh_task is None

    async def test_release_without_slot_warns(self, redis_limiter, redis_client, log_records):
        await redis_limiter.release()

        redis_client.zrem.assert_not_awaited()
        assert any(r["level"].name == "WARNING" for r in log_records)

    async def test_release_of_expired_slot_warns(self, redis_limiter, redis_client, log_records):
        redis_client.zrem.return_value = 0
        await redis_limiter.try_acquire()

        await redis_limiter.release()

        assert any("already expired" in r["message"] for r in log_records if r["level"].name == "WARNING")

    async def test_held_slots_are_renewed(self, redis_client):
        """Test the background task keeps pushing the expiry while slots are held."""
        limiter = RedisSessionLimiter(redis_client, 4, key="k", slot_ttl=30, refresh_interval=0.01, owner="w")
        await limiter.try_acquire()
        await limiter.try_acquire()
        redis_client.eval.return_value = 2

        await asyncio.sleep(0.05)
        await limiter.close()

        refresh_calls = [c.args for c in redis_client.eval.await_args_list if "ZSCORE" in c.args[0]]
        assert refresh_calls
        assert refresh_calls[0][1:] == (1, "k", 30, "w:1", "w:2")

    async def test_refresh_reports_lost_slots(self, redis_limiter, redis_client, log_records):
        """Test slots that lapsed (e.g. renewal blocked too long) are reported."""
        await redis_limiter.try_acquire()
        redis_client.eval.return_value = 0

        assert await redis_limiter.refresh() == 0
        assert any(
            "expired before renewal" in r["message"] for r in log_records if r["level"].name == "WARNING"
        )

    async def test_renewal_stops_after_last_release(self, redis_client):
        limiter = RedisSessionLimiter(redis_client, 4, key="k", refresh_interval=0.01, owner="w")
        await limiter.try_acquire()
        await limiter.release()
        calls = redis_client.eval.await_count

        await asyncio.sleep(0.05)

        assert redis_client.eval.await_count == calls

    async def test_close_gives_back_held_slots(self, redis_limiter, redis_client):
        """Test shutdown removes this worker's slots instead of waiting for expiry."""
        await redis_limiter.try_acquire()
        await redis_limiter.try_acquire()

        await redis_limiter.close()

        redis_client.zrem.assert_awaited_once_with("svc:stream:sessions", f"{OWNER}:1", f"{OWNER}:2")
        assert redis_limiter._refresh_task is None

    async def test_active_purges_expired_slots(self, redis_limiter, redis_client):
        redis_client.eval.return_value = 3

        assert await redis_limiter.active() == 3

        script, numkeys, key = redis_client.eval.await_args.args
        assert "ZREMRANGEBYSCORE" in script and "ZCARD" in script
        assert (numkeys, key) == (1, "svc:stream:sessions")
