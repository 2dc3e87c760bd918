"""Tests for the broadcasters."""

import asyncio
from unittest.mock import AsyncMock

from camstream.services.broadcaster import Broadcaster, LocalBroadcaster, RedisBroadcaster


class TestLocalBroadcaster:
    def test_publish_reaches_channel_subscribers_only(self):
        broadcaster = LocalBroadcaster()
        front = broadcaster.subscribe("Front Door")
        garage = broadcaster.subscribe("Garage")

        broadcaster.publish("Front Door", b"abc")

        assert front.get_nowait() == b"abc"
        assert garage.empty()

    def test_publish_without_subscribers(self):
        broadcaster = LocalBroadcaster()

        broadcaster.publish("Front Door", b"abc")

        assert broadcaster.subscriber_count("Front Door") == 0

    def test_fan_out_preserves_order(self):
        broadcaster = LocalBroadcaster()
        first = broadcaster.subscribe("cam")
        second = broadcaster.subscribe("cam")

        for chunk in (b"1", b"2", b"3"):
            broadcaster.publish("cam", chunk)

        for queue in (first, second):
            assert [queue.get_nowait() for _ in range(3)] == [b"1", b"2", b"3"]

    def test_unsubscribe(self):
        broadcaster = LocalBroadcaster()
        queue = broadcaster.subscribe("cam")

        broadcaster.unsubscribe("cam", queue)
        broadcaster.publish("cam", b"abc")

        assert queue.empty()
        assert broadcaster.subscriber_count("cam") == 0

    def test_satisfies_protocol(self):
        assert isinstance(LocalBroadcaster(), Broadcaster)


class TestRedisBroadcaster:
    async def test_publishes_in_order_to_prefixed_channel(self):
        redis_client = AsyncMock()
        broadcaster = RedisBroadcaster(redis_client)

        for chunk in (b"1", b"2", b"3"):
            broadcaster.publish("Front Door", chunk)
        await broadcaster.close()

        assert [c.args for c in redis_client.publish.await_args_list] == [
            ("stream/Front Door", b"1"),
            ("stream/Front Door", b"2"),
            ("stream/Front Door", b"3"),
        ]

    async def test_publish_error_does_not_stop_loop(self, log_records):
        redis_client = AsyncMock()
        redis_client.publish.side_effect = [ConnectionError("redis down"), 1]
        broadcaster = RedisBroadcaster(redis_client, channel_prefix="live/")
        broadcaster.start()

        broadcaster.publish("cam", b"lost")
        broadcaster.publish("cam", b"kept")
        await broadcaster.close()

        assert redis_client.publish.await_count == 2
        assert redis_client.publish.await_args.args == ("live/cam", b"kept")
        assert any("redis down" in r["message"] for r in log_records if r["level"].name == "ERROR")

    async def test_publish_is_synchronous(self):
        redis_client = AsyncMock()
        broadcaster = RedisBroadcaster(redis_client)

        assert broadcaster.publish("cam", b"x") is None
        assert redis_client.publish.await_count == 0

        await asyncio.sleep(0.01)
        assert redis_client.publish.await_count == 1
        await broadcaster.close()
