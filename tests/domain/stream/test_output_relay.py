"""Tests for OutputRelay."""

import asyncio

from camstream.domain.stream.output_relay import OutputRelay
from camstream.services.broadcaster import LocalBroadcaster
from tests.fixtures.process_fixtures import messages


class RecordingBroadcaster:
    def __init__(self):
        self.published: list[tuple[str, bytes]] = []

    def publish(self, channel_id: str, data: bytes) -> None:
        self.published.append((channel_id, data))


def make_reader(*chunks: bytes) -> asyncio.StreamReader:
    reader = asyncio.StreamReader()
    for chunk in chunks:
        reader.feed_data(chunk)
    reader.feed_eof()
    return reader


class TestRelayOutput:
    async def test_chunks_published_to_camera_channel(self):
        broadcaster = RecordingBroadcaster()
        relay = OutputRelay("Front Door", broadcaster)

        await relay.relay_output(make_reader(b"\x47\x00\x01"))

        assert broadcaster.published == [("Front Door", b"\x47\x00\x01")]

    async def test_bytes_arrive_unchanged_and_in_order(self):
        """Incremental writes are published in arrival order."""
        broadcaster = LocalBroadcaster()
        queue = broadcaster.subscribe("cam")
        relay = OutputRelay("cam", broadcaster)
        reader = asyncio.StreamReader()

        task = asyncio.create_task(relay.relay_output(reader))
        for i in range(5):
            reader.feed_data(bytes([i]) * 10)
            await asyncio.sleep(0)
        reader.feed_eof()
        await task

        received = b""
        while not queue.empty():
            received += queue.get_nowait()
        assert received == b"".join(bytes([i]) * 10 for i in range(5))

    async def test_debug_echoes_output(self, log_records):
        relay = OutputRelay("cam", RecordingBroadcaster(), debug=True)

        await relay.relay_output(make_reader(b"frame"))

        assert "[cam] frame" in messages(log_records, "DEBUG")


class TestRelayErrors:
    async def test_stderr_logged_without_line_endings(self, log_records):
        broadcaster = RecordingBroadcaster()
        relay = OutputRelay("cam", broadcaster)

        await relay.relay_errors(make_reader(b"Connection refused\r\n"))

        assert messages(log_records, "ERROR") == ["[cam] Connection refused"]
        assert broadcaster.published == []

    async def test_blank_stderr_not_logged(self, log_records):
        relay = OutputRelay("cam", RecordingBroadcaster())

        await relay.relay_errors(make_reader(b"\n"))

        assert messages(log_records, "ERROR") == []


class TestStart:
    async def test_start_relays_both_pipes(self, log_records):
        broadcaster = RecordingBroadcaster()
        relay = OutputRelay("cam", broadcaster)

        tasks = relay.start(make_reader(b"video"), make_reader(b"warning\n"))
        await asyncio.gather(*tasks)

        assert broadcaster.published == [("cam", b"video")]
        assert "[cam] warning" in messages(log_records, "ERROR")
