"""
Tests for the stream pump: transfer, early termination and cancellation.

Sources and sinks are in-memory fakes so every stop condition can be forced.
"""
import asyncio

import pytest

from corsrelay.core.errors import StreamReadError
from corsrelay.core.stream_pump import PumpOutcome, pump

pytestmark = pytest.mark.anyio


class FakeSource:
    """Yields ``chunks``, then optionally blocks forever or fails."""

    def __init__(self, chunks, block=False, fail=False):
        self.chunks = chunks
        self.block = block
        self.fail = fail
        self.cancel_calls = 0

    async def iter_raw(self):
        for chunk in self.chunks:
            await asyncio.sleep(0)
            yield chunk
        if self.fail:
            raise StreamReadError("connection reset")
        if self.block:
            await asyncio.Event().wait()

    async def cancel(self):
        self.cancel_calls += 1


class FakeSink:
    def __init__(self, accept=None):
        self.accept = accept
        self.written = []
        self.close_calls = 0
        self.disconnected = asyncio.Event()

    async def write(self, data):
        if self.accept is not None and len(self.written) >= self.accept:
            return False
        self.written.append(data)
        return True

    async def close(self):
        self.close_calls += 1

    async def wait_disconnected(self, timeout=None):
        await self.disconnected.wait()
        return True


async def test_drains_source_in_order():
    source = FakeSource([b"a", b"", b"b", b"c"])
    sink = FakeSink()

    assert await pump(source, sink) is PumpOutcome.EXHAUSTED
    assert b"".join(sink.written) == b"abc"
    assert sink.close_calls == 1
    assert source.cancel_calls == 0


async def test_stops_writing_once_sink_is_closed():
    source = FakeSource([b"a", b"b", b"c"])
    sink = FakeSink(accept=1)

    assert await pump(source, sink) is PumpOutcome.DOWNSTREAM_CLOSED
    assert sink.written == [b"a"]
    assert source.cancel_calls == 1
    assert sink.close_calls == 1


async def test_client_disconnect_cancels_pending_read():
    source = FakeSource([b"first"], block=True)
    sink = FakeSink()

    task = asyncio.ensure_future(pump(source, sink))
    while not sink.written:
        await asyncio.sleep(0.001)
    sink.disconnected.set()

    assert await asyncio.wait_for(task, 1.0) is PumpOutcome.CANCELLED
    assert source.cancel_calls == 1
    assert sink.close_calls == 1


async def test_read_error_ends_stream_cleanly():
    source = FakeSource([b"partial"], fail=True)
    sink = FakeSink()

    assert await pump(source, sink) is PumpOutcome.READ_ERROR
    assert sink.written == [b"partial"]
    assert sink.close_calls == 1
