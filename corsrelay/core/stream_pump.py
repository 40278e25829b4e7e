#!/usr/bin/env python3
"""Transfers an upstream byte source into a client sink."""
import asyncio
import enum
import logging
from typing import AsyncIterator, Protocol

from .errors import StreamReadError

logger = logging.getLogger(__name__)


class ByteSource(Protocol):
    def iter_raw(self) -> AsyncIterator[bytes]: ...

    async def cancel(self) -> None: ...


class ByteSink(Protocol):
    async def write(self, data: bytes) -> bool: ...

    async def close(self) -> None: ...

    async def wait_disconnected(self, timeout=None) -> bool: ...


class PumpOutcome(enum.Enum):
    EXHAUSTED = 'exhausted'
    DOWNSTREAM_CLOSED = 'downstream_closed'
    CANCELLED = 'cancelled'
    READ_ERROR = 'read_error'


async def _drain(source: ByteSource, sink: ByteSink) -> PumpOutcome:
    try:
        async for chunk in source.iter_raw():
            if not chunk:
                continue
            if not await sink.write(chunk):
                return PumpOutcome.DOWNSTREAM_CLOSED
    except StreamReadError as exc:
        logger.warning("pump error: %s", exc)
        return PumpOutcome.READ_ERROR
    return PumpOutcome.EXHAUSTED


async def pump(source: ByteSource, sink: ByteSink) -> PumpOutcome:
    """Copy ``source`` into ``sink`` until either side ends.

    A client disconnect interrupts the pending read and cancels the source.
    The sink is closed exactly once on every exit path.
    """
    drain = asyncio.ensure_future(_drain(source, sink))
    hangup = asyncio.ensure_future(sink.wait_disconnected())
    try:
        done, _ = await asyncio.wait({drain, hangup}, return_when=asyncio.FIRST_COMPLETED)
        if drain in done:
            outcome = drain.result()
            if outcome is PumpOutcome.DOWNSTREAM_CLOSED:
                await source.cancel()
            return outcome

        drain.cancel()
        await asyncio.wait({drain})
        await source.cancel()
        logger.debug("client disconnected, upstream read cancelled")
        return PumpOutcome.CANCELLED
    except asyncio.CancelledError:
        drain.cancel()
        await source.cancel()
        raise
    finally:
        hangup.cancel()
        await sink.close()
