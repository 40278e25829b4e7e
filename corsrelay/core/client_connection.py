#!/usr/bin/env python3
"""Downstream side of a relayed request: the ASGI sink and its disconnect signal."""
import asyncio
import logging
from typing import Iterable, Optional, Tuple

from starlette.types import Receive, Send

logger = logging.getLogger(__name__)


class ClientConnection:
    """Writable sink bound to one client.

    ``write`` after ``close`` (or after the client went away) is a no-op that
    returns False. ``close`` sends the final empty body at most once.
    """

    def __init__(self, send: Send):
        self._send = send
        self._started = False
        self._closed = False
        self.disconnected = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self._closed or self.disconnected.is_set()

    async def start(self, status_code: int, headers: Iterable[Tuple[bytes, bytes]]):
        """Send the response head."""
        if self._started:
            return
        self._started = True
        await self._send({
            'type': 'http.response.start',
            'status': status_code,
            'headers': list(headers),
        })

    async def write(self, data: bytes) -> bool:
        """Write one chunk; returns False when the client can no longer receive."""
        if self.closed:
            return False
        try:
            await self._send({'type': 'http.response.body', 'body': data, 'more_body': True})
        except OSError as exc:
            logger.debug("client write failed, treating as disconnect: %s", exc)
            self.disconnected.set()
            return False
        return True

    async def close(self):
        if self._closed:
            return
        self._closed = True
        if self.disconnected.is_set():
            return
        try:
            await self._send({'type': 'http.response.body', 'body': b'', 'more_body': False})
        except OSError as exc:
            logger.debug("client close failed: %s", exc)
            self.disconnected.set()

    async def wait_disconnected(self, timeout: Optional[float] = None) -> bool:
        """Wait for the client to go away; True if it did within ``timeout``."""
        if timeout is None:
            await self.disconnected.wait()
            return True
        try:
            await asyncio.wait_for(self.disconnected.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    async def watch_disconnect(self, receive: Receive):
        """Read the ASGI receive channel until the client disconnects."""
        while True:
            message = await receive()
            if message['type'] == 'http.disconnect':
                logger.debug("client disconnected")
                self.disconnected.set()
                return
