#!/usr/bin/env python3
"""ASGI response that hands the client connection to a long-running writer."""
import asyncio
import logging
from typing import Awaitable, Callable, List, Tuple

from starlette.responses import Response
from starlette.types import Receive, Scope, Send

from .client_connection import ClientConnection

logger = logging.getLogger(__name__)

ConnectionHandler = Callable[[ClientConnection], Awaitable[None]]


def _encode_header_value(value: str) -> bytes:
    # httpx decodes non-latin-1 upstream values as utf-8
    try:
        return value.encode('latin-1')
    except UnicodeEncodeError:
        return value.encode('utf-8')


class ClientStreamResponse(Response):
    """Like ``StreamingResponse`` but driven by a writer coroutine.

    The writer receives a ``ClientConnection`` whose ``disconnected`` event is
    set by a listener task as soon as the client goes away, so the writer can
    tear down its upstream side immediately.
    """

    def __init__(
        self,
        handler: ConnectionHandler,
        status_code: int = 200,
        headers: List[Tuple[str, str]] = None,
    ):
        self.handler = handler
        self.status_code = status_code
        self.background = None
        # Repeated header names (set-cookie) must survive
        self.raw_headers = [
            (k.lower().encode('latin-1'), _encode_header_value(v))
            for k, v in (headers or [])
        ]

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        connection = ClientConnection(send)
        await connection.start(self.status_code, self.raw_headers)
        listener = asyncio.ensure_future(connection.watch_disconnect(receive))
        try:
            await self.handler(connection)
        finally:
            listener.cancel()
            # Collect the listener so no task outlives the response
            await asyncio.wait({listener})
            if not listener.cancelled() and listener.exception() is not None:
                logger.debug("disconnect listener failed: %s", listener.exception())
            await connection.close()

        if self.background is not None:
            await self.background()
