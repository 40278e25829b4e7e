#!/usr/bin/env python3
"""Outbound GET requests to the remote data source."""
import logging
from typing import AsyncIterator, Dict, List, Optional, Tuple

import httpx

from .errors import StreamReadError, UpstreamUnreachable

logger = logging.getLogger(__name__)

# Poll iterations must not stall for longer than this
POLL_TIMEOUT = httpx.Timeout(5.0)


def describe_request_error(exc: httpx.RequestError) -> str:
    """Short human readable description of an httpx failure."""
    if isinstance(exc, httpx.ConnectTimeout):
        error_msg = "Connection timed out"
    elif isinstance(exc, httpx.ReadTimeout):
        error_msg = "Read timed out"
    elif isinstance(exc, httpx.ConnectError):
        error_msg = "Connection error"
    elif isinstance(exc, httpx.UnsupportedProtocol):
        error_msg = "Unsupported protocol"
    else:
        error_msg = "Request failed"
    detail = str(exc)
    return f"{error_msg}: {detail}" if detail else error_msg


class UpstreamResponse:
    """Handle over one upstream response and the client that produced it.

    The handle owns both and releases them on ``aclose()``, which may be
    called any number of times.
    """

    def __init__(self, response: httpx.Response, client: httpx.AsyncClient):
        self._response = response
        self._client = client
        self._closed = False
        self.cancelled = False

    @property
    def status_code(self) -> int:
        return self._response.status_code

    @property
    def ok(self) -> bool:
        return 200 <= self._response.status_code < 300

    @property
    def headers(self) -> List[Tuple[str, str]]:
        return list(self._response.headers.multi_items())

    @property
    def content_type(self) -> str:
        return self._response.headers.get('content-type', '')

    @property
    def has_body(self) -> bool:
        if self._response.status_code in (204, 304):
            return False
        return self._response.headers.get('content-length') != '0'

    async def iter_raw(self) -> AsyncIterator[bytes]:
        """Yield body bytes exactly as received (content-encoding untouched)."""
        if self._response.is_stream_consumed:
            # Body already loaded (in-memory responses); nothing left to stream
            if self._response.content:
                yield self._response.content
            return
        try:
            async for chunk in self._response.aiter_raw():
                yield chunk
        except httpx.HTTPError as exc:
            raise StreamReadError(f"upstream read failed: {exc}") from exc

    async def read(self) -> bytes:
        """Read the whole (decoded) body."""
        try:
            return await self._response.aread()
        except httpx.HTTPError as exc:
            raise StreamReadError(f"upstream read failed: {exc}") from exc

    async def text(self) -> str:
        await self.read()
        return self._response.text

    @property
    def closed(self) -> bool:
        return self._closed

    async def cancel(self):
        """Abort the body read and drop the connection."""
        self.cancelled = True
        await self.aclose()

    async def aclose(self):
        if self._closed:
            return
        self._closed = True
        try:
            await self._response.aclose()
        finally:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()


class UpstreamFetcher:
    """Issues single GET requests, one fresh client per request."""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        # Tests inject httpx.MockTransport here
        self.transport = transport

    async def fetch(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        timeout: httpx.Timeout = POLL_TIMEOUT,
    ) -> UpstreamResponse:
        """GET ``url`` and return a handle with a lazily readable body.

        Raises:
            UpstreamUnreachable: no response was obtained
        """
        client = httpx.AsyncClient(
            timeout=timeout,
            transport=self.transport,
            follow_redirects=True,
        )
        try:
            request = client.build_request('GET', url, headers=headers)
            response = await client.send(request, stream=True)
        except (httpx.RequestError, httpx.InvalidURL) as exc:
            await client.aclose()
            if isinstance(exc, httpx.RequestError):
                message = describe_request_error(exc)
            else:
                message = f"Invalid URL: {exc}"
            logger.debug("fetch %s failed: %s", url, message)
            raise UpstreamUnreachable(message) from exc
        except BaseException:
            await client.aclose()
            raise
        return UpstreamResponse(response, client)
