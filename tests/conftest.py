"""Shared fixtures: mock upstreams and an ASGI driver for endless streams."""
import asyncio
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional
from urllib.parse import urlencode

import httpx
import pytest

from corsrelay.config.config_manager import RelayConfig
from corsrelay.core.upstream import UpstreamFetcher
from corsrelay.relay.proxy import create_app


@pytest.fixture
def anyio_backend():
    # The relay is written against asyncio directly
    return "asyncio"


class MockUpstream:
    """In-process upstream built on httpx.MockTransport.

    ``responder`` receives the request and the 1-based call number and returns
    an ``httpx.Response`` (or raises an httpx transport error).
    """

    def __init__(self, responder: Callable[[httpx.Request, int], httpx.Response]):
        self.responder = responder
        self.requests: List[httpx.Request] = []

    @property
    def calls(self) -> int:
        return len(self.requests)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responder(request, len(self.requests))

    def fetcher(self) -> UpstreamFetcher:
        return UpstreamFetcher(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def make_app():
    def _make(upstream: MockUpstream, **config_overrides):
        return create_app(RelayConfig(**config_overrides), fetcher=upstream.fetcher())
    return _make


@dataclass
class StreamResult:
    status: Optional[int] = None
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b''
    messages: List[dict] = field(default_factory=list)

    @property
    def frames(self) -> List[str]:
        text = self.body.decode('utf-8')
        return [chunk for chunk in text.split('\n\n') if chunk]


async def drive_stream(app, path: str, params: dict, stop_when: Callable[[bytes], bool],
                       timeout: float = 5.0) -> StreamResult:
    """Issue a GET against ``app`` and disconnect once ``stop_when(body)`` holds."""
    result = StreamResult()
    disconnect = asyncio.Event()
    request_sent = False

    async def receive():
        nonlocal request_sent
        if not request_sent:
            request_sent = True
            return {'type': 'http.request', 'body': b'', 'more_body': False}
        await disconnect.wait()
        return {'type': 'http.disconnect'}

    async def send(message):
        result.messages.append(message)
        if message['type'] == 'http.response.start':
            result.status = message['status']
            result.headers = {k.decode('latin-1'): v.decode('latin-1') for k, v in message['headers']}
        elif message['type'] == 'http.response.body':
            result.body += message.get('body', b'')
            if stop_when(result.body):
                disconnect.set()

    scope = {
        'type': 'http',
        'asgi': {'version': '3.0'},
        'http_version': '1.1',
        'method': 'GET',
        'scheme': 'http',
        'path': path,
        'raw_path': path.encode('ascii'),
        'root_path': '',
        'query_string': urlencode(params).encode('ascii'),
        'headers': [(b'host', b'relay.test')],
        'client': ('127.0.0.1', 50000),
        'server': ('relay.test', 80),
    }
    await asyncio.wait_for(app(scope, receive, send), timeout)
    return result
