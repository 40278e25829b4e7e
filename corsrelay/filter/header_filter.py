#!/usr/bin/env python3
"""Response header filtering for relayed upstream responses."""
from typing import Iterable, List, Tuple

# RFC 9110 hop-by-hop headers (must not be forwarded)
HOP_BY_HOP_HEADERS = frozenset({
    'connection', 'keep-alive', 'proxy-authenticate', 'proxy-authorization',
    'te', 'trailers', 'transfer-encoding', 'upgrade',
})

CORS_HEADERS = (
    ('Access-Control-Allow-Origin', '*'),
    ('Access-Control-Allow-Headers', 'Origin, X-Requested-With, Content-Type, Accept'),
)

NO_STORE = ('Cache-Control', 'no-store')

EVENT_STREAM_CONTENT_TYPE = 'text/event-stream; charset=utf-8'

HeaderList = List[Tuple[str, str]]


def strip_hop_by_hop(headers: Iterable[Tuple[str, str]]) -> HeaderList:
    """Drop hop-by-hop headers, keeping order and repeated names."""
    return [(k, v) for k, v in headers if k.lower() not in HOP_BY_HOP_HEADERS]


def override_headers(headers: HeaderList, overrides: Iterable[Tuple[str, str]]) -> HeaderList:
    """Replace every header named in ``overrides`` (case-insensitive), then append them."""
    overrides = list(overrides)
    names = {k.lower() for k, _ in overrides}
    kept = [(k, v) for k, v in headers if k.lower() not in names]
    return kept + overrides


def relay_response_headers(upstream_headers: Iterable[Tuple[str, str]]) -> HeaderList:
    """Headers sent to the client when forwarding an upstream response."""
    return override_headers(strip_hop_by_hop(upstream_headers), [*CORS_HEADERS, NO_STORE])


def event_stream_headers() -> HeaderList:
    """Fixed response head for synthesized and relayed event streams."""
    return [('Content-Type', EVENT_STREAM_CONTENT_TYPE), NO_STORE, *CORS_HEADERS]
