#!/usr/bin/env python3
"""CORS relay service: byte-stream relay and poll-to-stream endpoints."""
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from ..config.config_manager import RelayConfig, load_config
from ..core.client_connection import ClientConnection
from ..core.errors import InvalidParameter, RelayError, StreamReadError, UpstreamUnreachable
from ..core.responses import ClientStreamResponse
from ..core.stream_pump import pump
from ..core.upstream import UpstreamFetcher, UpstreamResponse
from ..filter.header_filter import CORS_HEADERS, event_stream_headers, relay_response_headers
from ..filter.host_policy import check_target
from .poll_synthesizer import PollSynthesizer

logger = logging.getLogger(__name__)

BANNER = (
    "CORS relay\n"
    "  GET /proxy?url=<target>                 forward a response with CORS headers\n"
    "  GET /stream?url=<target>                relay an upstream event stream\n"
    "  GET /sse?url=<target>&interval=<ms>     poll a plain endpoint as an event stream\n"
    "  GET /ping                               health check\n"
)


def parse_interval(value: Optional[str], default: int) -> int:
    """Poll interval in milliseconds from the query string."""
    if value is None or value.strip() == '':
        return default
    try:
        interval = int(value)
    except ValueError:
        raise InvalidParameter(f'invalid interval: {value}') from None
    if interval < 0:
        raise InvalidParameter(f'invalid interval: {value}')
    return interval


class RelayProxyService:
    """Owns the FastAPI app and the per-request relay logic."""

    def __init__(self, config: RelayConfig, fetcher: Optional[UpstreamFetcher] = None):
        self.config = config
        self.fetcher = fetcher or UpstreamFetcher()

        # Configure the package logger once; module loggers propagate to it
        self.logger = logging.getLogger('corsrelay')
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)
            self.logger.setLevel(logging.INFO)

        self.app = FastAPI(title='CORS relay')
        # Answers preflight requests; simple responses carry CORS headers explicitly
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_methods=["GET", "OPTIONS"],
            allow_headers=["Origin", "X-Requested-With", "Content-Type", "Accept"],
        )
        self.app.add_exception_handler(RelayError, self._relay_error_handler)
        self._setup_routes()

    async def _relay_error_handler(self, request: Request, exc: RelayError):
        self.logger.info("%s %s rejected: %s", request.method, request.url.path, exc.message)
        return PlainTextResponse(exc.message, status_code=exc.status_code, headers=dict(CORS_HEADERS))

    def _setup_routes(self):
        """Register the FastAPI routes."""
        @self.app.get("/", response_class=PlainTextResponse)
        async def banner_route():
            return BANNER

        @self.app.get("/ping", response_class=PlainTextResponse)
        async def ping_route():
            return "ok"

        @self.app.get("/proxy")
        async def proxy_route(url: Optional[str] = None):
            return await self.relay(url)

        @self.app.get("/stream")
        async def stream_route(url: Optional[str] = None):
            return await self.relay_event_stream(url)

        @self.app.get("/sse")
        async def sse_route(url: Optional[str] = None, interval: Optional[str] = None):
            return self.poll_stream(url, interval)

    def _bad_gateway(self, target: str, exc: UpstreamUnreachable) -> PlainTextResponse:
        self.logger.warning("proxy error for %s: %s", target, exc.message)
        return PlainTextResponse(
            f"bad gateway: {exc.message}",
            status_code=502,
            headers=dict(CORS_HEADERS),
        )

    @staticmethod
    def _forwarder(upstream: UpstreamResponse):
        async def forward(connection: ClientConnection):
            try:
                if upstream.has_body:
                    await pump(upstream, connection)
            finally:
                await upstream.aclose()
                if upstream.cancelled:
                    logger.debug("upstream read cancelled after client disconnect")
        return forward

    async def relay(self, url: Optional[str]):
        """GET ``url`` and stream the response back with CORS headers."""
        target = check_target(url, self.config.allowed_hosts)
        try:
            upstream = await self.fetcher.fetch(target, timeout=self.config.relay_timeout_config)
        except UpstreamUnreachable as exc:
            return self._bad_gateway(target, exc)

        self.logger.info("proxy %s -> %s", target, upstream.status_code)
        return ClientStreamResponse(
            self._forwarder(upstream),
            status_code=upstream.status_code,
            headers=relay_response_headers(upstream.headers),
        )

    async def relay_event_stream(self, url: Optional[str]):
        """Relay an upstream ``text/event-stream`` verbatim."""
        target = check_target(url, self.config.allowed_hosts)
        try:
            upstream = await self.fetcher.fetch(
                target,
                headers={'Accept': 'text/event-stream'},
                timeout=self.config.relay_timeout_config,
            )
        except UpstreamUnreachable as exc:
            return self._bad_gateway(target, exc)

        if not upstream.ok:
            async with upstream:
                try:
                    text = await upstream.text()
                except StreamReadError as exc:
                    self.logger.warning("sse error for %s: %s", target, exc.message)
                    text = ''
            return PlainTextResponse(text, status_code=upstream.status_code, headers=dict(CORS_HEADERS))

        self.logger.info("sse relay opened: %s", target)
        return ClientStreamResponse(
            self._forwarder(upstream),
            status_code=200,
            headers=event_stream_headers(),
        )

    def poll_stream(self, url: Optional[str], interval: Optional[str]):
        """Synthesize an event stream by polling ``url``."""
        target = check_target(url, self.config.allowed_hosts)
        interval_ms = parse_interval(interval, self.config.default_interval_ms)
        synthesizer = PollSynthesizer(
            self.fetcher,
            target,
            interval_ms=interval_ms,
            timeout=self.config.poll_timeout_config,
        )
        return ClientStreamResponse(synthesizer.run, status_code=200, headers=event_stream_headers())


def create_app(config: Optional[RelayConfig] = None, fetcher: Optional[UpstreamFetcher] = None) -> FastAPI:
    """Application factory (``uvicorn --factory corsrelay.relay.proxy:create_app``)."""
    config = config or load_config()
    service = RelayProxyService(config, fetcher=fetcher)
    if config.allowed_hosts:
        service.logger.info("Allowed hosts: %s", ', '.join(sorted(config.allowed_hosts)))
    return service.app
