#!/usr/bin/env python3
"""Turns a plain polling endpoint into a server-sent event stream."""
import asyncio
import logging
from typing import Optional

import httpx

from ..core.client_connection import ClientConnection
from ..core.errors import StreamReadError, UpstreamUnreachable
from ..core.frames import comment_frame, frame_body
from ..core.upstream import POLL_TIMEOUT, UpstreamFetcher

logger = logging.getLogger(__name__)


def iteration_deadline(timeout: httpx.Timeout) -> Optional[float]:
    """Upper bound in seconds for one whole fetch-and-read, None if unbounded."""
    limits = [t for t in (timeout.connect, timeout.read, timeout.write, timeout.pool) if t is not None]
    return max(limits) if limits else None


class PollSynthesizer:
    """Fetches ``target_url`` every ``interval_ms`` and writes one frame per fetch."""

    def __init__(
        self,
        fetcher: UpstreamFetcher,
        target_url: str,
        interval_ms: int = 200,
        timeout: httpx.Timeout = POLL_TIMEOUT,
    ):
        self.fetcher = fetcher
        self.target_url = target_url
        self.interval = max(interval_ms, 0) / 1000.0
        self.timeout = timeout
        # httpx limits each phase; this bounds the iteration as a whole
        self.deadline = iteration_deadline(timeout)
        self.iterations = 0

    async def poll_once(self) -> str:
        """Fetch once and build the frame; never raises for upstream problems."""
        try:
            return await asyncio.wait_for(self._fetch_frame(), self.deadline)
        except asyncio.TimeoutError:
            logger.info("poll %s timed out after %ss", self.target_url, self.deadline)
            return comment_frame(f"error fetching upstream: timed out after {self.deadline}s")

    async def _fetch_frame(self) -> str:
        try:
            upstream = await self.fetcher.fetch(self.target_url, timeout=self.timeout)
        except UpstreamUnreachable as exc:
            logger.info("poll %s failed: %s", self.target_url, exc.message)
            return comment_frame(f"error fetching upstream: {exc.message}")

        async with upstream:
            if not upstream.ok:
                return comment_frame(f"upstream status {upstream.status_code}")
            try:
                body = await upstream.read()
                text = await upstream.text()
            except StreamReadError as exc:
                logger.info("poll %s read failed: %s", self.target_url, exc.message)
                return comment_frame(f"error reading upstream: {exc.message}")
            return frame_body(upstream.content_type, body, text)

    async def run(self, connection: ClientConnection):
        """Poll until the client disconnects, then close the connection."""
        logger.info("poll stream started: %s every %sms", self.target_url, int(self.interval * 1000))
        try:
            while not connection.closed:
                frame = await self.poll_once()
                self.iterations += 1
                if not await connection.write(frame.encode('utf-8')):
                    break
                # Returns as soon as the client goes away
                if await connection.wait_disconnected(self.interval):
                    break
        finally:
            await connection.close()
            logger.info("poll stream ended: %s after %d polls", self.target_url, self.iterations)
