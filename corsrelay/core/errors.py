#!/usr/bin/env python3
"""Error types raised while validating, fetching and relaying requests."""


class RelayError(Exception):
    """Base class for relay failures that map onto an HTTP status."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MissingParameter(RelayError):
    status_code = 400


class InvalidParameter(RelayError):
    status_code = 400


class InvalidURL(RelayError):
    status_code = 400


class HostNotAllowed(RelayError):
    status_code = 403


class UpstreamUnreachable(RelayError):
    """No response could be obtained from the remote service."""

    status_code = 502


class StreamReadError(RelayError):
    """The upstream body failed after the response was accepted."""

    status_code = 502

