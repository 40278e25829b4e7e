#!/usr/bin/env python3
"""Target URL validation and the host allowlist check."""
from typing import AbstractSet, Optional
from urllib.parse import SplitResult, urlsplit

from ..core.errors import HostNotAllowed, InvalidURL, MissingParameter

ALLOWED_SCHEMES = {'http', 'https'}


def parse_target_url(url: Optional[str]) -> SplitResult:
    """Validate the ``url`` query parameter and return its parsed form.

    Raises:
        MissingParameter: the parameter is absent or blank
        InvalidURL: not an absolute http(s) URL with a hostname
    """
    if url is None or not url.strip():
        raise MissingParameter('missing url query param')

    try:
        parsed = urlsplit(url.strip())
        hostname = parsed.hostname
        # Accessing port validates it (raises ValueError when out of range)
        parsed.port
    except ValueError as exc:
        raise InvalidURL(f'invalid url: {exc}') from exc

    if parsed.scheme.lower() not in ALLOWED_SCHEMES or not hostname:
        raise InvalidURL(f'invalid url: {url}')
    return parsed


def is_host_allowed(url: str, allowed_hosts: AbstractSet[str]) -> bool:
    """Return True when the allowlist is empty or contains the URL's hostname."""
    if not allowed_hosts:
        return True
    try:
        hostname = urlsplit(url).hostname
    except ValueError:
        return False
    return hostname is not None and hostname in allowed_hosts


def check_target(url: Optional[str], allowed_hosts: AbstractSet[str]) -> str:
    """Run validation then the allowlist check; returns the stripped URL."""
    parse_target_url(url)
    target = url.strip()
    if not is_host_allowed(target, allowed_hosts):
        raise HostNotAllowed('host not allowed')
    return target
