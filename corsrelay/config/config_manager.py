#!/usr/bin/env python3
"""Relay configuration: defaults, ~/.crl/relay.json overrides, then environment."""
import json
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, FrozenSet, Mapping, Optional

import httpx

CONFIG_DIR = Path.home() / '.crl'
CONFIG_FILE = CONFIG_DIR / 'relay.json'


@dataclass(frozen=True)
class RelayConfig:
    """Settings built once at startup and handed to the relay service."""

    host: str = '0.0.0.0'
    port: int = 3000
    # Empty means every host may be relayed
    allowed_hosts: FrozenSet[str] = field(default_factory=frozenset)
    default_interval_ms: int = 200
    poll_timeout: float = 5.0
    relay_connect_timeout: float = 30.0
    relay_read_timeout: Optional[float] = None

    @property
    def poll_timeout_config(self) -> httpx.Timeout:
        return httpx.Timeout(self.poll_timeout)

    @property
    def relay_timeout_config(self) -> httpx.Timeout:
        return httpx.Timeout(
            timeout=None,
            connect=self.relay_connect_timeout,
            read=self.relay_read_timeout,
            write=30.0,
            pool=None,
        )


def parse_allowed_hosts(value: Any) -> FrozenSet[str]:
    """Accept a comma separated string or a list of hostnames."""
    if not value:
        return frozenset()
    if isinstance(value, str):
        items = value.split(',')
    elif isinstance(value, (list, tuple, set, frozenset)):
        items = [str(item) for item in value]
    else:
        return frozenset()
    return frozenset(item.strip() for item in items if item.strip())


def _parse_port(value: Any, default: int) -> int:
    try:
        port = int(value)
    except (TypeError, ValueError):
        print(f"Invalid port {value!r}, using {default}")
        return default
    if not 0 < port < 65536:
        print(f"Port {port} out of range, using {default}")
        return default
    return port


def _parse_seconds(value: Any, default: Optional[float], allow_none: bool = False) -> Optional[float]:
    if value is None or value == '':
        return default
    if allow_none and str(value).strip().lower() in ('none', 'off', '0'):
        return None
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        print(f"Invalid timeout {value!r}, using {default}")
        return default
    if seconds <= 0:
        print(f"Timeout must be positive, using {default}")
        return default
    return seconds


def _load_file_overrides(config_file: Path) -> Dict[str, Any]:
    """Read the optional JSON config file; a broken file is reported and ignored."""
    if not config_file.exists():
        return {}
    try:
        with open(config_file, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        print(f"Failed to load configuration file: {e}")
        return {}
    if not isinstance(data, dict):
        print(f"Ignoring configuration file {config_file}: expected an object")
        return {}
    return data


def load_config(
    environ: Optional[Mapping[str, str]] = None,
    config_file: Optional[Path] = None,
) -> RelayConfig:
    """Build the relay configuration. Environment variables win over the file."""
    environ = os.environ if environ is None else environ
    config_file = CONFIG_FILE if config_file is None else config_file
    config = RelayConfig()

    data = _load_file_overrides(config_file)
    if 'host' in data:
        config = replace(config, host=str(data['host']))
    if 'port' in data:
        config = replace(config, port=_parse_port(data['port'], config.port))
    if 'allowed_hosts' in data:
        config = replace(config, allowed_hosts=parse_allowed_hosts(data['allowed_hosts']))
    if 'default_interval_ms' in data:
        try:
            interval = int(data['default_interval_ms'])
        except (TypeError, ValueError):
            interval = -1
        if interval >= 0:
            config = replace(config, default_interval_ms=interval)
        else:
            print(f"Invalid default_interval_ms, using {config.default_interval_ms}")
    if 'poll_timeout' in data:
        config = replace(config, poll_timeout=_parse_seconds(data['poll_timeout'], config.poll_timeout))
    if 'relay_read_timeout' in data:
        config = replace(config, relay_read_timeout=_parse_seconds(
            data['relay_read_timeout'], config.relay_read_timeout, allow_none=True))

    if environ.get('HOST'):
        config = replace(config, host=environ['HOST'])
    if environ.get('PORT'):
        config = replace(config, port=_parse_port(environ['PORT'], config.port))
    if 'ALLOWED_HOSTS' in environ:
        config = replace(config, allowed_hosts=parse_allowed_hosts(environ['ALLOWED_HOSTS']))
    if environ.get('POLL_TIMEOUT'):
        config = replace(config, poll_timeout=_parse_seconds(environ['POLL_TIMEOUT'], config.poll_timeout))
    if environ.get('RELAY_READ_TIMEOUT'):
        config = replace(config, relay_read_timeout=_parse_seconds(
            environ['RELAY_READ_TIMEOUT'], config.relay_read_timeout, allow_none=True))

    return config
