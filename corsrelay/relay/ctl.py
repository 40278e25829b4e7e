#!/usr/bin/env python3
"""Start/stop control for the relay running as a background uvicorn process."""
import os
import sys
import time
from pathlib import Path
from typing import Optional

from ..config.config_manager import CONFIG_DIR, RelayConfig
from ..utils.platform_helper import create_detached_process, is_process_running, kill_process

APP_FACTORY = 'corsrelay.relay.proxy:create_app'


def uvicorn_command(host: str, port: int):
    return [
        sys.executable, '-m', 'uvicorn',
        APP_FACTORY,
        '--factory',
        '--host', host,
        '--port', str(port),
        '--http', 'h11',
        '--timeout-keep-alive', '60',
    ]


class RelayController:
    """Controller helper used by CLI commands."""

    def __init__(self, config: RelayConfig, run_dir: Optional[Path] = None):
        self.config = config
        self.run_dir = run_dir or CONFIG_DIR / 'run'
        self.pid_file = self.run_dir / 'relay.pid'
        self.log_file = self.run_dir / 'relay.log'

    def get_pid(self) -> Optional[int]:
        """Return the PID of the relay process if a PID file exists."""
        try:
            return int(self.pid_file.read_text().strip())
        except (OSError, ValueError):
            return None

    def is_running(self) -> bool:
        return is_process_running(self.get_pid())

    def start(self) -> bool:
        """Start the relay in a detached process."""
        if self.is_running():
            print("Relay is already running")
            return False

        self.run_dir.mkdir(parents=True, exist_ok=True)
        project_root = Path(__file__).parent.parent.parent
        env = os.environ.copy()
        # The child re-reads its configuration from the environment
        env['HOST'] = self.config.host
        env['PORT'] = str(self.config.port)

        with open(self.log_file, 'a') as log_handle:
            process = create_detached_process(
                uvicorn_command(self.config.host, self.config.port),
                log_handle,
                cwd=str(project_root),
                env=env,
            )

        self.pid_file.write_text(str(process.pid))

        # Allow the process time to boot
        time.sleep(1)

        if self.is_running():
            print(f"Relay started (port: {self.config.port})")
            return True
        print(f"Failed to start relay, see {self.log_file}")
        return False

    def stop(self) -> bool:
        """Stop the relay process."""
        if not self.is_running():
            print("Relay is not running")
            if self.pid_file.exists():
                self.pid_file.unlink()
            return False

        kill_process(self.get_pid())
        if self.pid_file.exists():
            self.pid_file.unlink()
        print("Relay stopped")
        return True

    def restart(self) -> bool:
        self.stop()
        time.sleep(1)
        return self.start()

    def status(self):
        """Print the relay status to stdout."""
        print("=== CORS Relay Status ===\n")
        if self.is_running():
            print(f"  Status: Running (PID: {self.get_pid()})")
        else:
            print("  Status: Stopped")
        print(f"  Address: http://{self.config.host}:{self.config.port}")
        if self.config.allowed_hosts:
            print(f"  Allowed hosts: {', '.join(sorted(self.config.allowed_hosts))}")
        else:
            print("  Allowed hosts: any")
        print(f"  Log: {self.log_file}")
