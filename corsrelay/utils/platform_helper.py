#!/usr/bin/env python3
import subprocess
import sys

import psutil


def is_process_running(pid):
    """Check whether a process is running on any supported platform."""
    if pid is None:
        return False

    try:
        process = psutil.Process(pid)
        return process.is_running() and process.status() != psutil.STATUS_ZOMBIE
    except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
        return False


def kill_process(pid, timeout=5):
    """Terminate a process and its children, killing whatever survives ``timeout``."""
    if not is_process_running(pid):
        return True

    try:
        process = psutil.Process(pid)
        children = process.children(recursive=True)

        for child in children:
            try:
                child.terminate()
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue
        process.terminate()

        gone, still_alive = psutil.wait_procs(children + [process], timeout=timeout)

        # Force-kill any processes that survived the graceful phase
        for p in still_alive:
            try:
                p.kill()
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue

        return True
    except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
        return True  # Process no longer exists


def create_detached_process(cmd, log_file, *, cwd=None, env=None):
    """Start ``cmd`` detached from the console, output appended to ``log_file``."""
    kwargs = dict(
        cwd=cwd,
        env=env,
        stdout=log_file,
        stderr=log_file,
        stdin=subprocess.DEVNULL,
    )
    if sys.platform == "win32":
        kwargs['creationflags'] = subprocess.CREATE_NEW_PROCESS_GROUP | subprocess.CREATE_NO_WINDOW
    else:
        kwargs['start_new_session'] = True

    try:
        return subprocess.Popen(cmd, **kwargs)
    except OSError as e:
        raise RuntimeError(f"Failed to create detached process: {e}") from e
