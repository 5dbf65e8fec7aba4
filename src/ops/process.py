"""
Process management for the monitor service.

This module provides:
- PID file management so only one process owns the camera
- SIGTERM handling so a running recording is finalized on shutdown
"""

from __future__ import annotations

import atexit
import logging
import os
import signal
import time
from pathlib import Path
from typing import Callable, Optional

DEFAULT_PID_FILE = "data/rail_crossing_monitor.pid"


def get_pid_file_path(pid_file: Optional[str] = None) -> Path:
    return Path(pid_file or DEFAULT_PID_FILE)


def read_pid_file(pid_file: Optional[str] = None) -> Optional[int]:
    """
    Read the PID from the PID file.

    Returns:
        The PID if the file exists and is valid, None otherwise.
    """
    path = get_pid_file_path(pid_file)
    if not path.exists():
        return None

    try:
        return int(path.read_text().strip())
    except (ValueError, OSError):
        return None


def is_process_running(pid: int) -> bool:
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # exists, owned by another user
        return True
    return True


def write_pid_file(pid_file: Optional[str] = None) -> None:
    """Write the current PID and remove the file again on exit."""
    path = get_pid_file_path(pid_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(str(os.getpid()))
    logging.debug(f"Wrote PID {os.getpid()} to {path}")
    atexit.register(remove_pid_file, pid_file)


def remove_pid_file(pid_file: Optional[str] = None) -> None:
    path = get_pid_file_path(pid_file)
    try:
        if path.exists():
            path.unlink()
            logging.debug(f"Removed PID file: {path}")
    except OSError as e:
        logging.warning(f"Failed to remove PID file: {e}")


def ensure_single_instance(pid_file: Optional[str] = None, kill_existing: bool = False) -> bool:
    """
    Ensure only one monitor process is running.

    Args:
        pid_file: Path to PID file (default: data/rail_crossing_monitor.pid).
        kill_existing: Terminate a running instance instead of refusing to start.

    Returns:
        True if we can proceed, False if another instance is running.
    """
    existing_pid = read_pid_file(pid_file)

    if existing_pid is not None and existing_pid != os.getpid():
        if is_process_running(existing_pid):
            if not kill_existing:
                logging.error(
                    f"Another instance is already running (PID {existing_pid}). "
                    f"Use --kill-existing to replace it, or stop it manually."
                )
                return False

            logging.info(f"Stopping existing instance (PID {existing_pid})...")
            try:
                os.kill(existing_pid, signal.SIGTERM)
            except OSError as e:
                logging.error(f"Failed to stop existing instance (PID {existing_pid}): {e}")
                return False

            for _ in range(10):
                if not is_process_running(existing_pid):
                    break
                time.sleep(0.5)
            else:
                logging.error(f"Existing instance (PID {existing_pid}) did not stop")
                return False
        else:
            logging.info(f"Removing stale PID file (PID {existing_pid} not running)")

        remove_pid_file(pid_file)

    write_pid_file(pid_file)
    return True


def install_shutdown_handler(stop: Callable[[], None]) -> None:
    """Call stop() on SIGTERM so the main loop can finish and clean up."""
    def handle(signum, frame):
        logging.info(f"Received signal {signum}, shutting down")
        stop()

    signal.signal(signal.SIGTERM, handle)
