"""
Run lock for wosync.

Only one push may run at a time: the remote side is a single stateful
session and the stack file has no concurrent writers. Uses flock on a
file under the data directory.
"""

import atexit
import fcntl
import os
import signal
import sys
import time
from contextlib import contextmanager
from pathlib import Path

from wosync.lib.errors import WosyncError


class LockTimeout(WosyncError):
    """Lock acquisition timed out."""
    pass


def is_locked(lock_file: Path) -> bool:
    """Check whether another process currently holds the lock."""
    if not lock_file.exists():
        return False
    with open(lock_file, 'r') as fd:
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            return True
        fcntl.flock(fd, fcntl.LOCK_UN)
    return False


@contextmanager
def _acquire_lock(lock_file: Path, timeout: int, lock_name: str):
    """
    Acquire an exclusive file lock, polling once a second until timeout.

    Lock files are never deleted: removing one lets two processes hold
    "exclusive" locks on different inodes with the same path.
    """
    lock_file.parent.mkdir(parents=True, exist_ok=True)

    fd = open(lock_file, 'w')
    start = time.time()

    while True:
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            break
        except BlockingIOError:
            if time.time() - start >= timeout:
                fd.close()
                raise LockTimeout(f"Could not acquire {lock_name} within {timeout}s")
            time.sleep(1)

    def cleanup():
        try:
            fcntl.flock(fd, fcntl.LOCK_UN)
            fd.close()
        except (OSError, ValueError):
            pass

    atexit.register(cleanup)
    original_sigterm = signal.signal(signal.SIGTERM, lambda *_: sys.exit(1))

    try:
        fd.write(f"{os.getpid()}\n")
        fd.flush()
        yield
    finally:
        atexit.unregister(cleanup)
        signal.signal(signal.SIGTERM, original_sigterm)
        cleanup()


def sync_lock_path(data_dir: Path) -> Path:
    return data_dir / "locks" / "sync.lock"


@contextmanager
def sync_lock(data_dir: Path, timeout: int = 30):
    """
    Hold the sync lock for the duration of a push run.

    Raises:
        LockTimeout: if another push holds the lock past the timeout
    """
    with _acquire_lock(sync_lock_path(data_dir), timeout, "sync lock"):
        yield
