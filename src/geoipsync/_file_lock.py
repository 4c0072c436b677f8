"""Inter-process lock around a refresh cycle."""

from __future__ import annotations

import contextlib
import logging
from collections.abc import Iterator
from pathlib import Path

import filelock

from geoipsync.errors import LockError

logger = logging.getLogger(__name__)


@contextlib.contextmanager
def hold_lock(path: Path, *, verbose: bool = False) -> Iterator[filelock.BaseFileLock]:
    """Hold the refresh lock at ``path`` for the duration of the block.

    Two processes sharing a cache directory take this lock before touching the
    database file. The lock is tried once; a process that finds it held skips
    its cycle rather than queueing behind the other one.

    Example:
        with hold_lock(Path("/var/lib/GeoIP/.geoipsync.lock")):
            # Download and replace the database while holding the lock
            pass

    Args:
        path: Path to the lock file.
        verbose: Enable verbose logging.

    Yields:
        The acquired lock.

    Raises:
        LockError: If another holder has the lock.

    """
    lock = filelock.FileLock(str(path))
    try:
        lock.acquire(timeout=0)
    except filelock.Timeout as e:
        msg = f"Could not acquire lock on {path}: another process is refreshing"
        raise LockError(msg) from e

    if verbose:
        logger.info("Acquired lock: %s", path)
    try:
        yield lock
    finally:
        lock.release()
        if verbose:
            logger.info("Released lock: %s", path)
