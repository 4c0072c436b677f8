"""Internal filesystem helpers for geoipsync."""

from __future__ import annotations

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


def cleanup_temp_file(temp_path: str) -> None:
    """Remove a temporary file, logging a warning on failure.

    Args:
        temp_path: Path to the temporary file.

    """
    try:
        os.unlink(temp_path)
    except FileNotFoundError:
        pass
    except OSError:
        logger.warning("Failed to clean up temp file: %s", temp_path, exc_info=True)


def sync_dir(path: Path) -> None:
    """Sync a directory so a rename inside it is persisted.

    Failures are logged; some filesystems don't support directory fsync.

    Args:
        path: Directory path to sync.

    """
    if not hasattr(os, "O_DIRECTORY"):
        return
    try:
        fd = os.open(str(path), os.O_RDONLY | os.O_DIRECTORY)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)
    except OSError:
        logger.warning("Failed to sync directory %s", path, exc_info=True)
