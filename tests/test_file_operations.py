"""Tests for file locking and filesystem helpers."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from unittest.mock import patch

import filelock
import pytest

from geoipsync._file_lock import hold_lock
from geoipsync._utils import cleanup_temp_file, sync_dir
from geoipsync.errors import LockError


class TestHoldLock:
    """Tests for hold_lock."""

    def test_held_inside_block(self, tmp_path: Path) -> None:
        with hold_lock(tmp_path / ".geoipsync.lock") as lock:
            assert lock.is_locked

        assert not lock.is_locked

    def test_released_on_error(self, tmp_path: Path) -> None:
        path = tmp_path / ".geoipsync.lock"

        with pytest.raises(ValueError, match="boom"):
            with hold_lock(path):
                raise ValueError("boom")

        with hold_lock(path) as lock:
            assert lock.is_locked

    def test_held_by_another_holder(self, tmp_path: Path) -> None:
        path = tmp_path / ".geoipsync.lock"

        with filelock.FileLock(str(path)):
            with pytest.raises(LockError, match="another process is refreshing"):
                with hold_lock(path):
                    pass

    def test_verbose_logging(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.INFO, logger="geoipsync._file_lock"):
            with hold_lock(tmp_path / ".geoipsync.lock", verbose=True):
                pass

        assert "Acquired lock" in caplog.text
        assert "Released lock" in caplog.text


class TestCleanupTempFile:
    """Tests for cleanup_temp_file."""

    def test_removes_file(self, tmp_path: Path) -> None:
        path = tmp_path / "GeoLite2-City_abc.download"
        path.write_bytes(b"partial")

        cleanup_temp_file(str(path))

        assert not path.exists()

    def test_missing_file_ignored(self, tmp_path: Path) -> None:
        cleanup_temp_file(str(tmp_path / "missing.download"))

    def test_failure_logged(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        with patch("os.unlink", side_effect=PermissionError("denied")):
            cleanup_temp_file(str(tmp_path / "locked.download"))

        assert "Failed to clean up temp file" in caplog.text


class TestSyncDir:
    """Tests for sync_dir."""

    def test_syncs_directory(self, tmp_path: Path) -> None:
        with patch("os.fsync", wraps=os.fsync) as fsync:
            sync_dir(tmp_path)

        if hasattr(os, "O_DIRECTORY"):
            fsync.assert_called_once()

    def test_missing_directory_logged(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        if not hasattr(os, "O_DIRECTORY"):
            pytest.skip("directory sync not supported")

        sync_dir(tmp_path / "missing")

        assert "Failed to sync directory" in caplog.text
