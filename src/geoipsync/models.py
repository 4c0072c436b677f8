"""Data models for geoipsync."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class RemoteArtifact:
    """The remote database and the resource publishing its digest.

    Attributes:
        artifact_url: URL of the MMDB file.
        digest_url: URL of a text resource holding the file's SHA-256.

    """

    artifact_url: str
    digest_url: str


@dataclass(frozen=True)
class RefreshResult:
    """Result of a single refresh cycle.

    Attributes:
        old_digest: SHA-256 of the local database before the cycle, or ""
            if there was none.
        new_digest: SHA-256 of the local database after the cycle.
        checked_at: Timestamp when the remote digest was checked.
        downloaded_bytes: Number of bytes written by the download, 0 if
            nothing was fetched.
        published: True if a newly downloaded database was loaded and
            published to readers.

    """

    old_digest: str
    new_digest: str
    checked_at: datetime | None = None
    downloaded_bytes: int = 0
    published: bool = False

    def __post_init__(self) -> None:
        """Validate that datetime fields are timezone-aware."""
        if self.checked_at is not None and self.checked_at.tzinfo is None:
            msg = "checked_at must be timezone-aware"
            raise ValueError(msg)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization.

        Returns:
            Dictionary representation suitable for JSON output.

        """
        result: dict[str, Any] = {
            "old_digest": self.old_digest,
            "new_digest": self.new_digest,
            "downloaded_bytes": self.downloaded_bytes,
            "published": self.published,
        }
        if self.checked_at:
            result["checked_at"] = int(self.checked_at.timestamp())
        return result

    @property
    def was_updated(self) -> bool:
        """Return True if the local database changed.

        Returns:
            True if old_digest differs from new_digest.

        """
        return self.old_digest != self.new_digest
