"""Exception classes for geoipsync."""

from __future__ import annotations


class GeoIPSyncError(Exception):
    """Base exception for geoipsync errors."""


class ConfigError(GeoIPSyncError):
    """Configuration is invalid or incomplete."""


class CacheDirectoryError(GeoIPSyncError):
    """The database cache directory could not be created."""


class DownloadError(GeoIPSyncError):
    """Error fetching the database or its digest."""


class HTTPError(DownloadError):
    """HTTP request failed with an error status code."""

    def __init__(self, message: str, status_code: int, body: str = "") -> None:
        """Initialize HTTPError.

        Args:
            message: Error message.
            status_code: HTTP status code.
            body: Response body, if available.

        """
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class MissingContentLengthError(DownloadError):
    """The database response did not declare a Content-Length."""


class LockError(GeoIPSyncError):
    """Could not acquire file lock."""
