"""Background synchronization of a MaxMind GeoIP database."""

from __future__ import annotations

from importlib.metadata import version

__version__ = version("geoipsync")

from geoipsync.config import Config
from geoipsync.enrichment import EnrichmentConfig, GeoIPEnrichment
from geoipsync.errors import (
    CacheDirectoryError,
    ConfigError,
    DownloadError,
    GeoIPSyncError,
    HTTPError,
    LockError,
    MissingContentLengthError,
)
from geoipsync.models import RefreshResult, RemoteArtifact
from geoipsync.publisher import Publisher
from geoipsync.state import GeoIPState, RefreshableResource
from geoipsync.updater import Updater

__all__ = [
    "CacheDirectoryError",
    "Config",
    "ConfigError",
    "DownloadError",
    "EnrichmentConfig",
    "GeoIPEnrichment",
    "GeoIPState",
    "GeoIPSyncError",
    "HTTPError",
    "LockError",
    "MissingContentLengthError",
    "Publisher",
    "RefreshResult",
    "RefreshableResource",
    "RemoteArtifact",
    "Updater",
    "__version__",
]
