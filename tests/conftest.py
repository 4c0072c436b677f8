"""Shared test helpers for geoipsync tests."""

from __future__ import annotations

import hashlib
import ipaddress
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest
from maxminddb.errors import InvalidDatabaseError

BUILD_EPOCH = 1705320000

_ENVIRONMENT = (
    "GEOIPSYNC_CONF_FILE",
    "GEOIPSYNC_DB_DIR",
    "GEOIPSYNC_DB_FILE",
    "GEOIPSYNC_DB_URL",
    "GEOIPSYNC_DIGEST_URL",
    "GEOIPSYNC_UPDATE_INTERVAL",
    "GEOIPSYNC_REQUEST_TIMEOUT",
    "GEOIPSYNC_RETRY_FOR",
    "GEOIPSYNC_LOCK_FILE",
    "GEOIPSYNC_PROXY",
    "GEOIPSYNC_PROXY_USER_PASSWORD",
    "GEOIPSYNC_VERBOSE",
)

CITY_RECORD: dict[str, Any] = {
    "city": {"geoname_id": 2643743, "names": {"en": "London", "de": "London"}},
    "continent": {"code": "EU", "names": {"en": "Europe", "de": "Europa"}},
    "country": {
        "iso_code": "GB",
        "names": {"en": "United Kingdom", "de": "Vereinigtes Königreich"},
    },
    "location": {
        "latitude": 51.5142,
        "longitude": -0.0931,
        "time_zone": "Europe/London",
    },
    "postal": {"code": "EC2V"},
    "subdivisions": [{"iso_code": "ENG", "names": {"en": "England"}}],
}

RECORDS: dict[str, dict[str, Any]] = {"81.2.69.142": CITY_RECORD}

_METADATA_MARKER = b"\xab\xcd\xefMaxMind.com"

# Files that carry the metadata marker but whose metadata map is unusable:
# an empty map, and a map holding only an unknown key.
MALFORMED_METADATA_DATABASES: dict[str, bytes] = {
    "empty-map": b"\x00" * 64 + _METADATA_MARKER + b"\xe0",
    "stray-key": b"\x00" * 64 + _METADATA_MARKER + b"\xe1\x4aformat_ver\xa1\x02",
}


class FakeReader:
    """Stand-in for maxminddb.Reader backed by a fixed set of records."""

    def __init__(
        self,
        content: bytes = b"",
        records: dict[str, dict[str, Any]] | None = None,
    ) -> None:
        self.content = content
        self._records = RECORDS if records is None else records

    def get(self, ip_address: Any) -> dict[str, Any] | None:
        return self._records.get(str(ipaddress.ip_address(ip_address)))

    def metadata(self) -> SimpleNamespace:
        return SimpleNamespace(database_type="GeoLite2-City", build_epoch=BUILD_EPOCH)


def fake_loader(path: Path) -> FakeReader:
    """Load a file as a FakeReader, rejecting files that start with b"corrupt"."""
    content = path.read_bytes()
    if content.startswith(b"corrupt"):
        msg = f"Error opening database file ({path}). Is this a valid MaxMind DB file?"
        raise InvalidDatabaseError(msg)
    return FakeReader(content)


def sha256(data: bytes) -> str:
    """Return the hex SHA-256 of data."""
    return hashlib.sha256(data).hexdigest()


@pytest.fixture(autouse=True)
def _clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENVIRONMENT:
        monkeypatch.delenv(name, raising=False)
