"""Flat geo-location enrichment built on a published MaxMind DB reader."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from ipaddress import IPv4Address, IPv6Address
from typing import TYPE_CHECKING, Any

from geoipsync.errors import ConfigError

if TYPE_CHECKING:
    from maxminddb import Reader

logger = logging.getLogger(__name__)

Record = Mapping[str, Any]


def _name(section: Record | None, locale: str) -> str | None:
    if not section:
        return None
    return section.get("names", {}).get(locale)


def _first_subdivision(record: Record) -> Record | None:
    subdivisions = record.get("subdivisions") or []
    return subdivisions[0] if subdivisions else None


_EXTRACTORS: dict[str, Callable[[Record, str], Any]] = {
    "country": lambda r, locale: _name(r.get("country"), locale),
    "country_iso_code": lambda r, _: (r.get("country") or {}).get("iso_code"),
    "continent": lambda r, locale: _name(r.get("continent"), locale),
    "region": lambda r, locale: _name(_first_subdivision(r), locale),
    "city": lambda r, locale: _name(r.get("city"), locale),
    "postal_code": lambda r, _: (r.get("postal") or {}).get("code"),
    "latitude": lambda r, _: (r.get("location") or {}).get("latitude"),
    "longitude": lambda r, _: (r.get("location") or {}).get("longitude"),
    "timezone": lambda r, _: (r.get("location") or {}).get("time_zone"),
}

DEFAULT_FIELDS: tuple[str, ...] = tuple(_EXTRACTORS)


@dataclass(frozen=True)
class EnrichmentConfig:
    """Which fields the enrichment returns, and in which language.

    Attributes:
        locale: Language of place names, e.g. "en" or "de".
        fields: Field names returned by lookups.

    """

    locale: str = "en"
    fields: tuple[str, ...] = DEFAULT_FIELDS

    def __post_init__(self) -> None:
        """Validate field names."""
        unknown = [f for f in self.fields if f not in _EXTRACTORS]
        if unknown:
            msg = f"unknown enrichment fields: {', '.join(unknown)}"
            raise ConfigError(msg)


class GeoIPEnrichment:
    """Geo-location lookups flattened to a fixed set of fields.

    Instances are immutable and bound to one reader. A new one is built
    every time a new reader is published.
    """

    def __init__(self, reader: Reader, config: EnrichmentConfig | None = None) -> None:
        self._reader = reader
        self._config = config or EnrichmentConfig()
        metadata = reader.metadata()
        self.database_type: str = metadata.database_type
        self.build_epoch: int = metadata.build_epoch

    @property
    def reader(self) -> Reader:
        """Return the reader this enrichment was built from."""
        return self._reader

    @property
    def config(self) -> EnrichmentConfig:
        """Return the enrichment configuration."""
        return self._config

    @property
    def built_at(self) -> datetime:
        """Return the build time of the underlying database."""
        return datetime.fromtimestamp(self.build_epoch, tz=timezone.utc)

    def lookup(self, ip_address: str | IPv4Address | IPv6Address) -> dict[str, Any]:
        """Look up an address and flatten the result.

        Args:
            ip_address: Address to look up.

        Returns:
            The configured fields that have a value. Empty if the address is
            invalid or not in the database.

        """
        try:
            record = self._reader.get(ip_address)
        except ValueError:
            logger.debug("Cannot look up %r", ip_address, exc_info=True)
            return {}
        if not isinstance(record, Mapping):
            return {}

        result: dict[str, Any] = {}
        for name in self._config.fields:
            value = _EXTRACTORS[name](record, self._config.locale)
            if value is not None:
                result[name] = value
        return result
