"""Loading a database file and publishing it to readers."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

import maxminddb
from maxminddb.errors import InvalidDatabaseError

from geoipsync.enrichment import EnrichmentConfig, GeoIPEnrichment
from geoipsync.state import GeoIPState

logger = logging.getLogger(__name__)

Loader = Callable[[Path], maxminddb.Reader]


def open_reader(path: Path) -> maxminddb.Reader:
    """Open a MaxMind DB file with the fastest available reader.

    Args:
        path: Path of the MMDB file.

    Returns:
        A fully initialized reader.

    Raises:
        InvalidDatabaseError: If the file is not a valid MaxMind DB.
        OSError: If the file cannot be opened.

    """
    return maxminddb.open_database(str(path), maxminddb.MODE_AUTO)


class Publisher:
    """Loads database files and swaps them into a :class:`GeoIPState`.

    Loading happens outside any lock; readers are only excluded for the
    reference swap. A file that fails to load is logged and ignored, so the
    last good database keeps serving.
    """

    def __init__(
        self,
        state: GeoIPState,
        *,
        loader: Loader = open_reader,
        enrichment_config: EnrichmentConfig | None = None,
        verbose: bool = False,
    ) -> None:
        """Initialize the publisher.

        Args:
            state: State to publish into.
            loader: Callable that turns a path into a loaded reader.
            enrichment_config: Configuration for the derived enrichment.
            verbose: Enable verbose logging.

        """
        self._state = state
        self._loader = loader
        self._enrichment_config = enrichment_config
        self._verbose = verbose

    @property
    def state(self) -> GeoIPState:
        """Return the state this publisher writes to."""
        return self._state

    def publish(self, path: Path) -> bool:
        """Load ``path`` and publish it.

        Args:
            path: Path of the database file.

        Returns:
            True if the file was loaded and published, False if it could not
            be loaded and the previous state was kept.

        """
        try:
            reader = self._loader(path)
        except FileNotFoundError:
            logger.warning("Database %s does not exist, nothing to load", path)
            return False
        except InvalidDatabaseError as e:
            logger.warning("Failed to load database %s: %s", path, e)
            return False
        except Exception:
            # The pure-Python reader surfaces malformed metadata as
            # TypeError or KeyError rather than InvalidDatabaseError.
            logger.warning("Failed to load database %s", path, exc_info=True)
            return False

        self._state.database.swap(reader)

        # Build from the published handle, not the local candidate.
        published = self._state.database.get()
        if published is not None:
            enrichment = GeoIPEnrichment(published, self._enrichment_config)
            self._state.enrichment.swap(enrichment)

        if self._verbose:
            logger.info("Published database %s", path)
        return True
