"""Refresh orchestration for geoipsync."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Self

from geoipsync._digest import compare_digests, file_digest
from geoipsync._file_lock import hold_lock
from geoipsync.client import Client
from geoipsync.errors import CacheDirectoryError, DownloadError, LockError
from geoipsync.models import RefreshResult
from geoipsync.publisher import Loader, Publisher, open_reader
from geoipsync.state import GeoIPState

if TYPE_CHECKING:
    from geoipsync.config import Config
    from geoipsync.enrichment import EnrichmentConfig

logger = logging.getLogger(__name__)


class Updater:
    """Keeps a :class:`GeoIPState` in sync with the remote database.

    On startup the cached file, if any, is loaded. After that every refresh
    compares the cached file's SHA-256 with the published one and, only when
    they differ, downloads the new file and publishes it.

    Example:
        state = GeoIPState()
        config = Config(database_directory=Path("/var/lib/GeoIP"))

        async with Updater(config, state) as updater:
            await updater.run_forever()

    """

    def __init__(
        self,
        config: Config,
        state: GeoIPState | None = None,
        *,
        loader: Loader | None = None,
        enrichment_config: EnrichmentConfig | None = None,
    ) -> None:
        """Initialize the updater.

        Args:
            config: Configuration for the updater.
            state: State to keep up to date. A new one is created if omitted.
            loader: Callable that turns a database path into a loaded reader.
                Defaults to :func:`~geoipsync.publisher.open_reader`.
            enrichment_config: Configuration for the derived enrichment.

        """
        self._config = config
        self._publisher = Publisher(
            state if state is not None else GeoIPState(),
            loader=loader or open_reader,
            enrichment_config=enrichment_config,
            verbose=config.verbose,
        )
        self._client: Client | None = None
        self._refresh_lock = asyncio.Lock()
        self._exit_stack: contextlib.AsyncExitStack | None = None

    @property
    def state(self) -> GeoIPState:
        """Return the state kept up to date by this updater."""
        return self._publisher.state

    async def __aenter__(self) -> Self:
        """Enter async context manager."""
        self._exit_stack = contextlib.AsyncExitStack()
        try:
            client = Client(
                proxy=self._config.proxy,
                timeout=self._config.request_timeout,
                retry_for=self._config.retry_for,
                verbose=self._config.verbose,
            )
            self._client = await self._exit_stack.enter_async_context(client)
        except BaseException:
            await self._exit_stack.aclose()
            raise

        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Exit async context manager."""
        self._client = None
        if self._exit_stack:
            await self._exit_stack.aclose()
            self._exit_stack = None

    async def initialize(self) -> bool:
        """Create the cache directory and load whatever database it holds.

        Returns:
            True if a cached database was loaded.

        Raises:
            CacheDirectoryError: If the cache directory cannot be created.

        """
        directory = self._config.database_directory
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            msg = f"Failed to create database directory {directory}: {e}"
            raise CacheDirectoryError(msg) from e

        if self._config.verbose:
            logger.info("Using database directory %s", directory)

        return await asyncio.to_thread(
            self._publisher.publish, self._config.database_path
        )

    async def refresh(self) -> RefreshResult:
        """Run one refresh cycle.

        Only one cycle runs at a time per updater; concurrent calls wait for
        the running one. Across processes the lock file gives the same
        guarantee, failing fast with :class:`LockError` instead of waiting.

        Returns:
            Result of the cycle.

        Raises:
            LockError: If another process holds the lock file.
            DownloadError: If the digest or the database cannot be fetched.
            OSError: If the database file cannot be written.

        """
        if not self._client:
            msg = "Updater must be used as async context manager"
            raise RuntimeError(msg)

        async with self._refresh_lock:
            if not self._config.lock_file:
                return await self._refresh_once(self._client)
            with hold_lock(self._config.lock_file, verbose=self._config.verbose):
                return await self._refresh_once(self._client)

    async def _refresh_once(self, client: Client) -> RefreshResult:
        path = self._config.database_path
        remote = self._config.remote

        comparison = await compare_digests(client, path, remote.digest_url)
        checked_at = datetime.now(timezone.utc)

        if not comparison.is_different:
            if self._config.verbose:
                logger.info("Database %s up to date: %s", path, comparison.local)
            return RefreshResult(
                old_digest=comparison.local,
                new_digest=comparison.local,
                checked_at=checked_at,
            )

        if self._config.verbose:
            logger.info(
                "Update available for %s: %s -> %s",
                path,
                comparison.local or "(none)",
                comparison.remote,
            )

        size = await client.download(remote.artifact_url, path)

        new_digest = await asyncio.to_thread(file_digest, path)
        if new_digest != comparison.remote.strip().lower():
            logger.warning(
                "SHA-256 of downloaded database (%s) does not match published "
                "digest (%s); it will be downloaded again on the next refresh",
                new_digest,
                comparison.remote,
            )

        published = await asyncio.to_thread(self._publisher.publish, path)

        return RefreshResult(
            old_digest=comparison.local,
            new_digest=new_digest,
            checked_at=checked_at,
            downloaded_bytes=size,
            published=published,
        )

    async def run_forever(self) -> None:
        """Initialize, then refresh on a fixed period until cancelled.

        The first refresh runs immediately after initialization. Errors in a
        refresh are logged and the cycle is skipped; the next tick retries.

        Raises:
            CacheDirectoryError: If the cache directory cannot be created.

        """
        await self.initialize()

        loop = asyncio.get_running_loop()
        period = self._config.update_interval.total_seconds()
        deadline = loop.time()
        while True:
            await self._tick()
            deadline += period
            # Skip ticks missed while a slow refresh was running.
            now = loop.time()
            if deadline < now:
                deadline += (now - deadline) // period * period + period
            await asyncio.sleep(deadline - now)

    async def _tick(self) -> None:
        """Run one refresh, containing every error it raises."""
        try:
            result = await self.refresh()
        except LockError as e:
            logger.warning("Skipping refresh: %s", e)
        except DownloadError as e:
            logger.error("Failed to refresh database: %s", e)  # noqa: TRY400
        except OSError as e:
            logger.error("Failed to write database: %s", e)  # noqa: TRY400
        except Exception:
            logger.exception("Unexpected error during database refresh")
        else:
            if result.was_updated and not result.published:
                logger.error(
                    "Downloaded database could not be loaded; keeping the "
                    "previous one"
                )
