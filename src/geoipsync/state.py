"""Lock-guarded handles to the published database and its derived state."""

from __future__ import annotations

import contextlib
import threading
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from maxminddb import Reader

    from geoipsync.enrichment import GeoIPEnrichment

T = TypeVar("T")


class RWLock:
    """A readers/writer lock.

    Any number of readers may hold the lock at once; a writer holds it
    alone. Readers only wait for a writer that already holds the lock, never
    for one that is merely waiting, so a reader that keeps the lock across an
    ``await`` can't deadlock other readers on the same event loop.

    The cost is writer liveness: readers in other threads that keep the lock
    continuously held, each one entering before the last leaves, hold off a
    swap until they pause. Keep read sections short, or take a :meth:`get`
    snapshot and release the lock before doing slow work.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writing = False

    @contextlib.contextmanager
    def read(self) -> Iterator[None]:
        """Hold the lock shared for the duration of the block."""
        with self._cond:
            while self._writing:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextlib.contextmanager
    def write(self) -> Iterator[None]:
        """Hold the lock exclusively for the duration of the block."""
        with self._cond:
            while self._writing or self._readers:
                self._cond.wait()
            self._writing = True
        try:
            yield
        finally:
            with self._cond:
                self._writing = False
                self._cond.notify_all()


class RefreshableResource(Generic[T]):
    """An optional value replaced wholesale under a readers/writer lock.

    Readers see either the previous value or the new one, never anything in
    between. The exclusive section of :meth:`swap` is only the reference
    assignment; callers build the new value before swapping it in.

    Example:
        database: RefreshableResource[Reader] = RefreshableResource()
        database.swap(maxminddb.open_database(path))

        with database.read() as reader:
            if reader is not None:
                record = reader.get("8.8.8.8")

    """

    def __init__(self, value: T | None = None) -> None:
        self._lock = RWLock()
        self._value = value

    @contextlib.contextmanager
    def read(self) -> Iterator[T | None]:
        """Yield the current value while holding the read lock."""
        with self._lock.read():
            yield self._value

    def get(self) -> T | None:
        """Return a snapshot of the current value.

        The returned object stays valid after a later swap; it is simply no
        longer the published one.
        """
        with self._lock.read():
            return self._value

    def swap(self, value: T | None) -> T | None:
        """Publish ``value`` and return the previously published value."""
        with self._lock.write():
            previous, self._value = self._value, value
        return previous

    @property
    def is_loaded(self) -> bool:
        """Return True if a value has been published."""
        return self.get() is not None


@dataclass
class GeoIPState:
    """The published database reader and the enrichment built from it.

    One instance is created by the host process and passed to the
    :class:`~geoipsync.updater.Updater` that refreshes it and to every
    subsystem that looks addresses up.

    Attributes:
        database: The loaded MaxMind DB reader, or None before the first
            successful load.
        enrichment: Enrichment derived from the reader in ``database``.
            It is always updated after ``database``, so a reader that sees a
            new enrichment is guaranteed to see the matching database, but
            not the other way round.

    """

    database: RefreshableResource[Reader] = field(default_factory=RefreshableResource)
    enrichment: RefreshableResource[GeoIPEnrichment] = field(
        default_factory=RefreshableResource
    )

    @property
    def is_ready(self) -> bool:
        """Return True once the enrichment for a loaded database is published."""
        return self.enrichment.is_loaded
