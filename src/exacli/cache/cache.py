"""Disk-based response cache with read-time TTL and a bounded entry count.

Uses :mod:`diskcache` as the storage medium. Each entry is keyed by a
request fingerprint (see :func:`~exacli.cache.fingerprint.fingerprint`)
and holds the raw serialised API response. The write time is stored as the
entry's diskcache *tag*, never inside the payload.

Expiry is passive: an entry older than the TTL supplied to :meth:`read`
is reported as a miss but left in place. Space is reclaimed only by the
eviction pass that follows every :meth:`write`, which keeps the
``max_entries`` most recently written entries. Eviction is by write
recency rather than by access because reads are not tracked.

The cache is strictly an optimisation: every storage failure is logged and
degrades to a miss (on read) or a no-op (on write).

See Also:
    :class:`~exacli.models.CacheConfig` -- ``enabled``, ``ttl_minutes``,
    and ``max_entries``.
"""

from __future__ import annotations

import logging
import sqlite3
import time
from pathlib import Path
from typing import Any, Callable, Optional

import diskcache

from exacli.exceptions import CacheUnavailableError
from exacli.models import CacheConfig

logger = logging.getLogger(__name__)

_STORAGE_ERRORS = (OSError, sqlite3.Error, diskcache.Timeout)


class ResponseCache:
    """Fingerprint-keyed store for serialised API responses.

    The underlying :class:`diskcache.Cache` is opened lazily on first use so
    that constructing a cache never fails, even when the directory is not
    writable.

    Args:
        cache_dir: Directory holding the diskcache database.
        config: Cache configuration (only ``max_entries`` is read here;
            ``enabled`` and ``ttl_minutes`` are honoured by the dispatcher).
        clock: Source of the current time in epoch seconds. Injected by
            tests to simulate entries ageing.

    Example::

        cache = ResponseCache(get_cache_dir(), CacheConfig())
        cache.write(key, '{"results": []}')
        payload = cache.read(key, ttl_minutes=60)
    """

    def __init__(
        self,
        cache_dir: str | Path,
        config: Optional[CacheConfig] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config or CacheConfig()
        self._cache_dir = Path(cache_dir)
        self._clock = clock
        self._cache: Optional[diskcache.Cache] = None

    @property
    def max_entries(self) -> int:
        return self._config.max_entries

    def read(self, key: str, ttl_minutes: float) -> Optional[str]:
        """Return the payload stored under *key*, or ``None`` on a miss.

        A miss is reported when there is no entry, when the entry was
        written more than ``ttl_minutes`` ago, or when the storage medium
        fails. Stale entries are not deleted.

        Args:
            key: Request fingerprint.
            ttl_minutes: Maximum entry age, evaluated at read time.
        """
        try:
            store = self._store()
            payload, written_at = store.get(key, default=None, tag=True)
        except (CacheUnavailableError, *_STORAGE_ERRORS) as exc:
            logger.debug("Cache read failed for %s: %s", key, exc)
            return None

        if payload is None or written_at is None:
            return None
        age = self._clock() - float(written_at)
        if age > ttl_minutes * 60:
            logger.debug("Cache entry %s is stale (%.0fs old)", key, age)
            return None
        return payload

    def write(self, key: str, payload: str) -> None:
        """Store *payload* under *key*, then evict down to ``max_entries``.

        Overwriting an entry refreshes its write time. Failures are logged
        and swallowed.
        """
        try:
            store = self._store()
            store.set(key, payload, tag=self._clock())
            self._evict(store)
        except (CacheUnavailableError, *_STORAGE_ERRORS) as exc:
            logger.warning("Cache write failed for %s: %s", key, exc)

    def entries(self) -> list[tuple[str, float]]:
        """Return ``(key, write_time)`` pairs, oldest first.

        Raises:
            CacheUnavailableError: If the storage medium cannot be opened.
        """
        store = self._store()
        return self._entries(store)

    def stats(self) -> dict[str, Any]:
        """Return cache statistics for ``exa status``.

        Returns:
            A ``dict`` with ``directory``, ``max_entries`` and ``size``
            (``None`` when the cache cannot be opened).
        """
        try:
            size: Optional[int] = len(self._store())
        except (CacheUnavailableError, *_STORAGE_ERRORS) as exc:
            logger.debug("Cache stats unavailable: %s", exc)
            size = None
        return {
            "directory": str(self._cache_dir),
            "size": size,
            "max_entries": self.max_entries,
        }

    def close(self) -> None:
        """Close the underlying :class:`diskcache.Cache` and release resources."""
        if self._cache is not None:
            self._cache.close()
            self._cache = None

    def _store(self) -> diskcache.Cache:
        if self._cache is None:
            try:
                # diskcache's own size-based culling is disabled; the count
                # bound below is the only eviction.
                self._cache = diskcache.Cache(
                    str(self._cache_dir), eviction_policy="none"
                )
            except _STORAGE_ERRORS as exc:
                raise CacheUnavailableError(
                    f"Cannot open cache at {self._cache_dir}: {exc}"
                ) from exc
        return self._cache

    def _entries(self, store: diskcache.Cache) -> list[tuple[str, float]]:
        entries: list[tuple[str, float]] = []
        for key in store.iterkeys():
            _, written_at = store.get(key, default=None, tag=True)
            if written_at is None:
                # Vanished between listing and lookup, or written without a tag.
                written_at = 0.0
            entries.append((key, float(written_at)))
        entries.sort(key=lambda item: item[1])
        return entries

    def _evict(self, store: diskcache.Cache) -> None:
        if len(store) <= self.max_entries:
            return
        entries = self._entries(store)
        excess = len(entries) - self.max_entries
        for key, _ in entries[:excess]:
            store.delete(key)
        logger.debug("Evicted %d cache entries", max(excess, 0))
