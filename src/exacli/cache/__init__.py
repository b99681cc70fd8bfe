"""Local response cache for exacli.

This package provides :class:`ResponseCache`, which stores serialised API
responses on disk using :mod:`diskcache`, and :func:`fingerprint`, which
derives the cache key from a command name and the option values that
affect its response. Entries expire passively after a read-time TTL and
the store is bounded to a fixed number of entries by write recency.

The cache is consumed by :class:`~exacli.dispatcher.RequestDispatcher` and
controlled by the ``cache`` section of the global configuration
(:class:`~exacli.models.CacheConfig`) and the ``--no-cache`` /
``--cache-ttl`` flags.
"""

from exacli.cache.cache import ResponseCache
from exacli.cache.fingerprint import fingerprint

__all__ = ["ResponseCache", "fingerprint"]
