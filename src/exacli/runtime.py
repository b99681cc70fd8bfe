"""Assembly of the per-invocation object graph.

Commands never construct the pool, rotation manager, cache, client, or
request log themselves; they ask this module for a ready
:class:`~exacli.dispatcher.RequestDispatcher` (or just a
:class:`~exacli.rotation.KeyManager` for ``status`` / ``reset``) built from
the resolved :class:`~exacli.models.GlobalConfig`.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

import httpx

from exacli.cache import ResponseCache
from exacli.client import ExaClient
from exacli.config import get_cache_dir
from exacli.dispatcher import RequestDispatcher
from exacli.models import GlobalConfig
from exacli.request_log import RequestLog
from exacli.rotation import CredentialPool, KeyManager, RotationStateStore

logger = logging.getLogger(__name__)


def _transport() -> Optional[httpx.BaseTransport]:
    """HTTP transport for new clients; ``None`` selects httpx's default.

    Tests replace this function to route requests to an
    :class:`httpx.MockTransport`.
    """
    return None


def build_manager(config: GlobalConfig) -> KeyManager:
    """Load the key pool from the environment and the rotation state from disk."""
    return KeyManager(CredentialPool.from_env(), RotationStateStore(), config.rotation)


def build_cache(config: GlobalConfig) -> Optional[ResponseCache]:
    """Return the response cache, or ``None`` if its directory cannot be created."""
    try:
        cache_dir = get_cache_dir()
    except OSError as exc:
        logger.warning("Response cache disabled: %s", exc)
        return None
    return ResponseCache(cache_dir, config.cache)


@contextmanager
def open_dispatcher(config: GlobalConfig) -> Iterator[RequestDispatcher]:
    """Yield a dispatcher wired to a live client; release everything on exit.

    Example::

        with open_dispatcher(config) as dispatcher:
            result = dispatcher.execute(request)
    """
    manager = build_manager(config)
    cache = build_cache(config)
    try:
        with ExaClient(config.request, transport=_transport()) as client, RequestLog(
            enabled=config.log_requests
        ) as request_log:
            yield RequestDispatcher(
                manager,
                client,
                cache=cache,
                cache_config=config.cache,
                request_log=request_log,
            )
    finally:
        if cache is not None:
            cache.close()
