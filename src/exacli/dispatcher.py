"""Request dispatcher: cache, key selection, upstream call, one retry.

:class:`RequestDispatcher` runs a single logical request through this
sequence::

    CHECK_CACHE -> SELECT_KEY -> CALL_UPSTREAM -> SUCCESS
                                              -> RATE_LIMITED -> SELECT_KEY (other key) -> CALL_UPSTREAM
                                              -> OTHER_FAILURE

A cache hit returns immediately without touching the network or the
rotation state. A rate-limited call puts its key on cooldown and is retried
exactly once with a different key; a second rate limit is final. Any other
failure is final at once. Whatever the outcome, the rotation state is
written back before :meth:`RequestDispatcher.dispatch` returns or raises.

The dispatcher never formats anything: it hands a
:class:`~exacli.models.DispatchResult` to :mod:`exacli.formatting`.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from exacli.cache import ResponseCache, fingerprint
from exacli.client.response import has_results
from exacli.exceptions import CredentialsExhaustedError, ExaCliError, RateLimitedError
from exacli.exit_codes import EXIT_NO_RESULTS, EXIT_SUCCESS
from exacli.models import CacheConfig, DispatchResult, ResultStatus, UpstreamRequest
from exacli.request_log import RequestLog
from exacli.rotation import KeyManager

logger = logging.getLogger(__name__)

_EXHAUSTED_MESSAGE = (
    "No valid API keys available. Every configured key has been rejected by the API.\n"
    "Check EXA_API_KEYS, then delete state.json to re-enable keys."
)


class RequestDispatcher:
    """Execute :class:`~exacli.models.UpstreamRequest` objects against the API.

    Args:
        manager: Key rotation manager (pool plus loaded state).
        client: An opened upstream client exposing ``call(operation,
            api_key, body)`` and ``probe_key(api_key)``, normally
            :class:`~exacli.client.ExaClient`.
        cache: Response cache. ``None`` disables caching entirely.
        cache_config: ``enabled`` and ``ttl_minutes`` for this invocation.
        request_log: Optional audit log of upstream attempts.
    """

    def __init__(
        self,
        manager: KeyManager,
        client: Any,
        cache: Optional[ResponseCache] = None,
        cache_config: Optional[CacheConfig] = None,
        request_log: Optional[RequestLog] = None,
    ) -> None:
        self._manager = manager
        self._client = client
        self._cache = cache
        self._cache_config = cache_config or CacheConfig()
        self._request_log = request_log or RequestLog(enabled=False)

    def execute(self, request: UpstreamRequest) -> DispatchResult:
        """Like :meth:`dispatch`, but report failures as an ``ERROR`` result."""
        try:
            return self.dispatch(request)
        except ExaCliError as exc:
            return DispatchResult(
                status=ResultStatus.ERROR,
                error=str(exc),
                exit_code=exc.exit_code,
            )

    def dispatch(self, request: UpstreamRequest) -> DispatchResult:
        """Serve *request* from the cache or the API.

        Returns:
            A ``SUCCESS`` or ``NO_RESULTS`` result.

        Raises:
            NoCredentialsError: If no key is configured (before any cache
                or network access).
            CredentialsExhaustedError: If every key is marked invalid.
            RateLimitedError: If the call and its single retry were both
                rate limited, or no other key was left to retry with.
            ExaCliError: Any other upstream failure, unchanged.
        """
        self._manager.pool.require()

        cache_key = self._cache_key(request)
        if cache_key is not None:
            cached = self._read_cache(cache_key)
            if cached is not None:
                logger.debug("Cache hit for %s (%s)", request.command, cache_key)
                return self._result(request, cached, from_cache=True)

        self._manager.validate_if_stale(self._client.probe_key)

        try:
            payload, idx = self._call_with_rotation(request)
        finally:
            self._manager.persist()

        if cache_key is not None:
            self._cache.write(cache_key, json.dumps(payload))
        return self._result(request, payload, key_index=idx)

    # ------------------------------------------------------------------ #
    # Rotation
    # ------------------------------------------------------------------ #

    def _call_with_rotation(self, request: UpstreamRequest) -> tuple[dict[str, Any], int]:
        idx = self._manager.select()
        if idx is None:
            raise CredentialsExhaustedError(_EXHAUSTED_MESSAGE)

        try:
            payload = self._attempt(request, idx)
        except RateLimitedError as exc:
            self._manager.record_rate_limit(idx, exc.retry_after)
            retry_idx = self._manager.select(exclude={idx})
            if retry_idx is None:
                raise
            logger.info(
                "Retrying %s with key %s",
                request.command,
                self._manager.pool.masked(retry_idx),
            )
            try:
                payload = self._attempt(request, retry_idx)
            except RateLimitedError as retry_exc:
                self._manager.record_rate_limit(retry_idx, retry_exc.retry_after)
                raise
            idx = retry_idx

        self._manager.record_success(idx)
        return payload, idx

    def _attempt(self, request: UpstreamRequest, idx: int) -> dict[str, Any]:
        masked = self._manager.pool.masked(idx)
        logger.debug("%s via key %s", request.operation, masked)
        try:
            payload = self._client.call(
                request.operation, self._manager.pool.get(idx), request.body
            )
        except ExaCliError as exc:
            self._request_log.record(masked, request.operation, exc.status_code or 0)
            raise
        self._request_log.record(masked, request.operation, 200)
        return payload

    # ------------------------------------------------------------------ #
    # Cache
    # ------------------------------------------------------------------ #

    def _cache_key(self, request: UpstreamRequest) -> Optional[str]:
        if self._cache is None or not self._cache_config.enabled or not request.cacheable:
            return None
        return fingerprint(request.command, *request.cache_fields)

    def _read_cache(self, key: str) -> Optional[dict[str, Any]]:
        raw = self._cache.read(key, self._cache_config.ttl_minutes)
        if raw is None:
            return None
        try:
            payload = json.loads(raw)
        except ValueError:
            logger.debug("Ignoring undecodable cache entry %s", key)
            return None
        return payload if isinstance(payload, dict) else None

    # ------------------------------------------------------------------ #
    # Result
    # ------------------------------------------------------------------ #

    def _result(
        self,
        request: UpstreamRequest,
        payload: dict[str, Any],
        from_cache: bool = False,
        key_index: Optional[int] = None,
    ) -> DispatchResult:
        if request.expects_results and not has_results(payload):
            status, exit_code = ResultStatus.NO_RESULTS, EXIT_NO_RESULTS
        else:
            status, exit_code = ResultStatus.SUCCESS, EXIT_SUCCESS
        return DispatchResult(
            status=status,
            payload=payload,
            exit_code=exit_code,
            from_cache=from_cache,
            key_index=key_index,
        )
