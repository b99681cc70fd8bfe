"""Synchronous Exa API client.

This module provides :class:`ExaClient`, the blocking HTTP client used by
the dispatcher. It wraps :class:`httpx.Client` and exposes exactly one
entry point per upstream operation, all behind :meth:`ExaClient.call`:

- ``search`` -- ``POST /search``
- ``findSimilar`` -- ``POST /findSimilar``
- ``contents`` -- ``POST /contents``
- ``research`` -- ``POST /research/v1`` followed by polling
  ``GET /research/v1/{id}`` with the same key until the task finishes or
  the overall deadline passes.

Every failure is mapped to a typed :class:`~exacli.exceptions.ExaCliError`:
HTTP 429 becomes :class:`~exacli.exceptions.RateLimitedError` carrying the
``Retry-After`` hint, 401/403 becomes
:class:`~exacli.exceptions.AuthError`, network problems and timeouts become
:class:`~exacli.exceptions.ConnectionError_`, and everything else becomes
:class:`~exacli.exceptions.UpstreamError`. The client never retries; that
is the dispatcher's decision.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional

import httpx

from exacli import __version__
from exacli.client.response import extract_error_message, parse_retry_after
from exacli.exceptions import (
    AuthError,
    ConnectionError_,
    RateLimitedError,
    UpstreamError,
)
from exacli.models import RequestConfig

logger = logging.getLogger(__name__)

OPERATIONS = ("search", "findSimilar", "contents", "research")

_RESEARCH_PATH = "/research/v1"


class ExaClient:
    """Synchronous HTTP client for the Exa API.

    Must be used as a context manager so that the underlying transport is
    properly opened and closed.

    Args:
        config: Base URL, per-request timeout, and research polling bounds.
        transport: Optional :class:`httpx.BaseTransport` (tests pass an
            :class:`httpx.MockTransport`).
        sleep: Blocking sleep used between research polls.
        monotonic: Clock used for the research deadline.

    Example::

        with ExaClient(RequestConfig()) as client:
            payload = client.call("search", api_key, {"query": "rust", "numResults": 5})
    """

    def __init__(
        self,
        config: Optional[RequestConfig] = None,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config or RequestConfig()
        self._transport = transport
        self._sleep = sleep
        self._monotonic = monotonic
        self._client: Optional[httpx.Client] = None

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> ExaClient:
        self._client = httpx.Client(
            base_url=self._config.base_url,
            timeout=self._config.timeout,
            transport=self._transport,
            headers={
                "Accept": "application/json",
                "User-Agent": f"exacli/{__version__}",
            },
        )
        return self

    def __exit__(self, *args: object) -> None:
        if self._client:
            self._client.close()
            self._client = None

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def call(self, operation: str, api_key: str, body: dict[str, Any]) -> dict[str, Any]:
        """Perform one upstream operation with *api_key*.

        Args:
            operation: One of :data:`OPERATIONS`.
            api_key: The raw key to send in ``x-api-key``.
            body: JSON request body.

        Returns:
            The decoded JSON response (for ``research``, the final task
            status object).

        Raises:
            RateLimitedError: On HTTP 429.
            AuthError: On HTTP 401 / 403.
            ConnectionError_: On network errors, timeouts, or a research
                task that outlives the deadline.
            UpstreamError: On any other error status, a non-JSON body, or
                a failed / canceled research task.
        """
        if operation not in OPERATIONS:
            raise ValueError(f"Unknown operation: {operation}")
        if operation == "research":
            return self._research(api_key, body)
        return self._send("POST", f"/{operation}", api_key, body)

    def probe_key(self, api_key: str) -> None:
        """Send a minimal search to check that the API accepts *api_key*.

        A rate-limited key still counts as accepted.

        Raises:
            AuthError: If the API rejects the key.
            ConnectionError_, UpstreamError: If the probe itself failed.
        """
        try:
            self._send("POST", "/search", api_key, {"query": "test", "numResults": 1})
        except RateLimitedError:
            return

    # ------------------------------------------------------------------ #
    # Research
    # ------------------------------------------------------------------ #

    def _research(self, api_key: str, body: dict[str, Any]) -> dict[str, Any]:
        """Create a research task and poll it to completion with the same key."""
        created = self._send("POST", _RESEARCH_PATH, api_key, body)
        task_id = created.get("researchId") or created.get("id")
        if not task_id:
            raise UpstreamError("Research create response has no researchId")
        logger.info("Research task %s created, polling for results", task_id)

        interval = self._config.poll_interval
        deadline = self._monotonic() + self._config.research_timeout
        wait = interval

        while True:
            remaining = deadline - self._monotonic()
            if remaining <= 0:
                raise ConnectionError_(
                    f"Research task {task_id} did not finish within "
                    f"{self._config.research_timeout:.0f}s"
                )
            self._sleep(min(wait, remaining))
            wait = interval

            try:
                result = self._send("GET", f"{_RESEARCH_PATH}/{task_id}", api_key, None)
            except RateLimitedError as exc:
                # The task already exists on this key; keep polling it.
                wait = max(interval, exc.retry_after or 0.0)
                logger.debug("Research poll rate limited, waiting %.0fs", wait)
                continue

            status = result.get("status")
            logger.debug("Research task %s status: %s", task_id, status)
            if status == "completed":
                return result
            if status == "failed":
                raise UpstreamError(
                    f"Research task failed: {result.get('error') or 'Unknown error'}"
                )
            if status == "canceled":
                raise UpstreamError("Research task was canceled")

    # ------------------------------------------------------------------ #
    # Transport
    # ------------------------------------------------------------------ #

    def _send(
        self,
        method: str,
        path: str,
        api_key: str,
        body: Optional[dict[str, Any]],
    ) -> dict[str, Any]:
        """Execute one HTTP request and map the outcome to a payload or an error."""
        assert self._client is not None, "Client not initialised -- use as context manager"

        kwargs: dict[str, Any] = {"headers": {"x-api-key": api_key}}
        if body is not None:
            kwargs["json"] = body

        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            raise ConnectionError_(f"Request timed out: {method} {path}") from exc
        except httpx.TransportError as exc:
            raise ConnectionError_(f"Connection failed: {exc}") from exc

        self._map_response_error(response)

        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamError(
                f"Invalid JSON from {method} {path}", status_code=response.status_code
            ) from exc
        if not isinstance(payload, dict):
            raise UpstreamError(
                f"Unexpected response shape from {method} {path}",
                status_code=response.status_code,
            )
        return payload

    def _map_response_error(self, response: httpx.Response) -> None:
        """Raise a typed exception for error HTTP status codes."""
        status = response.status_code
        if status < 400:
            return

        full_msg = extract_error_message(response)
        if status == 429:
            raise RateLimitedError(
                full_msg,
                retry_after=parse_retry_after(response.headers.get("Retry-After")),
            )
        if status in (401, 403):
            raise AuthError(full_msg, status_code=status)
        raise UpstreamError(full_msg, status_code=status)
