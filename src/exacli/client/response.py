"""Helpers for reading Exa API responses.

These sit between :class:`httpx.Response` and the rest of exacli: they
pull a readable error message out of a failed response, turn a
``Retry-After`` header into a cooldown hint, and decide whether a payload
actually contains results.
"""

from __future__ import annotations

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Optional

import httpx


def parse_retry_after(value: Optional[str], now: Optional[datetime] = None) -> Optional[float]:
    """Parse a ``Retry-After`` header into seconds.

    Both forms from RFC 9110 are accepted: a number of seconds, or an
    HTTP-date. A date in the past yields ``0``.

    Args:
        value: Raw header value, or ``None`` when the header is absent.
        now: Reference time for the HTTP-date form (defaults to now, UTC).

    Returns:
        The hint in seconds, or ``None`` when absent or unparseable.
    """
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None

    try:
        seconds = float(value)
    except ValueError:
        pass
    else:
        if seconds < 0 or seconds != seconds:  # negative or NaN
            return None
        return seconds

    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if when is None:
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    reference = now or datetime.now(timezone.utc)
    return max(0.0, (when - reference).total_seconds())


def extract_error_message(response: httpx.Response) -> str:
    """Build ``HTTP <status>: <detail>`` from an error response.

    The detail comes from the JSON ``error`` / ``message`` / ``detail``
    field when present, else from the first 200 characters of the body.
    """
    try:
        detail = response.json()
        if isinstance(detail, dict):
            msg = detail.get("error") or detail.get("message") or detail.get("detail") or ""
        else:
            msg = str(detail)
    except ValueError:
        msg = response.text[:200] if response.text else ""

    prefix = f"HTTP {response.status_code}"
    return f"{prefix}: {msg}" if msg else prefix


def has_results(payload: Any) -> bool:
    """Return ``True`` if *payload* carries a non-empty ``results`` list."""
    if not isinstance(payload, dict):
        return False
    results = payload.get("results")
    return isinstance(results, list) and len(results) > 0
