"""Request fingerprints used as cache keys."""

from __future__ import annotations

import hashlib
from typing import Any

SEPARATOR = "|"


def normalize_field(value: Any) -> str:
    """Render one option value as a fingerprint field.

    ``None`` becomes the empty string and booleans become ``"true"`` /
    ``"false"`` so that unset options and their string forms stay stable
    across invocations.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def fingerprint(command: str, *fields: Any) -> str:
    """Derive a cache key from a command name and its response-affecting options.

    Fields are joined in the order given; callers always pass them in a
    fixed order, so no reordering happens here. MD5 is used for speed only:
    the cache is local and single-user, so collision resistance is not a
    security property.

    Args:
        command: Command name, e.g. ``"search"`` or ``"content"``.
        *fields: Option values that affect the response.

    Returns:
        A 32-character hex digest.
    """
    parts = [command, *(normalize_field(f) for f in fields)]
    raw = SEPARATOR.join(parts)
    return hashlib.md5(raw.encode("utf-8")).hexdigest()
