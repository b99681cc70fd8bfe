"""The ordered set of API keys available to one invocation."""

from __future__ import annotations

from typing import Iterator, Optional, Sequence

from exacli.config import load_api_keys
from exacli.exceptions import NoCredentialsError

_NO_KEYS_MESSAGE = (
    "No API keys found. Set EXA_API_KEYS (comma-separated) or EXA_API_KEY.\n"
    "Get your key at: https://exa.ai"
)


def mask_key(key: str) -> str:
    """Mask an API key, showing only its last 3 characters.

    Example::

        >>> mask_key("abc123def")
        '...def'
        >>> mask_key("ab")
        '***'
    """
    if len(key) <= 3:
        return "***"
    return f"...{key[-3:]}"


class CredentialPool:
    """Immutable, index-addressed list of API keys.

    A key is identified only by its position for the lifetime of a process
    run; the rotation state refers to keys by that index. The raw key is
    handed out by :meth:`get` for the outbound call and never rendered
    anywhere else -- use :meth:`masked` for display and logs.

    Args:
        keys: Ordered API keys.
    """

    def __init__(self, keys: Sequence[str]) -> None:
        self._keys = tuple(keys)

    @classmethod
    def from_env(cls) -> CredentialPool:
        """Load the pool from ``EXA_API_KEYS`` / ``EXA_API_KEY``."""
        return cls(load_api_keys())

    def __len__(self) -> int:
        return len(self._keys)

    def __iter__(self) -> Iterator[int]:
        return iter(range(len(self._keys)))

    def __bool__(self) -> bool:
        return bool(self._keys)

    def get(self, index: int) -> str:
        return self._keys[index]

    def masked(self, index: Optional[int]) -> str:
        if index is None or not 0 <= index < len(self._keys):
            return "***"
        return mask_key(self._keys[index])

    def require(self) -> None:
        """Raise :class:`NoCredentialsError` if the pool is empty."""
        if not self._keys:
            raise NoCredentialsError(_NO_KEYS_MESSAGE)
