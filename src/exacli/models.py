"""Canonical Pydantic models shared across all exacli modules.

This is the single source of truth for data shapes in the project. The
models fall into three groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`CacheConfig`, :class:`RequestConfig`, :class:`RotationConfig`,
    :class:`OutputConfig`, and :class:`GlobalConfig`.

**Durable state models** -- the key rotation state written to ``state.json``
between invocations:
    :class:`RotationRecord` and :class:`RotationState`.

**Dispatch models** -- what flows into and out of the
:class:`~exacli.dispatcher.RequestDispatcher`:
    :class:`UpstreamRequest`, :class:`ResultStatus`, and
    :class:`DispatchResult`.

All models use Pydantic v2.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, field_validator


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # Naive timestamps from hand-edited state files are treated as UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# --- Configuration ---


class CacheConfig(BaseModel):
    """Response cache settings stored in :class:`GlobalConfig`."""

    enabled: bool = Field(default=True, description="Enable response caching")
    ttl_minutes: int = Field(default=60, description="Cache TTL in minutes")
    max_entries: int = Field(
        default=50, description="Entries kept after each write (oldest evicted)"
    )


class RequestConfig(BaseModel):
    """HTTP settings for calls to the Exa API."""

    base_url: str = Field(default="https://api.exa.ai", description="API base URL")
    timeout: float = Field(default=30.0, description="Per-request timeout in seconds")
    poll_interval: float = Field(
        default=5.0, description="Seconds between research status polls"
    )
    research_timeout: float = Field(
        default=600.0, description="Overall research deadline in seconds"
    )


class RotationConfig(BaseModel):
    """Key rotation policy settings."""

    default_cooldown_seconds: float = Field(
        default=60.0,
        description="Cooldown after a 429 when the API sends no usable Retry-After",
    )
    validate_keys: bool = Field(
        default=True, description="Probe every key once the state goes stale"
    )
    validate_after_hours: float = Field(
        default=24.0, description="Age of last validation that counts as stale"
    )


class OutputConfig(BaseModel):
    """Default output format preferences stored in :class:`GlobalConfig`."""

    format: Literal["auto", "json", "compact", "tsv", "rich"] = Field(
        default="auto", description="Output format: auto, json, compact, tsv, rich"
    )


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/exa/config.json``.

    Loaded and saved by :func:`~exacli.config.load_global_config` and
    :func:`~exacli.config.save_global_config`. Fields here have the
    lowest precedence and can be overridden by environment variables or
    CLI flags. See :func:`~exacli.config.resolve_config` for the full
    precedence chain.
    """

    log_requests: bool = Field(
        default=False, description="Append every upstream call to requests.log"
    )
    output: OutputConfig = Field(default_factory=OutputConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    request: RequestConfig = Field(default_factory=RequestConfig)
    rotation: RotationConfig = Field(default_factory=RotationConfig)


# --- Rotation state ---


class RotationRecord(BaseModel):
    """Health and usage of a single key, identified by its pool index.

    ``errors`` and ``successes`` never exceed ``requests``: every recorded
    outcome counts as a request. A ``cooldown_until`` in the future keeps the
    key out of normal selection.
    """

    valid: bool = True
    cooldown_until: Optional[datetime] = None
    requests: int = 0
    successes: int = 0
    errors: int = 0

    @field_validator("cooldown_until")
    @classmethod
    def _normalize_cooldown(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)

    def on_cooldown(self, now: datetime) -> bool:
        """Return ``True`` while ``cooldown_until`` lies after *now*."""
        return self.cooldown_until is not None and now < self.cooldown_until


class RotationState(BaseModel):
    """Process-wide rotation state persisted to ``state.json``.

    Attributes:
        version: Schema version of the state file.
        current_index: Where the next selection starts its circular scan.
        last_validated: When keys were last probed for validity.
        keys: Rotation record per key index.
    """

    version: int = 1
    current_index: int = 0
    last_validated: datetime = Field(default_factory=utcnow)
    keys: dict[int, RotationRecord] = Field(default_factory=dict)

    @field_validator("last_validated")
    @classmethod
    def _normalize_validated(cls, value: datetime) -> datetime:
        return _as_utc(value)

    def record(self, index: int) -> RotationRecord:
        """Return the record for *index*, creating a default one if missing."""
        if index not in self.keys:
            self.keys[index] = RotationRecord()
        return self.keys[index]


# --- Dispatch ---


class UpstreamRequest(BaseModel):
    """One logical request for the dispatcher.

    Attributes:
        command: CLI command name (``search``, ``find``, ...), used for
            logging and as the first fingerprint field.
        operation: Upstream operation passed to the client (``search``,
            ``findSimilar``, ``contents``, ``research``).
        body: JSON request body for the API.
        cache_fields: Ordered option values that affect the response. When
            ``None`` the request is never cached.
        expects_results: Whether an empty ``results`` list means "no
            results" (false for research, whose payload has no such list).
    """

    command: str
    operation: str
    body: dict[str, Any] = Field(default_factory=dict)
    cache_fields: Optional[list[Any]] = None
    expects_results: bool = True

    @property
    def cacheable(self) -> bool:
        return self.cache_fields is not None


class ResultStatus(str, enum.Enum):
    """Outcome of a dispatched request."""

    SUCCESS = "success"
    NO_RESULTS = "no_results"
    ERROR = "error"


class DispatchResult(BaseModel):
    """Normalized result handed to the renderer.

    Exactly one of ``payload`` (success / no results) or ``error`` (error)
    is meaningful.
    """

    status: ResultStatus
    payload: Optional[dict[str, Any]] = None
    error: Optional[str] = None
    exit_code: int = 0
    from_cache: bool = False
    key_index: Optional[int] = None
