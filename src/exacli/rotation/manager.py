"""Key rotation manager: pool + durable state + selection policy.

:class:`KeyManager` is the single object the dispatcher and the
``status`` / ``reset`` commands talk to. It owns one invocation's
in-memory copy of the :class:`~exacli.models.RotationState`, applies the
outcome of every upstream call to it, and writes it back through
:class:`~exacli.rotation.state.RotationStateStore`.

Only definitive outcomes touch a record: a success, a rate limit, or a
validation probe that the API rejected. Timeouts and other failures leave
the counters alone.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta
from typing import Callable, Collection, Optional

from pydantic import BaseModel

from exacli.exceptions import AuthError, ExaCliError
from exacli.models import RotationConfig, RotationRecord, RotationState, utcnow
from exacli.rotation.pool import CredentialPool
from exacli.rotation.selector import select_credential
from exacli.rotation.state import RotationStateStore

logger = logging.getLogger(__name__)

STATUS_READY = "READY"
STATUS_COOLDOWN = "COOLDOWN"
STATUS_INVALID = "INVALID"


class KeyStatus(BaseModel):
    """Read-only view of one key for ``exa status``."""

    index: int
    key: str
    status: str
    cooldown_remaining: Optional[int] = None
    requests: int = 0
    successes: int = 0
    errors: int = 0


class KeyManager:
    """Select keys and record their health across invocations.

    The state is loaded once at construction. Callers mutate it through the
    ``record_*`` methods and call :meth:`persist` to write it back; the
    dispatcher does so before returning or raising.

    Args:
        pool: The configured keys.
        store: Where the rotation state lives.
        config: Rotation policy (default cooldown, validation interval).
        clock: Source of the current aware UTC time.

    Example::

        manager = KeyManager(CredentialPool.from_env(), RotationStateStore())
        idx = manager.select()
        ...
        manager.record_success(idx)
        manager.persist()
    """

    def __init__(
        self,
        pool: CredentialPool,
        store: RotationStateStore,
        config: Optional[RotationConfig] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.pool = pool
        self._store = store
        self._config = config or RotationConfig()
        self._clock = clock
        self.state: RotationState = store.load()
        for idx in pool:
            self.state.record(idx)

    # ------------------------------------------------------------------ #
    # Selection
    # ------------------------------------------------------------------ #

    def select(self, exclude: Collection[int] = ()) -> Optional[int]:
        """Return the index of the key to use next, or ``None`` if none is usable.

        See :func:`~exacli.rotation.selector.select_credential` for the
        policy. Advances the scan start but does not touch usage counters.
        """
        now = self._clock()
        idx = select_credential(len(self.pool), self.state, now, exclude=exclude)
        if idx is not None:
            record = self.state.record(idx)
            if record.on_cooldown(now):
                remaining = (record.cooldown_until - now).total_seconds()
                logger.info(
                    "All keys on cooldown; using %s (%.0fs remaining)",
                    self.pool.masked(idx),
                    remaining,
                )
            logger.debug("Using key %s (index %d)", self.pool.masked(idx), idx)
        return idx

    # ------------------------------------------------------------------ #
    # Outcome recording
    # ------------------------------------------------------------------ #

    def record_success(self, idx: int) -> None:
        """Count a successful request and clear any cooldown on the key."""
        record = self.state.record(idx)
        record.requests += 1
        record.successes += 1
        record.cooldown_until = None

    def record_rate_limit(self, idx: int, retry_after: Optional[float] = None) -> datetime:
        """Count a rate-limited request and put the key on cooldown.

        Args:
            idx: Key index that received the 429.
            retry_after: Cooldown in seconds suggested by the API. The
                configured default is used when it is ``None`` or negative.

        Returns:
            The new ``cooldown_until``.
        """
        seconds = retry_after
        if seconds is None or seconds < 0:
            seconds = self._config.default_cooldown_seconds
        record = self.state.record(idx)
        record.requests += 1
        record.errors += 1
        record.cooldown_until = self._clock() + timedelta(seconds=seconds)
        logger.warning(
            "Key %s rate limited, cooldown %.0fs", self.pool.masked(idx), seconds
        )
        return record.cooldown_until

    def mark_invalid(self, idx: int) -> None:
        """Exclude the key from selection. Only removing ``state.json`` restores it."""
        self.state.record(idx).valid = False
        logger.warning("Key %s is invalid and will be skipped", self.pool.masked(idx))

    # ------------------------------------------------------------------ #
    # Persistence
    # ------------------------------------------------------------------ #

    def persist(self) -> bool:
        """Write the state back to disk.

        Failures are logged and absorbed: losing a usage update must never
        change the outcome of the user's command.

        Returns:
            ``True`` if the state was written.
        """
        try:
            self._store.save(self.state)
        except OSError as exc:
            logger.warning("Could not save rotation state to %s: %s", self._store.path, exc)
            return False
        return True

    def reset(self) -> None:
        """Clear every cooldown and usage counter and restart the scan at index 0.

        Validity flags and the pool itself are left alone.
        """
        for record in self.state.keys.values():
            record.cooldown_until = None
            record.requests = 0
            record.successes = 0
            record.errors = 0
        self.state.current_index = 0
        self.persist()

    # ------------------------------------------------------------------ #
    # Status
    # ------------------------------------------------------------------ #

    @property
    def next_index(self) -> int:
        if not self.pool:
            return 0
        return self.state.current_index % len(self.pool)

    def is_stale(self) -> bool:
        """Return ``True`` when the last validation is older than the configured interval."""
        threshold = self._clock() - timedelta(hours=self._config.validate_after_hours)
        return self.state.last_validated < threshold

    def status(self) -> list[KeyStatus]:
        """Return one masked :class:`KeyStatus` per key in the pool.

        Does not modify or persist the state.
        """
        now = self._clock()
        rows: list[KeyStatus] = []
        for idx in self.pool:
            record = self.state.keys.get(idx) or RotationRecord()
            remaining: Optional[int] = None
            if not record.valid:
                label = STATUS_INVALID
            elif record.on_cooldown(now):
                label = STATUS_COOLDOWN
                remaining = math.ceil((record.cooldown_until - now).total_seconds())
            else:
                label = STATUS_READY
            rows.append(
                KeyStatus(
                    index=idx,
                    key=self.pool.masked(idx),
                    status=label,
                    cooldown_remaining=remaining,
                    requests=record.requests,
                    successes=record.successes,
                    errors=record.errors,
                )
            )
        return rows

    # ------------------------------------------------------------------ #
    # Validation
    # ------------------------------------------------------------------ #

    def validate_if_stale(self, probe: Callable[[str], None]) -> list[int]:
        """Probe every key when the state is stale and mark rejected ones invalid.

        Args:
            probe: Sends a minimal request with the given key. Raises
                :class:`~exacli.exceptions.AuthError` when the API rejects
                the key; any other :class:`~exacli.exceptions.ExaCliError`
                leaves the key untouched.

        Returns:
            Indices newly marked invalid.
        """
        if not self._config.validate_keys or not self.pool or not self.is_stale():
            return []

        logger.info("Validating API keys (state is stale)...")
        invalid: list[int] = []
        for idx in self.pool:
            try:
                probe(self.pool.get(idx))
            except AuthError:
                invalid.append(idx)
            except ExaCliError as exc:
                logger.warning(
                    "Failed to validate key %s: %s", self.pool.masked(idx), exc
                )
            else:
                logger.debug("Key %s is valid", self.pool.masked(idx))

        for idx in invalid:
            self.mark_invalid(idx)
        self.state.last_validated = self._clock()
        self.persist()
        return invalid
