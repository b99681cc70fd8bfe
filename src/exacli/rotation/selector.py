"""Cooldown-aware key selection.

:func:`select_credential` balances load by usage among the keys that are
valid and not cooling down, using round robin only to decide where the scan
starts and how ties break. When every valid key is cooling down it degrades
to the key whose cooldown ends soonest instead of failing.
"""

from __future__ import annotations

from datetime import datetime
from typing import Collection, Optional

from exacli.models import RotationState


def select_credential(
    pool_size: int,
    state: RotationState,
    now: datetime,
    exclude: Collection[int] = (),
) -> Optional[int]:
    """Pick the key index for the next outbound call.

    1. Keys whose record says ``valid: false`` (and any index in *exclude*)
       are out. If nothing is left, return ``None``.
    2. The rest split into *available* (no cooldown, or cooldown over as of
       *now*) and *on cooldown*.
    3. With available keys, scan every index circularly starting at
       ``state.current_index % pool_size`` and keep the available key with
       the lowest ``requests`` count; the first one seen wins ties.
    4. Otherwise pick the key whose ``cooldown_until`` is soonest, ties to
       the lowest index.
    5. ``state.current_index`` moves to ``(selected + 1) % pool_size``.

    Usage counters are not touched; the dispatcher records outcomes.

    Args:
        pool_size: Number of keys in the pool.
        state: Rotation state; missing records are created as defaults and
            ``current_index`` is advanced in place.
        now: Current time, used to decide which cooldowns are over.
        exclude: Indices that must not be returned (used by the retry
            after a rate limit to insist on a different key).

    Returns:
        The selected index, or ``None`` when no valid key remains.
    """
    if pool_size <= 0:
        return None

    valid = [
        i for i in range(pool_size)
        if i not in exclude and state.record(i).valid
    ]
    if not valid:
        return None

    available = {i for i in valid if not state.record(i).on_cooldown(now)}

    if available:
        start = state.current_index % pool_size
        selected: Optional[int] = None
        best_usage = 0
        for offset in range(pool_size):
            idx = (start + offset) % pool_size
            if idx not in available:
                continue
            usage = state.record(idx).requests
            if selected is None or usage < best_usage:
                selected = idx
                best_usage = usage
        assert selected is not None
    else:
        # Every candidate has a cooldown set, otherwise it would be available.
        selected = min(
            valid,
            key=lambda i: (state.record(i).cooldown_until, i),
        )

    state.current_index = (selected + 1) % pool_size
    return selected
