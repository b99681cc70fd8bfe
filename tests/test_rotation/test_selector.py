"""Tests for cooldown-aware key selection."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from exacli.models import RotationRecord, RotationState
from exacli.rotation import select_credential

NOW = datetime(2026, 1, 5, 12, 0, tzinfo=timezone.utc)


def _state(*records: RotationRecord, current_index: int = 0) -> RotationState:
    return RotationState(
        current_index=current_index,
        keys={i: r for i, r in enumerate(records)},
    )


class TestRoundRobin:
    def test_fresh_state_starts_at_zero(self) -> None:
        state = RotationState()
        assert select_credential(3, state, NOW) == 0
        assert state.current_index == 1

    def test_equal_usage_rotates(self) -> None:
        state = RotationState()
        picks = []
        for _ in range(6):
            idx = select_credential(3, state, NOW)
            picks.append(idx)
            state.record(idx).requests += 1
        assert picks == [0, 1, 2, 0, 1, 2]

    def test_lowest_usage_wins(self) -> None:
        state = _state(
            RotationRecord(requests=5),
            RotationRecord(requests=2),
            RotationRecord(requests=9),
        )
        assert select_credential(3, state, NOW) == 1
        assert state.current_index == 2

    def test_tie_goes_to_first_seen_from_scan_start(self) -> None:
        state = _state(
            RotationRecord(requests=1),
            RotationRecord(requests=1),
            RotationRecord(requests=1),
            current_index=2,
        )
        assert select_credential(3, state, NOW) == 2
        assert state.current_index == 0

    def test_current_index_wraps(self) -> None:
        state = RotationState(current_index=7)
        assert select_credential(3, state, NOW) == 1

    def test_does_not_touch_counters(self) -> None:
        state = _state(RotationRecord(requests=3, successes=2, errors=1))
        select_credential(1, state, NOW)
        record = state.keys[0]
        assert (record.requests, record.successes, record.errors) == (3, 2, 1)


class TestCooldown:
    def test_cooling_key_is_skipped(self) -> None:
        state = _state(
            RotationRecord(cooldown_until=NOW + timedelta(seconds=30)),
            RotationRecord(requests=10),
        )
        assert select_credential(2, state, NOW) == 1

    def test_expired_cooldown_is_available(self) -> None:
        state = _state(
            RotationRecord(cooldown_until=NOW - timedelta(seconds=1)),
            RotationRecord(requests=10),
        )
        assert select_credential(2, state, NOW) == 0

    def test_cooldown_ending_exactly_now_is_available(self) -> None:
        state = _state(RotationRecord(cooldown_until=NOW), RotationRecord(requests=10))
        assert select_credential(2, state, NOW) == 0

    def test_all_cooling_picks_soonest_expiry(self) -> None:
        state = _state(
            RotationRecord(cooldown_until=NOW + timedelta(seconds=50)),
            RotationRecord(cooldown_until=NOW + timedelta(seconds=10)),
            RotationRecord(cooldown_until=NOW + timedelta(seconds=30)),
        )
        assert select_credential(3, state, NOW) == 1
        assert state.current_index == 2

    def test_all_cooling_tie_goes_to_lowest_index(self) -> None:
        until = NOW + timedelta(seconds=10)
        state = _state(
            RotationRecord(cooldown_until=NOW + timedelta(seconds=20)),
            RotationRecord(cooldown_until=until),
            RotationRecord(cooldown_until=until),
        )
        assert select_credential(3, state, NOW) == 1


class TestValidity:
    def test_invalid_key_never_selected(self) -> None:
        state = _state(RotationRecord(valid=False), RotationRecord(requests=100))
        for _ in range(3):
            assert select_credential(2, state, NOW) == 1

    def test_all_invalid_returns_none(self) -> None:
        state = _state(RotationRecord(valid=False), RotationRecord(valid=False))
        assert select_credential(2, state, NOW) is None
        assert state.current_index == 0

    def test_empty_pool_returns_none(self) -> None:
        assert select_credential(0, RotationState(), NOW) is None

    def test_exclude(self) -> None:
        state = RotationState()
        assert select_credential(2, state, NOW, exclude={0}) == 1

    def test_exclude_only_key_returns_none(self) -> None:
        assert select_credential(1, RotationState(), NOW, exclude={0}) is None
