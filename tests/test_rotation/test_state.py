"""Tests for loading and saving the rotation state file."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

from exacli.models import RotationState
from exacli.rotation import RotationStateStore


class TestRotationStateStore:
    def test_missing_file_gives_defaults(self, tmp_path) -> None:
        state = RotationStateStore(tmp_path / "state.json").load()
        assert state.current_index == 0
        assert state.keys == {}

    def test_round_trip(self, tmp_path) -> None:
        store = RotationStateStore(tmp_path / "state.json")
        state = RotationState(current_index=2)
        record = state.record(1)
        record.requests = 4
        record.errors = 1
        record.cooldown_until = datetime(2026, 1, 5, 12, 0, tzinfo=timezone.utc)
        store.save(state)

        loaded = store.load()
        assert loaded.current_index == 2
        assert loaded.keys[1].requests == 4
        assert loaded.keys[1].cooldown_until == record.cooldown_until

    def test_keys_are_string_indices_on_disk(self, tmp_path) -> None:
        path = tmp_path / "state.json"
        state = RotationState()
        state.record(0)
        RotationStateStore(path).save(state)
        data = json.loads(path.read_text())
        assert list(data["keys"]) == ["0"]

    def test_corrupt_file_resets_to_defaults(self, tmp_path) -> None:
        path = tmp_path / "state.json"
        path.write_text("{not json")
        state = RotationStateStore(path).load()
        assert state.keys == {}

    def test_wrong_shape_resets_to_defaults(self, tmp_path) -> None:
        path = tmp_path / "state.json"
        path.write_text(json.dumps({"keys": {"0": {"requests": "many"}}}))
        assert RotationStateStore(path).load().keys == {}

    def test_naive_timestamps_read_as_utc(self, tmp_path) -> None:
        path = tmp_path / "state.json"
        path.write_text(
            json.dumps(
                {
                    "last_validated": "2026-01-05T12:00:00",
                    "keys": {"0": {"cooldown_until": "2026-01-05T12:01:00"}},
                }
            )
        )
        state = RotationStateStore(path).load()
        assert state.last_validated.tzinfo is not None
        assert state.keys[0].cooldown_until - state.last_validated == timedelta(minutes=1)

    def test_save_leaves_no_temp_files(self, tmp_path) -> None:
        RotationStateStore(tmp_path / "state.json").save(RotationState())
        assert [p.name for p in tmp_path.iterdir()] == ["state.json"]
