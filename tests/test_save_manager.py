import json
from pathlib import Path

import pytest

from exam_season.save_manager import SaveManager
from exam_season.save_migrations import CURRENT_VERSION, LEGACY_VERSION
from exam_season.state import GameState
from exam_season.storage import WebStorage


def make_snapshot(**overrides) -> dict:
    state = GameState(day=2, time="14:00", current_node_id="day-2-afternoon")
    state.set_flag("iron_discipline")
    state.record_choice("day-2-start", "d2_focus_topic")
    snapshot = state.to_snapshot()
    snapshot.update(overrides)
    return snapshot


def make_manager(tmp_path: Path, **kwargs):
    messages = []
    manager = SaveManager(tmp_path, print_func=messages.append, **kwargs)
    return manager, messages


def write_slot_file(tmp_path: Path, name: str, payload) -> Path:
    path = tmp_path / "autosave" / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(payload if isinstance(payload, str) else json.dumps(payload))
    return path


def test_save_and_load_round_trip(tmp_path: Path) -> None:
    manager, _ = make_manager(tmp_path, story_title="Exam Season")
    snapshot = make_snapshot()
    assert manager.save(snapshot)
    assert manager.exists()
    assert manager.load() == snapshot

    payload = manager.load_payload()
    assert payload["version"] == CURRENT_VERSION
    assert payload["metadata"] == {
        "story_title": "Exam Season",
        "day": 2,
        "current_node_id": "day-2-afternoon",
    }
    assert payload["saved_at"]


def test_load_without_save_returns_none(tmp_path: Path) -> None:
    manager, messages = make_manager(tmp_path)
    assert manager.load() is None
    assert not manager.exists()
    assert messages == []


@pytest.mark.parametrize(
    "corruption",
    [
        {"day": 0},
        {"day": 9},
        {"day": "3"},
        {"time": "25:00"},
        {"flags": ["a", "b"]},
        {"history": {}},
        {"current_node_id": 12},
    ],
)
def test_corrupted_state_is_rejected(tmp_path: Path, corruption: dict) -> None:
    manager, messages = make_manager(tmp_path)
    write_slot_file(tmp_path, "save.json", {"version": CURRENT_VERSION, "state": make_snapshot(**corruption)})
    assert manager.load() is None
    assert any("Failed to load" in message for message in messages)


@pytest.mark.parametrize("stats_change", [{"money": None}, {"health": "tired"}, {"stress": float("nan")}])
def test_incomplete_stats_are_rejected(tmp_path: Path, stats_change: dict) -> None:
    manager, _ = make_manager(tmp_path)
    snapshot = make_snapshot()
    for key, value in stats_change.items():
        if value is None:
            del snapshot["stats"][key]
        else:
            snapshot["stats"][key] = value
    write_slot_file(tmp_path, "save.json", json.dumps({"version": CURRENT_VERSION, "state": snapshot}))
    assert manager.load() is None


def test_missing_state_key_is_rejected(tmp_path: Path) -> None:
    manager, _ = make_manager(tmp_path)
    snapshot = make_snapshot()
    del snapshot["flags"]
    write_slot_file(tmp_path, "save.json", {"version": CURRENT_VERSION, "state": snapshot})
    assert manager.load() is None


def test_invalid_json_is_rejected(tmp_path: Path) -> None:
    manager, messages = make_manager(tmp_path)
    write_slot_file(tmp_path, "save.json", "{not json")
    assert manager.load() is None
    assert any("Invalid JSON" in message for message in messages)


def test_invalid_utf8_save_returns_none(tmp_path: Path) -> None:
    manager, messages = make_manager(tmp_path)
    path = tmp_path / "autosave" / "save.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"\xff\xfe\x00garbage")
    assert manager.load() is None
    assert manager.load_payload() is None
    assert manager.exists()
    assert any("not valid UTF-8" in message for message in messages)


def test_unknown_version_is_rejected(tmp_path: Path) -> None:
    manager, messages = make_manager(tmp_path)
    write_slot_file(tmp_path, "save.json", {"version": "exam-season-v99", "state": make_snapshot()})
    assert manager.load() is None
    assert any("exam-season-v99" in message for message in messages)


def test_legacy_save_is_migrated(tmp_path: Path) -> None:
    manager, _ = make_manager(tmp_path)
    legacy = {
        "version": LEGACY_VERSION,
        "savedAt": "2024-05-01T10:00:00Z",
        "state": {
            "day": 3,
            "time": "10:00",
            "stats": {"knowledge": 72, "sleeplessCount": 1},
            "flags": {"focused_start": True},
            "currentEvent": "day-3-noon",
            "history": [{"day": 2, "eventId": "day-2-start", "choice": {"id": "d2_focus_topic", "text": "Cram"}}],
        },
    }
    write_slot_file(tmp_path, "save.json", legacy)
    state = manager.load()
    assert state["current_node_id"] == "day-3-noon"
    assert state["stats"]["knowledge"] == 72
    assert state["stats"]["sleepless_count"] == 1
    assert state["stats"]["health"] == 70
    assert state["history"] == [
        {"day": 2, "node_id": "day-2-start", "choice_id": "d2_focus_topic", "timestamp": None}
    ]
    assert state["ending_id"] is None


def test_unversioned_legacy_file_is_found_and_migrated(tmp_path: Path) -> None:
    manager, _ = make_manager(tmp_path)
    write_slot_file(
        tmp_path,
        "game_save.json",
        {"day": 4, "time": "19:00", "stats": {"money": 5000}, "flags": {}, "currentEvent": "day-4-evening", "history": []},
    )
    assert manager.exists()
    state = manager.load()
    assert state["day"] == 4
    assert state["current_node_id"] == "day-4-evening"
    assert state["stats"]["money"] == 5000


def test_backup_keeps_previous_save(tmp_path: Path) -> None:
    manager, _ = make_manager(tmp_path)
    first = make_snapshot()
    second = make_snapshot(day=3, current_node_id="day-3-start", time="08:00")
    assert manager.save(first)
    assert manager.save(second)
    assert (tmp_path / "autosave" / "save.bak").exists()
    assert manager.load() == second
    assert manager.load(prefer_backup=True) == first


def test_prefer_backup_falls_back_to_primary(tmp_path: Path) -> None:
    manager, _ = make_manager(tmp_path)
    snapshot = make_snapshot()
    manager.save(snapshot)
    assert manager.load(prefer_backup=True) == snapshot


def test_callables_never_reach_disk(tmp_path: Path) -> None:
    manager, _ = make_manager(tmp_path)
    snapshot = make_snapshot()
    snapshot["history"][0]["condition"] = lambda state: True
    snapshot["flags"]["callback"] = lambda state: True
    assert manager.save(snapshot)
    raw = (tmp_path / "autosave" / "save.json").read_text()
    assert "lambda" not in raw
    loaded = manager.load()
    assert "condition" not in loaded["history"][0]
    assert "callback" not in loaded["flags"]


def test_invalid_snapshot_is_not_written(tmp_path: Path) -> None:
    manager, messages = make_manager(tmp_path)
    assert manager.save(make_snapshot(day=42)) is False
    assert not manager.exists()
    assert any("invalid snapshot" in message for message in messages)


class BrokenStorage:
    def exists(self, name):
        return False

    def read(self, name):
        raise OSError("disk gone")

    def write(self, name, text, *, backup=None):
        raise OSError("disk full")

    def remove(self, name):
        raise OSError("read-only")


def test_storage_failures_are_reported_not_raised(tmp_path: Path) -> None:
    manager, messages = make_manager(tmp_path, storage=BrokenStorage())
    assert manager.save(make_snapshot()) is False
    assert manager.load() is None
    assert manager.delete() is False
    assert any("disk full" in message for message in messages)


def test_delete_removes_save_and_backup(tmp_path: Path) -> None:
    manager, _ = make_manager(tmp_path)
    manager.save(make_snapshot())
    manager.save(make_snapshot())
    assert manager.delete()
    assert not manager.exists()
    assert not (tmp_path / "autosave" / "save.bak").exists()
    assert manager.delete() is False


def test_slots_are_independent(tmp_path: Path) -> None:
    first, _ = make_manager(tmp_path, slot="one")
    second, _ = make_manager(tmp_path, slot="two")
    first.save(make_snapshot())
    assert second.load() is None


class FakeLocalStorage:
    def __init__(self, *, fail_writes: bool = False) -> None:
        self.items = {}
        self.fail_writes = fail_writes

    def getItem(self, key):
        return self.items.get(key)

    def setItem(self, key, value):
        if self.fail_writes:
            raise RuntimeError("QuotaExceededError")
        self.items[key] = value

    def removeItem(self, key):
        self.items.pop(key, None)


def test_web_storage_round_trip(tmp_path: Path) -> None:
    local_storage = FakeLocalStorage()
    manager, _ = make_manager(tmp_path, storage=WebStorage(local_storage))
    snapshot = make_snapshot()
    assert manager.save(snapshot)
    assert manager.save(snapshot)
    assert set(local_storage.items) == {"exam-season:autosave/save.json", "exam-season:autosave/save.bak"}
    assert manager.load() == snapshot
    assert manager.delete()
    assert local_storage.items == {}


def test_web_storage_quota_failure_returns_false(tmp_path: Path) -> None:
    manager, messages = make_manager(tmp_path, storage=WebStorage(FakeLocalStorage(fail_writes=True)))
    assert manager.save(make_snapshot()) is False
    assert any("QuotaExceededError" in message for message in messages)


class ExplodingLocalStorage(FakeLocalStorage):
    def getItem(self, key):
        raise RuntimeError("SecurityError: storage disabled")


def test_web_storage_read_failure_is_reported_not_raised(tmp_path: Path) -> None:
    manager, messages = make_manager(tmp_path, storage=WebStorage(ExplodingLocalStorage()))
    assert manager.load() is None
    assert manager.load_payload() is None
    assert manager.exists() is False
    assert manager.delete() is False
    assert any("SecurityError" in message for message in messages)
