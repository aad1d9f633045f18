"""Cross-run record of unlocked achievements and endings already seen."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from .state import utc_timestamp
from .storage import open_storage

ACHIEVEMENTS_FILENAME = "achievements.json"
DEFAULT_RECORD_ROOT = Path("saves")
RECORD_VERSION = "achievements_v1"


class AchievementStoreError(Exception):
    """Raised when the achievement record cannot be read or written."""


def default_record() -> dict:
    return {
        "version": RECORD_VERSION,
        "unlocked": [],
        "unlocked_at": {},
        "seen_endings": [],
    }


def _normalize_record(data: Any) -> dict:
    if not isinstance(data, dict):
        return default_record()
    record = default_record()
    unlocked = data.get("unlocked")
    if isinstance(unlocked, list):
        record["unlocked"] = [entry for entry in dict.fromkeys(unlocked) if isinstance(entry, str)]
    unlocked_at = data.get("unlocked_at")
    if isinstance(unlocked_at, dict):
        record["unlocked_at"] = {
            key: value for key, value in unlocked_at.items() if key in record["unlocked"]
        }
    seen = data.get("seen_endings")
    if isinstance(seen, list):
        record["seen_endings"] = [entry for entry in dict.fromkeys(seen) if isinstance(entry, str)]
    return record


def _emit_warning(message: str) -> None:
    print(message, file=sys.stderr)


class AchievementStore:
    """Unlocks only ever accumulate; ``clear`` exists for tooling and tests."""

    def __init__(
        self,
        base_path: Path | str = DEFAULT_RECORD_ROOT,
        *,
        storage=None,
        print_func: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.print = print_func or _emit_warning
        self.storage = storage if storage is not None else open_storage(base_path, print_func=self.print)
        self.record = self._load()
        self._queue: List[Dict[str, Any]] = []

    @property
    def unlocked(self) -> List[str]:
        return list(self.record["unlocked"])

    @property
    def seen_endings(self) -> List[str]:
        return list(self.record["seen_endings"])

    def is_unlocked(self, achievement_id: str) -> bool:
        return achievement_id in self.record["unlocked"]

    def unlock_many(self, achievements: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        """Record every achievement not yet unlocked and queue it for display."""
        newly: List[Dict[str, Any]] = []
        for achievement in achievements:
            achievement_id = achievement.get("id")
            if not isinstance(achievement_id, str) or self.is_unlocked(achievement_id):
                continue
            self.record["unlocked"].append(achievement_id)
            self.record["unlocked_at"][achievement_id] = utc_timestamp()
            entry = dict(achievement)
            entry.pop("condition", None)
            newly.append(entry)
        if newly:
            self._queue.extend(newly)
            self.save()
        return newly

    def record_ending(self, ending_id: Any) -> bool:
        if not isinstance(ending_id, str) or ending_id in self.record["seen_endings"]:
            return False
        self.record["seen_endings"].append(ending_id)
        self.save()
        return True

    def drain_queue(self) -> List[Dict[str, Any]]:
        queued, self._queue = self._queue, []
        return queued

    def clear(self) -> None:
        self.record = default_record()
        self._queue = []
        try:
            self.storage.remove(ACHIEVEMENTS_FILENAME)
        except OSError as exc:
            self.print(f"[Achievement] Failed to clear record: {exc}")

    def save(self) -> bool:
        try:
            self._write()
        except AchievementStoreError as exc:
            self.print(f"[Achievement] Failed to save record: {exc}")
            return False
        return True

    def _write(self) -> None:
        text = json.dumps(self.record, indent=2) + "\n"
        try:
            self.storage.write(ACHIEVEMENTS_FILENAME, text)
        except OSError as exc:
            raise AchievementStoreError(str(exc)) from exc

    def _load(self) -> dict:
        try:
            raw = self.storage.read(ACHIEVEMENTS_FILENAME)
        except OSError as exc:
            self.print(f"[Achievement] Failed to read record: {exc}")
            return default_record()
        if raw is None:
            return default_record()
        try:
            data = json.loads(raw)
        except ValueError as exc:
            self.print(f"[Achievement] Record unreadable ({exc}); starting fresh.")
            return default_record()
        return _normalize_record(data)
