"""Save management utilities for Exam Season."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

from .clock import is_time_label
from .save_migrations import CURRENT_VERSION, SaveMigrationError, migrate_save_payload
from .state import SNAPSHOT_KEYS
from .stats import stats_are_valid
from .storage import open_storage


class SaveError(Exception):
    """Base class for save related failures."""


class SaveCorruptError(SaveError):
    """Raised when a save file cannot be parsed or validated."""


def strip_unserializable(value: Any) -> Any:
    """Return a JSON-safe copy of ``value``.

    Callables (condition closures that leaked into history, for example) are
    dropped, sets and tuples become lists, and mapping keys become strings.
    """
    if isinstance(value, Mapping):
        cleaned = {}
        for key, item in value.items():
            if callable(item):
                continue
            cleaned[str(key)] = strip_unserializable(item)
        return cleaned
    if isinstance(value, (list, tuple, set, frozenset)):
        items = sorted(value, key=str) if isinstance(value, (set, frozenset)) else value
        return [strip_unserializable(item) for item in items if not callable(item)]
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return None


def snapshot_problems(state: Any, *, max_day: int) -> List[str]:
    """Return every reason ``state`` is not a usable snapshot."""
    if not isinstance(state, Mapping):
        return ["state block missing"]
    problems: List[str] = []
    missing = [key for key in SNAPSHOT_KEYS if key not in state]
    if missing:
        problems.append(f"missing keys: {', '.join(missing)}")
    day = state.get("day")
    if isinstance(day, bool) or not isinstance(day, int) or not 1 <= day <= max_day:
        problems.append(f"day {day!r} outside 1..{max_day}")
    if not is_time_label(state.get("time")):
        problems.append(f"malformed time {state.get('time')!r}")
    if not stats_are_valid(state.get("stats")):
        problems.append("stats block incomplete or non-numeric")
    if not isinstance(state.get("flags"), Mapping):
        problems.append("flags must be an object")
    if not isinstance(state.get("history"), list):
        problems.append("history must be a list")
    for key in ("current_node_id", "ending_id"):
        value = state.get(key)
        if value is not None and not isinstance(value, str):
            problems.append(f"{key} must be null or a string")
    return problems


class SaveManager:
    """Persist one engine snapshot per slot, keeping a backup of the previous write."""

    FORMAT_VERSION = CURRENT_VERSION
    SAVE_FILENAME = "save.json"
    BACKUP_FILENAME = "save.bak"
    LEGACY_SAVE_FILENAMES = ("game_save.json",)
    DEFAULT_SLOT = "autosave"

    def __init__(
        self,
        base_path: Path | str = "saves",
        *,
        slot: str = DEFAULT_SLOT,
        max_day: int = 7,
        story_title: Optional[str] = None,
        storage=None,
        print_func: Callable[[str], None] = print,
    ) -> None:
        self.base_path = Path(base_path)
        self.slot = slot
        self.max_day = max_day
        self.story_title = story_title
        self.print = print_func
        self.storage = storage if storage is not None else open_storage(base_path, print_func=print_func)

    # ---------- Public API ----------
    def save(self, snapshot: Mapping[str, Any]) -> bool:
        try:
            payload = self._build_payload(snapshot)
            text = json.dumps(payload, indent=2) + "\n"
            self.storage.write(self._name(self.SAVE_FILENAME), text, backup=self._name(self.BACKUP_FILENAME))
        except (SaveError, OSError, TypeError, ValueError) as err:
            self.print(f"[!] Failed to save slot '{self.slot}': {err}")
            return False
        return True

    def load(self, *, prefer_backup: bool = False) -> Optional[Dict[str, Any]]:
        """Return the saved snapshot, or ``None`` when nothing usable exists."""
        target: Optional[str] = None
        try:
            target = self._pick_source(prefer_backup)
            if target is None:
                return None
            payload = self._read_payload(target)
        except SaveMigrationError as err:
            self.print(f"[!] Failed to migrate slot '{self.slot}': {err}")
            return None
        except SaveError as err:
            self.print(f"[!] Failed to load slot '{self.slot}': {err}")
            return None
        except (OSError, ValueError) as err:
            self.print(f"[!] Could not read {self._describe(target)}: {err}")
            return None
        return payload["state"]

    def load_payload(self, *, prefer_backup: bool = False) -> Optional[Dict[str, Any]]:
        """Like ``load`` but returns the whole envelope, metadata included."""
        try:
            target = self._pick_source(prefer_backup)
            if target is None:
                return None
            return self._read_payload(target)
        except (SaveError, SaveMigrationError, OSError, ValueError) as err:
            self.print(f"[!] Failed to load slot '{self.slot}': {err}")
            return None

    def exists(self) -> bool:
        try:
            return self._pick_source(False) is not None
        except (OSError, ValueError):
            return False

    def delete(self) -> bool:
        removed = False
        names = (self.SAVE_FILENAME, self.BACKUP_FILENAME) + self.LEGACY_SAVE_FILENAMES
        for name in names:
            try:
                removed = self.storage.remove(self._name(name)) or removed
            except OSError as err:
                self.print(f"[!] Could not delete '{name}' for slot '{self.slot}': {err}")
        return removed

    # ---------- Internal helpers ----------
    def _name(self, filename: str) -> str:
        return f"{self.slot}/{filename}"

    def _describe(self, name: Optional[str]) -> str:
        if name is None:
            return f"slot '{self.slot}'"
        describe = getattr(self.storage, "describe", None)
        return describe(name) if describe is not None else name

    def _pick_source(self, prefer_backup: bool) -> Optional[str]:
        save_name = self._name(self.SAVE_FILENAME)
        backup_name = self._name(self.BACKUP_FILENAME)
        target = backup_name if prefer_backup else save_name
        if self.storage.exists(target):
            return target
        if self.storage.exists(save_name):
            return save_name
        for legacy in self.LEGACY_SAVE_FILENAMES:
            legacy_name = self._name(legacy)
            if self.storage.exists(legacy_name):
                return legacy_name
        return None

    def _build_payload(self, snapshot: Mapping[str, Any]) -> Dict[str, Any]:
        state = strip_unserializable(snapshot)
        problems = snapshot_problems(state, max_day=self.max_day)
        if problems:
            raise SaveError("Refusing to write an invalid snapshot: " + "; ".join(problems))
        state = {key: state[key] for key in SNAPSHOT_KEYS}
        return {
            "version": self.FORMAT_VERSION,
            "saved_at": datetime.now(timezone.utc).isoformat(),
            "metadata": {
                "story_title": self.story_title,
                "day": state["day"],
                "current_node_id": state["current_node_id"],
            },
            "state": state,
        }

    def _read_payload(self, name: str) -> Dict[str, Any]:
        raw = self.storage.read(name)
        if raw is None:
            raise SaveError("Save file missing.")
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise SaveCorruptError(f"Invalid JSON: {exc}") from exc
        if isinstance(payload, dict) and payload.get("version") != self.FORMAT_VERSION:
            payload = migrate_save_payload(payload, self.FORMAT_VERSION)
        self._validate_payload(payload)
        return payload

    def _validate_payload(self, payload: Any) -> None:
        if not isinstance(payload, dict):
            raise SaveCorruptError("Payload was not an object.")
        version = payload.get("version")
        if version != self.FORMAT_VERSION:
            raise SaveCorruptError(f"Unsupported format version: {version!r}")
        problems = snapshot_problems(payload.get("state"), max_day=self.max_day)
        if problems:
            raise SaveCorruptError("; ".join(problems))
