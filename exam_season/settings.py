"""Player-facing configuration stored next to the package as ``settings.json``."""

from __future__ import annotations

import json
import string
import sys
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict

from .storage import FileStorage

_BASE_DIR = Path(__file__).resolve().parent.parent
SETTINGS_PATH = _BASE_DIR / "settings.json"
_SLOT_CHARS = frozenset(string.ascii_lowercase + string.digits + "-_")
_TRUE_WORDS = {"true", "1", "yes", "on"}
_FALSE_WORDS = {"false", "0", "no", "off"}


def _parse_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
        return default
    return bool(value)


def _slot_name(value: Any) -> str:
    cleaned = "".join(ch for ch in str(value).strip().lower() if ch in _SLOT_CHARS)
    return cleaned or "autosave"


@dataclass
class Settings:
    autosave: bool = True
    save_dir: str = "saves"
    save_slot: str = "autosave"
    validate_content: bool = True
    debug: bool = False

    def clamp(self) -> "Settings":
        self.autosave = bool(self.autosave)
        self.save_dir = str(self.save_dir or "").strip() or "saves"
        self.save_slot = _slot_name(self.save_slot)
        self.validate_content = bool(self.validate_content)
        self.debug = bool(self.debug)
        return self

    def copy(self) -> "Settings":
        return Settings.from_dict(self.to_dict())

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any] | None) -> "Settings":
        if not isinstance(data, dict):
            return cls()
        defaults = cls()
        return cls(
            autosave=_parse_bool(data.get("autosave"), defaults.autosave),
            save_dir=data.get("save_dir") or defaults.save_dir,
            save_slot=data.get("save_slot") or defaults.save_slot,
            validate_content=_parse_bool(data.get("validate_content"), defaults.validate_content),
            debug=_parse_bool(data.get("debug"), defaults.debug),
        ).clamp()


def load_settings(path: Path | str = SETTINGS_PATH) -> Settings:
    """Read settings, falling back to defaults for a missing or unreadable file."""
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return Settings()
    return Settings.from_dict(data)


def save_settings(settings: Settings, path: Path | str = SETTINGS_PATH) -> Settings:
    path = Path(path)
    sanitized = settings.copy()
    text = json.dumps(sanitized.to_dict(), indent=2) + "\n"
    try:
        FileStorage(path.parent).write(path.name, text)
    except OSError as exc:
        print(f"[Settings] Failed to save settings: {exc}", file=sys.stderr)
    return sanitized
