"""Durable key/value backends for saves and achievement records.

Desktop builds write files under a directory; the web build (Pyodide,
``sys.platform == "emscripten"``) keeps the same documents in the browser's
``localStorage`` under a prefixed key.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Callable, Optional

IS_WEB = sys.platform == "emscripten"


def get_local_storage() -> Optional[Any]:
    if not IS_WEB:
        return None
    try:
        from js import localStorage  # type: ignore
    except ImportError:
        return None
    return localStorage


class FileStorage:
    def __init__(self, base_path: Path | str) -> None:
        self.base_path = Path(base_path)

    def _path(self, name: str) -> Path:
        return self.base_path / name

    def describe(self, name: str) -> str:
        return str(self._path(name))

    def exists(self, name: str) -> bool:
        return self._path(name).exists()

    def read(self, name: str) -> Optional[str]:
        path = self._path(name)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise OSError(f"{path} is not valid UTF-8: {exc}") from exc

    def write(self, name: str, text: str, *, backup: Optional[str] = None) -> None:
        """Write ``text`` atomically, first copying any existing file to ``backup``."""
        path = self._path(name)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as handle:
            handle.write(text)
        if backup and path.exists():
            backup_path = self._path(backup)
            backup_path.parent.mkdir(parents=True, exist_ok=True)
            backup_path.write_bytes(path.read_bytes())
        tmp_path.replace(path)

    def remove(self, name: str) -> bool:
        path = self._path(name)
        if not path.exists():
            return False
        path.unlink()
        return True


class WebStorage:
    def __init__(self, local_storage: Any, prefix: str = "exam-season:") -> None:
        self.local_storage = local_storage
        self.prefix = prefix

    def _key(self, name: str) -> str:
        return f"{self.prefix}{name}"

    def describe(self, name: str) -> str:
        return f"localStorage[{self._key(name)!r}]"

    def _get(self, name: str) -> Any:
        try:
            return self.local_storage.getItem(self._key(name))
        except Exception as exc:
            raise OSError(f"localStorage read failed: {exc}") from exc

    def exists(self, name: str) -> bool:
        return self._get(name) is not None

    def read(self, name: str) -> Optional[str]:
        raw = self._get(name)
        return None if raw is None else str(raw)

    def write(self, name: str, text: str, *, backup: Optional[str] = None) -> None:
        try:
            if backup:
                existing = self.local_storage.getItem(self._key(name))
                if existing is not None:
                    self.local_storage.setItem(self._key(backup), existing)
            self.local_storage.setItem(self._key(name), text)
        except Exception as exc:
            # Quota and disabled-storage failures surface as JS exceptions.
            raise OSError(f"localStorage write failed: {exc}") from exc

    def remove(self, name: str) -> bool:
        if not self.exists(name):
            return False
        try:
            self.local_storage.removeItem(self._key(name))
        except Exception as exc:
            raise OSError(f"localStorage remove failed: {exc}") from exc
        return True


def open_storage(
    base_path: Path | str,
    *,
    print_func: Optional[Callable[[str], None]] = None,
):
    """Pick ``WebStorage`` in the browser build and ``FileStorage`` elsewhere."""
    local_storage = get_local_storage()
    if local_storage is not None:
        base = Path(base_path).as_posix().strip("/")
        return WebStorage(local_storage, prefix=f"exam-season:{base}/")
    if IS_WEB and print_func is not None:
        print_func("[Save] localStorage unavailable in web build; falling back to filesystem storage.")
    return FileStorage(base_path)
