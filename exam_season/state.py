"""Mutable engine state and its serializable snapshot form."""

from __future__ import annotations

import copy
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from .clock import DEFAULT_MORNING, normalize_time
from .stats import INITIAL_STATS, normalize_stats

SNAPSHOT_KEYS = (
    "day",
    "time",
    "stats",
    "flags",
    "current_node_id",
    "ending_id",
    "history",
)


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class GameState:
    def __init__(
        self,
        *,
        day: int = 1,
        time: str = DEFAULT_MORNING,
        stats: Optional[Mapping[str, Any]] = None,
        flags: Optional[Mapping[str, Any]] = None,
        current_node_id: Optional[str] = None,
        ending_id: Optional[str] = None,
        history: Optional[List[Dict[str, Any]]] = None,
        initial_stats: Mapping[str, Any] = INITIAL_STATS,
    ) -> None:
        self.initial_stats = dict(initial_stats)
        self.day = day
        self.time = time
        self.stats = dict(stats) if stats is not None else dict(initial_stats)
        self.flags = dict(flags or {})
        self.current_node_id = current_node_id
        self.ending_id = ending_id
        self.history = list(history or [])
        self.ensure_consistency()

    def ensure_consistency(self) -> None:
        try:
            self.day = max(int(self.day), 1)
        except (TypeError, ValueError):
            self.day = 1
        self.time = normalize_time(self.time)
        self.stats = normalize_stats(self.stats, defaults=self.initial_stats)

        flags: Dict[str, bool] = {}
        if isinstance(self.flags, Mapping):
            for name, value in self.flags.items():
                if isinstance(name, str) and value:
                    flags[name] = True
        elif isinstance(self.flags, (list, tuple, set)):
            for name in self.flags:
                if isinstance(name, str):
                    flags[name] = True
        self.flags = flags

        if not isinstance(self.current_node_id, str) or not self.current_node_id:
            self.current_node_id = None
        if not isinstance(self.ending_id, str) or not self.ending_id:
            self.ending_id = None

        normalized_history = []
        if isinstance(self.history, list):
            for entry in self.history:
                if not isinstance(entry, Mapping):
                    continue
                normalized_history.append(
                    {
                        "day": entry.get("day"),
                        "node_id": entry.get("node_id"),
                        "choice_id": entry.get("choice_id"),
                        "timestamp": entry.get("timestamp"),
                    }
                )
        self.history = normalized_history

    # ---------- Flags ----------
    def has_flag(self, name: str) -> bool:
        return bool(self.flags.get(name))

    def set_flag(self, name: str) -> None:
        if isinstance(name, str) and name:
            self.flags[name] = True

    def remove_flag(self, name: str) -> bool:
        """Debug/tooling escape hatch; normal play never clears flags."""
        return self.flags.pop(name, None) is not None

    # ---------- History ----------
    def record_choice(self, node_id: str, choice_id: str) -> Dict[str, Any]:
        entry = {
            "day": self.day,
            "node_id": node_id,
            "choice_id": choice_id,
            "timestamp": utc_timestamp(),
        }
        self.history.append(entry)
        return entry

    @property
    def finished(self) -> bool:
        return self.ending_id is not None

    # ---------- Snapshots ----------
    def to_snapshot(self) -> Dict[str, Any]:
        return {
            "day": self.day,
            "time": self.time,
            "stats": dict(self.stats),
            "flags": dict(self.flags),
            "current_node_id": self.current_node_id,
            "ending_id": self.ending_id,
            "history": copy.deepcopy(self.history),
        }

    @classmethod
    def from_snapshot(
        cls, snapshot: Mapping[str, Any], *, initial_stats: Mapping[str, Any] = INITIAL_STATS
    ) -> "GameState":
        return cls(
            day=snapshot.get("day", 1),
            time=snapshot.get("time", DEFAULT_MORNING),
            stats=snapshot.get("stats"),
            flags=snapshot.get("flags"),
            current_node_id=snapshot.get("current_node_id"),
            ending_id=snapshot.get("ending_id"),
            history=copy.deepcopy(snapshot.get("history") or []),
            initial_stats=initial_stats,
        )

    def __repr__(self) -> str:
        return (
            f"GameState(day={self.day}, time={self.time!r}, node={self.current_node_id!r}, "
            f"ending={self.ending_id!r})"
        )
