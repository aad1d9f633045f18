"""Save migration registry for Exam Season."""

from __future__ import annotations

import copy
from typing import Any, Callable, Dict, List, Mapping

from .clock import DEFAULT_MORNING
from .stats import INITIAL_STATS, normalize_stats

LEGACY_VERSION = "mua-on-thi-v1"
CURRENT_VERSION = "exam-season-v2"


class SaveMigrationError(Exception):
    """Raised when a save cannot be migrated to the latest format."""


Migration = Callable[[Dict], Dict]


def _migrate_history(raw: Any) -> List[Dict[str, Any]]:
    """Older saves stored whole choice objects; keep only the identifiers."""
    entries: List[Dict[str, Any]] = []
    if not isinstance(raw, list):
        return entries
    for item in raw:
        if not isinstance(item, Mapping):
            continue
        choice_id = item.get("choice_id", item.get("choiceId"))
        if choice_id is None and isinstance(item.get("choice"), Mapping):
            choice_id = item["choice"].get("id")
        if choice_id is None:
            choice_id = item.get("id")
        entries.append(
            {
                "day": item.get("day"),
                "node_id": item.get("node_id", item.get("nodeId", item.get("eventId"))),
                "choice_id": choice_id,
                "timestamp": item.get("timestamp"),
            }
        )
    return entries


def _migrate_v1_to_v2(payload: Dict) -> Dict:
    state = payload.get("state")
    if not isinstance(state, dict):
        # The first format stored the state fields at the top level.
        state = {
            key: payload[key]
            for key in ("day", "time", "stats", "flags", "currentEvent", "history", "endingId")
            if key in payload
        }
        if not state:
            raise SaveMigrationError("Missing state block for legacy save.")

    stats = state.get("stats")
    if stats is not None and not isinstance(stats, Mapping):
        raise SaveMigrationError("Legacy stats block was not an object.")

    upgraded_state = {
        "day": state.get("day", 1),
        "time": state.get("time", DEFAULT_MORNING),
        "stats": normalize_stats(stats, defaults=INITIAL_STATS),
        "flags": state.get("flags") if isinstance(state.get("flags"), Mapping) else {},
        "current_node_id": state.get("current_node_id", state.get("currentEvent")),
        "ending_id": state.get("ending_id", state.get("endingId")),
        "history": _migrate_history(state.get("history")),
    }
    return {
        "version": CURRENT_VERSION,
        "saved_at": payload.get("saved_at", payload.get("savedAt")),
        "metadata": {
            "story_title": None,
            "day": upgraded_state["day"],
            "current_node_id": upgraded_state["current_node_id"],
        },
        "state": upgraded_state,
    }


MIGRATIONS: Dict[str, Migration] = {
    LEGACY_VERSION: _migrate_v1_to_v2,
}


def migrate_save_payload(payload: Dict, target_version: str = CURRENT_VERSION) -> Dict:
    if not isinstance(payload, dict):
        raise SaveMigrationError("Save payload was not an object.")

    version = payload.get("version") or LEGACY_VERSION
    if not isinstance(version, str):
        raise SaveMigrationError("Save version missing or invalid.")

    current = copy.deepcopy(payload)
    seen = set()
    while version != target_version:
        if version in seen:
            raise SaveMigrationError(f"Migration loop detected at save format '{version}'.")
        seen.add(version)
        migrator = MIGRATIONS.get(version)
        if migrator is None:
            raise SaveMigrationError(f"No migration available for save format '{version}'.")
        current = migrator(current)
        version = current.get("version")
        if not isinstance(version, str):
            raise SaveMigrationError("Migration produced an invalid save format version.")

    return current
