"""Read-only registry over a story table: nodes, endings and achievements."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

from .clock import DEFAULT_MORNING, normalize_time
from .schema import validate_story
from .stats import initial_stats as build_initial_stats
from .story_schema import normalize_nodes

PrintFunc = Callable[[str], None]

DATA_DIR = Path(__file__).resolve().parent / "data"
DEFAULT_STORY_PATH = DATA_DIR / "exam_week.json"

DEFAULT_MAX_DAY = 7
DEFAULT_START_PATTERN = "day-{day}-start"
DEFAULT_RECOVERY_PATTERN = "day-{day}-after-hospital"
DEFAULT_ENDING_ID = "normal_end"

DEFAULT_HOSPITALIZATION: Mapping[str, Any] = {
    "set": {"health": 50},
    "delta": {"stress": -20, "money": -100000, "knowledge": -10},
    "reset_sleepless": True,
    "flag": "hospitalized_day{day}",
}

DEFAULT_EXAM: Mapping[str, Any] = {
    "cheat_flag": "has_cheat_sheet",
    "attempt_flag": "attempted_cheat",
    "caught_flag": "cheat_caught",
    "success_flag": "cheat_success",
    "crash_flag": "hospitalized_day{day}",
    "bonus_flags": ["deep_understanding"],
    "penalty_flags": ["surface_learning", "surface_learning_2"],
}


def _emit_warning(message: str) -> None:
    print(message, file=sys.stderr)


def _raise_story_validation(errors):
    raise ValueError("Invalid story data:\n- " + "\n- ".join(errors))


class StoryContent:
    """Lookups over one immutable story table.

    Unknown ids return ``None`` rather than raising; callers decide how to
    recover (usually by rolling the day over).
    """

    def __init__(self, story: Mapping[str, Any], *, print_func: Optional[PrintFunc] = None) -> None:
        self.print_func = print_func or _emit_warning
        self.title: str = str(story.get("title") or "Untitled")
        max_day = story.get("max_day", DEFAULT_MAX_DAY)
        self.max_day: int = max_day if isinstance(max_day, int) and max_day >= 1 else DEFAULT_MAX_DAY
        self.default_time: str = normalize_time(story.get("default_time"), DEFAULT_MORNING)
        self.initial_stats: Dict[str, int] = build_initial_stats(story.get("initial_stats"))

        conventions = story.get("conventions") or {}
        self.start_pattern: str = conventions.get("start_node") or DEFAULT_START_PATTERN
        self.recovery_pattern: str = conventions.get("recovery_node") or DEFAULT_RECOVERY_PATTERN

        hospital = dict(DEFAULT_HOSPITALIZATION)
        hospital.update(story.get("hospitalization") or {})
        self.hospitalization: Dict[str, Any] = hospital

        exam = dict(DEFAULT_EXAM)
        exam.update(story.get("exam") or {})
        self.exam: Dict[str, Any] = exam

        nodes = story.get("nodes") or {}
        if isinstance(nodes, dict) and all(
            isinstance(node, Mapping) and node.get("id") == node_id for node_id, node in nodes.items()
        ):
            self._nodes: Dict[str, Dict[str, Any]] = dict(nodes)
        else:
            self._nodes, errors = normalize_nodes(nodes)
            for message in errors:
                self.print_func(f"[!] [Content] {message}")

        self._endings: List[Dict[str, Any]] = [
            dict(ending) for ending in story.get("endings") or [] if isinstance(ending, Mapping)
        ]
        self._achievements: List[Dict[str, Any]] = [
            dict(entry) for entry in story.get("achievements") or [] if isinstance(entry, Mapping)
        ]
        self._default_ending = self._build_default_ending(story.get("default_ending"))

    @classmethod
    def from_dict(cls, story: Mapping[str, Any], *, print_func: Optional[PrintFunc] = None) -> "StoryContent":
        return cls(story, print_func=print_func)

    def _build_default_ending(self, raw: Any) -> Dict[str, Any]:
        if isinstance(raw, Mapping) and raw.get("id"):
            ending = dict(raw)
        else:
            ending_id = raw if isinstance(raw, str) and raw else DEFAULT_ENDING_ID
            ending = {"id": ending_id, "title": ending_id.replace("_", " ").title(), "description": ""}
        ending.pop("condition", None)
        return ending

    # ---------- Nodes ----------
    @property
    def nodes(self) -> Mapping[str, Dict[str, Any]]:
        return self._nodes

    def get_node_by_id(self, node_id: Any) -> Optional[Dict[str, Any]]:
        if not isinstance(node_id, str):
            return None
        return self._nodes.get(node_id)

    def start_node_id(self, day: int) -> str:
        return self.start_pattern.format(day=day)

    def recovery_node_id(self, day: int) -> str:
        return self.recovery_pattern.format(day=day)

    def get_first_node_of_day(self, day: int) -> Optional[Dict[str, Any]]:
        node = self._nodes.get(self.start_node_id(day))
        if node is not None:
            return node
        for candidate in self._nodes.values():
            if candidate.get("day") == day:
                self.print_func(
                    f"[!] [Content] No '{self.start_node_id(day)}' node; "
                    f"using '{candidate['id']}' as the start of day {day}."
                )
                return candidate
        return None

    def get_recovery_node(self, day: int) -> Optional[Dict[str, Any]]:
        return self._nodes.get(self.recovery_node_id(day))

    def nodes_for_day(self, day: int) -> List[Dict[str, Any]]:
        return [node for node in self._nodes.values() if node.get("day") == day]

    # ---------- Endings & achievements ----------
    def get_endings_in_priority_order(self) -> List[Dict[str, Any]]:
        return list(self._endings)

    def get_default_ending(self) -> Dict[str, Any]:
        return dict(self._default_ending)

    def get_ending_by_id(self, ending_id: Any) -> Optional[Dict[str, Any]]:
        if ending_id == self._default_ending["id"]:
            return self.get_default_ending()
        for ending in self._endings:
            if ending.get("id") == ending_id:
                return ending
        return None

    def get_achievements(self) -> List[Dict[str, Any]]:
        return list(self._achievements)

    def get_achievement_by_id(self, achievement_id: Any) -> Optional[Dict[str, Any]]:
        for entry in self._achievements:
            if entry.get("id") == achievement_id:
                return entry
        return None

    def __repr__(self) -> str:
        return f"StoryContent(title={self.title!r}, nodes={len(self._nodes)}, max_day={self.max_day})"


def load_story(path, *, print_func: Optional[PrintFunc] = None, validate: bool = True) -> StoryContent:
    with open(path, "r", encoding="utf-8") as f:
        story = json.load(f)
    if not isinstance(story, dict):
        _raise_story_validation(["Story data must be a JSON object."])

    errors = validate_story(story) if validate else []
    if errors:
        _raise_story_validation(errors)

    nodes, node_errors = normalize_nodes(story.get("nodes"))
    if node_errors:
        _raise_story_validation(node_errors)
    story["nodes"] = nodes
    story.setdefault("endings", [])
    story.setdefault("achievements", [])
    story.setdefault("max_day", DEFAULT_MAX_DAY)
    return StoryContent.from_dict(story, print_func=print_func)


def load_default_story(*, print_func: Optional[PrintFunc] = None) -> StoryContent:
    return load_story(DEFAULT_STORY_PATH, print_func=print_func)
