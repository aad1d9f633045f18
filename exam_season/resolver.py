"""Choice application and day rollover.

``apply_choice`` runs a fixed sequence: time, stat deltas, the sleepless
counter, flags, history, then the move to the next node. Anything that
cannot be routed (missing target, target hidden by its condition, the
reserved ``resolve_next_day`` token, or no target at all) rolls the day
over instead of leaving the player on a stale node.

The hospitalization check lives in ``roll_over`` and runs once per day
transition.

A choice carrying an ``exam`` action sits the exam after its flags are set,
so the score lands in knowledge before the day rolls over into an ending.
"""

from __future__ import annotations

import random
import sys
from typing import Any, Callable, Dict, Mapping, Optional

from .clock import advance_time, normalize_time
from .conditions import condition_holds
from .content import StoryContent
from .evaluator import evaluate_ending
from .exam import resolve_exam
from .state import GameState
from .stats import apply_delta, apply_sleepless_effect, canonical_stat, set_stat
from .story_schema import EXAM_ACTIONS, RESOLVE_NEXT_DAY, TIME_EFFECT

PrintFunc = Callable[[str], None]

SLEEPLESS_KEY = "sleepless_count"
HOSPITAL_SLEEPLESS_LIMIT = 2


def _emit_warning(message: str) -> None:
    print(message, file=sys.stderr)


def needs_hospital(stats: Mapping[str, Any]) -> bool:
    return stats.get(SLEEPLESS_KEY, 0) >= HOSPITAL_SLEEPLESS_LIMIT or stats.get("health", 0) <= 0


def find_choice(node: Optional[Mapping[str, Any]], choice_id: Any) -> Optional[Dict[str, Any]]:
    if not node:
        return None
    for choice in node.get("choices") or []:
        if isinstance(choice, Mapping) and choice.get("id") == choice_id:
            return choice
    return None


def split_effects(effects: Any) -> tuple:
    """Separate the ``time`` entry from the stat deltas."""
    if not isinstance(effects, Mapping):
        return None, {}
    hours = None
    deltas: Dict[str, Any] = {}
    for key, value in effects.items():
        if key == TIME_EFFECT:
            hours = value
        else:
            deltas[canonical_stat(str(key))] = value
    return hours, deltas


class ChoiceResolver:
    def __init__(
        self,
        content: StoryContent,
        *,
        print_func: Optional[PrintFunc] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.content = content
        self.print_func = print_func or _emit_warning
        self.rng = rng or random.Random()

    def warn(self, message: str) -> None:
        self.print_func(f"[!] {message}")

    # ---------- Choice application ----------
    def apply_choice(self, state: GameState, choice_id: Any) -> bool:
        """Apply ``choice_id`` from the current node to ``state``.

        Returns ``False`` without touching the state when the story is over,
        the current node is unknown, or the choice is missing or hidden.
        """
        if state.finished:
            return False
        node = self.content.get_node_by_id(state.current_node_id)
        if node is None:
            self.warn(f"Current node '{state.current_node_id}' not found; choice ignored.")
            return False
        choice = find_choice(node, choice_id)
        if choice is None:
            self.warn(f"Choice '{choice_id}' is not part of node '{node['id']}'; ignored.")
            return False
        context = f"Condition on choice '{choice_id}' in node '{node['id']}'"
        if not condition_holds(choice.get("condition"), state, context=context, print_func=self.print_func):
            self.warn(f"Choice '{choice_id}' is not available right now; ignored.")
            return False

        hours, deltas = split_effects(choice.get("effects"))

        if hours is not None:
            state.time = advance_time(state.time, hours)

        stats = dict(state.stats)
        for key, delta in deltas.items():
            if key == SLEEPLESS_KEY:
                stats = apply_sleepless_effect(stats, delta)
            else:
                stats = apply_delta(stats, key, delta)
        state.stats = stats

        flags = choice.get("flags") or []
        if isinstance(flags, str):
            flags = [flags]
        for flag in flags:
            state.set_flag(flag)

        exam_result = None
        action = choice.get("exam")
        if action is not None:
            if action not in EXAM_ACTIONS:
                self.warn(f"Unknown exam action '{action}' on choice '{choice_id}'; sitting the exam normally.")
                action = "write"
            exam_result = resolve_exam(state, action, self.content.exam, self.rng)

        entry = state.record_choice(node["id"], choice["id"])
        if exam_result is not None:
            entry["exam"] = exam_result

        self._route(state, choice.get("next_event"))
        return True

    def _route(self, state: GameState, target_id: Any) -> None:
        if target_id is None or target_id == RESOLVE_NEXT_DAY:
            self.roll_over(state)
            return
        target = self.content.get_node_by_id(target_id)
        if target is None:
            self.warn(f"Next node '{target_id}' does not exist; resolving the next day instead.")
            self.roll_over(state)
            return
        context = f"Condition on node '{target_id}'"
        if not condition_holds(target.get("condition"), state, context=context, print_func=self.print_func):
            self.warn(f"Node '{target_id}' is not reachable from this state; resolving the next day instead.")
            self.roll_over(state)
            return
        state.current_node_id = target["id"]
        if target.get("time") is not None:
            state.time = normalize_time(target.get("time"), state.time)

    # ---------- Day rollover ----------
    def roll_over(self, state: GameState, *, from_day: Optional[int] = None) -> bool:
        """Move ``state`` to the start of the next day or to an ending.

        When ``from_day`` is given and the state has already left that day,
        nothing happens; this makes a duplicated midnight trigger harmless.
        """
        if state.finished:
            return False
        if from_day is not None and state.day != from_day:
            return False

        next_day = state.day + 1
        if next_day > self.content.max_day:
            self.finish(state)
            return True

        target = None
        if needs_hospital(state.stats):
            self.hospitalize(state, next_day)
            target = self.content.get_recovery_node(next_day)
            if target is None:
                self.print_func(
                    f"[!] [Content] No recovery node for day {next_day}; using the normal start."
                )
        if target is None:
            target = self.content.get_first_node_of_day(next_day)
        if target is None:
            self.warn(f"No node found for day {next_day}; ending the story.")
            state.day = next_day
            self.finish(state)
            return True

        state.day = next_day
        state.current_node_id = target["id"]
        state.time = normalize_time(target.get("time"), self.content.default_time)
        return True

    def hospitalize(self, state: GameState, day: int) -> None:
        config = self.content.hospitalization
        stats = dict(state.stats)
        for key, value in (config.get("set") or {}).items():
            stats = set_stat(stats, key, value)
        for key, delta in (config.get("delta") or {}).items():
            stats = apply_delta(stats, key, delta)
        if config.get("reset_sleepless"):
            stats = apply_sleepless_effect(stats, 0)
        state.stats = stats
        flag = config.get("flag")
        if isinstance(flag, str) and flag:
            state.set_flag(flag.format(day=day))

    # ---------- Endings ----------
    def finish(self, state: GameState) -> Dict[str, Any]:
        ending = evaluate_ending(self.content, state, print_func=self.print_func)
        state.ending_id = ending["id"]
        return ending
