"""The engine facade: one object owning the story state for a presentation layer."""

from __future__ import annotations

import copy
import random
from typing import Any, Callable, Dict, List, Optional

from .achievement_store import AchievementStore
from .clock import DEFAULT_MORNING, normalize_time
from .conditions import list_choices
from .content import StoryContent, load_default_story
from .evaluator import evaluate_achievements
from .resolver import ChoiceResolver
from .save_manager import SaveManager
from .settings import Settings
from .state import GameState
from .stats import STAT_KEYS, as_number, canonical_stat, set_stat

PrintFunc = Callable[[str], None]


class StoryEngine:
    """Expose state reads and the few action entry points a front end needs.

    Every action returns ``True``/``False`` (or ``None``) and never raises.
    While one action is running, any other action is refused; a condition
    callable that calls back into the engine therefore cannot interleave.
    """

    def __init__(
        self,
        content: Optional[StoryContent] = None,
        *,
        settings: Optional[Settings] = None,
        save_manager: Optional[SaveManager] = None,
        achievements: Optional[AchievementStore] = None,
        print_func: PrintFunc = print,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.print = print_func
        self.settings = settings or Settings()
        self.content = content or load_default_story(print_func=print_func)
        self.save_manager = save_manager or SaveManager(
            self.settings.save_dir,
            slot=self.settings.save_slot,
            max_day=self.content.max_day,
            story_title=self.content.title,
            print_func=print_func,
        )
        self.achievements = achievements or AchievementStore(self.settings.save_dir, print_func=print_func)
        self.resolver = ChoiceResolver(self.content, print_func=print_func, rng=rng)
        self.state = self._initial_state()
        self._processing = False

    def _initial_state(self) -> GameState:
        start = self.content.get_first_node_of_day(1)
        time_label = DEFAULT_MORNING
        if start is not None:
            time_label = normalize_time(start.get("time"), self.content.default_time)
        return GameState(
            day=1,
            time=time_label,
            stats=self.content.initial_stats,
            current_node_id=start["id"] if start else None,
            initial_stats=self.content.initial_stats,
        )

    # ---------- Reads ----------
    def get_current_node(self) -> Optional[Dict[str, Any]]:
        return self.content.get_node_by_id(self.state.current_node_id)

    def get_stats(self) -> Dict[str, int]:
        return dict(self.state.stats)

    def get_flags(self) -> Dict[str, bool]:
        return dict(self.state.flags)

    def get_day(self) -> int:
        return self.state.day

    def get_time(self) -> str:
        return self.state.time

    def get_ending_id(self) -> Optional[str]:
        return self.state.ending_id

    def get_ending(self) -> Optional[Dict[str, Any]]:
        if self.state.ending_id is None:
            return None
        return self.content.get_ending_by_id(self.state.ending_id)

    def is_finished(self) -> bool:
        return self.state.finished

    def get_history(self) -> List[Dict[str, Any]]:
        return copy.deepcopy(self.state.history)

    def get_exam_result(self) -> Optional[Dict[str, Any]]:
        """Return the most recent exam outcome recorded in history, if any."""
        for entry in reversed(self.state.history):
            if isinstance(entry.get("exam"), dict):
                return dict(entry["exam"])
        return None

    def get_available_choices(self) -> List[Dict[str, Any]]:
        if self.state.finished:
            return []
        return list_choices(self.get_current_node(), self.state, print_func=self.print)

    def snapshot(self) -> Dict[str, Any]:
        return self.state.to_snapshot()

    @property
    def processing(self) -> bool:
        return self._processing

    # ---------- Actions ----------
    def new_game(self) -> bool:
        def action() -> bool:
            self.state = self._initial_state()
            self.save_manager.delete()
            return True

        return self._guarded("new game", action)

    def continue_game(self) -> bool:
        def action() -> bool:
            snapshot = self.save_manager.load()
            if snapshot is None:
                return False
            state = GameState.from_snapshot(snapshot, initial_stats=self.content.initial_stats)
            if not state.finished and self.content.get_node_by_id(state.current_node_id) is None:
                fallback = self.content.get_first_node_of_day(state.day)
                if fallback is None:
                    self.print(
                        f"[!] [Engine] Saved node '{state.current_node_id}' is missing and day "
                        f"{state.day} has no nodes; save ignored."
                    )
                    return False
                self.print(
                    f"[!] [Engine] Saved node '{state.current_node_id}' is missing; "
                    f"resuming at '{fallback['id']}'."
                )
                state.current_node_id = fallback["id"]
            self.state = state
            return True

        return self._guarded("continue", action)

    def select_choice(self, choice_id: Any) -> bool:
        def action() -> bool:
            if not self.resolver.apply_choice(self.state, choice_id):
                return False
            self._after_transition()
            return True

        return self._guarded(f"choice '{choice_id}'", action)

    def resolve_next_day(self, from_day: Optional[int] = None) -> bool:
        """Advance to the next day, for example when a midnight timer fires.

        Pass the day the timer was scheduled on as ``from_day`` so a late or
        duplicate trigger does nothing.
        """

        def action() -> bool:
            day = self.state.day if from_day is None else from_day
            if not self.resolver.roll_over(self.state, from_day=day):
                return False
            self._after_transition()
            return True

        return self._guarded("next day", action)

    def save(self) -> bool:
        return self.save_manager.save(self.snapshot())

    def drain_unlocked_achievements(self) -> List[Dict[str, Any]]:
        return self.achievements.drain_queue()

    # ---------- Debug ----------
    def debug_set_stat(self, key: str, value: Any) -> bool:
        def action() -> bool:
            stat = canonical_stat(key)
            if stat not in STAT_KEYS or as_number(value) is None:
                return False
            self.state.stats = set_stat(self.state.stats, stat, value)
            return True

        return self._guarded(f"debug set '{key}'", action)

    def debug_set_flag(self, name: str) -> bool:
        def action() -> bool:
            if not name:
                return False
            self.state.set_flag(name)
            return True

        return self._guarded(f"debug flag '{name}'", action)

    def debug_clear_flag(self, name: str) -> bool:
        return self._guarded(f"debug unflag '{name}'", lambda: self.state.remove_flag(name))

    # ---------- Internal helpers ----------
    def _after_transition(self) -> None:
        if self.state.finished:
            matches = evaluate_achievements(
                self.content,
                self.state,
                self.achievements.unlocked,
                print_func=self.print,
            )
            self.achievements.unlock_many(matches)
            self.achievements.record_ending(self.state.ending_id)
        if self.settings.autosave:
            self.save()

    def _guarded(self, label: str, action: Callable[[], bool]) -> bool:
        if self._processing:
            return False
        self._processing = True
        try:
            return action()
        except Exception as exc:
            # Front ends get a refusal, never a traceback.
            self.print(f"[!] [Engine] {label} failed: {type(exc).__name__}: {exc}")
            return False
        finally:
            self._processing = False
