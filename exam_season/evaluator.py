"""Ending selection and achievement unlocks."""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Optional

from .conditions import condition_holds

PrintFunc = Callable[[str], None]


def evaluate_ending(content, state, *, print_func: Optional[PrintFunc] = None) -> Dict[str, Any]:
    """Return the first ending whose condition holds, else the default ending.

    A condition that raises counts as not matching; later endings are still
    considered.
    """
    for ending in content.get_endings_in_priority_order():
        context = f"Condition on ending '{ending.get('id')}'"
        if condition_holds(ending.get("condition"), state, context=context, print_func=print_func):
            return ending
    return content.get_default_ending()


def evaluate_achievements(
    content,
    state,
    already_unlocked: Iterable[str] = (),
    *,
    print_func: Optional[PrintFunc] = None,
) -> List[Dict[str, Any]]:
    unlocked = set(already_unlocked)
    matches: List[Dict[str, Any]] = []
    for achievement in content.get_achievements():
        achievement_id = achievement.get("id")
        if achievement_id in unlocked:
            continue
        context = f"Condition on achievement '{achievement_id}'"
        if condition_holds(achievement.get("condition"), state, context=context, print_func=print_func):
            matches.append(achievement)
            unlocked.add(achievement_id)
    return matches
