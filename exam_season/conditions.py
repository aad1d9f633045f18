"""Condition evaluation for nodes, choices, endings and achievements.

Conditions are data: a dict tagged with ``type``, or a list meaning "all of".
In-process content may also pass a plain callable that receives the
``GameState``; callables never reach the save file.
"""

from __future__ import annotations

import sys
from typing import Any, Callable, Optional

from .clock import parse_time
from .stats import as_number, canonical_stat

PrintFunc = Callable[[str], None]


def emit_warning(message: str) -> None:
    print(message, file=sys.stderr)


def _stat(state, name: str) -> float:
    key = canonical_stat(name)
    if key not in state.stats:
        raise KeyError(f"unknown stat '{name}'")
    return state.stats[key]


def _threshold(cond: dict, field: str = "value") -> float:
    value = as_number(cond[field])
    if value is None:
        raise ValueError(f"condition field '{field}' must be numeric")
    return value


def meets_condition(cond: Any, state) -> bool:
    if cond is None or cond == {} or cond == []:
        return True
    if callable(cond):
        return bool(cond(state))
    if isinstance(cond, list):
        return all(meets_condition(c, state) for c in cond)
    if not isinstance(cond, dict):
        raise TypeError(f"condition must be an object, list or callable, got {type(cond).__name__}")
    t = cond.get("type")

    if t == "flag_set":
        return state.has_flag(cond["flag"])
    if t == "flag_unset":
        return not state.has_flag(cond["flag"])
    if t == "any_flag":
        flags = cond["flags"]
        if isinstance(flags, str):
            flags = [flags]
        return any(state.has_flag(flag) for flag in flags)
    if t == "stat_gte":
        return _stat(state, cond["stat"]) >= _threshold(cond)
    if t == "stat_gt":
        return _stat(state, cond["stat"]) > _threshold(cond)
    if t == "stat_lte":
        return _stat(state, cond["stat"]) <= _threshold(cond)
    if t == "stat_lt":
        return _stat(state, cond["stat"]) < _threshold(cond)
    if t == "stat_between":
        value = _stat(state, cond["stat"])
        return _threshold(cond, "min") <= value <= _threshold(cond, "max")
    if t == "day_at_least":
        return state.day >= _threshold(cond)
    if t == "day_at_most":
        return state.day <= _threshold(cond)
    if t == "time_at_least":
        target = parse_time(cond["value"])
        current = parse_time(state.time)
        if target is None or current is None:
            raise ValueError("time_at_least requires HH:MM labels")
        return current >= target
    if t == "all_of":
        return all(meets_condition(c, state) for c in cond["conditions"])
    if t == "any_of":
        return any(meets_condition(c, state) for c in cond["conditions"])
    if t == "not":
        return not meets_condition(cond["condition"], state)
    return False


def condition_holds(
    cond: Any,
    state,
    *,
    context: str = "condition",
    print_func: Optional[PrintFunc] = None,
) -> bool:
    """Evaluate ``cond`` treating any error raised by it as ``False``."""
    try:
        return meets_condition(cond, state)
    except Exception as exc:
        (print_func or emit_warning)(f"[!] {context} raised {type(exc).__name__}: {exc}; treated as false.")
        return False


def list_choices(node: Optional[dict], state, *, print_func: Optional[PrintFunc] = None) -> list:
    if not node:
        return []
    visible = []
    for ch in node.get("choices", []) or []:
        context = f"Condition on choice '{ch.get('id')}' in node '{node.get('id')}'"
        if condition_holds(ch.get("condition"), state, context=context, print_func=print_func):
            visible.append(ch)
    return visible


def summarize_condition(cond: Any) -> str:
    if not cond:
        return "None"
    if callable(cond):
        return getattr(cond, "__name__", "callable")
    if isinstance(cond, list):
        parts = [summarize_condition(entry) for entry in cond]
        return ", ".join(part for part in parts if part != "None") or "None"
    if not isinstance(cond, dict):
        return "None"
    t = cond.get("type")
    if t == "flag_set":
        return f"Flag {cond.get('flag')}"
    if t == "flag_unset":
        return f"No flag {cond.get('flag')}"
    if t == "any_flag":
        flags = cond.get("flags")
        if isinstance(flags, list):
            flags = "/".join(str(flag) for flag in flags)
        return f"Any flag {flags}"
    symbols = {"stat_gte": ">=", "stat_gt": ">", "stat_lte": "<=", "stat_lt": "<"}
    if t in symbols:
        return f"{cond.get('stat')}{symbols[t]}{cond.get('value')}"
    if t == "stat_between":
        return f"{cond.get('min')}<={cond.get('stat')}<={cond.get('max')}"
    if t == "day_at_least":
        return f"Day>={cond.get('value')}"
    if t == "day_at_most":
        return f"Day<={cond.get('value')}"
    if t == "time_at_least":
        return f"Time>={cond.get('value')}"
    if t in {"all_of", "any_of"}:
        joiner = " & " if t == "all_of" else " | "
        return "(" + joiner.join(summarize_condition(c) for c in cond.get("conditions", [])) + ")"
    if t == "not":
        return f"not {summarize_condition(cond.get('condition'))}"
    return "None"
