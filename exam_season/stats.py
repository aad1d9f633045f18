"""Player statistics and the clamping rules applied on every write."""

from __future__ import annotations

import math
from typing import Any, Dict, Mapping

STAT_KEYS = (
    "knowledge",
    "health",
    "stress",
    "consciousness",
    "sleepless_count",
    "money",
)
UNBOUNDED_KEYS = frozenset({"money", "sleepless_count"})
STAT_MIN = 0
STAT_MAX = 100

INITIAL_STATS: Mapping[str, int] = {
    "knowledge": 50,
    "health": 70,
    "stress": 0,
    "consciousness": 50,
    "sleepless_count": 0,
    "money": 200000,
}

# Older saves and hand-written content sometimes use the camelCase name.
STAT_ALIASES = {"sleeplessCount": "sleepless_count"}


def canonical_stat(key: str) -> str:
    return STAT_ALIASES.get(key, key)


def as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        try:
            number = float(value)
        except (TypeError, ValueError):
            return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def clamp_stat(key: str, value: float) -> int:
    rounded = int(round(value))
    if key in UNBOUNDED_KEYS:
        return max(STAT_MIN, rounded)
    return max(STAT_MIN, min(STAT_MAX, rounded))


def initial_stats(overrides: Mapping[str, Any] | None = None) -> Dict[str, int]:
    return normalize_stats(overrides or {}, defaults=INITIAL_STATS)


def normalize_stats(
    raw: Mapping[str, Any] | None, *, defaults: Mapping[str, Any] = INITIAL_STATS
) -> Dict[str, int]:
    """Fill missing or unusable fields from ``defaults`` and clamp the rest."""
    source: Dict[str, Any] = {}
    if isinstance(raw, Mapping):
        for key, value in raw.items():
            source[canonical_stat(str(key))] = value
    stats: Dict[str, int] = {}
    for key in STAT_KEYS:
        number = as_number(source.get(key))
        if number is None:
            number = as_number(defaults.get(key, INITIAL_STATS[key]))
        stats[key] = clamp_stat(key, number if number is not None else 0)
    return stats


def apply_delta(stats: Mapping[str, int], key: str, delta: Any) -> Dict[str, int]:
    """Return a copy of ``stats`` with ``delta`` added to ``key``.

    Non-numeric deltas (including NaN) and unknown keys leave the copy
    untouched.
    """
    updated = dict(stats)
    key = canonical_stat(key)
    if key not in STAT_KEYS:
        return updated
    amount = as_number(delta)
    if amount is None:
        return updated
    current = as_number(updated.get(key))
    if current is None:
        current = float(INITIAL_STATS[key])
    updated[key] = clamp_stat(key, current + amount)
    return updated


def apply_sleepless_effect(stats: Mapping[str, int], value: Any) -> Dict[str, int]:
    """Interpret a ``sleepless_count`` effect.

    ``0`` (or below) means the character slept and resets the counter,
    ``1`` means another night awake and increments it, and any other
    positive value sets the counter outright.
    """
    updated = dict(stats)
    amount = as_number(value)
    if amount is None:
        return updated
    if amount <= 0:
        updated["sleepless_count"] = 0
    elif amount == 1:
        current = as_number(updated.get("sleepless_count")) or 0
        updated["sleepless_count"] = clamp_stat("sleepless_count", current + 1)
    else:
        updated["sleepless_count"] = clamp_stat("sleepless_count", amount)
    return updated


def set_stat(stats: Mapping[str, int], key: str, value: Any) -> Dict[str, int]:
    updated = dict(stats)
    key = canonical_stat(key)
    amount = as_number(value)
    if key not in STAT_KEYS or amount is None:
        return updated
    updated[key] = clamp_stat(key, amount)
    return updated


def stats_are_valid(stats: Any) -> bool:
    if not isinstance(stats, Mapping):
        return False
    for key in STAT_KEYS:
        value = stats.get(key)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return False
        if math.isnan(value) or math.isinf(value):
            return False
    return True


def format_stats(stats: Mapping[str, int]) -> str:
    return (
        f"Knowledge {stats.get('knowledge', 0)} | Health {stats.get('health', 0)} | "
        f"Stress {stats.get('stress', 0)} | Consciousness {stats.get('consciousness', 0)} | "
        f"Sleepless {stats.get('sleepless_count', 0)} | Money {stats.get('money', 0):,}"
    )
