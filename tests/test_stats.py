import math
import random

import pytest

from exam_season.stats import (
    INITIAL_STATS,
    STAT_KEYS,
    apply_delta,
    apply_sleepless_effect,
    initial_stats,
    normalize_stats,
    stats_are_valid,
)


def test_apply_delta_returns_new_vector() -> None:
    stats = initial_stats()
    updated = apply_delta(stats, "knowledge", 10)
    assert stats["knowledge"] == 50
    assert updated["knowledge"] == 60
    assert updated is not stats


@pytest.mark.parametrize(
    ("key", "start", "delta", "expected"),
    [
        ("knowledge", 95, 20, 100),
        ("health", 5, -30, 0),
        ("stress", 10, 2.4, 12),
        ("stress", 10, 2.6, 13),
        ("consciousness", 50, -49.9, 0),
        ("money", 1000, -5000, 0),
        ("money", 200000, 900000, 1100000),
        ("sleepless_count", 1, -4, 0),
        ("sleepless_count", 3, 250, 253),
    ],
)
def test_apply_delta_clamps(key: str, start: int, delta: float, expected: int) -> None:
    stats = initial_stats({key: start})
    assert apply_delta(stats, key, delta)[key] == expected


@pytest.mark.parametrize("delta", [float("nan"), float("inf"), "lots", None, True, [1]])
def test_apply_delta_ignores_unusable_values(delta) -> None:
    stats = initial_stats()
    assert apply_delta(stats, "health", delta) == stats


def test_apply_delta_ignores_unknown_keys_and_accepts_aliases() -> None:
    stats = initial_stats()
    assert apply_delta(stats, "charisma", 5) == stats
    assert apply_delta(stats, "sleeplessCount", 1)["sleepless_count"] == 1


def test_random_deltas_never_leave_valid_ranges() -> None:
    rng = random.Random(1234)
    stats = initial_stats()
    for _ in range(2000):
        key = rng.choice(STAT_KEYS)
        stats = apply_delta(stats, key, rng.uniform(-150, 150))
        for name in ("knowledge", "health", "stress", "consciousness"):
            assert 0 <= stats[name] <= 100
        assert stats["money"] >= 0
        assert stats["sleepless_count"] >= 0
        assert stats_are_valid(stats)


@pytest.mark.parametrize("prior", [0, 1, 2, 7])
def test_sleeping_resets_the_counter(prior: int) -> None:
    stats = initial_stats({"sleepless_count": prior})
    assert apply_sleepless_effect(stats, 0)["sleepless_count"] == 0
    assert apply_sleepless_effect(stats, -10)["sleepless_count"] == 0


@pytest.mark.parametrize("prior", [0, 1, 4])
def test_staying_awake_increments_the_counter(prior: int) -> None:
    stats = initial_stats({"sleepless_count": prior})
    once = apply_sleepless_effect(stats, 1)
    twice = apply_sleepless_effect(once, 1)
    assert once["sleepless_count"] == prior + 1
    assert twice["sleepless_count"] == prior + 2


def test_other_positive_values_set_the_counter() -> None:
    stats = initial_stats({"sleepless_count": 1})
    assert apply_sleepless_effect(stats, 4)["sleepless_count"] == 4
    assert apply_sleepless_effect(stats, "nope")["sleepless_count"] == 1


def test_normalize_stats_fills_missing_fields_and_clamps() -> None:
    stats = normalize_stats({"knowledge": 120, "sleeplessCount": 2, "health": "bad"})
    assert stats["knowledge"] == 100
    assert stats["sleepless_count"] == 2
    assert stats["health"] == INITIAL_STATS["health"]
    assert stats["money"] == INITIAL_STATS["money"]
    assert set(stats) == set(STAT_KEYS)


def test_stats_are_valid_requires_every_numeric_field() -> None:
    stats = initial_stats()
    assert stats_are_valid(stats)
    missing = dict(stats)
    del missing["money"]
    assert not stats_are_valid(missing)
    assert not stats_are_valid({**stats, "health": math.nan})
    assert not stats_are_valid({**stats, "stress": True})
    assert not stats_are_valid(None)
