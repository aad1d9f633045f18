"""Exam resolution for choices tagged with an ``exam`` action.

The paper's mode follows knowledge when the exam starts: above 80 is easy,
50 and up is normal, anything lower is hard. Easy and normal papers are
scored from knowledge; a hard paper is a guess, and a ``cheat`` action
(with the cheat flag held) copies from the sheet in any mode. The 0..10
score then replaces knowledge as ``score * 10`` so endings judge the paper.
"""

from __future__ import annotations

import random
from typing import Any, Dict, Iterable, Mapping

from .state import GameState
from .stats import apply_delta, set_stat

EASY_ABOVE = 80
NORMAL_FROM = 50
SCORE_MIN = 0.0
SCORE_MAX = 10.0
SCORE_JITTER = 1.0
FLAG_MODIFIER = 0.5
CHEAT_CATCH_CHANCE = 0.5
GUESS_LOW_CHANCE = 0.35

CAUGHT_STRESS = 30
ROLLED_STRESS = -10


def exam_mode(knowledge: float) -> str:
    if knowledge > EASY_ABOVE:
        return "easy"
    if knowledge >= NORMAL_FROM:
        return "normal"
    return "hard"


def _clamp_score(score: float) -> float:
    return max(SCORE_MIN, min(SCORE_MAX, round(score, 1)))


def _has_any(flags: Mapping[str, Any], names: Iterable[str]) -> bool:
    return any(flags.get(name) for name in names or ())


def calculate_exam_score(
    knowledge: float,
    flags: Mapping[str, Any],
    rng: random.Random,
    *,
    bonus_flags: Iterable[str] = ("deep_understanding",),
    penalty_flags: Iterable[str] = ("surface_learning", "surface_learning_2"),
) -> float:
    """Score an easy or normal paper: knowledge / 10, jittered by up to one point."""
    score = knowledge / 10 + rng.uniform(-SCORE_JITTER, SCORE_JITTER)
    if _has_any(flags, bonus_flags):
        score += FLAG_MODIFIER
    if _has_any(flags, penalty_flags):
        score -= FLAG_MODIFIER
    return _clamp_score(score)


def stress_for_score(score: float) -> int:
    if score >= 8:
        return -20
    if score >= 5:
        return 5
    return 25


def guess_score(rng: random.Random) -> float:
    if rng.random() < GUESS_LOW_CHANCE:
        return _clamp_score(2 + rng.random() * 1.5)
    return _clamp_score(4 + rng.random() * 1.5)


def cheat_score(rng: random.Random) -> tuple:
    """Return ``(caught, score)`` for one attempt at copying from the sheet."""
    if rng.random() < CHEAT_CATCH_CHANCE:
        return True, SCORE_MIN
    return False, _clamp_score(4 + rng.random() * 1.5)


def resolve_exam(
    state: GameState,
    action: str,
    config: Mapping[str, Any],
    rng: random.Random,
) -> Dict[str, Any]:
    """Sit the exam on ``state`` and return what happened.

    A player at zero health collapses instead: the crash flag is set and
    stats are left alone so the ending check sees the collapse.
    """
    result: Dict[str, Any] = {"action": action, "mode": None, "score": None, "caught": False, "crashed": False}
    if state.stats.get("health", 0) <= 0:
        flag = config.get("crash_flag")
        if isinstance(flag, str) and flag:
            state.set_flag(flag.format(day=state.day))
        result["crashed"] = True
        return result

    mode = exam_mode(state.stats.get("knowledge", 0))
    cheat_flag = config.get("cheat_flag")
    if action == "cheat" and (not cheat_flag or state.has_flag(cheat_flag)):
        if config.get("attempt_flag"):
            state.set_flag(config["attempt_flag"])
        caught, score = cheat_score(rng)
        if caught:
            if config.get("caught_flag"):
                state.set_flag(config["caught_flag"])
            stress = CAUGHT_STRESS
        else:
            if 4 <= score < 6 and config.get("success_flag"):
                state.set_flag(config["success_flag"])
            stress = ROLLED_STRESS
        result["caught"] = caught
    elif mode == "hard":
        score = guess_score(rng)
        stress = ROLLED_STRESS
    else:
        score = calculate_exam_score(
            state.stats.get("knowledge", 0),
            state.flags,
            rng,
            bonus_flags=config.get("bonus_flags") or (),
            penalty_flags=config.get("penalty_flags") or (),
        )
        stress = stress_for_score(score)

    stats = apply_delta(state.stats, "stress", stress)
    state.stats = set_stat(stats, "knowledge", round(score * 10))
    result["mode"] = mode
    result["score"] = score
    return result
