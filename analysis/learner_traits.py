# analysis/learner_traits.py
# PuzzleFlow — Learner traits read off the signature: the early progression
# difficulty cap and the learning style (the puzzle family a user does best at).
# Imports from: analysis/behavioral_signature.py, analysis/taxonomy.py, utils/constants.py

from typing import Optional

from analysis.behavioral_signature import BehavioralSignature
from analysis.taxonomy import TYPE_FAMILY, TypeFamily, normalize_puzzle_type
from utils.constants import (
    LEARNING_STYLE_MARGIN,
    LEARNING_STYLE_MIN_ATTEMPTS,
    PROGRESSION_END_CAP,
    PROGRESSION_NO_DATA_RATE,
    PROGRESSION_PERFORMANCE_WEIGHT,
    PROGRESSION_PUZZLES,
    PROGRESSION_START_CAP,
    PROGRESSION_TARGET_RATE,
    RECENT_WINDOW_SIZE,
)

MIXED_STYLE = "mixed"


# ─────────────────────────────────────────────
# Early progression cap
# ─────────────────────────────────────────────

def progression_cap(signature: BehavioralSignature, window_size: int = RECENT_WINDOW_SIZE) -> Optional[float]:
    """
    Difficulty cap while the user is inside their first PROGRESSION_PUZZLES
    puzzles; None afterwards.

        base = 0.25 + 0.4 * solved / 50
        cap  = clamp(base + 0.25 * (recent_success_rate - 0.6), 0.25, 0.65)

    The recent success rate is taken as 0.5 before any response.
    """
    solved = signature.total_puzzles_solved
    if solved >= PROGRESSION_PUZZLES:
        return None

    window = signature.recent_window(window_size)
    rate = sum(1 for e in window if e.correct) / len(window) if window else PROGRESSION_NO_DATA_RATE

    base = PROGRESSION_START_CAP + (PROGRESSION_END_CAP - PROGRESSION_START_CAP) * solved / PROGRESSION_PUZZLES
    adjusted = base + PROGRESSION_PERFORMANCE_WEIGHT * (rate - PROGRESSION_TARGET_RATE)
    return max(PROGRESSION_START_CAP, min(PROGRESSION_END_CAP, adjusted))


# ─────────────────────────────────────────────
# Learning style
# ─────────────────────────────────────────────

def family_success_rates(signature: BehavioralSignature) -> dict[TypeFamily, tuple[int, float]]:
    """(attempts, success_rate) per puzzle family, from lifetime type stats."""
    totals: dict[TypeFamily, list[int]] = {}
    for raw_type, stats in signature.type_stats.items():
        puzzle_type = normalize_puzzle_type(raw_type)
        if puzzle_type is None or not stats.attempts:
            continue
        bucket = totals.setdefault(TYPE_FAMILY[puzzle_type], [0, 0])
        bucket[0] += stats.attempts
        bucket[1] += stats.correct
    return {family: (attempts, correct / attempts) for family, (attempts, correct) in totals.items()}


def learning_style(signature: BehavioralSignature) -> Optional[TypeFamily]:
    """
    The family whose success rate leads every other sufficiently-sampled
    family by at least LEARNING_STYLE_MARGIN. None means mixed: too little
    data, only one family tried, or no clear leader.
    """
    eligible = sorted(
        (
            (rate, family)
            for family, (attempts, rate) in family_success_rates(signature).items()
            if attempts >= LEARNING_STYLE_MIN_ATTEMPTS
        ),
        key=lambda pair: pair[0],
        reverse=True,
    )
    if len(eligible) < 2:
        return None
    (best_rate, best), (runner_up, _) = eligible[0], eligible[1]
    return best if best_rate - runner_up >= LEARNING_STYLE_MARGIN else None


def style_label(style: Optional[TypeFamily]) -> str:
    return style.value if style is not None else MIXED_STYLE
