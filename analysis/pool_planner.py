# analysis/pool_planner.py
# PuzzleFlow — Pool distribution: how the next pick is split across the five
# selection categories for a given state and set of modifiers.
# No ML involved. Table lookup plus fixed integer deltas.
# Imports from: analysis/behavioral_signature.py, analysis/taxonomy.py,
#               utils/constants.py, utils/logger.py

from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from analysis.behavioral_signature import BehavioralSignature
from analysis.taxonomy import (
    POOL_CATEGORIES,
    SPECIAL_HANDLING,
    STATE_DISTRIBUTIONS,
    VISUAL_PATTERN_DIMENSIONS,
    CognitiveDimension,
    PoolCategory,
    StateModifier,
    UserState,
)
from utils.constants import (
    CONFIDENCE_CRISIS_BOOST,
    CONFIDENCE_CRISIS_CHALLENGE_REDUCTION,
    DISENGAGED_EXPLORATORY_REDUCTION,
    DISENGAGED_RECOVERY_BOOST,
    DISENGAGED_SKILL_REDUCTION,
    FATIGUED_CHALLENGE_REDUCTION,
    FATIGUED_CONFIDENCE_BOOST,
    FATIGUED_EXPLORATORY_BOOST,
    POOL_SIZE,
    POWER_DEPENDENT_CONFIDENCE_BOOST,
    POWER_DEPENDENT_EXPLORATORY_REDUCTION,
    SESSION_DECLINE_EXPLORATORY_BOOST,
    SESSION_DECLINE_SKILL_REDUCTION,
    STRENGTH_CHALLENGE_REDUCTION,
    STRENGTH_CONFIDENCE_BOOST,
    STRENGTH_ESTABLISHED_PUZZLES,
    STRENGTH_SKILL_REDUCTION,
    VISUAL_PATTERN_BOOST,
)
from utils.logger import get_logger

log = get_logger("analysis.pool_planner")

_CONF  = POOL_CATEGORIES.index(PoolCategory.CONFIDENCE)
_SKILL = POOL_CATEGORIES.index(PoolCategory.SKILL)
_CHAL  = POOL_CATEGORIES.index(PoolCategory.CHALLENGE)
_REC   = POOL_CATEGORIES.index(PoolCategory.RECOVERY)
_EXPL  = POOL_CATEGORIES.index(PoolCategory.EXPLORATORY)


# ─────────────────────────────────────────────
# Output contracts
# ─────────────────────────────────────────────

@dataclass(frozen=True)
class PoolAllocation:
    confidence:     int
    skill:          int
    challenge:      int
    recovery:       int
    exploratory:    int
    strength_focus: bool = False   # visual/pattern strength boost was applied

    def __post_init__(self) -> None:
        weights = self.as_list()
        if min(weights) < 0 or sum(weights) != POOL_SIZE:
            raise ValueError(f"allocation {weights} must be non-negative and sum to {POOL_SIZE}")

    @classmethod
    def from_weights(cls, weights: Iterable[int], strength_focus: bool = False) -> "PoolAllocation":
        c, s, ch, r, e = (int(w) for w in weights)
        return cls(c, s, ch, r, e, strength_focus)

    def as_list(self) -> list[int]:
        return [self.confidence, self.skill, self.challenge, self.recovery, self.exploratory]

    def weight_of(self, category: PoolCategory) -> int:
        return self.as_list()[POOL_CATEGORIES.index(category)]

    def share_of(self, category: PoolCategory) -> float:
        return self.weight_of(category) / POOL_SIZE


@dataclass(frozen=True)
class StrengthProfile:
    total_puzzles_solved: int
    strongest_dimension:  Optional[CognitiveDimension]

    @classmethod
    def from_signature(cls, signature: BehavioralSignature) -> "StrengthProfile":
        return cls(
            total_puzzles_solved=signature.total_puzzles_solved,
            strongest_dimension=signature.strongest_dimension(),
        )


# ─────────────────────────────────────────────
# Modifier deltas, applied in StateModifier order
# ─────────────────────────────────────────────

MODIFIER_DELTAS: Mapping[StateModifier, tuple[tuple[int, int], ...]] = MappingProxyType({
    StateModifier.CONFIDENCE_CRISIS: (
        (_CONF, +CONFIDENCE_CRISIS_BOOST),
        (_CHAL, -CONFIDENCE_CRISIS_CHALLENGE_REDUCTION),
    ),
    StateModifier.DISENGAGED: (
        (_REC,   +DISENGAGED_RECOVERY_BOOST),
        (_SKILL, -DISENGAGED_SKILL_REDUCTION),
        (_EXPL,  -DISENGAGED_EXPLORATORY_REDUCTION),
    ),
    StateModifier.POWER_DEPENDENT: (
        (_CONF, +POWER_DEPENDENT_CONFIDENCE_BOOST),
        (_EXPL, -POWER_DEPENDENT_EXPLORATORY_REDUCTION),
    ),
    StateModifier.FATIGUED: (
        (_EXPL, +FATIGUED_EXPLORATORY_BOOST),
        (_CONF, +FATIGUED_CONFIDENCE_BOOST),
        (_CHAL, -FATIGUED_CHALLENGE_REDUCTION),
    ),
    StateModifier.SESSION_DECLINE: (
        (_EXPL,  +SESSION_DECLINE_EXPLORATORY_BOOST),
        (_SKILL, -SESSION_DECLINE_SKILL_REDUCTION),
    ),
})


# ─────────────────────────────────────────────
# Steps
# ─────────────────────────────────────────────

def _apply_strength_rule(
    weights:   list[int],
    state:     UserState,
    strength:  Optional[StrengthProfile],
    threshold: int,
) -> bool:
    """
    Early-signal users get more confidence and less challenge until their
    strengths are established. Returns True when the visual/pattern boost fired.
    """
    if strength is None or state in SPECIAL_HANDLING:
        return False
    if strength.total_puzzles_solved >= threshold:
        return False

    weights[_CONF]  += STRENGTH_CONFIDENCE_BOOST
    weights[_CHAL]  -= STRENGTH_CHALLENGE_REDUCTION
    weights[_SKILL] -= STRENGTH_SKILL_REDUCTION

    if strength.strongest_dimension not in VISUAL_PATTERN_DIMENSIONS:
        return False

    remaining = VISUAL_PATTERN_BOOST
    for donor in (_SKILL, _EXPL):
        taken = min(remaining, max(0, weights[donor]))
        weights[donor] -= taken
        weights[_CONF] += taken
        remaining -= taken
    return True


def normalize_weights(weights: list[int]) -> list[int]:
    """
    Clamp negatives to zero, then restore the total to POOL_SIZE:
        shortfall → added to confidence
        excess    → removed one unit at a time from the largest
                    non-confidence category; confidence only when all others are 0
    """
    result = [max(0, int(w)) for w in weights]
    total = sum(result)

    if total < POOL_SIZE:
        result[_CONF] += POOL_SIZE - total

    while sum(result) > POOL_SIZE:
        donors = [i for i in range(len(result)) if i != _CONF and result[i] > 0]
        if donors:
            largest = max(donors, key=lambda i: (result[i], -i))
            result[largest] -= 1
        else:
            result[_CONF] -= 1

    return result


# ─────────────────────────────────────────────
# Public interface
# ─────────────────────────────────────────────

def plan(
    state:       UserState,
    modifiers:   Iterable[StateModifier],
    strength:    Optional[StrengthProfile] = None,
    established: int = STRENGTH_ESTABLISHED_PUZZLES,
) -> PoolAllocation:
    """
    Base distribution for `state`, then the early-strength rule (only when
    `strength` is given), then modifier deltas, then normalization.
    The result always sums to POOL_SIZE with no negative weights.
    """
    weights = list(STATE_DISTRIBUTIONS[state])
    strength_focus = _apply_strength_rule(weights, state, strength, established)

    active = set(modifiers)
    for modifier in StateModifier:
        if modifier in active:
            for index, delta in MODIFIER_DELTAS[modifier]:
                weights[index] += delta

    allocation = PoolAllocation.from_weights(normalize_weights(weights), strength_focus)

    log.debug(
        "allocation_planned",
        state=state.value,
        modifiers=sorted(m.value for m in active),
        allocation=allocation.as_list(),
        strength_focus=strength_focus,
    )
    return allocation
