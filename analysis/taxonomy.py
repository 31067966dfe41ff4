# analysis/taxonomy.py
# PuzzleFlow — Closed enums and the static tables keyed by them.
# Every table is checked against its enum at import time (validate_tables),
# so a missing row fails loudly on startup instead of silently defaulting.
# Imports from: utils/constants.py

from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional

from utils.constants import (
    CHILD_MAX_DIFFICULTY,
    NEUTRAL_DIFFICULTY,
    NEW_USER_MAX_DIFFICULTY,
    POOL_SIZE,
    SEVERELY_STRUGGLING_MAX_DIFFICULTY,
    STRUGGLING_MAX_DIFFICULTY,
)


# ─────────────────────────────────────────────
# Enums
# ─────────────────────────────────────────────

class PuzzleType(str, Enum):
    PATTERN             = "pattern"
    NUMBER_SERIES       = "number-series"
    NUMBER_ANALOGY      = "number-analogy"
    ALGEBRAIC_REASONING = "algebraic-reasoning"
    SERIAL_REASONING    = "serial-reasoning"
    NUMBER_GRID         = "number-grid"
    TRANSFORMATION      = "transformation"
    SEQUENTIAL_FIGURES  = "sequential-figures"
    ANALOGY             = "analogy"


class CognitiveDimension(str, Enum):
    PATTERN_RECOGNITION    = "pattern_recognition"
    LOGICAL_REASONING      = "logical_reasoning"
    SPATIAL_VISUALIZATION  = "spatial_visualization"
    WORKING_MEMORY         = "working_memory"
    PROCESSING_SPEED       = "processing_speed"
    ATTENTION_CONTROL      = "attention_control"
    MATHEMATICAL_REASONING = "mathematical_reasoning"
    VERBAL_REASONING       = "verbal_reasoning"
    ABSTRACT_REASONING     = "abstract_reasoning"


class UserState(str, Enum):
    CHILD_LIKE_USER     = "child_like_user"
    NEW_USER            = "new_user"
    SEVERELY_STRUGGLING = "severely_struggling"
    STRUGGLING          = "struggling"
    FALLING_BACK        = "falling_back"
    STABLE              = "stable"
    PROGRESSING         = "progressing"
    EXCELLING           = "excelling"
    EXPERT_DEMANDING    = "expert_demanding"


class StateModifier(str, Enum):
    CONFIDENCE_CRISIS = "confidence_crisis"
    DISENGAGED        = "disengaged"
    POWER_DEPENDENT   = "power_dependent"
    FATIGUED          = "fatigued"
    SESSION_DECLINE   = "session_decline"


class LearningTrend(str, Enum):
    IMPROVING = "improving"
    STABLE    = "stable"
    DECLINING = "declining"


class PoolCategory(str, Enum):
    """Order matters: allocations are stored in this order."""
    CONFIDENCE  = "confidence"
    SKILL       = "skill-matched"
    CHALLENGE   = "challenge"
    RECOVERY    = "recovery"
    EXPLORATORY = "exploratory"


class TypeFamily(str, Enum):
    VISUAL       = "visual"
    LOGICAL      = "logical"
    MATHEMATICAL = "mathematical"


POOL_CATEGORIES: tuple[PoolCategory, ...] = tuple(PoolCategory)


# ─────────────────────────────────────────────
# State groups
# ─────────────────────────────────────────────

NEEDS_SUPPORT = frozenset({
    UserState.SEVERELY_STRUGGLING,
    UserState.STRUGGLING,
    UserState.FALLING_BACK,
})
PERFORMING_WELL = frozenset({
    UserState.PROGRESSING,
    UserState.EXCELLING,
    UserState.EXPERT_DEMANDING,
})
SPECIAL_HANDLING = frozenset({
    UserState.NEW_USER,
    UserState.CHILD_LIKE_USER,
})


# ─────────────────────────────────────────────
# Base pool distributions
# [confidence, skill-matched, challenge, recovery, exploratory]
# ─────────────────────────────────────────────

STATE_DISTRIBUTIONS: Mapping[UserState, tuple[int, int, int, int, int]] = MappingProxyType({
    UserState.CHILD_LIKE_USER:     (8, 2, 0, 0, 0),
    UserState.NEW_USER:            (7, 2, 1, 0, 0),
    UserState.SEVERELY_STRUGGLING: (6, 2, 0, 2, 0),
    UserState.STRUGGLING:          (4, 3, 1, 2, 0),
    UserState.FALLING_BACK:        (5, 2, 1, 2, 0),
    UserState.STABLE:              (2, 4, 3, 0, 1),
    UserState.PROGRESSING:         (2, 3, 4, 0, 1),
    UserState.EXCELLING:           (1, 2, 4, 0, 3),
    UserState.EXPERT_DEMANDING:    (0, 1, 7, 0, 2),
})


# ─────────────────────────────────────────────
# Difficulty ceilings for protected states
# States absent here are uncapped (1.0).
# ─────────────────────────────────────────────

STATE_DIFFICULTY_CEILING: Mapping[UserState, float] = MappingProxyType({
    UserState.NEW_USER:            NEW_USER_MAX_DIFFICULTY,
    UserState.CHILD_LIKE_USER:     CHILD_MAX_DIFFICULTY,
    UserState.SEVERELY_STRUGGLING: SEVERELY_STRUGGLING_MAX_DIFFICULTY,
    UserState.STRUGGLING:          STRUGGLING_MAX_DIFFICULTY,
})


# ─────────────────────────────────────────────
# Puzzle type tables
# ─────────────────────────────────────────────

TYPE_BASE_COMPLEXITY: Mapping[PuzzleType, float] = MappingProxyType({
    PuzzleType.PATTERN:             0.3,
    PuzzleType.NUMBER_SERIES:       0.4,
    PuzzleType.ANALOGY:             0.5,
    PuzzleType.SERIAL_REASONING:    0.7,
    PuzzleType.ALGEBRAIC_REASONING: 0.8,
    PuzzleType.TRANSFORMATION:      0.9,
    PuzzleType.NUMBER_ANALOGY:      NEUTRAL_DIFFICULTY,
    PuzzleType.NUMBER_GRID:         NEUTRAL_DIFFICULTY,
    PuzzleType.SEQUENTIAL_FIGURES:  NEUTRAL_DIFFICULTY,
})

_D = CognitiveDimension

TYPE_DIMENSIONS: Mapping[PuzzleType, tuple[CognitiveDimension, ...]] = MappingProxyType({
    PuzzleType.PATTERN:             (_D.PATTERN_RECOGNITION, _D.SPATIAL_VISUALIZATION, _D.ATTENTION_CONTROL),
    PuzzleType.NUMBER_SERIES:       (_D.MATHEMATICAL_REASONING, _D.PATTERN_RECOGNITION),
    PuzzleType.NUMBER_ANALOGY:      (_D.MATHEMATICAL_REASONING, _D.ABSTRACT_REASONING),
    PuzzleType.ALGEBRAIC_REASONING: (_D.MATHEMATICAL_REASONING, _D.LOGICAL_REASONING),
    PuzzleType.SERIAL_REASONING:    (_D.LOGICAL_REASONING, _D.WORKING_MEMORY),
    PuzzleType.NUMBER_GRID:         (_D.MATHEMATICAL_REASONING, _D.SPATIAL_VISUALIZATION, _D.WORKING_MEMORY),
    PuzzleType.TRANSFORMATION:      (_D.SPATIAL_VISUALIZATION, _D.WORKING_MEMORY, _D.ABSTRACT_REASONING),
    PuzzleType.SEQUENTIAL_FIGURES:  (_D.PATTERN_RECOGNITION, _D.SPATIAL_VISUALIZATION),
    PuzzleType.ANALOGY:             (_D.VERBAL_REASONING, _D.ABSTRACT_REASONING),
})

TYPE_FAMILY: Mapping[PuzzleType, TypeFamily] = MappingProxyType({
    PuzzleType.PATTERN:             TypeFamily.VISUAL,
    PuzzleType.TRANSFORMATION:      TypeFamily.VISUAL,
    PuzzleType.SEQUENTIAL_FIGURES:  TypeFamily.VISUAL,
    PuzzleType.SERIAL_REASONING:    TypeFamily.LOGICAL,
    PuzzleType.ANALOGY:             TypeFamily.LOGICAL,
    PuzzleType.NUMBER_SERIES:       TypeFamily.MATHEMATICAL,
    PuzzleType.NUMBER_ANALOGY:      TypeFamily.MATHEMATICAL,
    PuzzleType.ALGEBRAIC_REASONING: TypeFamily.MATHEMATICAL,
    PuzzleType.NUMBER_GRID:         TypeFamily.MATHEMATICAL,
})

# Dimensions that count as a "visual/pattern" strength for the planner
VISUAL_PATTERN_DIMENSIONS = frozenset({
    CognitiveDimension.PATTERN_RECOGNITION,
    CognitiveDimension.SPATIAL_VISUALIZATION,
})


# ─────────────────────────────────────────────
# Type normalisation
# ─────────────────────────────────────────────

_LEGACY_TYPE_NAMES: Mapping[str, PuzzleType] = MappingProxyType({
    "numberseries":         PuzzleType.NUMBER_SERIES,
    "numberanalogy":        PuzzleType.NUMBER_ANALOGY,
    "algebraicreasoning":   PuzzleType.ALGEBRAIC_REASONING,
    "algebraic":            PuzzleType.ALGEBRAIC_REASONING,
    "serialreasoning":      PuzzleType.SERIAL_REASONING,
    "numbergrid":           PuzzleType.NUMBER_GRID,
    "sequentialfigures":    PuzzleType.SEQUENTIAL_FIGURES,
    "number series":        PuzzleType.NUMBER_SERIES,
    "pattern recognition":  PuzzleType.PATTERN,
    "algebraic reasoning":  PuzzleType.ALGEBRAIC_REASONING,
    "serial reasoning":     PuzzleType.SERIAL_REASONING,
    "number analogy":       PuzzleType.NUMBER_ANALOGY,
})


def normalize_puzzle_type(raw: object) -> Optional[PuzzleType]:
    """
    Maps a generator-supplied type string onto the canonical taxonomy.
    Accepts canonical kebab-case values (any case) and known legacy spellings.
    Returns None for anything unrecognised; callers decide the fallback.
    """
    if isinstance(raw, PuzzleType):
        return raw
    if not isinstance(raw, str):
        return None
    cleaned = raw.strip()
    try:
        return PuzzleType(cleaned.lower())
    except ValueError:
        pass
    return _LEGACY_TYPE_NAMES.get(cleaned.lower())


# ─────────────────────────────────────────────
# Startup validation
# ─────────────────────────────────────────────

def validate_tables() -> None:
    """
    Raises RuntimeError if any enum-keyed table is missing a variant
    or a base distribution does not sum to POOL_SIZE.
    """
    problems: list[str] = []

    for table_name, table, enum_cls in (
        ("STATE_DISTRIBUTIONS", STATE_DISTRIBUTIONS, UserState),
        ("TYPE_BASE_COMPLEXITY", TYPE_BASE_COMPLEXITY, PuzzleType),
        ("TYPE_DIMENSIONS", TYPE_DIMENSIONS, PuzzleType),
        ("TYPE_FAMILY", TYPE_FAMILY, PuzzleType),
    ):
        missing = [member.value for member in enum_cls if member not in table]
        if missing:
            problems.append(f"{table_name} missing {missing}")

    for state, weights in STATE_DISTRIBUTIONS.items():
        if len(weights) != len(POOL_CATEGORIES):
            problems.append(f"{state.value} has {len(weights)} weights")
        if sum(weights) != POOL_SIZE or min(weights) < 0:
            problems.append(f"{state.value} weights {list(weights)} do not sum to {POOL_SIZE}")

    for puzzle_type, complexity in TYPE_BASE_COMPLEXITY.items():
        if not 0.0 <= complexity <= 1.0:
            problems.append(f"{puzzle_type.value} complexity {complexity} outside [0, 1]")

    if problems:
        raise RuntimeError("taxonomy tables invalid: " + "; ".join(problems))


validate_tables()
