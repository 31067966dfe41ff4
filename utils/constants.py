# utils/constants.py
# PuzzleFlow — Single source of truth for all magic numbers.
# No other file defines numeric policy. Import from here only.
# Runtime overrides go through utils/config.py, which is seeded from these values.

# ─────────────────────────────────────────────
# POOL DISTRIBUTION
# ─────────────────────────────────────────────

POOL_SIZE: int = 10                    # every PoolAllocation sums to exactly this

# Secondary rule for users whose strengths are not yet established
STRENGTH_ESTABLISHED_PUZZLES: int = 30
STRENGTH_CONFIDENCE_BOOST: int    = 3
STRENGTH_CHALLENGE_REDUCTION: int = 2
STRENGTH_SKILL_REDUCTION: int     = 1
VISUAL_PATTERN_BOOST: int         = 2  # extra confidence weight for visual/pattern-strong users

# Modifier deltas: (category, delta) pairs live in analysis/pool_planner.py
CONFIDENCE_CRISIS_BOOST: int              = 2
CONFIDENCE_CRISIS_CHALLENGE_REDUCTION: int = 2
DISENGAGED_RECOVERY_BOOST: int            = 2
DISENGAGED_SKILL_REDUCTION: int           = 1
DISENGAGED_EXPLORATORY_REDUCTION: int     = 1
POWER_DEPENDENT_CONFIDENCE_BOOST: int     = 1
POWER_DEPENDENT_EXPLORATORY_REDUCTION: int = 1
FATIGUED_EXPLORATORY_BOOST: int           = 1
FATIGUED_CONFIDENCE_BOOST: int            = 1
FATIGUED_CHALLENGE_REDUCTION: int         = 2
SESSION_DECLINE_EXPLORATORY_BOOST: int    = 1
SESSION_DECLINE_SKILL_REDUCTION: int      = 1

# ─────────────────────────────────────────────
# USER STATE CLASSIFICATION
# ─────────────────────────────────────────────

NEW_USER_PUZZLE_COUNT: int = 10        # total_puzzles_solved below this → new_user

# Child-like user detection
CHILD_RESPONSE_TIME_MS: float    = 8000.0
CHILD_SKILL_LEVEL_MAX: float     = 0.55
CHILD_PUZZLE_COUNT_MIN: int      = 10
CHILD_PUZZLE_COUNT_MAX: int      = 50
CHILD_MATH_CAPABILITY_MAX: float = 0.6

# Success-rate bands evaluated against the recent window
SEVERELY_STRUGGLING_RATE: float = 0.3
STRUGGLING_RATE: float          = 0.5
PROGRESSING_RATE: float         = 0.6   # also the lower edge of the stable band
EXCELLING_RATE: float           = 0.8
EXPERT_DEMANDING_RATE: float    = 0.9
EXPERT_MIN_DIFFICULTY: float    = 0.7   # sustained high-difficulty engagement for experts

# Windows and trend
RECENT_WINDOW_SIZE: int   = 20
TREND_DEAD_BAND: float    = 0.05

# Modifiers
CONFIDENCE_CRISIS_FAILURES: int  = 3
DISENGAGED_THRESHOLD: float      = 0.4
POWER_DEPENDENCY_THRESHOLD: float = 0.5
LONG_SESSION_MS: int             = 20 * 60 * 1000
FATIGUE_ACCURACY_DROP: float     = 0.1
SESSION_DECLINE_DROP: float      = 0.2
SESSION_DECLINE_MIN_EVENTS: int  = 4

# ─────────────────────────────────────────────
# PUZZLE DNA
# ─────────────────────────────────────────────

DIFFICULTY_LABELS: dict[str, float] = {
    "easy":   0.3,
    "medium": 0.6,
    "hard":   0.9,
}
NEUTRAL_DIFFICULTY: float    = 0.5     # unknown type or unrecognised label
DEFAULT_ENGAGEMENT: float    = 0.7     # prior until real data arrives
DEFAULT_SUCCESS_RATE: float  = 0.6
DNA_NEW_WEIGHT: float        = 0.7     # blended = 0.7 * observed + 0.3 * prior
DNA_OLD_WEIGHT: float        = 0.3
DIFFICULTY_REFINEMENT_WEIGHT: float = 0.1
DNA_CACHE_MAX_ENTRIES: int   = 10_000

# Per-response success signal fed into the DNA blend
OBSERVED_SUCCESS_SIGNAL: float = 0.8
OBSERVED_FAILURE_SIGNAL: float = 0.4

# ─────────────────────────────────────────────
# BEHAVIORAL SIGNATURE
# ─────────────────────────────────────────────

# Ring-buffer capacities
SESSION_HISTORY_LIMIT: int  = 50
RECENT_SESSIONS_LIMIT: int  = 20
DNA_REFS_LIMIT: int         = 100
STATE_HISTORY_LIMIT: int    = 10
POWER_UP_EVENTS_LIMIT: int  = 100
PREFERRED_TYPES_LIMIT: int  = 5

# Profile defaults
INITIAL_SKILL_LEVEL: float          = 0.3
DEFAULT_DIMENSION_VALUE: float      = 0.5
DEFAULT_RESPONSE_TIME_MS: float     = 5000.0
DEFAULT_HESITATION_TENDENCY: float  = 0.3
DEFAULT_POWER_UP_DEPENDENCY: float  = 0.2
DEFAULT_FLOW_DURATION_MIN: float    = 5.0
DEFAULT_OPTIMAL_CHALLENGE: float    = 0.6
DEFAULT_AVG_ENGAGEMENT: float       = 0.7
FULL_CONFIDENCE_SAMPLES: int        = 10

# Skill update: bounded step per observation
MAX_SKILL_STEP: float       = 0.15
SKILL_BASE_STEP: float      = 0.04
SKILL_GAP_WEIGHT: float     = 0.2
DIMENSION_STEP_SCALE: float = 0.8     # dimensions move a little slower than overall skill

# Rolling averages (weight of the newest observation)
RESPONSE_TIME_EMA: float   = 0.2
ENGAGEMENT_EMA: float      = 0.1
HESITATION_EMA: float      = 0.2
CHALLENGE_EMA: float       = 0.2
FLOW_EMA: float            = 0.3

SLOW_RESPONSE_MS: float       = 8000.0
TIME_SCORE_NORMALIZER_MS: float = 20000.0
FLOW_ENGAGEMENT_MIN: float    = 0.8
CHALLENGE_ENGAGEMENT_MIN: float = 0.7
LOW_SATISFACTION_THRESHOLD: float = 0.6

# ─────────────────────────────────────────────
# SELECTION BANDS
# ─────────────────────────────────────────────

CONFIDENCE_MAX_DIFFICULTY: float = 0.45
SKILL_BAND_HALF_WIDTH: float     = 0.1
CHALLENGE_MIN_DIFFICULTY: float  = 0.6
CHALLENGE_SKILL_OFFSET: float    = 0.1
RECOVERY_MAX_DIFFICULTY: float   = 0.5
BAND_RELAX_STEP: float           = 0.1
MAX_RELAX_STEPS: int             = 10
VARIETY_LOOKBACK: int            = 3      # recommendations remembered for variety bias

# Difficulty ceilings for protected states
NEW_USER_MAX_DIFFICULTY: float      = 0.4
CHILD_MAX_DIFFICULTY: float         = 0.5
SEVERELY_STRUGGLING_MAX_DIFFICULTY: float = 0.4
STRUGGLING_MAX_DIFFICULTY: float    = 0.6

# Prediction shaping
PREDICTION_SLOPE: float = 6.0
NOVELTY_BONUS: float    = 0.2      # strategic value bonus for a type not seen recently

# Early progression cap: rises from 0.25 to 0.65 over the first 50 puzzles,
# nudged by recent accuracy around a 0.6 target
PROGRESSION_PUZZLES: int                 = 50
PROGRESSION_START_CAP: float             = 0.25
PROGRESSION_END_CAP: float               = 0.65
PROGRESSION_TARGET_RATE: float           = 0.6
PROGRESSION_PERFORMANCE_WEIGHT: float    = 0.25
PROGRESSION_NO_DATA_RATE: float          = 0.5

# Learning style: a family wins when it leads the next one by the margin
LEARNING_STYLE_MIN_ATTEMPTS: int = 5       # per family
LEARNING_STYLE_MARGIN: float     = 0.15

# Outstanding recommendations kept per engine for response matching
PENDING_RECOMMENDATIONS_LIMIT: int = 50
MIN_CANDIDATE_OPTIONS: int         = 2

# ─────────────────────────────────────────────
# RETENTION RISK
# ─────────────────────────────────────────────

BASE_CHURN_RISK: float              = 0.1
CHALLENGE_DEFICIT_PENALTY: float    = 0.4
CHALLENGE_DEFICIT_PARTIAL: float    = 0.2
VARIETY_DEFICIT_PENALTY: float      = 0.2
SATISFACTION_DECLINE_PENALTY: float = 0.3
ENGAGEMENT_DECLINE_PENALTY: float   = 0.15

CHALLENGE_DEFICIT_MODERATE: float    = 0.2
CHALLENGE_DEFICIT_SIGNIFICANT: float = 0.3
EXPERT_EXPECTED_DIFFICULTY: float    = 0.8
EXCELLING_EXPECTED_DIFFICULTY: float = 0.7
GENERAL_EXPECTED_DIFFICULTY: float   = 0.6
EXPERT_EXPECTED_VARIETY: int         = 4
GENERAL_EXPECTED_VARIETY: int        = 3
VARIETY_MIN_SAMPLES: int             = 5

CONSECUTIVE_LOW_SATISFACTION_SESSIONS: int = 3
SATISFACTION_DECLINE_THRESHOLD: float      = 0.1
SATISFACTION_COMPARE_SESSIONS: int         = 3      # latest N sessions vs the N before them
ENGAGEMENT_DECLINE_MODERATE: float         = 0.03
ENGAGEMENT_DECLINE_SIGNIFICANT: float      = 0.05

LOW_CHURN_RISK: float      = 0.4
MEDIUM_CHURN_RISK: float   = 0.6
HIGH_CHURN_RISK: float     = 0.8
CRITICAL_CHURN_RISK: float = 0.95

# ─────────────────────────────────────────────
# STORAGE
# ─────────────────────────────────────────────

STORAGE_TIMEOUT_S: float = 2.0
STORAGE_WORKERS: int     = 4
MAX_ACTIVE_ENGINES: int  = 10_000   # idle engines beyond this are evicted, oldest first

# ─────────────────────────────────────────────
# SERVER CONFIGURATION
# ─────────────────────────────────────────────

SERVER_HOST: str = "0.0.0.0"
SERVER_PORT: int = 8000
