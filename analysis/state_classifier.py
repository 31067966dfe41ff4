# analysis/state_classifier.py
# PuzzleFlow — User state classification: one primary state plus modifiers.
# No ML involved. Ordered rule table, first match wins.
# Imports from: analysis/behavioral_signature.py, analysis/taxonomy.py,
#               utils/config.py, utils/logger.py

from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from analysis.behavioral_signature import BehavioralSignature, ResponseEvent
from analysis.taxonomy import (
    CognitiveDimension,
    LearningTrend,
    StateModifier,
    UserState,
)
from utils.config import ClassificationThresholds
from utils.logger import get_logger

log = get_logger("analysis.state_classifier")


# ─────────────────────────────────────────────
# Output contract
# ─────────────────────────────────────────────

@dataclass(frozen=True)
class ClassificationResult:
    primary_state:       UserState
    modifiers:           frozenset      # frozenset[StateModifier]
    learning_trend:      LearningTrend
    recent_success_rate: float
    sample_count:        int            # responses in the recent window

    def as_dict(self) -> dict:
        return {
            "primary_state":       self.primary_state.value,
            "modifiers":           sorted(m.value for m in self.modifiers),
            "learning_trend":      self.learning_trend.value,
            "recent_success_rate": round(self.recent_success_rate, 4),
            "sample_count":        self.sample_count,
        }


# ─────────────────────────────────────────────
# Signals shared by the rule predicates
# ─────────────────────────────────────────────

@dataclass(frozen=True)
class ClassificationSignals:
    profile:         BehavioralSignature
    thresholds:      ClassificationThresholds
    success_rate:    float
    sample_count:    int
    trend:           LearningTrend
    mean_difficulty: float


def success_rate_of(events: Sequence[ResponseEvent]) -> float:
    if not events:
        return 0.0
    return sum(1 for e in events if e.correct) / len(events)


def compute_trend(
    recent:    Sequence[ResponseEvent],
    prior:     Sequence[ResponseEvent],
    dead_band: float,
) -> LearningTrend:
    """
    Recent window mean success vs the window before it.
    Differences inside ±dead_band, or no prior window at all, are STABLE.
    """
    if not recent or not prior:
        return LearningTrend.STABLE
    delta = success_rate_of(recent) - success_rate_of(prior)
    if delta > dead_band:
        return LearningTrend.IMPROVING
    if delta < -dead_band:
        return LearningTrend.DECLINING
    return LearningTrend.STABLE


# ─────────────────────────────────────────────
# Primary-state predicates
# ─────────────────────────────────────────────

def _is_child_like(s: ClassificationSignals) -> bool:
    """
    Slow AND low skill AND a plausible early sample count AND weak maths.
    All four must hold so advanced-but-slow users are not caught here.
    """
    t = s.thresholds
    p = s.profile
    math = p.dimensions.get(CognitiveDimension.MATHEMATICAL_REASONING)
    math_value = math.value if math is not None else 0.0
    return (
        p.total_puzzles_solved >= t.new_user_puzzle_count
        and p.avg_response_time_ms > t.child_response_time_ms
        and p.skill_level < t.child_skill_level_max
        and t.child_puzzle_count_min <= p.total_puzzles_solved <= t.child_puzzle_count_max
        and math_value < t.child_math_capability_max
    )


def _is_new_user(s: ClassificationSignals) -> bool:
    return s.profile.total_puzzles_solved < s.thresholds.new_user_puzzle_count


def _is_severely_struggling(s: ClassificationSignals) -> bool:
    return s.success_rate < s.thresholds.severely_struggling_rate


def _is_struggling(s: ClassificationSignals) -> bool:
    return s.success_rate < s.thresholds.struggling_rate


def _is_falling_back(s: ClassificationSignals) -> bool:
    return (
        s.success_rate < s.thresholds.progressing_rate
        and s.trend is LearningTrend.DECLINING
    )


def _is_expert_demanding(s: ClassificationSignals) -> bool:
    sustained = max(s.profile.skill_level, s.mean_difficulty)
    return (
        s.success_rate > s.thresholds.expert_demanding_rate
        and sustained >= s.thresholds.expert_min_difficulty
    )


def _is_excelling(s: ClassificationSignals) -> bool:
    return s.success_rate > s.thresholds.excelling_rate


def _is_progressing(s: ClassificationSignals) -> bool:
    return (
        s.success_rate > s.thresholds.progressing_rate
        and s.trend is LearningTrend.IMPROVING
    )


# Evaluated top to bottom; STABLE always matches.
# expert_demanding is checked before excelling: every expert also clears the
# excelling band, so the reverse order would make it unreachable.
STATE_RULES: tuple[tuple[UserState, Callable[[ClassificationSignals], bool]], ...] = (
    (UserState.CHILD_LIKE_USER,     _is_child_like),
    (UserState.NEW_USER,            _is_new_user),
    (UserState.SEVERELY_STRUGGLING, _is_severely_struggling),
    (UserState.STRUGGLING,          _is_struggling),
    (UserState.FALLING_BACK,        _is_falling_back),
    (UserState.EXPERT_DEMANDING,    _is_expert_demanding),
    (UserState.EXCELLING,           _is_excelling),
    (UserState.PROGRESSING,         _is_progressing),
    (UserState.STABLE,              lambda s: True),
)


# ─────────────────────────────────────────────
# Modifiers
# ─────────────────────────────────────────────

def _halves_accuracy_drop(events: Sequence[ResponseEvent]) -> float:
    """First-half accuracy minus second-half accuracy (positive = getting worse)."""
    mid = len(events) // 2
    if mid == 0:
        return 0.0
    return success_rate_of(events[:mid]) - success_rate_of(events[mid:])


def compute_modifiers(
    profile:    BehavioralSignature,
    thresholds: ClassificationThresholds,
) -> frozenset:
    found: set[StateModifier] = set()

    if profile.consecutive_failures >= thresholds.confidence_crisis_failures:
        found.add(StateModifier.CONFIDENCE_CRISIS)

    if profile.avg_engagement < thresholds.disengaged_threshold:
        found.add(StateModifier.DISENGAGED)

    if profile.power_up_dependency > thresholds.power_dependency_threshold:
        found.add(StateModifier.POWER_DEPENDENT)

    session = profile.current_session_events()
    if len(session) >= 2:
        started = session[0].timestamp
        if profile.current_session_started_at is not None:
            started = min(started, profile.current_session_started_at)
        span_ms = (session[-1].timestamp - started) * 1000.0
        drop = _halves_accuracy_drop(session)

        if span_ms > thresholds.long_session_ms and drop >= thresholds.fatigue_accuracy_drop:
            found.add(StateModifier.FATIGUED)

        if (
            len(session) >= thresholds.session_decline_min_events
            and drop >= thresholds.session_decline_drop
        ):
            found.add(StateModifier.SESSION_DECLINE)

    return frozenset(found)


# ─────────────────────────────────────────────
# Public interface
# ─────────────────────────────────────────────

def classify(
    profile:       BehavioralSignature,
    recent_window: Optional[Sequence[ResponseEvent]] = None,
    thresholds:    Optional[ClassificationThresholds] = None,
) -> ClassificationResult:
    """
    Deterministic and side-effect free.

    Args:
        profile:       the user's signature (not modified)
        recent_window: responses to aggregate; defaults to the last
                       `recent_window_size` entries of session_history
        thresholds:    policy numbers; defaults to ClassificationThresholds()

    Returns:
        ClassificationResult. Zero history yields new_user, no modifiers, stable.
    """
    t = thresholds or ClassificationThresholds()
    window = list(recent_window) if recent_window is not None else profile.recent_window(t.recent_window_size)
    prior = profile.prior_window(t.recent_window_size)

    if window:
        success_rate = success_rate_of(window)
        mean_difficulty = sum(e.difficulty for e in window) / len(window)
    else:
        # Counters without history (e.g. migrated profiles) still carry accuracy
        success_rate = profile.overall_accuracy
        mean_difficulty = 0.0

    signals = ClassificationSignals(
        profile=profile,
        thresholds=t,
        success_rate=success_rate,
        sample_count=len(window),
        trend=compute_trend(window, prior, t.trend_dead_band),
        mean_difficulty=mean_difficulty,
    )

    primary = next(state for state, matches in STATE_RULES if matches(signals))
    result = ClassificationResult(
        primary_state=primary,
        modifiers=compute_modifiers(profile, t),
        learning_trend=signals.trend,
        recent_success_rate=success_rate,
        sample_count=len(window),
    )

    log.debug("user_classified", user_id=profile.user_id, **result.as_dict())
    return result
