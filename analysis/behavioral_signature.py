# analysis/behavioral_signature.py
# PuzzleFlow — Behavioral Signature: the durable per-user model of skill,
# engagement pattern and bounded history, plus the rules that update it.
# No ML involved. Bounded steps and rolling averages only.
# Imports from: analysis/taxonomy.py, utils/constants.py, utils/logger.py

import math
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Optional

from analysis.taxonomy import (
    TYPE_DIMENSIONS,
    CognitiveDimension,
    normalize_puzzle_type,
)
from utils.constants import (
    CHALLENGE_EMA,
    CHALLENGE_ENGAGEMENT_MIN,
    DEFAULT_AVG_ENGAGEMENT,
    DEFAULT_DIMENSION_VALUE,
    DEFAULT_FLOW_DURATION_MIN,
    DEFAULT_HESITATION_TENDENCY,
    DEFAULT_OPTIMAL_CHALLENGE,
    DEFAULT_POWER_UP_DEPENDENCY,
    DEFAULT_RESPONSE_TIME_MS,
    DIMENSION_STEP_SCALE,
    DNA_REFS_LIMIT,
    ENGAGEMENT_EMA,
    FLOW_EMA,
    FLOW_ENGAGEMENT_MIN,
    FULL_CONFIDENCE_SAMPLES,
    HESITATION_EMA,
    INITIAL_SKILL_LEVEL,
    LOW_SATISFACTION_THRESHOLD,
    MAX_SKILL_STEP,
    POWER_UP_EVENTS_LIMIT,
    PREFERRED_TYPES_LIMIT,
    RECENT_SESSIONS_LIMIT,
    RECENT_WINDOW_SIZE,
    RESPONSE_TIME_EMA,
    SESSION_HISTORY_LIMIT,
    SKILL_BASE_STEP,
    SKILL_GAP_WEIGHT,
    SLOW_RESPONSE_MS,
    STATE_HISTORY_LIMIT,
    TIME_SCORE_NORMALIZER_MS,
)
from utils.logger import get_logger

log = get_logger("analysis.behavioral_signature")


def _clamp(value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    return max(lo, min(hi, float(value)))


def _ema(old: float, new: float, weight: float) -> float:
    """(1 - weight) * old + weight * new"""
    return (1.0 - weight) * old + weight * new


# ─────────────────────────────────────────────
# History records
# ─────────────────────────────────────────────

@dataclass
class ResponseEvent:
    puzzle_id:     str
    puzzle_type:   str
    difficulty:    float
    correct:       bool
    solve_time_ms: float
    confidence:    float
    engagement:    float
    used_power_up: bool
    timestamp:     float            # epoch seconds
    session_id:    Optional[str] = None
    category:      Optional[str] = None   # pool category the puzzle was served from


@dataclass
class SessionSummary:
    session_id:        str
    started_at:        float
    ended_at:          float
    puzzles_attempted: int
    correct:           int
    avg_engagement:    float
    avg_confidence:    float
    satisfaction:      float        # mean of (engagement + confidence) / 2

    @property
    def accuracy(self) -> float:
        return self.correct / self.puzzles_attempted if self.puzzles_attempted else 0.0


@dataclass
class StateTransition:
    from_state:          Optional[str]
    to_state:            str
    timestamp:           float
    recent_success_rate: float


@dataclass
class PowerUpEvent:
    puzzle_id: str
    timestamp: float
    correct:   bool


@dataclass
class DimensionEstimate:
    value:   float = DEFAULT_DIMENSION_VALUE
    samples: int   = 0

    @property
    def confidence(self) -> float:
        return min(1.0, self.samples / FULL_CONFIDENCE_SAMPLES)


@dataclass
class TypeStats:
    attempts:       int = 0
    correct:        int = 0
    last_seen_at:   Optional[float] = None
    last_missed_at: Optional[float] = None

    @property
    def success_rate(self) -> float:
        return self.correct / self.attempts if self.attempts else 0.0


def _default_dimensions() -> dict[CognitiveDimension, DimensionEstimate]:
    return {dimension: DimensionEstimate() for dimension in CognitiveDimension}


# ─────────────────────────────────────────────
# Signature
# ─────────────────────────────────────────────

@dataclass
class BehavioralSignature:
    user_id:     str
    created_at:  float
    last_active: float

    # Skill
    skill_level: float = INITIAL_SKILL_LEVEL
    dimensions:  dict[CognitiveDimension, DimensionEstimate] = field(default_factory=_default_dimensions)

    # Engagement pattern
    avg_response_time_ms:    float = DEFAULT_RESPONSE_TIME_MS
    hesitation_tendency:     float = DEFAULT_HESITATION_TENDENCY
    power_up_dependency:     float = DEFAULT_POWER_UP_DEPENDENCY
    flow_duration_min:       float = DEFAULT_FLOW_DURATION_MIN
    optimal_challenge_level: float = DEFAULT_OPTIMAL_CHALLENGE
    avg_engagement:          float = DEFAULT_AVG_ENGAGEMENT
    current_flow_ms:         float = 0.0

    # Bounded history (oldest first)
    session_history: deque = field(default_factory=lambda: deque(maxlen=SESSION_HISTORY_LIMIT))
    recent_sessions: deque = field(default_factory=lambda: deque(maxlen=RECENT_SESSIONS_LIMIT))
    dna_refs:        deque = field(default_factory=lambda: deque(maxlen=DNA_REFS_LIMIT))
    state_history:   deque = field(default_factory=lambda: deque(maxlen=STATE_HISTORY_LIMIT))
    power_up_events: deque = field(default_factory=lambda: deque(maxlen=POWER_UP_EVENTS_LIMIT))

    # Counters
    total_puzzles_solved:                   int = 0   # attempted, correct or not
    total_correct:                          int = 0
    consecutive_failures:                   int = 0
    consecutive_low_satisfaction_sessions:  int = 0
    total_sessions:                         int = 0

    # Per-type stats keyed by PuzzleDNA.puzzle_type
    type_stats:             dict[str, TypeStats] = field(default_factory=dict)
    preferred_puzzle_types: list[str] = field(default_factory=list)

    # Current session
    current_session_id:         Optional[str]   = None
    current_session_started_at: Optional[float] = None

    # Bumped on every save; stores refuse a write older than what they hold
    revision: int = 0

    # ── Derived ───────────────────────────────

    @property
    def overall_accuracy(self) -> float:
        if not self.total_puzzles_solved:
            return 0.0
        return self.total_correct / self.total_puzzles_solved

    @property
    def current_state(self) -> Optional[str]:
        return self.state_history[-1].to_state if self.state_history else None

    def recent_window(self, size: int = RECENT_WINDOW_SIZE) -> list[ResponseEvent]:
        """The last `size` responses, oldest first."""
        history = list(self.session_history)
        return history[-size:] if size > 0 else []

    def prior_window(self, size: int = RECENT_WINDOW_SIZE) -> list[ResponseEvent]:
        """The `size` responses immediately before the recent window."""
        history = list(self.session_history)
        end = max(0, len(history) - size)
        return history[max(0, end - size):end]

    def current_session_events(self) -> list[ResponseEvent]:
        if self.current_session_id is None:
            return []
        return [e for e in self.session_history if e.session_id == self.current_session_id]

    def strongest_dimension(self) -> Optional[CognitiveDimension]:
        """Highest-valued dimension that has at least one observation."""
        observed = [(d, est) for d, est in self.dimensions.items() if est.samples > 0]
        if not observed:
            return None
        return max(observed, key=lambda pair: (pair[1].value, pair[1].samples))[0]

    def succeeded_types(self) -> set[str]:
        return {t for t, stats in self.type_stats.items() if stats.correct > 0}


def default_signature(user_id: str, now: Optional[float] = None) -> BehavioralSignature:
    ts = now if now is not None else time.time()
    return BehavioralSignature(user_id=user_id, created_at=ts, last_active=ts)


# ─────────────────────────────────────────────
# Update rules
# All functions mutate the signature they are given. Callers that need
# all-or-nothing semantics pass a deep copy and swap it in after saving.
# ─────────────────────────────────────────────

def skill_step(skill_level: float, difficulty: float, correct: bool) -> float:
    """
    Signed skill change for one observation.

        correct:   +(0.04 + 0.2 * max(0, difficulty - skill))
        incorrect: -(0.04 + 0.2 * max(0, skill - difficulty))

    A correct answer on a hard puzzle moves skill up more than one on an easy
    puzzle; missing an easy puzzle costs more than missing a hard one.
    Magnitude is capped at MAX_SKILL_STEP.
    """
    if correct:
        step = SKILL_BASE_STEP + SKILL_GAP_WEIGHT * max(0.0, difficulty - skill_level)
    else:
        step = -(SKILL_BASE_STEP + SKILL_GAP_WEIGHT * max(0.0, skill_level - difficulty))
    return _clamp(step, -MAX_SKILL_STEP, MAX_SKILL_STEP)


def _update_dimensions(signature: BehavioralSignature, event: ResponseEvent, step: float) -> None:
    puzzle_type = normalize_puzzle_type(event.puzzle_type)
    if puzzle_type is not None:
        for dimension in TYPE_DIMENSIONS[puzzle_type]:
            estimate = signature.dimensions.setdefault(dimension, DimensionEstimate())
            estimate.value = _clamp(estimate.value + step * DIMENSION_STEP_SCALE)
            estimate.samples += 1

    # Speed is a skill estimate too, so it obeys the same per-observation cap
    speed = signature.dimensions.setdefault(CognitiveDimension.PROCESSING_SPEED, DimensionEstimate())
    time_score = _clamp(1.0 - event.solve_time_ms / TIME_SCORE_NORMALIZER_MS)
    delta = _ema(speed.value, time_score, RESPONSE_TIME_EMA) - speed.value
    speed.value = _clamp(speed.value + _clamp(delta, -MAX_SKILL_STEP, MAX_SKILL_STEP))
    speed.samples += 1


def _update_engagement_pattern(signature: BehavioralSignature, event: ResponseEvent) -> None:
    signature.avg_response_time_ms = max(
        0.0, _ema(signature.avg_response_time_ms, event.solve_time_ms, RESPONSE_TIME_EMA)
    )
    signature.avg_engagement = _clamp(
        _ema(signature.avg_engagement, event.engagement, ENGAGEMENT_EMA)
    )
    hesitated = 1.0 if event.solve_time_ms > SLOW_RESPONSE_MS else 0.0
    signature.hesitation_tendency = _clamp(
        _ema(signature.hesitation_tendency, hesitated, HESITATION_EMA)
    )

    # Only comfortable successes say anything about the preferred challenge level
    if event.correct and event.engagement >= CHALLENGE_ENGAGEMENT_MIN:
        signature.optimal_challenge_level = _clamp(
            _ema(signature.optimal_challenge_level, event.difficulty, CHALLENGE_EMA)
        )

    if event.correct and event.engagement >= FLOW_ENGAGEMENT_MIN:
        signature.current_flow_ms += event.solve_time_ms
    elif signature.current_flow_ms > 0:
        streak_min = signature.current_flow_ms / 60000.0
        signature.flow_duration_min = max(
            0.0, _ema(signature.flow_duration_min, streak_min, FLOW_EMA)
        )
        signature.current_flow_ms = 0.0


def _update_type_stats(signature: BehavioralSignature, event: ResponseEvent) -> None:
    stats = signature.type_stats.setdefault(event.puzzle_type, TypeStats())
    stats.attempts += 1
    stats.last_seen_at = event.timestamp
    if event.correct:
        stats.correct += 1
    else:
        stats.last_missed_at = event.timestamp


def _remember_dna(signature: BehavioralSignature, puzzle_id: str) -> None:
    if puzzle_id in signature.dna_refs:
        signature.dna_refs.remove(puzzle_id)
    signature.dna_refs.append(puzzle_id)


def check_response_values(solve_time_ms: float, confidence: float, engagement: float) -> None:
    """Raises ValueError for NaN or infinite inputs, which no clamp can repair."""
    for label, value in (
        ("solve_time_ms", solve_time_ms),
        ("confidence", confidence),
        ("engagement", engagement),
    ):
        if not math.isfinite(float(value)):
            raise ValueError(f"{label} must be a finite number, got {value!r}")


def apply_response(signature: BehavioralSignature, event: ResponseEvent) -> float:
    """
    Folds one response into the signature. Returns the signed skill step applied.

    Raises:
        ValueError: a non-finite time, confidence or engagement. The signature
                    is left untouched.
    """
    check_response_values(event.solve_time_ms, event.confidence, event.engagement)
    event.difficulty = _clamp(event.difficulty)
    event.confidence = _clamp(event.confidence)
    event.engagement = _clamp(event.engagement)
    event.solve_time_ms = max(0.0, float(event.solve_time_ms))

    step = skill_step(signature.skill_level, event.difficulty, event.correct)
    signature.skill_level = _clamp(signature.skill_level + step)

    _update_dimensions(signature, event, step)
    _update_engagement_pattern(signature, event)
    _update_type_stats(signature, event)

    signature.session_history.append(event)
    _remember_dna(signature, event.puzzle_id)

    signature.total_puzzles_solved += 1
    if event.correct:
        signature.total_correct += 1
        signature.consecutive_failures = 0
    else:
        signature.consecutive_failures += 1

    if event.used_power_up:
        signature.power_up_events.append(
            PowerUpEvent(puzzle_id=event.puzzle_id, timestamp=event.timestamp, correct=event.correct)
        )
    history = signature.session_history
    signature.power_up_dependency = _clamp(
        sum(1 for e in history if e.used_power_up) / len(history)
    )

    signature.last_active = max(signature.last_active, event.timestamp)
    return step


def record_state_transition(
    signature:           BehavioralSignature,
    to_state:            str,
    recent_success_rate: float,
    now:                 float,
) -> Optional[StateTransition]:
    """Appends a transition only when the primary state actually changes."""
    from_state = signature.current_state
    if from_state == to_state:
        return None
    transition = StateTransition(
        from_state=from_state,
        to_state=to_state,
        timestamp=now,
        recent_success_rate=_clamp(recent_success_rate),
    )
    signature.state_history.append(transition)
    log.info(
        "state_transition",
        user_id=signature.user_id,
        from_state=from_state,
        to_state=to_state,
        recent_success_rate=round(recent_success_rate, 4),
    )
    return transition


# ─────────────────────────────────────────────
# Sessions
# ─────────────────────────────────────────────

def start_session(signature: BehavioralSignature, session_id: str, now: float) -> None:
    """Closes any open session first, then opens `session_id`."""
    if signature.current_session_id is not None:
        end_session(signature, now)
    signature.current_session_id = session_id
    signature.current_session_started_at = now
    signature.total_sessions += 1
    signature.last_active = max(signature.last_active, now)


def end_session(signature: BehavioralSignature, now: float) -> Optional[SessionSummary]:
    """
    Summarises the open session into recent_sessions and updates the
    low-satisfaction streak. A session with no responses leaves no summary.
    """
    session_id = signature.current_session_id
    if session_id is None:
        return None

    events = signature.current_session_events()
    started_at = signature.current_session_started_at or now
    signature.current_session_id = None
    signature.current_session_started_at = None

    if not events:
        return None

    n = len(events)
    avg_engagement = sum(e.engagement for e in events) / n
    avg_confidence = sum(e.confidence for e in events) / n
    satisfaction = _clamp(sum((e.engagement + e.confidence) / 2.0 for e in events) / n)

    summary = SessionSummary(
        session_id=session_id,
        started_at=started_at,
        ended_at=now,
        puzzles_attempted=n,
        correct=sum(1 for e in events if e.correct),
        avg_engagement=avg_engagement,
        avg_confidence=avg_confidence,
        satisfaction=satisfaction,
    )
    signature.recent_sessions.append(summary)

    if satisfaction < LOW_SATISFACTION_THRESHOLD:
        signature.consecutive_low_satisfaction_sessions += 1
    else:
        signature.consecutive_low_satisfaction_sessions = 0

    log.info(
        "session_closed",
        user_id=signature.user_id,
        session_id=session_id,
        puzzles_attempted=n,
        satisfaction=round(satisfaction, 4),
    )
    return summary


# ─────────────────────────────────────────────
# Preferences
# ─────────────────────────────────────────────

def update_preference(signature: BehavioralSignature, puzzle_type: str, liked: bool) -> list[str]:
    """
    Liked types move to the front of the preference list (max 5 kept);
    disliked types are removed.
    """
    normalized = normalize_puzzle_type(puzzle_type)
    key = normalized.value if normalized is not None else puzzle_type.strip().lower()

    preferred = [t for t in signature.preferred_puzzle_types if t != key]
    if liked:
        preferred.insert(0, key)
    signature.preferred_puzzle_types = preferred[:PREFERRED_TYPES_LIMIT]
    return list(signature.preferred_puzzle_types)
