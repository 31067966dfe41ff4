# analysis/retention.py
# PuzzleFlow — Retention (churn) risk estimate for observability.
# Never feeds back into selection.
# Imports from: analysis/behavioral_signature.py, analysis/state_classifier.py,
#               analysis/taxonomy.py, utils/constants.py

from analysis.behavioral_signature import BehavioralSignature
from analysis.state_classifier import ClassificationResult
from analysis.taxonomy import PERFORMING_WELL, UserState
from utils.constants import (
    BASE_CHURN_RISK,
    CHALLENGE_DEFICIT_MODERATE,
    CHALLENGE_DEFICIT_PARTIAL,
    CHALLENGE_DEFICIT_PENALTY,
    CHALLENGE_DEFICIT_SIGNIFICANT,
    CONSECUTIVE_LOW_SATISFACTION_SESSIONS,
    CRITICAL_CHURN_RISK,
    ENGAGEMENT_DECLINE_MODERATE,
    ENGAGEMENT_DECLINE_PENALTY,
    ENGAGEMENT_DECLINE_SIGNIFICANT,
    EXCELLING_EXPECTED_DIFFICULTY,
    EXPERT_EXPECTED_DIFFICULTY,
    EXPERT_EXPECTED_VARIETY,
    GENERAL_EXPECTED_DIFFICULTY,
    GENERAL_EXPECTED_VARIETY,
    HIGH_CHURN_RISK,
    LOW_CHURN_RISK,
    MEDIUM_CHURN_RISK,
    RECENT_WINDOW_SIZE,
    SATISFACTION_COMPARE_SESSIONS,
    SATISFACTION_DECLINE_PENALTY,
    SATISFACTION_DECLINE_THRESHOLD,
    VARIETY_DEFICIT_PENALTY,
    VARIETY_MIN_SAMPLES,
)


# ─────────────────────────────────────────────
# Penalty components
# ─────────────────────────────────────────────

def _expected_difficulty(state: UserState) -> float:
    if state is UserState.EXPERT_DEMANDING:
        return EXPERT_EXPECTED_DIFFICULTY
    if state is UserState.EXCELLING:
        return EXCELLING_EXPECTED_DIFFICULTY
    return GENERAL_EXPECTED_DIFFICULTY


def challenge_deficit_penalty(profile: BehavioralSignature, state: UserState, window_size: int) -> float:
    """Only users who are coping (stable or better) can be under-challenged."""
    if state not in PERFORMING_WELL and state is not UserState.STABLE:
        return 0.0
    window = profile.recent_window(window_size)
    if not window:
        return 0.0
    observed = sum(e.difficulty for e in window) / len(window)
    deficit = _expected_difficulty(state) - observed
    if deficit > CHALLENGE_DEFICIT_SIGNIFICANT:
        return CHALLENGE_DEFICIT_PENALTY
    if deficit > CHALLENGE_DEFICIT_MODERATE:
        return CHALLENGE_DEFICIT_PARTIAL
    return 0.0


def variety_deficit_penalty(profile: BehavioralSignature, state: UserState, window_size: int) -> float:
    window = profile.recent_window(window_size)
    if len(window) < VARIETY_MIN_SAMPLES:
        return 0.0
    expected = EXPERT_EXPECTED_VARIETY if state is UserState.EXPERT_DEMANDING else GENERAL_EXPECTED_VARIETY
    distinct = len({e.puzzle_type for e in window})
    return VARIETY_DEFICIT_PENALTY if distinct < expected else 0.0


def satisfaction_decline_penalty(profile: BehavioralSignature) -> float:
    """
    Fires on a streak of low-satisfaction sessions, or when the latest sessions
    average more than 0.1 below the sessions before them.
    """
    if profile.consecutive_low_satisfaction_sessions >= CONSECUTIVE_LOW_SATISFACTION_SESSIONS:
        return SATISFACTION_DECLINE_PENALTY

    sessions = list(profile.recent_sessions)
    n = SATISFACTION_COMPARE_SESSIONS
    latest = sessions[-n:]
    earlier = sessions[-2 * n:-n]
    if not latest or not earlier:
        return 0.0

    latest_mean = sum(s.satisfaction for s in latest) / len(latest)
    earlier_mean = sum(s.satisfaction for s in earlier) / len(earlier)
    if earlier_mean - latest_mean > SATISFACTION_DECLINE_THRESHOLD:
        return SATISFACTION_DECLINE_PENALTY
    return 0.0


def engagement_decline_penalty(profile: BehavioralSignature, window_size: int) -> float:
    """First half of the recent window vs the second half."""
    window = profile.recent_window(window_size)
    mid = len(window) // 2
    if mid == 0:
        return 0.0
    first = sum(e.engagement for e in window[:mid]) / mid
    second = sum(e.engagement for e in window[mid:]) / (len(window) - mid)
    decline = first - second
    if decline > ENGAGEMENT_DECLINE_SIGNIFICANT:
        return ENGAGEMENT_DECLINE_PENALTY
    if decline > ENGAGEMENT_DECLINE_MODERATE:
        return ENGAGEMENT_DECLINE_PENALTY / 2.0
    return 0.0


# ─────────────────────────────────────────────
# Public interface
# ─────────────────────────────────────────────

def estimate_retention_risk(
    profile:        BehavioralSignature,
    classification: ClassificationResult,
    window_size:    int = RECENT_WINDOW_SIZE,
) -> float:
    """
    risk = 0.1 + challenge deficit + variety deficit
               + satisfaction decline + engagement decline
    clamped to [0, 1].
    """
    state = classification.primary_state
    risk = (
        BASE_CHURN_RISK
        + challenge_deficit_penalty(profile, state, window_size)
        + variety_deficit_penalty(profile, state, window_size)
        + satisfaction_decline_penalty(profile)
        + engagement_decline_penalty(profile, window_size)
    )
    return max(0.0, min(1.0, risk))


def risk_band(risk: float) -> str:
    """
    Maps a risk score to a label:
        < 0.4   → 'low'
        < 0.6   → 'medium'
        < 0.8   → 'high'
        < 0.95  → 'very_high'
        >= 0.95 → 'critical'
    """
    if risk < LOW_CHURN_RISK:
        return "low"
    if risk < MEDIUM_CHURN_RISK:
        return "medium"
    if risk < HIGH_CHURN_RISK:
        return "high"
    if risk < CRITICAL_CHURN_RISK:
        return "very_high"
    return "critical"
