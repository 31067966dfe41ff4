"""Tests for the retention risk estimate."""

import pytest

from analysis.behavioral_signature import SessionSummary, default_signature
from analysis.retention import estimate_retention_risk, risk_band
from analysis.state_classifier import classify
from analysis.taxonomy import UserState


def stable_outcomes():
    # 11/20 correct, last answers correct: stable with no modifiers
    return [False, True] * 9 + [True, True]


def summary(satisfaction, index):
    return SessionSummary(
        session_id=f"s{index}",
        started_at=float(index),
        ended_at=float(index) + 0.5,
        puzzles_attempted=5,
        correct=3,
        avg_engagement=satisfaction,
        avg_confidence=satisfaction,
        satisfaction=satisfaction,
    )


def risk_of(sig):
    return estimate_retention_risk(sig, classify(sig))


class TestRetentionRisk:
    def test_fresh_user_has_base_risk(self):
        assert risk_of(default_signature("u", 0.0)) == pytest.approx(0.1)

    def test_under_challenged_and_repetitive(self, signature_builder):
        sig = signature_builder(outcomes=stable_outcomes(), difficulty=0.2, puzzle_type="pattern")
        assert classify(sig).primary_state is UserState.STABLE
        # 0.1 base + 0.4 challenge deficit + 0.2 variety deficit
        assert risk_of(sig) == pytest.approx(0.7)
        assert risk_band(risk_of(sig)) == "high"

    def test_struggling_users_are_never_under_challenged(self, signature_builder):
        sig = signature_builder(outcomes=[True] * 5 + [False] * 15, difficulty=0.2)
        assert classify(sig).primary_state is UserState.SEVERELY_STRUGGLING
        # variety deficit only
        assert risk_of(sig) == pytest.approx(0.3)

    def test_varied_and_well_challenged(self, signature_builder):
        sig = signature_builder(outcomes=stable_outcomes(), difficulty=0.6)
        for i, t in enumerate(("analogy", "number-grid", "transformation")):
            sig.session_history[i].puzzle_type = t
        assert risk_of(sig) == pytest.approx(0.1)

    def test_low_satisfaction_streak(self):
        sig = default_signature("u", 0.0)
        sig.consecutive_low_satisfaction_sessions = 3
        assert risk_of(sig) == pytest.approx(0.4)

    def test_satisfaction_decline_between_session_groups(self):
        sig = default_signature("u", 0.0)
        for i, s in enumerate([0.9, 0.9, 0.9, 0.6, 0.6, 0.6]):
            sig.recent_sessions.append(summary(s, i))
        assert risk_of(sig) == pytest.approx(0.4)

    def test_engagement_decline_within_window(self, signature_builder):
        sig = signature_builder(outcomes=stable_outcomes(), difficulty=0.6)
        for i, e in enumerate(sig.session_history):
            e.engagement = 0.9 if i < 10 else 0.7
            e.puzzle_type = ("pattern", "analogy", "number-grid")[i % 3]
        assert risk_of(sig) == pytest.approx(0.25)

    def test_risk_is_clamped(self):
        sig = default_signature("u", 0.0)
        sig.consecutive_low_satisfaction_sessions = 10
        assert 0.0 <= risk_of(sig) <= 1.0


class TestRiskBand:
    @pytest.mark.parametrize("risk, band", [
        (0.0, "low"), (0.39, "low"), (0.4, "medium"), (0.59, "medium"),
        (0.6, "high"), (0.79, "high"), (0.8, "very_high"), (0.94, "very_high"),
        (0.95, "critical"), (1.0, "critical"),
    ])
    def test_bands(self, risk, band):
        assert risk_band(risk) == band
