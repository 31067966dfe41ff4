"""Tests for the early progression cap and learning-style detection."""

import pytest

from analysis.behavioral_signature import apply_response
from analysis.learner_traits import (
    MIXED_STYLE,
    family_success_rates,
    learning_style,
    progression_cap,
    style_label,
)
from analysis.taxonomy import TypeFamily


def with_answers(signature, puzzle_type, outcomes, event, start=5_000.0):
    for i, correct in enumerate(outcomes):
        apply_response(signature, event(puzzle_type=puzzle_type, correct=correct, timestamp=start + i))
    return signature


class TestProgressionCap:
    def test_fresh_user_starts_at_the_floor(self, signature_builder):
        assert progression_cap(signature_builder()) == pytest.approx(0.25)

    @pytest.mark.parametrize("outcomes, expected", [
        ([True] * 25, 0.55),
        ([False] * 25, 0.30),
        ([True] * 49, 0.65),
        ([False] * 49, 0.492),
    ])
    def test_cap_follows_count_and_recent_success(self, signature_builder, outcomes, expected):
        assert progression_cap(signature_builder(outcomes=outcomes)) == pytest.approx(expected)

    def test_cap_never_drops_below_the_floor(self, signature_builder):
        assert progression_cap(signature_builder(outcomes=[False] * 3)) >= 0.25

    def test_no_cap_after_the_progression_puzzles(self, signature_builder):
        assert progression_cap(signature_builder(outcomes=[True] * 50)) is None

    def test_window_size_limits_the_rate(self, signature_builder):
        sig = signature_builder(outcomes=[False] * 20 + [True] * 5)
        # last 5 all correct: 0.45 + 0.25 * 0.4
        assert progression_cap(sig, window_size=5) == pytest.approx(0.55)


class TestLearningStyle:
    def test_rates_are_grouped_by_family(self, signature_builder, event):
        sig = signature_builder(outcomes=[True, True, False], puzzle_type="pattern")
        with_answers(sig, "sequentialFigures", [True], event)
        with_answers(sig, "number-series", [False, True], event, start=6_000.0)
        with_answers(sig, "crossword", [True], event, start=7_000.0)

        rates = family_success_rates(sig)
        assert rates[TypeFamily.VISUAL] == (4, pytest.approx(0.75))
        assert rates[TypeFamily.MATHEMATICAL] == (2, pytest.approx(0.5))
        assert TypeFamily.LOGICAL not in rates

    def test_clear_leader_is_the_style(self, signature_builder, event):
        sig = signature_builder(outcomes=[False] * 5, puzzle_type="pattern")
        with_answers(sig, "analogy", [True] * 5, event)
        assert learning_style(sig) is TypeFamily.LOGICAL
        assert style_label(learning_style(sig)) == "logical"

    def test_lead_must_clear_the_margin(self, signature_builder, event):
        sig = signature_builder(outcomes=[True] * 5, puzzle_type="pattern")
        with_answers(sig, "analogy", [True] * 4 + [False] * 2, event)
        assert learning_style(sig) is TypeFamily.VISUAL

        close = signature_builder(outcomes=[True] * 9 + [False], puzzle_type="pattern")
        with_answers(close, "analogy", [True] * 8 + [False] * 2, event)
        assert learning_style(close) is None

    def test_single_family_is_mixed(self, signature_builder):
        sig = signature_builder(outcomes=[True] * 20, puzzle_type="pattern")
        assert learning_style(sig) is None

    def test_thinly_sampled_family_does_not_count(self, signature_builder, event):
        sig = signature_builder(outcomes=[True] * 10, puzzle_type="pattern")
        with_answers(sig, "analogy", [False] * 4, event)
        assert learning_style(sig) is None

    def test_no_history_is_mixed(self, signature_builder):
        assert style_label(learning_style(signature_builder())) == MIXED_STYLE
