"""Tests for pool allocation planning."""

from itertools import combinations

import pytest

from analysis.pool_planner import PoolAllocation, StrengthProfile, normalize_weights, plan
from analysis.taxonomy import (
    STATE_DISTRIBUTIONS,
    CognitiveDimension,
    PoolCategory,
    StateModifier,
    UserState,
)

ALL_MODIFIER_SETS = [
    frozenset(combo)
    for size in range(len(StateModifier) + 1)
    for combo in combinations(StateModifier, size)
]


class TestInvariants:
    @pytest.mark.parametrize("state", list(UserState))
    def test_every_state_and_modifier_set_sums_to_ten(self, state):
        for modifiers in ALL_MODIFIER_SETS:
            for strength in (
                None,
                StrengthProfile(5, CognitiveDimension.PATTERN_RECOGNITION),
                StrengthProfile(5, CognitiveDimension.LOGICAL_REASONING),
                StrengthProfile(100, None),
            ):
                weights = plan(state, modifiers, strength).as_list()
                assert sum(weights) == 10, (state, modifiers, strength)
                assert min(weights) >= 0, (state, modifiers, strength)

    def test_allocation_rejects_bad_totals(self):
        with pytest.raises(ValueError):
            PoolAllocation(5, 5, 5, 0, 0)
        with pytest.raises(ValueError):
            PoolAllocation(11, -1, 0, 0, 0)


class TestBaseDistributions:
    @pytest.mark.parametrize("state", list(UserState))
    def test_no_modifiers_returns_base_row(self, state):
        assert plan(state, []).as_list() == list(STATE_DISTRIBUTIONS[state])

    def test_expert_row(self):
        assert plan(UserState.EXPERT_DEMANDING, []).as_list() == [0, 1, 7, 0, 2]


class TestModifiers:
    def test_new_user_in_confidence_crisis(self):
        allocation = plan(UserState.NEW_USER, [StateModifier.CONFIDENCE_CRISIS])
        assert allocation.as_list() == [9, 1, 0, 0, 0]

    def test_confidence_crisis_shifts_toward_confidence(self):
        base = plan(UserState.STABLE, [])
        crisis = plan(UserState.STABLE, [StateModifier.CONFIDENCE_CRISIS])
        assert crisis.confidence > base.confidence
        assert crisis.challenge < base.challenge
        assert crisis.as_list() == [4, 4, 1, 0, 1]

    def test_disengaged(self):
        assert plan(UserState.STABLE, [StateModifier.DISENGAGED]).as_list() == [2, 3, 3, 2, 0]

    def test_fatigue_and_decline_together(self):
        allocation = plan(UserState.PROGRESSING, [StateModifier.FATIGUED, StateModifier.SESSION_DECLINE])
        assert allocation.as_list() == [3, 2, 2, 0, 3]

    def test_share_of(self):
        allocation = plan(UserState.EXPERT_DEMANDING, [])
        assert allocation.share_of(PoolCategory.CHALLENGE) == pytest.approx(0.7)
        assert allocation.weight_of(PoolCategory.EXPLORATORY) == 2


class TestStrengthRule:
    def test_early_user_gets_more_confidence(self):
        strength = StrengthProfile(15, CognitiveDimension.LOGICAL_REASONING)
        allocation = plan(UserState.STABLE, [], strength)
        assert allocation.as_list() == [5, 3, 1, 0, 1]
        assert allocation.strength_focus is False

    def test_visual_strength_boosts_confidence_further(self):
        strength = StrengthProfile(15, CognitiveDimension.SPATIAL_VISUALIZATION)
        allocation = plan(UserState.STABLE, [], strength)
        assert allocation.as_list() == [7, 1, 1, 0, 1]
        assert allocation.strength_focus is True

    def test_established_user_is_untouched(self):
        strength = StrengthProfile(30, CognitiveDimension.PATTERN_RECOGNITION)
        assert plan(UserState.STABLE, [], strength).as_list() == [2, 4, 3, 0, 1]

    def test_special_states_skip_the_rule(self):
        strength = StrengthProfile(5, CognitiveDimension.PATTERN_RECOGNITION)
        assert plan(UserState.NEW_USER, [], strength).as_list() == [7, 2, 1, 0, 0]
        assert plan(UserState.CHILD_LIKE_USER, [], strength).as_list() == [8, 2, 0, 0, 0]


class TestNormalize:
    def test_shortfall_goes_to_confidence(self):
        assert normalize_weights([1, 2, -3, 0, 0]) == [8, 2, 0, 0, 0]

    def test_excess_comes_from_largest_non_confidence(self):
        assert normalize_weights([4, 3, 3, 1, 0]) == [4, 2, 3, 1, 0]

    def test_confidence_only_when_nothing_else_remains(self):
        assert normalize_weights([12, 0, 0, 0, 0]) == [10, 0, 0, 0, 0]
