"""Tests for the taxonomy enums and static tables."""

import pytest

from analysis.taxonomy import (
    POOL_CATEGORIES,
    STATE_DIFFICULTY_CEILING,
    STATE_DISTRIBUTIONS,
    TYPE_BASE_COMPLEXITY,
    TYPE_DIMENSIONS,
    TYPE_FAMILY,
    PoolCategory,
    PuzzleType,
    UserState,
    normalize_puzzle_type,
    validate_tables,
)


class TestTables:
    def test_every_state_has_a_distribution_summing_to_ten(self):
        for state in UserState:
            assert sum(STATE_DISTRIBUTIONS[state]) == 10
            assert len(STATE_DISTRIBUTIONS[state]) == len(POOL_CATEGORIES)

    def test_every_type_has_complexity_dimensions_and_family(self):
        for puzzle_type in PuzzleType:
            assert 0.0 <= TYPE_BASE_COMPLEXITY[puzzle_type] <= 1.0
            assert TYPE_DIMENSIONS[puzzle_type]
            assert puzzle_type in TYPE_FAMILY

    def test_category_order(self):
        assert POOL_CATEGORIES == (
            PoolCategory.CONFIDENCE,
            PoolCategory.SKILL,
            PoolCategory.CHALLENGE,
            PoolCategory.RECOVERY,
            PoolCategory.EXPLORATORY,
        )

    def test_protected_state_ceilings(self):
        assert STATE_DIFFICULTY_CEILING[UserState.NEW_USER] == 0.4
        assert STATE_DIFFICULTY_CEILING[UserState.CHILD_LIKE_USER] == 0.5
        assert UserState.EXPERT_DEMANDING not in STATE_DIFFICULTY_CEILING

    def test_tables_are_read_only(self):
        with pytest.raises(TypeError):
            STATE_DISTRIBUTIONS[UserState.STABLE] = (10, 0, 0, 0, 0)

    def test_validate_tables_passes(self):
        validate_tables()


class TestNormalizePuzzleType:
    def test_canonical_value(self):
        assert normalize_puzzle_type("number-series") is PuzzleType.NUMBER_SERIES

    def test_case_and_whitespace(self):
        assert normalize_puzzle_type("  Pattern ") is PuzzleType.PATTERN

    def test_legacy_spelling(self):
        assert normalize_puzzle_type("numberSeries") is PuzzleType.NUMBER_SERIES
        assert normalize_puzzle_type("Algebraic Reasoning") is PuzzleType.ALGEBRAIC_REASONING

    def test_unknown_and_non_string(self):
        assert normalize_puzzle_type("crossword") is None
        assert normalize_puzzle_type(None) is None
        assert normalize_puzzle_type(42) is None
