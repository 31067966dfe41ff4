"""Tests for Puzzle DNA seeding, memoization and refinement."""

import threading

import pytest

from analysis.puzzle_dna import (
    DNACache,
    DNAObservation,
    PuzzleDNA,
    PuzzleDNAAnalyzer,
    derive_puzzle_id,
    puzzle_type_of,
    seed_difficulty,
)
from schemas.puzzle import PuzzleCandidate


class TestSeeding:
    @pytest.mark.parametrize("label, expected", [
        ("easy", 0.3), ("medium", 0.6), ("hard", 0.9), ("HARD", 0.9), ("brutal", 0.5),
    ])
    def test_difficulty_label(self, candidate, label, expected):
        assert seed_difficulty(candidate("p", difficulty=label)) == expected

    def test_type_complexity_without_label(self, candidate):
        assert seed_difficulty(candidate("p", puzzle_type="algebraic-reasoning")) == 0.8
        assert seed_difficulty(candidate("p", puzzle_type="pattern")) == 0.3

    def test_unknown_type_is_neutral(self, candidate):
        assert seed_difficulty(candidate("p", puzzle_type="crossword")) == 0.5

    def test_defaults(self, analyzer, candidate):
        dna = analyzer.analyze(candidate("p1"))
        assert dna.user_engagement == 0.7
        assert dna.success_rate == 0.6
        assert dna.sample_count == 0
        assert dna.generated_at == 1_000.0

    def test_type_normalized(self, candidate):
        assert puzzle_type_of(candidate("p", puzzle_type="numberSeries")) == "number-series"
        assert puzzle_type_of(candidate("p", puzzle_type="Crossword")) == "crossword"
        assert puzzle_type_of({"options": [1, 2]}) == "unknown"

    def test_pydantic_candidate(self, analyzer):
        model = PuzzleCandidate.model_validate(
            {"id": "m-1", "type": "analogy", "difficulty": "medium", "options": ["a", "b"]}
        )
        dna = analyzer.analyze(model)
        assert dna.puzzle_id == "m-1"
        assert dna.puzzle_type == "analogy"
        assert dna.difficulty == 0.6


class TestPuzzleIdentity:
    def test_semantic_id_wins(self, candidate):
        assert derive_puzzle_id(candidate("sem-42")) == "sem-42"

    def test_structurally_identical_puzzles_share_a_hash(self):
        a = {"type": "pattern", "question": "next?", "options": [1, 2, 3]}
        b = {"options": [1, 2, 3], "question": "next?", "type": "pattern", "colour": "red"}
        assert derive_puzzle_id(a) == derive_puzzle_id(b)
        assert derive_puzzle_id(a).startswith("puzzle_")

    def test_different_content_different_hash(self):
        a = {"type": "pattern", "question": "next?", "options": [1, 2, 3]}
        b = {"type": "pattern", "question": "next?", "options": [1, 2, 4]}
        assert derive_puzzle_id(a) != derive_puzzle_id(b)


class TestMemoization:
    def test_analyze_returns_cached_entry(self, analyzer, candidate):
        first = analyzer.analyze(candidate("p1", difficulty="easy"))
        second = analyzer.analyze(candidate("p1", difficulty="hard"))
        assert second is first
        assert second.difficulty == 0.3

    def test_cache_eviction_is_fifo(self):
        cache = DNACache(max_entries=2)
        analyzer = PuzzleDNAAnalyzer(cache)
        for pid in ("a", "b", "c"):
            analyzer.analyze({"id": pid, "type": "pattern", "options": [1, 2]})
        assert "a" not in cache
        assert "b" in cache and "c" in cache

    def test_snapshot_and_restore(self):
        source = DNACache()
        source.put(PuzzleDNA("x", "pattern", 0.3, 0.7, 0.6, 1.0, 2))
        target = DNACache()
        assert target.restore(source.snapshot()) == 1
        assert target.get("x").sample_count == 2


class TestRefinement:
    def test_blend(self, analyzer, candidate):
        analyzer.analyze(candidate("p1", difficulty="medium"))
        updated = analyzer.update("p1", DNAObservation(success_rate=0.8, engagement=0.9))

        assert updated.success_rate == pytest.approx(0.7 * 0.8 + 0.3 * 0.6)
        assert updated.user_engagement == pytest.approx(0.7 * 0.9 + 0.3 * 0.7)
        assert updated.difficulty == pytest.approx(0.9 * 0.6 + 0.1 * (1 - updated.success_rate))
        assert updated.sample_count == 1
        assert analyzer.get("p1") == updated

    def test_partial_observation_keeps_other_fields(self, analyzer, candidate):
        analyzer.analyze(candidate("p1"))
        updated = analyzer.update("p1", DNAObservation(engagement=0.1))
        assert updated.success_rate == 0.6

    def test_unknown_puzzle_is_noop(self, analyzer):
        assert analyzer.update("missing", DNAObservation(success_rate=1.0)) is None
        assert analyzer.get("missing") is None

    def test_unknown_updates_leave_no_key_locks(self, analyzer):
        for i in range(1000):
            analyzer.update(f"ghost-{i}", DNAObservation(success_rate=0.5))
        assert len(analyzer.cache) == 0
        assert analyzer.cache.key_lock_count == 0

    def test_key_locks_are_dropped_with_evicted_entries(self):
        cache = DNACache(max_entries=2)
        analyzer = PuzzleDNAAnalyzer(cache)
        for pid in ("a", "b", "c"):
            analyzer.analyze({"id": pid, "type": "pattern", "options": [1, 2]})
            analyzer.update(pid, DNAObservation(success_rate=0.8))
        assert cache.key_lock_count == 2
        assert cache.lock_for("a") is None

    def test_concurrent_updates_are_not_lost(self, analyzer, candidate):
        analyzer.analyze(candidate("p1"))

        def worker():
            for _ in range(25):
                analyzer.update("p1", DNAObservation(success_rate=0.8))

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        dna = analyzer.get("p1")
        assert dna.sample_count == 100
        assert 0.0 <= dna.difficulty <= 1.0
