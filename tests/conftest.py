"""Pytest configuration and fixtures."""
import random
import threading

import pytest
from sqlalchemy.pool import StaticPool

from analysis.behavioral_signature import ResponseEvent, apply_response, default_signature
from analysis.puzzle_dna import DNACache, PuzzleDNAAnalyzer
from database.db import make_engine
from database.signature_store import InMemorySignatureStore
from engine.puzzle_engine import IntelligentPuzzleEngine
from utils.config import EngineConfig, SelectionSettings, StorageSettings


class FixedRandom(random.Random):
    """random() always returns the same value, so category draws are predictable."""

    def __init__(self, value: float) -> None:
        super().__init__(0)
        self.value = value

    def random(self) -> float:
        return self.value


class FlakyStore(InMemorySignatureStore):
    """In-memory store that raises on every call while `failing` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.failing = False
        self.save_calls = 0

    def _check(self) -> None:
        if self.failing:
            raise RuntimeError("backend unreachable")

    def load(self, user_id):
        self._check()
        return super().load(user_id)

    def save(self, user_id, signature):
        self._check()
        self.save_calls += 1
        super().save(user_id, signature)

    def delete(self, user_id):
        self._check()
        return super().delete(user_id)

    def storage_size(self, user_id):
        self._check()
        return super().storage_size(user_id)


class SlowStore(InMemorySignatureStore):
    """Every call blocks until `release` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.release = threading.Event()

    def load(self, user_id):
        self.release.wait(timeout=2.0)
        return super().load(user_id)

    def save(self, user_id, signature):
        self.release.wait(timeout=2.0)
        super().save(user_id, signature)


def make_candidate(puzzle_id, puzzle_type="pattern", difficulty=None, n_options=4, **extra):
    candidate = {
        "id":       puzzle_id,
        "type":     puzzle_type,
        "question": f"question for {puzzle_id}",
        "options":  [f"option {i}" for i in range(n_options)],
    }
    if difficulty is not None:
        candidate["difficulty"] = difficulty
    candidate.update(extra)
    return candidate


def make_event(
    correct=True,
    puzzle_type="pattern",
    difficulty=0.5,
    timestamp=1_000.0,
    puzzle_id=None,
    solve_time_ms=4000.0,
    confidence=0.7,
    engagement=0.8,
    used_power_up=False,
    session_id=None,
):
    return ResponseEvent(
        puzzle_id=puzzle_id or f"{puzzle_type}-{timestamp}",
        puzzle_type=puzzle_type,
        difficulty=difficulty,
        correct=correct,
        solve_time_ms=solve_time_ms,
        confidence=confidence,
        engagement=engagement,
        used_power_up=used_power_up,
        timestamp=timestamp,
        session_id=session_id,
    )


def build_signature(user_id="user-1", outcomes=(), start=1_000.0, **event_kwargs):
    """Signature after applying one event per outcome (True = correct)."""
    signature = default_signature(user_id, start)
    for i, correct in enumerate(outcomes):
        apply_response(signature, make_event(correct=correct, timestamp=start + i, **event_kwargs))
    return signature


@pytest.fixture
def fixed_random():
    return FixedRandom


@pytest.fixture
def candidate():
    return make_candidate


@pytest.fixture
def event():
    return make_event


@pytest.fixture
def signature_builder():
    return build_signature


@pytest.fixture
def memory_store():
    return InMemorySignatureStore()


@pytest.fixture
def flaky_store():
    return FlakyStore()


@pytest.fixture
def slow_store():
    store = SlowStore()
    yield store
    store.release.set()


@pytest.fixture
def analyzer():
    return PuzzleDNAAnalyzer(DNACache(), clock=lambda: 1_000.0)


@pytest.fixture
def sqlite_engine():
    """Fresh in-memory database shared across threads for one test."""
    db_engine = make_engine("sqlite://", poolclass=StaticPool)
    yield db_engine
    db_engine.dispose()


@pytest.fixture
def engine_factory(memory_store, analyzer):
    """Builds engines with a deterministic RNG and clock; closes them afterwards."""
    created = []

    def factory(
        user_id="user-1",
        store=None,
        rng=None,
        config=None,
        timeout_s=1.0,
        max_difficulty=None,
    ):
        cfg = config or EngineConfig(
            selection=SelectionSettings(max_difficulty=max_difficulty),
            storage=StorageSettings(timeout_s=timeout_s),
            logging_enabled=False,
        )
        clock_state = {"now": 10_000.0}

        def clock():
            clock_state["now"] += 1.0
            return clock_state["now"]

        engine = IntelligentPuzzleEngine(
            user_id=user_id,
            store=store if store is not None else memory_store,
            analyzer=analyzer,
            config=cfg,
            rng=rng if rng is not None else FixedRandom(0.0),
            clock=clock,
        )
        created.append(engine)
        return engine

    yield factory
    for engine in created:
        engine.close()
