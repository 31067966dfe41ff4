"""Tests for signature serialization and the signature stores."""

import pytest

from analysis.behavioral_signature import (
    apply_response,
    default_signature,
    end_session,
    record_state_transition,
    start_session,
    update_preference,
)
from analysis.puzzle_dna import PuzzleDNA
from database.db import check_db_health, make_session_factory
from database.dna_repository import DNARepository
from database.signature_store import InMemorySignatureStore, SqlSignatureStore
from engine.errors import StorageUnavailableError
from schemas.signature import dump_signature, load_signature


@pytest.fixture
def rich_signature(event):
    sig = default_signature("user-rt", 100.0)
    start_session(sig, "s1", 101.0)
    for i in range(60):
        apply_response(sig, event(
            correct=i % 3 != 0,
            puzzle_type=("pattern", "analogy", "number-grid")[i % 3],
            difficulty=0.2 + (i % 7) / 10,
            timestamp=102.0 + i,
            used_power_up=i % 5 == 0,
            session_id="s1",
        ))
    end_session(sig, 200.0)
    start_session(sig, "s2", 201.0)
    record_state_transition(sig, "new_user", 0.0, 101.0)
    record_state_transition(sig, "stable", 0.66, 150.0)
    update_preference(sig, "analogy", True)
    return sig


def assert_equivalent(a, b):
    assert a.user_id == b.user_id
    assert a.skill_level == pytest.approx(b.skill_level)
    assert a.dimensions == b.dimensions
    assert list(a.session_history) == list(b.session_history)
    assert list(a.recent_sessions) == list(b.recent_sessions)
    assert list(a.dna_refs) == list(b.dna_refs)
    assert list(a.state_history) == list(b.state_history)
    assert list(a.power_up_events) == list(b.power_up_events)
    assert a.type_stats == b.type_stats
    assert a.preferred_puzzle_types == b.preferred_puzzle_types
    assert a.total_puzzles_solved == b.total_puzzles_solved
    assert a.total_sessions == b.total_sessions
    assert a.current_session_id == b.current_session_id
    assert a.revision == b.revision
    assert a.session_history.maxlen == b.session_history.maxlen


class TestSerialization:
    def test_round_trip_is_lossless(self, rich_signature):
        restored = load_signature(dump_signature(rich_signature))
        assert_equivalent(rich_signature, restored)

    def test_restored_buffers_stay_bounded(self, rich_signature, event):
        restored = load_signature(dump_signature(rich_signature))
        apply_response(restored, event(timestamp=999.0))
        assert len(restored.session_history) == 50


class TestInMemoryStore:
    def test_missing_user(self):
        assert InMemorySignatureStore().load("nobody") is None

    def test_save_load_delete(self, rich_signature):
        store = InMemorySignatureStore()
        store.save("user-rt", rich_signature)
        assert_equivalent(rich_signature, store.load("user-rt"))
        assert store.storage_size("user-rt") > 0
        assert store.delete("user-rt") is True
        assert store.load("user-rt") is None
        assert store.delete("user-rt") is False

    def test_loaded_copy_is_independent(self, rich_signature):
        store = InMemorySignatureStore()
        store.save("user-rt", rich_signature)
        store.load("user-rt").skill_level = 0.0
        assert store.load("user-rt").skill_level == pytest.approx(rich_signature.skill_level)


    def test_older_revision_is_dropped(self, rich_signature):
        store = InMemorySignatureStore()
        rich_signature.revision = 5
        store.save("user-rt", rich_signature)
        stale = load_signature(dump_signature(rich_signature))
        stale.revision = 4
        stale.skill_level = 0.01
        store.save("user-rt", stale)
        assert store.load("user-rt").revision == 5
        assert store.load("user-rt").skill_level == pytest.approx(rich_signature.skill_level)

    def test_revision_resets_after_delete(self, rich_signature):
        store = InMemorySignatureStore()
        rich_signature.revision = 5
        store.save("user-rt", rich_signature)
        store.delete("user-rt")
        rich_signature.revision = 1
        store.save("user-rt", rich_signature)
        assert store.load("user-rt").revision == 1


class TestSqlStore:
    @pytest.fixture
    def store(self, sqlite_engine):
        store = SqlSignatureStore(sqlite_engine)
        store.initialize()
        return store

    def test_round_trip(self, store, rich_signature):
        store.save("user-rt", rich_signature)
        assert_equivalent(rich_signature, store.load("user-rt"))

    def test_last_write_wins(self, store, rich_signature):
        store.save("user-rt", rich_signature)
        rich_signature.skill_level = 0.99
        store.save("user-rt", rich_signature)
        assert store.load("user-rt").skill_level == pytest.approx(0.99)

    def test_older_revision_is_dropped(self, store, rich_signature):
        rich_signature.revision = 3
        store.save("user-rt", rich_signature)
        kept = rich_signature.skill_level
        rich_signature.revision = 2
        rich_signature.skill_level = 0.01
        store.save("user-rt", rich_signature)
        loaded = store.load("user-rt")
        assert loaded.revision == 3
        assert loaded.skill_level == pytest.approx(kept)

    def test_newer_revision_overwrites(self, store, rich_signature):
        rich_signature.revision = 3
        store.save("user-rt", rich_signature)
        rich_signature.revision = 4
        rich_signature.skill_level = 0.99
        store.save("user-rt", rich_signature)
        loaded = store.load("user-rt")
        assert loaded.revision == 4
        assert loaded.skill_level == pytest.approx(0.99)

    def test_storage_size_and_delete(self, store, rich_signature):
        assert store.storage_size("user-rt") == 0
        store.save("user-rt", rich_signature)
        assert store.storage_size("user-rt") == len(dump_signature(rich_signature).encode("utf-8"))
        assert store.delete("user-rt") is True
        assert store.load("user-rt") is None

    def test_missing_table_surfaces_as_storage_error(self, sqlite_engine):
        store = SqlSignatureStore(sqlite_engine)
        with pytest.raises(StorageUnavailableError):
            store.load("user-rt")

    def test_health_check(self, sqlite_engine):
        assert check_db_health(make_session_factory(sqlite_engine)) is True


class TestDNARepository:
    def test_snapshot_round_trip(self, sqlite_engine):
        SqlSignatureStore(sqlite_engine).initialize()
        repo = DNARepository(sqlite_engine)
        entries = [
            PuzzleDNA("b", "analogy", 0.5, 0.7, 0.6, 20.0, 3),
            PuzzleDNA("a", "pattern", 0.3, 0.8, 0.7, 10.0, 1),
        ]
        assert repo.save_all(entries) == 2
        loaded = repo.load_all()
        assert [d.puzzle_id for d in loaded] == ["a", "b"]
        assert loaded[1] == entries[0]
