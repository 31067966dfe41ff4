"""Tests for the HTTP surface."""

import pytest
from fastapi.testclient import TestClient

from analysis.puzzle_dna import PuzzleDNAAnalyzer
from database.signature_store import InMemorySignatureStore
from engine.registry import EngineRegistry
from main import create_app
from utils.config import EngineConfig


@pytest.fixture
def registry(fixed_random):
    registry = EngineRegistry(
        store=InMemorySignatureStore(),
        analyzer=PuzzleDNAAnalyzer(),
        config=EngineConfig(logging_enabled=False),
        rng_factory=lambda user_id: fixed_random(0.0),
    )
    yield registry
    registry.shutdown()


@pytest.fixture
def client(registry):
    with TestClient(create_app(registry)) as test_client:
        yield test_client


@pytest.fixture
def candidates():
    return [
        {"id": "easy-1", "type": "pattern", "difficulty": "easy", "options": ["a", "b", "c"], "hint": "look left"},
        {"id": "hard-1", "type": "transformation", "difficulty": "hard", "options": ["a", "b", "c"]},
    ]


def serve(client, candidates, user="u1"):
    response = client.post(f"/users/{user}/puzzles/next", json={"candidates": candidates})
    assert response.status_code == 200, response.text
    return response.json()


class TestSystem:
    def test_health(self, client):
        body = client.get("/health").json()
        assert body["status"] == "ok"
        assert body["service"] == "PuzzleFlow"
        assert body["active_engines"] == 0


class TestPuzzles:
    def test_initialize(self, client):
        response = client.post("/users/u1/initialize")
        assert response.status_code == 200
        assert response.json() == {"user_id": "u1", "initialized": True, "degraded": False}

    def test_next_puzzle(self, client, candidates):
        body = serve(client, candidates)
        assert body["puzzle_id"] == "easy-1"
        assert body["category"] == "confidence"
        assert body["selection_reason"] == "confidence:pattern"
        assert body["allocation"] == [7, 2, 1, 0, 0]
        assert body["classification"]["primary_state"] == "new_user"
        assert body["dna"]["difficulty"] == 0.3
        assert body["puzzle"]["hint"] == "look left"

    def test_empty_pool_is_unprocessable(self, client):
        response = client.post("/users/u1/puzzles/next", json={"candidates": []})
        assert response.status_code == 422

    def test_malformed_pool_is_unprocessable(self, client):
        response = client.post(
            "/users/u1/puzzles/next",
            json={"candidates": [{"id": "x", "type": "pattern", "options": ["only"]}]},
        )
        assert response.status_code == 422
        assert "malformed" in response.json()["detail"]

    def test_record_response(self, client, candidates):
        serve(client, candidates)
        response = client.post(
            "/users/u1/puzzles/easy-1/response",
            json={"correct": True, "solve_time_ms": 1500, "engagement": 0.9},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["recorded"] is True
        assert body["persisted"] is True
        assert body["primary_state"] == "new_user"
        assert body["risk_band"] == "low"
        assert body["skill_level"] > 0.3

    def test_response_for_unserved_puzzle(self, client):
        response = client.post("/users/u1/puzzles/nope/response", json={"correct": True, "solve_time_ms": 1})
        assert response.status_code == 404

    def test_response_validation(self, client, candidates):
        serve(client, candidates)
        response = client.post("/users/u1/puzzles/easy-1/response", json={"correct": True, "solve_time_ms": -5})
        assert response.status_code == 422

    def test_overflowing_solve_time_is_rejected(self, client, candidates, registry):
        client.post("/users/u1/initialize")
        serve(client, candidates)
        response = client.post(
            "/users/u1/puzzles/easy-1/response",
            content='{"correct": true, "solve_time_ms": 1e400}',
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 422
        assert registry.store.load("u1").total_puzzles_solved == 0


class TestUsers:
    def test_metrics_are_camel_case(self, client, candidates):
        serve(client, candidates)
        client.post("/users/u1/puzzles/easy-1/response", json={"correct": False, "solve_time_ms": 900})

        body = client.get("/users/u1/metrics").json()
        assert set(body) == {"userMetrics", "systemMetrics"}
        assert body["userMetrics"] == {
            "totalSessions": 1,
            "totalPuzzlesSolved": 1,
            "overallAccuracy": 0.0,
            "currentSkillLevel": pytest.approx(0.26),
        }
        assert body["systemMetrics"]["storageSize"] > 0

    def test_learning_metrics_and_state(self, client):
        learning = client.get("/users/u1/learning-metrics").json()
        assert learning["primary_state"] == "new_user"
        assert learning["risk_band"] == "low"
        assert learning["learning_style"] == "mixed"
        assert learning["progression_cap"] == pytest.approx(0.25)

        state = client.get("/users/u1/state").json()
        assert state["allocation"] == [7, 2, 1, 0, 0]
        assert state["modifiers"] == []

    def test_session_round_trip(self, client, candidates):
        session_id = client.post("/users/u1/sessions").json()["session_id"]
        serve(client, candidates)
        client.post("/users/u1/puzzles/easy-1/response", json={"correct": True, "solve_time_ms": 800})

        closed = client.delete("/users/u1/sessions/current").json()
        assert closed == {"user_id": "u1", "session_id": session_id, "closed": True}

    def test_ending_an_empty_session(self, client):
        client.post("/users/u1/sessions")
        assert client.delete("/users/u1/sessions/current").json()["closed"] is False

    def test_preferences(self, client):
        liked = client.put("/users/u1/preferences/Pattern")
        assert liked.json()["preferred_puzzle_types"] == ["pattern"]
        disliked = client.put("/users/u1/preferences/pattern", json={"liked": False})
        assert disliked.json()["preferred_puzzle_types"] == []

    def test_unknown_preference_type(self, client):
        assert client.put("/users/u1/preferences/crossword").status_code == 404

    def test_delete_user(self, client, registry, candidates):
        serve(client, candidates)
        assert "u1" in registry
        response = client.delete("/users/u1")
        assert response.json() == {"user_id": "u1", "deleted": True}
        assert "u1" not in registry
