# api/routes_users.py
# PuzzleFlow — User lifecycle, sessions, metrics, state and preferences.
# Imports from: api/dependencies.py, engine/puzzle_engine.py, engine/registry.py,
#               schemas/metrics.py, utils/logger.py

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from analysis.taxonomy import normalize_puzzle_type
from api.dependencies import get_engine, get_registry
from engine.puzzle_engine import IntelligentPuzzleEngine
from engine.registry import EngineRegistry
from schemas.metrics import (
    InitializeResponse,
    LearningMetrics,
    MetricsResponse,
    PreferenceRequest,
    PreferenceResponse,
    SessionResponse,
    StateResponse,
)
from utils.logger import get_logger

router = APIRouter(tags=["users"])
log    = get_logger("api.routes_users")


# ─────────────────────────────────────────────
# Lifecycle
# ─────────────────────────────────────────────

@router.post(
    "/users/{user_id}/initialize",
    response_model=InitializeResponse,
    summary="Load or create the user's profile (idempotent)",
)
def initialize_user(engine: IntelligentPuzzleEngine = Depends(get_engine)) -> InitializeResponse:
    ok = engine.initialize()
    return InitializeResponse(user_id=engine.user_id, initialized=True, degraded=not ok)


@router.delete("/users/{user_id}", summary="Delete the user's stored profile")
def delete_user(
    user_id:  str,
    registry: EngineRegistry = Depends(get_registry),
) -> dict:
    engine = registry.get(user_id)
    if not engine.reset():
        raise HTTPException(status_code=503, detail="Profile storage is unavailable; try again.")
    registry.discard(user_id)
    log.info("user_deleted", user_id=user_id)
    return {"user_id": user_id, "deleted": True}


# ─────────────────────────────────────────────
# Sessions
# ─────────────────────────────────────────────

@router.post(
    "/users/{user_id}/sessions",
    response_model=SessionResponse,
    summary="Start a play session (closes any open one)",
)
def start_session(engine: IntelligentPuzzleEngine = Depends(get_engine)) -> SessionResponse:
    session_id = engine.start_session()
    return SessionResponse(user_id=engine.user_id, session_id=session_id)


@router.delete(
    "/users/{user_id}/sessions/current",
    response_model=SessionResponse,
    summary="End the current play session",
)
def end_session(engine: IntelligentPuzzleEngine = Depends(get_engine)) -> SessionResponse:
    summary = engine.end_session()
    session_id: Optional[str] = summary.session_id if summary is not None else None
    return SessionResponse(user_id=engine.user_id, session_id=session_id, closed=summary is not None)


# ─────────────────────────────────────────────
# Observability
# ─────────────────────────────────────────────

@router.get(
    "/users/{user_id}/metrics",
    response_model=MetricsResponse,
    summary="Dashboard metrics (camelCase contract)",
)
def get_metrics(engine: IntelligentPuzzleEngine = Depends(get_engine)) -> MetricsResponse:
    return engine.get_metrics()


@router.get(
    "/users/{user_id}/learning-metrics",
    response_model=LearningMetrics,
    summary="Skill, dimensions, state and retention risk",
)
def get_learning_metrics(engine: IntelligentPuzzleEngine = Depends(get_engine)) -> LearningMetrics:
    return engine.get_learning_metrics()


@router.get(
    "/users/{user_id}/state",
    response_model=StateResponse,
    summary="Current classification and pool allocation",
)
def get_state(engine: IntelligentPuzzleEngine = Depends(get_engine)) -> StateResponse:
    snapshot = engine.current_state()
    c = snapshot.classification
    return StateResponse(
        user_id=engine.user_id,
        primary_state=c.primary_state.value,
        modifiers=sorted(m.value for m in c.modifiers),
        learning_trend=c.learning_trend.value,
        recent_success_rate=c.recent_success_rate,
        sample_count=c.sample_count,
        allocation=snapshot.allocation.as_list(),
    )


# ─────────────────────────────────────────────
# Preferences
# ─────────────────────────────────────────────

@router.put(
    "/users/{user_id}/preferences/{puzzle_type}",
    response_model=PreferenceResponse,
    summary="Mark a puzzle type as liked or disliked",
)
def update_preference(
    puzzle_type: str,
    body:        Optional[PreferenceRequest] = None,
    engine:      IntelligentPuzzleEngine = Depends(get_engine),
) -> PreferenceResponse:
    if normalize_puzzle_type(puzzle_type) is None:
        raise HTTPException(status_code=404, detail=f"Unknown puzzle type '{puzzle_type}'.")
    liked = body.liked if body is not None else True
    preferred = engine.update_puzzle_type_preference(puzzle_type, liked)
    return PreferenceResponse(user_id=engine.user_id, preferred_puzzle_types=preferred)
