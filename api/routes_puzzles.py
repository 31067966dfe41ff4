# api/routes_puzzles.py
# PuzzleFlow — POST /users/{user_id}/puzzles/next
#              POST /users/{user_id}/puzzles/{puzzle_id}/response
# Imports from: api/dependencies.py, engine/errors.py, engine/puzzle_engine.py,
#               schemas/puzzle.py, utils/logger.py

from fastapi import APIRouter, Depends, HTTPException

from analysis.retention import risk_band
from api.dependencies import get_engine
from engine.errors import EmptyCandidatePoolError, UnknownRecommendationError
from engine.puzzle_engine import IntelligentPuzzleEngine, Recommendation, puzzle_payload
from schemas.puzzle import (
    ClassificationSchema,
    DNASchema,
    NextPuzzleRequest,
    RecommendationResponse,
    ResponseAck,
    ResponseRequest,
)
from utils.logger import get_logger

router = APIRouter(tags=["puzzles"])
log    = get_logger("api.routes_puzzles")


# ─────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────

def _to_response(rec: Recommendation) -> RecommendationResponse:
    dna = rec.dna
    return RecommendationResponse(
        puzzle_id=dna.puzzle_id,
        puzzle=puzzle_payload(rec.puzzle),
        dna=DNASchema(
            puzzle_id=dna.puzzle_id,
            puzzle_type=dna.puzzle_type,
            difficulty=dna.difficulty,
            user_engagement=dna.user_engagement,
            success_rate=dna.success_rate,
            generated_at=dna.generated_at,
            sample_count=dna.sample_count,
        ),
        category=rec.category.value,
        selection_reason=rec.selection_reason,
        predicted_success=rec.predicted_success,
        predicted_engagement=rec.predicted_engagement,
        strategic_value=rec.strategic_value,
        classification=ClassificationSchema(**rec.classification.as_dict()),
        allocation=rec.allocation.as_list(),
        fallback_used=rec.fallback_used,
        relaxation_steps=rec.relaxation_steps,
    )


# ─────────────────────────────────────────────
# POST /users/{user_id}/puzzles/next
# ─────────────────────────────────────────────

@router.post(
    "/users/{user_id}/puzzles/next",
    response_model=RecommendationResponse,
    summary="Choose the next puzzle from a candidate pool",
)
def next_puzzle(
    body:   NextPuzzleRequest,
    engine: IntelligentPuzzleEngine = Depends(get_engine),
) -> RecommendationResponse:
    """
    Malformed candidates are skipped. Returns 422 when no valid candidate remains.
    """
    try:
        rec = engine.get_next_puzzle(body.candidates, force_type=body.force_type)
    except EmptyCandidatePoolError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return _to_response(rec)


# ─────────────────────────────────────────────
# POST /users/{user_id}/puzzles/{puzzle_id}/response
# ─────────────────────────────────────────────

@router.post(
    "/users/{user_id}/puzzles/{puzzle_id}/response",
    response_model=ResponseAck,
    summary="Record the user's answer to a recommended puzzle",
)
def record_response(
    puzzle_id: str,
    body:      ResponseRequest,
    engine:    IntelligentPuzzleEngine = Depends(get_engine),
) -> ResponseAck:
    """
    Returns 404 if the puzzle was not recommended to this user (or the
    recommendation was already answered).
    """
    try:
        outcome = engine.record_response_for(
            puzzle_id,
            correct=body.correct,
            solve_time_ms=body.solve_time_ms,
            confidence=body.confidence,
            engagement=body.engagement,
            used_power_up=body.used_power_up,
        )
    except UnknownRecommendationError as exc:
        log.warning("response_for_unknown_puzzle", user_id=engine.user_id, puzzle_id=puzzle_id)
        raise HTTPException(status_code=404, detail=str(exc))

    return ResponseAck(
        recorded=True,
        puzzle_id=outcome.puzzle_id,
        skill_level=outcome.skill_level,
        primary_state=outcome.classification.primary_state.value,
        retention_risk=outcome.retention_risk,
        risk_band=risk_band(outcome.retention_risk),
        persisted=outcome.persisted,
    )
