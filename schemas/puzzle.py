# schemas/puzzle.py
# PuzzleFlow — Pydantic models for puzzle candidates and the puzzle endpoints.
# Used by: api/routes_puzzles.py, engine/puzzle_engine.py
# Imports from: pydantic only.

from typing import Any, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


# ─────────────────────────────────────────────
# Generator candidate contract
# Structural problems (missing type, < 2 options) are NOT rejected here:
# the engine excludes such candidates with a warning so one bad generator
# does not fail the whole request.
# ─────────────────────────────────────────────

class PuzzleCandidate(BaseModel):
    """
    One candidate puzzle from an external generator. Unknown fields are kept
    and returned untouched with the recommendation.
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    semantic_id:          Optional[Union[str, int]] = Field(
        default=None, validation_alias=AliasChoices("semantic_id", "id", "puzzle_id"),
    )
    question:             Optional[Any] = None
    options:              Optional[list[Any]] = None
    correct_answer_index: Optional[int] = None
    puzzle_type:          Optional[str] = Field(
        default=None, validation_alias=AliasChoices("puzzle_type", "type"),
    )
    difficulty_label:     Optional[str] = Field(
        default=None, validation_alias=AliasChoices("difficulty_label", "difficulty"),
    )


# ─────────────────────────────────────────────
# Requests
# ─────────────────────────────────────────────

class NextPuzzleRequest(BaseModel):
    candidates: list[PuzzleCandidate]
    force_type: Optional[str] = None


class ResponseRequest(BaseModel):
    correct:       bool
    solve_time_ms: float = Field(..., ge=0.0, allow_inf_nan=False)
    confidence:    float = Field(default=0.5, ge=0.0, le=1.0, allow_inf_nan=False)
    engagement:    float = Field(default=0.7, ge=0.0, le=1.0, allow_inf_nan=False)
    used_power_up: bool  = False


# ─────────────────────────────────────────────
# Responses
# ─────────────────────────────────────────────

class DNASchema(BaseModel):
    puzzle_id:       str
    puzzle_type:     str
    difficulty:      float = Field(..., ge=0.0, le=1.0)
    user_engagement: float = Field(..., ge=0.0, le=1.0)
    success_rate:    float = Field(..., ge=0.0, le=1.0)
    generated_at:    float
    sample_count:    int


class ClassificationSchema(BaseModel):
    primary_state:       str
    modifiers:           list[str]
    learning_trend:      str
    recent_success_rate: float
    sample_count:        int


class RecommendationResponse(BaseModel):
    """
    Returned by:
        POST /users/{user_id}/puzzles/next
    """
    puzzle_id:            str
    puzzle:               dict[str, Any]
    dna:                  DNASchema
    category:             str
    selection_reason:     str        # "<category>:<puzzle_type>"
    predicted_success:    float
    predicted_engagement: float
    strategic_value:      float
    classification:       ClassificationSchema
    allocation:           list[int]
    fallback_used:        bool
    relaxation_steps:     int


class ResponseAck(BaseModel):
    """
    Returned by:
        POST /users/{user_id}/puzzles/{puzzle_id}/response
    """
    recorded:       bool
    puzzle_id:      str
    skill_level:    float
    primary_state:  str
    retention_risk: float
    risk_band:      str
    persisted:      bool      # False when the save is pending a retry
