# schemas/metrics.py
# PuzzleFlow — Pydantic models for user/session/state endpoints.
# getMetrics keeps its camelCase wire shape for dashboard consumers.
# Used by: api/routes_users.py, engine/puzzle_engine.py
# Imports from: pydantic only.

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# ─────────────────────────────────────────────
# Metrics: {userMetrics: {...}, systemMetrics: {...}}
# ─────────────────────────────────────────────

class UserMetrics(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_sessions:       int   = Field(..., alias="totalSessions")
    total_puzzles_solved: int   = Field(..., alias="totalPuzzlesSolved")
    overall_accuracy:     float = Field(..., alias="overallAccuracy", ge=0.0, le=1.0)
    current_skill_level:  float = Field(..., alias="currentSkillLevel", ge=0.0, le=1.0)


class SystemMetrics(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    storage_size: int = Field(..., alias="storageSize", ge=0)


class MetricsResponse(BaseModel):
    """
    Returned by:
        GET /users/{user_id}/metrics
    """
    model_config = ConfigDict(populate_by_name=True)

    user_metrics:   UserMetrics   = Field(..., alias="userMetrics")
    system_metrics: SystemMetrics = Field(..., alias="systemMetrics")


# ─────────────────────────────────────────────
# Learning metrics
# ─────────────────────────────────────────────

class LearningMetrics(BaseModel):
    """
    Returned by:
        GET /users/{user_id}/learning-metrics
    """
    skill_level:             float
    dimensions:              dict[str, float]
    dimension_confidence:    dict[str, float]
    recent_success_rate:     float
    learning_trend:          str
    primary_state:           str
    modifiers:               list[str]
    avg_response_time_ms:    float
    avg_engagement:          float
    flow_duration_min:       float
    optimal_challenge_level: float
    power_up_dependency:     float
    consecutive_failures:    int
    preferred_puzzle_types:  list[str]
    type_success_rates:      dict[str, float]
    retention_risk:          float
    risk_band:               str
    learning_style:          str               # visual | logical | mathematical | mixed
    progression_cap:         Optional[float]   # None once past the early-progression puzzles
    state_history:           list[dict]


# ─────────────────────────────────────────────
# Session / state / preference bodies
# ─────────────────────────────────────────────

class InitializeResponse(BaseModel):
    user_id:     str
    initialized: bool
    degraded:    bool = False    # True when storage was unreachable


class SessionResponse(BaseModel):
    user_id:    str
    session_id: Optional[str]
    closed:     bool = False


class StateResponse(BaseModel):
    user_id:             str
    primary_state:       str
    modifiers:           list[str]
    learning_trend:      str
    recent_success_rate: float
    sample_count:        int
    allocation:          list[int]


class PreferenceRequest(BaseModel):
    liked: bool = True


class PreferenceResponse(BaseModel):
    user_id:                str
    preferred_puzzle_types: list[str]
