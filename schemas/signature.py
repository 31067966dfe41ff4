# schemas/signature.py
# PuzzleFlow — Serialized form of a BehavioralSignature.
# The stored JSON is opaque to the engine; only the round trip must be lossless.
# Used by: database/signature_store.py
# Imports from: analysis/behavioral_signature.py, analysis/taxonomy.py, utils/constants.py

from collections import deque
from dataclasses import asdict
from typing import Optional

from pydantic import BaseModel, Field

from analysis.behavioral_signature import (
    BehavioralSignature,
    DimensionEstimate,
    PowerUpEvent,
    ResponseEvent,
    SessionSummary,
    StateTransition,
    TypeStats,
)
from analysis.taxonomy import CognitiveDimension
from utils.constants import (
    DNA_REFS_LIMIT,
    POWER_UP_EVENTS_LIMIT,
    RECENT_SESSIONS_LIMIT,
    SESSION_HISTORY_LIMIT,
    STATE_HISTORY_LIMIT,
)

SCHEMA_VERSION = 1


# ─────────────────────────────────────────────
# Buffer entry records
# ─────────────────────────────────────────────

class ResponseEventRecord(BaseModel):
    puzzle_id:     str
    puzzle_type:   str
    difficulty:    float
    correct:       bool
    solve_time_ms: float
    confidence:    float
    engagement:    float
    used_power_up: bool
    timestamp:     float
    session_id:    Optional[str] = None
    category:      Optional[str] = None


class SessionSummaryRecord(BaseModel):
    session_id:        str
    started_at:        float
    ended_at:          float
    puzzles_attempted: int
    correct:           int
    avg_engagement:    float
    avg_confidence:    float
    satisfaction:      float


class StateTransitionRecord(BaseModel):
    from_state:          Optional[str] = None
    to_state:            str
    timestamp:           float
    recent_success_rate: float


class PowerUpEventRecord(BaseModel):
    puzzle_id: str
    timestamp: float
    correct:   bool


class DimensionEstimateRecord(BaseModel):
    value:   float = Field(..., ge=0.0, le=1.0)
    samples: int   = Field(..., ge=0)


class TypeStatsRecord(BaseModel):
    attempts:       int = 0
    correct:        int = 0
    last_seen_at:   Optional[float] = None
    last_missed_at: Optional[float] = None


# ─────────────────────────────────────────────
# Signature record
# ─────────────────────────────────────────────

class SignatureRecord(BaseModel):
    """
    One row per user in the store. Buffers are stored oldest first and
    rebuilt as bounded deques on load.
    """
    schema_version: int = SCHEMA_VERSION

    user_id:     str
    created_at:  float
    last_active: float

    skill_level: float = Field(..., ge=0.0, le=1.0)
    dimensions:  dict[CognitiveDimension, DimensionEstimateRecord]

    avg_response_time_ms:    float
    hesitation_tendency:     float = Field(..., ge=0.0, le=1.0)
    power_up_dependency:     float = Field(..., ge=0.0, le=1.0)
    flow_duration_min:       float
    optimal_challenge_level: float = Field(..., ge=0.0, le=1.0)
    avg_engagement:          float = Field(..., ge=0.0, le=1.0)
    current_flow_ms:         float = 0.0

    session_history: list[ResponseEventRecord]   = []
    recent_sessions: list[SessionSummaryRecord]  = []
    dna_refs:        list[str]                   = []
    state_history:   list[StateTransitionRecord] = []
    power_up_events: list[PowerUpEventRecord]    = []

    total_puzzles_solved:                  int = 0
    total_correct:                         int = 0
    consecutive_failures:                  int = 0
    consecutive_low_satisfaction_sessions: int = 0
    total_sessions:                        int = 0

    type_stats:             dict[str, TypeStatsRecord] = {}
    preferred_puzzle_types: list[str] = []

    current_session_id:         Optional[str]   = None
    current_session_started_at: Optional[float] = None

    revision: int = Field(default=0, ge=0)

    @classmethod
    def from_signature(cls, signature: BehavioralSignature) -> "SignatureRecord":
        return cls(
            user_id=signature.user_id,
            created_at=signature.created_at,
            last_active=signature.last_active,
            skill_level=signature.skill_level,
            dimensions={d: asdict(est) for d, est in signature.dimensions.items()},
            avg_response_time_ms=signature.avg_response_time_ms,
            hesitation_tendency=signature.hesitation_tendency,
            power_up_dependency=signature.power_up_dependency,
            flow_duration_min=signature.flow_duration_min,
            optimal_challenge_level=signature.optimal_challenge_level,
            avg_engagement=signature.avg_engagement,
            current_flow_ms=signature.current_flow_ms,
            session_history=[asdict(e) for e in signature.session_history],
            recent_sessions=[asdict(s) for s in signature.recent_sessions],
            dna_refs=list(signature.dna_refs),
            state_history=[asdict(t) for t in signature.state_history],
            power_up_events=[asdict(p) for p in signature.power_up_events],
            total_puzzles_solved=signature.total_puzzles_solved,
            total_correct=signature.total_correct,
            consecutive_failures=signature.consecutive_failures,
            consecutive_low_satisfaction_sessions=signature.consecutive_low_satisfaction_sessions,
            total_sessions=signature.total_sessions,
            type_stats={t: asdict(s) for t, s in signature.type_stats.items()},
            preferred_puzzle_types=list(signature.preferred_puzzle_types),
            current_session_id=signature.current_session_id,
            current_session_started_at=signature.current_session_started_at,
            revision=signature.revision,
        )

    def to_signature(self) -> BehavioralSignature:
        return BehavioralSignature(
            user_id=self.user_id,
            created_at=self.created_at,
            last_active=self.last_active,
            skill_level=self.skill_level,
            dimensions={d: DimensionEstimate(**r.model_dump()) for d, r in self.dimensions.items()},
            avg_response_time_ms=self.avg_response_time_ms,
            hesitation_tendency=self.hesitation_tendency,
            power_up_dependency=self.power_up_dependency,
            flow_duration_min=self.flow_duration_min,
            optimal_challenge_level=self.optimal_challenge_level,
            avg_engagement=self.avg_engagement,
            current_flow_ms=self.current_flow_ms,
            session_history=deque(
                (ResponseEvent(**r.model_dump()) for r in self.session_history),
                maxlen=SESSION_HISTORY_LIMIT,
            ),
            recent_sessions=deque(
                (SessionSummary(**r.model_dump()) for r in self.recent_sessions),
                maxlen=RECENT_SESSIONS_LIMIT,
            ),
            dna_refs=deque(self.dna_refs, maxlen=DNA_REFS_LIMIT),
            state_history=deque(
                (StateTransition(**r.model_dump()) for r in self.state_history),
                maxlen=STATE_HISTORY_LIMIT,
            ),
            power_up_events=deque(
                (PowerUpEvent(**r.model_dump()) for r in self.power_up_events),
                maxlen=POWER_UP_EVENTS_LIMIT,
            ),
            total_puzzles_solved=self.total_puzzles_solved,
            total_correct=self.total_correct,
            consecutive_failures=self.consecutive_failures,
            consecutive_low_satisfaction_sessions=self.consecutive_low_satisfaction_sessions,
            total_sessions=self.total_sessions,
            type_stats={t: TypeStats(**r.model_dump()) for t, r in self.type_stats.items()},
            preferred_puzzle_types=list(self.preferred_puzzle_types),
            current_session_id=self.current_session_id,
            current_session_started_at=self.current_session_started_at,
            revision=self.revision,
        )


def dump_signature(signature: BehavioralSignature) -> str:
    return SignatureRecord.from_signature(signature).model_dump_json()


def load_signature(payload: str) -> BehavioralSignature:
    return SignatureRecord.model_validate_json(payload).to_signature()
