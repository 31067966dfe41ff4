# utils/config.py
# PuzzleFlow — Engine configuration. Defaults come from utils/constants.py;
# deployments override policy numbers through PUZZLEFLOW_* environment variables.
# Imports from: utils/constants.py

import json
import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

from utils import constants as C


# ─────────────────────────────────────────────
# Classification thresholds
# Values are tunable policy; only their relative ordering is enforced.
# ─────────────────────────────────────────────

class ClassificationThresholds(BaseModel):
    new_user_puzzle_count:      int   = Field(default=C.NEW_USER_PUZZLE_COUNT, ge=1)

    child_response_time_ms:     float = C.CHILD_RESPONSE_TIME_MS
    child_skill_level_max:      float = Field(default=C.CHILD_SKILL_LEVEL_MAX, ge=0.0, le=1.0)
    child_puzzle_count_min:     int   = C.CHILD_PUZZLE_COUNT_MIN
    child_puzzle_count_max:     int   = C.CHILD_PUZZLE_COUNT_MAX
    child_math_capability_max:  float = Field(default=C.CHILD_MATH_CAPABILITY_MAX, ge=0.0, le=1.0)

    severely_struggling_rate:   float = Field(default=C.SEVERELY_STRUGGLING_RATE, ge=0.0, le=1.0)
    struggling_rate:            float = Field(default=C.STRUGGLING_RATE, ge=0.0, le=1.0)
    progressing_rate:           float = Field(default=C.PROGRESSING_RATE, ge=0.0, le=1.0)
    excelling_rate:             float = Field(default=C.EXCELLING_RATE, ge=0.0, le=1.0)
    expert_demanding_rate:      float = Field(default=C.EXPERT_DEMANDING_RATE, ge=0.0, le=1.0)
    expert_min_difficulty:      float = Field(default=C.EXPERT_MIN_DIFFICULTY, ge=0.0, le=1.0)

    recent_window_size:         int   = Field(default=C.RECENT_WINDOW_SIZE, ge=1)
    trend_dead_band:            float = Field(default=C.TREND_DEAD_BAND, ge=0.0)

    confidence_crisis_failures: int   = Field(default=C.CONFIDENCE_CRISIS_FAILURES, ge=1)
    disengaged_threshold:       float = Field(default=C.DISENGAGED_THRESHOLD, ge=0.0, le=1.0)
    power_dependency_threshold: float = Field(default=C.POWER_DEPENDENCY_THRESHOLD, ge=0.0, le=1.0)
    long_session_ms:            int   = Field(default=C.LONG_SESSION_MS, ge=0)
    fatigue_accuracy_drop:      float = Field(default=C.FATIGUE_ACCURACY_DROP, ge=0.0)
    session_decline_drop:       float = Field(default=C.SESSION_DECLINE_DROP, ge=0.0)
    session_decline_min_events: int   = Field(default=C.SESSION_DECLINE_MIN_EVENTS, ge=2)

    @model_validator(mode="after")
    def _bands_are_ordered(self) -> "ClassificationThresholds":
        bands = [
            self.severely_struggling_rate,
            self.struggling_rate,
            self.progressing_rate,
            self.excelling_rate,
            self.expert_demanding_rate,
        ]
        if bands != sorted(bands):
            raise ValueError(f"success-rate bands must be ascending, got {bands}")
        if self.child_puzzle_count_min > self.child_puzzle_count_max:
            raise ValueError("child_puzzle_count_min must not exceed child_puzzle_count_max")
        return self


# ─────────────────────────────────────────────
# Selection settings
# ─────────────────────────────────────────────

class SelectionSettings(BaseModel):
    strength_established_puzzles: int   = Field(default=C.STRENGTH_ESTABLISHED_PUZZLES, ge=0)
    confidence_max_difficulty:    float = Field(default=C.CONFIDENCE_MAX_DIFFICULTY, ge=0.0, le=1.0)
    skill_band_half_width:        float = Field(default=C.SKILL_BAND_HALF_WIDTH, ge=0.0, le=1.0)
    challenge_min_difficulty:     float = Field(default=C.CHALLENGE_MIN_DIFFICULTY, ge=0.0, le=1.0)
    challenge_skill_offset:       float = Field(default=C.CHALLENGE_SKILL_OFFSET, ge=0.0, le=1.0)
    recovery_max_difficulty:      float = Field(default=C.RECOVERY_MAX_DIFFICULTY, ge=0.0, le=1.0)
    band_relax_step:              float = Field(default=C.BAND_RELAX_STEP, gt=0.0, le=1.0)
    max_relax_steps:              int   = Field(default=C.MAX_RELAX_STEPS, ge=0)
    variety_lookback:             int   = Field(default=C.VARIETY_LOOKBACK, ge=1)
    max_difficulty:               Optional[float] = Field(
        default=None, ge=0.0, le=1.0,
        description="Optional global difficulty cap applied to every band",
    )
    rng_seed:                     Optional[int] = None
    progression_cap:              bool = Field(
        default=False,
        description="Cap difficulty by the early-progression curve during the first puzzles",
    )


# ─────────────────────────────────────────────
# Storage settings
# ─────────────────────────────────────────────

class StorageSettings(BaseModel):
    timeout_s:    float = Field(default=C.STORAGE_TIMEOUT_S, gt=0.0)
    database_url: str   = "sqlite:///./puzzleflow.db"


# ─────────────────────────────────────────────
# Top-level config
# ─────────────────────────────────────────────

class EngineConfig(BaseModel):
    classification: ClassificationThresholds = Field(default_factory=ClassificationThresholds)
    selection:      SelectionSettings        = Field(default_factory=SelectionSettings)
    storage:        StorageSettings          = Field(default_factory=StorageSettings)
    logging_enabled: bool = True

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """
        Builds config from the process environment (after loading .env).

        Recognised variables:
            PUZZLEFLOW_STORAGE_TIMEOUT_S   float
            PUZZLEFLOW_MAX_DIFFICULTY      float in [0, 1]
            PUZZLEFLOW_RNG_SEED            int
            PUZZLEFLOW_PROGRESSION_CAP     "true" | "false"
            PUZZLEFLOW_LOGGING_ENABLED     "true" | "false"
            DATABASE_URL                   SQLAlchemy URL
            PUZZLEFLOW_THRESHOLDS          JSON object of ClassificationThresholds overrides
        """
        load_dotenv()

        storage: dict = {}
        selection: dict = {}
        classification: dict = {}

        if os.getenv("PUZZLEFLOW_STORAGE_TIMEOUT_S"):
            storage["timeout_s"] = float(os.environ["PUZZLEFLOW_STORAGE_TIMEOUT_S"])
        if os.getenv("DATABASE_URL"):
            storage["database_url"] = os.environ["DATABASE_URL"]
        if os.getenv("PUZZLEFLOW_MAX_DIFFICULTY"):
            selection["max_difficulty"] = float(os.environ["PUZZLEFLOW_MAX_DIFFICULTY"])
        if os.getenv("PUZZLEFLOW_RNG_SEED"):
            selection["rng_seed"] = int(os.environ["PUZZLEFLOW_RNG_SEED"])
        if os.getenv("PUZZLEFLOW_PROGRESSION_CAP"):
            selection["progression_cap"] = os.environ["PUZZLEFLOW_PROGRESSION_CAP"].lower() == "true"
        if os.getenv("PUZZLEFLOW_THRESHOLDS"):
            classification = json.loads(os.environ["PUZZLEFLOW_THRESHOLDS"])

        logging_enabled = os.getenv("PUZZLEFLOW_LOGGING_ENABLED", "true").lower() != "false"

        return cls(
            classification=ClassificationThresholds(**classification),
            selection=SelectionSettings(**selection),
            storage=StorageSettings(**storage),
            logging_enabled=logging_enabled,
        )
