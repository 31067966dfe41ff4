# engine/puzzle_engine.py
# PuzzleFlow — Intelligent Puzzle Engine: picks the next puzzle for one user
# and folds each response back into that user's Behavioral Signature.
# No ML involved. Classify → plan → sample category → band filter → rank.
# Imports from: analysis/*.py, database/signature_store.py, engine/errors.py,
#               schemas/metrics.py, utils/config.py, utils/constants.py, utils/logger.py

import copy
import math
import random
import threading
import time
import uuid
from collections import OrderedDict, deque
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

from analysis.behavioral_signature import (
    BehavioralSignature,
    ResponseEvent,
    SessionSummary,
    apply_response,
    check_response_values,
    default_signature,
    end_session as close_session,
    record_state_transition,
    start_session as open_session,
    update_preference,
)
from analysis.learner_traits import learning_style, progression_cap, style_label
from analysis.pool_planner import PoolAllocation, StrengthProfile, plan
from analysis.puzzle_dna import (
    UNKNOWN_TYPE,
    DNAObservation,
    PuzzleDNA,
    PuzzleDNAAnalyzer,
    candidate_field,
    puzzle_type_of,
)
from analysis.retention import estimate_retention_risk, risk_band
from analysis.state_classifier import ClassificationResult, classify
from analysis.taxonomy import (
    POOL_CATEGORIES,
    STATE_DIFFICULTY_CEILING,
    TYPE_DIMENSIONS,
    TYPE_FAMILY,
    PoolCategory,
    TypeFamily,
    normalize_puzzle_type,
)
from database.signature_store import SignatureStore
from engine.errors import (
    EmptyCandidatePoolError,
    StorageUnavailableError,
    UnknownRecommendationError,
)
from schemas.metrics import LearningMetrics, MetricsResponse, SystemMetrics, UserMetrics
from utils.config import EngineConfig
from utils.constants import (
    MIN_CANDIDATE_OPTIONS,
    NOVELTY_BONUS,
    OBSERVED_FAILURE_SIGNAL,
    OBSERVED_SUCCESS_SIGNAL,
    PENDING_RECOMMENDATIONS_LIMIT,
    POOL_SIZE,
    PREDICTION_SLOPE,
)
from utils.logger import get_logger

log = get_logger("engine.puzzle_engine")

_EPS = 1e-9


# ─────────────────────────────────────────────
# Output contracts
# ─────────────────────────────────────────────

@dataclass
class Recommendation:
    puzzle:               Any                 # the candidate exactly as supplied
    dna:                  PuzzleDNA
    category:             PoolCategory
    selection_reason:     str                 # "<category>:<puzzle_type>"
    predicted_success:    float
    predicted_engagement: float
    strategic_value:      float
    classification:       ClassificationResult
    allocation:           PoolAllocation
    fallback_used:        bool                # no band match; chose from the whole pool
    relaxation_steps:     int                 # ±0.1 widenings applied before a match
    recommended_at:       float

    @property
    def puzzle_id(self) -> str:
        return self.dna.puzzle_id


@dataclass
class ResponseOutcome:
    puzzle_id:      str
    skill_level:    float
    skill_step:     float
    classification: ClassificationResult
    retention_risk: float
    persisted:      bool                      # False → save pending retry


@dataclass
class StateSnapshot:
    classification: ClassificationResult
    allocation:     PoolAllocation


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


# ─────────────────────────────────────────────
# Engine
# ─────────────────────────────────────────────

class IntelligentPuzzleEngine:
    """
    One instance models exactly one user. Every public operation holds the
    instance lock, so get_next_puzzle / record_response / session calls for a
    user never interleave; different users use different instances.
    """

    def __init__(
        self,
        user_id:  str,
        store:    SignatureStore,
        analyzer: Optional[PuzzleDNAAnalyzer] = None,
        config:   Optional[EngineConfig] = None,
        rng:      Optional[random.Random] = None,
        executor: Optional[ThreadPoolExecutor] = None,
        clock:    Callable[[], float] = time.time,
    ) -> None:
        self.user_id = user_id
        self.store = store
        self.analyzer = analyzer if analyzer is not None else PuzzleDNAAnalyzer()
        self.config = config or EngineConfig()
        self.rng = rng if rng is not None else random.Random(self.config.selection.rng_seed)
        self._clock = clock

        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix=f"puzzleflow-storage-{user_id}",
        )

        self._lock = threading.RLock()
        self._profile: Optional[BehavioralSignature] = None   # last known good copy
        self._pending_save = False
        self._degraded = False
        self._unsaved_new_profile = False
        self._recent_types: deque = deque(maxlen=self.config.selection.variety_lookback)
        self._pending: "OrderedDict[str, Recommendation]" = OrderedDict()

        self._log = log.bind(user_id=user_id).muted(not self.config.logging_enabled)

    # ── Storage plumbing ──────────────────────

    @property
    def degraded(self) -> bool:
        """True when the last storage interaction failed."""
        return self._degraded

    @property
    def save_pending(self) -> bool:
        return self._pending_save

    @property
    def recent_recommendation_types(self) -> list[str]:
        return list(self._recent_types)

    def _call_store(self, operation: str, fn: Callable, *args: Any) -> Any:
        """Runs a store call on the storage pool, bounded by the configured timeout."""
        timeout = self.config.storage.timeout_s
        future = self._executor.submit(fn, *args)
        try:
            return future.result(timeout=timeout)
        except FuturesTimeout as exc:
            future.cancel()
            raise StorageUnavailableError(operation, self.user_id, f"timed out after {timeout}s") from exc
        except StorageUnavailableError:
            raise
        except Exception as exc:
            raise StorageUnavailableError(operation, self.user_id, repr(exc)) from exc

    def _flush_pending(self) -> None:
        if not self._pending_save or self._profile is None:
            return
        try:
            self._call_store("save", self.store.save, self.user_id, copy.deepcopy(self._profile))
        except StorageUnavailableError as exc:
            self._log.critical("storage_degraded", operation="save_retry", error=str(exc))
            self._degraded = True
            return
        self._pending_save = False
        self._degraded = False
        self._log.info("pending_save_flushed")

    def _current_profile(self) -> tuple[BehavioralSignature, bool]:
        """
        Returns (profile, authoritative).

        authoritative is False only when the store could not be read and no
        in-memory copy exists; such a default profile must never be saved over
        whatever the store really holds.
        """
        if self._pending_save:
            self._flush_pending()
            return self._profile, True

        try:
            loaded = self._call_store("load", self.store.load, self.user_id)
        except StorageUnavailableError as exc:
            self._degraded = True
            self._log.critical(
                "storage_degraded",
                operation="load",
                error=str(exc),
                fallback="last_known" if self._profile is not None else "default_profile",
            )
            if self._profile is not None:
                return self._profile, True
            return default_signature(self.user_id, self._clock()), False

        self._degraded = False
        self._unsaved_new_profile = loaded is None
        if loaded is None:
            loaded = default_signature(self.user_id, self._clock())
        self._profile = loaded
        return loaded, True

    def _save(self, working: BehavioralSignature, authoritative: bool) -> bool:
        """
        All-or-nothing: `working` becomes the engine's profile only here.
        On failure the copy is kept in memory and saved on the next request.
        """
        if not authoritative:
            self._log.critical("storage_degraded", operation="save", error="profile not loaded; update not persisted")
            return False

        # A retried flush reuses this revision, so a timed-out write that
        # lands later ties with it instead of overwriting newer state
        working.revision += 1
        self._profile = working
        try:
            self._call_store("save", self.store.save, self.user_id, copy.deepcopy(working))
        except StorageUnavailableError as exc:
            self._pending_save = True
            self._degraded = True
            self._log.critical("storage_degraded", operation="save", error=str(exc), retry="next_request")
            return False

        self._pending_save = False
        self._degraded = False
        self._unsaved_new_profile = False
        return True

    # ── Lifecycle ─────────────────────────────

    def initialize(self) -> bool:
        """
        Loads or creates the user's signature. Safe to call repeatedly.
        Returns False when storage is unavailable (the engine still works
        from an in-memory profile).
        """
        with self._lock:
            profile, authoritative = self._current_profile()
            if not authoritative:
                return False
            if self._unsaved_new_profile:
                if not self._save(profile, authoritative=True):
                    return False
                self._log.info("profile_created")
            return not self._degraded

    def retirable(self) -> bool:
        """True when no call is in flight and nothing is waiting to be saved."""
        if not self._lock.acquire(blocking=False):
            return False
        try:
            return not self._pending_save
        finally:
            self._lock.release()

    def close(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=False)

    def start_session(self) -> str:
        with self._lock:
            profile, authoritative = self._current_profile()
            working = copy.deepcopy(profile)
            session_id = uuid.uuid4().hex
            open_session(working, session_id, self._clock())
            self._save(working, authoritative)
            self._log.info("session_started", session_id=session_id)
            return session_id

    def end_session(self) -> Optional[SessionSummary]:
        with self._lock:
            profile, authoritative = self._current_profile()
            if profile.current_session_id is None:
                return None
            working = copy.deepcopy(profile)
            summary = close_session(working, self._clock())
            self._save(working, authoritative)
            return summary

    def reset(self) -> bool:
        """Deletes the stored signature and forgets all in-memory state."""
        with self._lock:
            self._profile = None
            self._pending_save = False
            self._pending.clear()
            self._recent_types.clear()
            try:
                deleted = self._call_store("delete", self.store.delete, self.user_id)
            except StorageUnavailableError as exc:
                self._degraded = True
                self._log.critical("storage_degraded", operation="delete", error=str(exc))
                return False
            self._degraded = False
            self._log.info("profile_reset", deleted=bool(deleted))
            return True

    # ── Candidate screening ───────────────────

    def _screen(self, candidate_pool: Sequence[Any]) -> list[Any]:
        valid = []
        for index, candidate in enumerate(candidate_pool or []):
            raw_type = candidate_field(candidate, "puzzle_type", "type")
            options = candidate_field(candidate, "options")
            reason = None
            if not isinstance(raw_type, str) or not raw_type.strip():
                reason = "missing_type"
            elif options is None or isinstance(options, (str, bytes)):
                reason = "missing_options"
            else:
                try:
                    if len(options) < MIN_CANDIDATE_OPTIONS:
                        reason = "too_few_options"
                except TypeError:
                    reason = "missing_options"
            if reason:
                self._log.warning("candidate_excluded", index=index, reason=reason)
                continue
            valid.append(candidate)
        return valid

    # ── Category sampling ─────────────────────

    def _sample_category(self, allocation: PoolAllocation) -> PoolCategory:
        """Weighted draw over the allocation using the injected RNG."""
        draw = self.rng.random() * POOL_SIZE
        cumulative = 0
        last_nonzero = PoolCategory.CONFIDENCE
        for category, weight in zip(POOL_CATEGORIES, allocation.as_list()):
            if weight <= 0:
                continue
            cumulative += weight
            last_nonzero = category
            if draw < cumulative:
                return category
        return last_nonzero

    # ── Band filtering ────────────────────────

    def _ceiling(self, classification: ClassificationResult, profile: BehavioralSignature) -> float:
        ceiling = STATE_DIFFICULTY_CEILING.get(classification.primary_state, 1.0)
        if self.config.selection.progression_cap:
            cap = progression_cap(profile, self.config.classification.recent_window_size)
            if cap is not None:
                ceiling = min(ceiling, cap)
        global_cap = self.config.selection.max_difficulty
        if global_cap is not None:
            ceiling = min(ceiling, global_cap)
        return ceiling

    def _band(
        self,
        category: PoolCategory,
        profile:  BehavioralSignature,
        ceiling:  float,
    ) -> tuple[float, float]:
        s = self.config.selection
        skill = profile.skill_level
        if category is PoolCategory.CONFIDENCE:
            lo, hi = 0.0, s.confidence_max_difficulty
        elif category is PoolCategory.SKILL:
            lo, hi = skill - s.skill_band_half_width, skill + s.skill_band_half_width
        elif category is PoolCategory.CHALLENGE:
            lo, hi = max(skill + s.challenge_skill_offset, s.challenge_min_difficulty), 1.0
        elif category is PoolCategory.RECOVERY:
            lo, hi = 0.0, s.recovery_max_difficulty
        else:
            lo, hi = 0.0, 1.0
        hi = min(max(hi, 0.0), ceiling)
        lo = min(max(lo, 0.0), hi)
        return lo, hi

    def _filter_band(
        self,
        scored:   list[tuple[Any, PuzzleDNA]],
        lo:       float,
        hi:       float,
        ceiling:  float,
    ) -> tuple[list[tuple[Any, PuzzleDNA]], int, bool]:
        """
        Returns (matches, relaxation_steps, fallback_used). Widens the band by
        band_relax_step on both sides (never past the ceiling) until something
        matches; after max_relax_steps the whole pool is used.
        """
        s = self.config.selection
        for step in range(s.max_relax_steps + 1):
            band_lo = max(0.0, lo - step * s.band_relax_step)
            band_hi = min(ceiling, hi + step * s.band_relax_step)
            matches = [
                (c, dna) for c, dna in scored
                if band_lo - _EPS <= dna.difficulty <= band_hi + _EPS
            ]
            if matches:
                if step:
                    self._log.debug("band_relaxed", steps=step, lo=round(band_lo, 3), hi=round(band_hi, 3))
                return matches, step, False
        self._log.warning("band_fallback", lo=round(lo, 3), hi=round(hi, 3), ceiling=ceiling)
        return list(scored), s.max_relax_steps, True

    # ── Ranking ───────────────────────────────

    def _rank_key(
        self,
        category:     PoolCategory,
        profile:      BehavioralSignature,
        recent_types: set[str],
        comfort:      set[str],
        style:        Optional[TypeFamily] = None,
    ) -> Callable[[tuple[Any, PuzzleDNA]], tuple]:
        """Sort key, lower is better. The last element is the variety tiebreak."""
        skill = profile.skill_level
        recommended = set(self._recent_types)

        def off_style(puzzle_type: str) -> int:
            if style is None:
                return 0
            known = normalize_puzzle_type(puzzle_type)
            return 0 if known is not None and TYPE_FAMILY[known] is style else 1

        def last_seen(puzzle_type: str) -> float:
            stats = profile.type_stats.get(puzzle_type)
            if stats is None or stats.last_seen_at is None:
                return float("-inf")
            return stats.last_seen_at

        def key(item: tuple[Any, PuzzleDNA]) -> tuple:
            dna = item[1]
            t, d = dna.puzzle_type, dna.difficulty
            if category is PoolCategory.CONFIDENCE:
                primary = (0 if t in comfort else 1, off_style(t), d)
            elif category is PoolCategory.SKILL:
                primary = (abs(d - skill),)
            elif category is PoolCategory.CHALLENGE:
                primary = (1 if t in recommended else 0, -d)
            elif category is PoolCategory.RECOVERY:
                stats = profile.type_stats.get(t)
                missed_at = stats.last_missed_at if stats is not None else None
                primary = (
                    0 if missed_at is not None else 1,
                    -(missed_at or 0.0),
                    d,
                )
            else:
                primary = (
                    1 if t in recent_types else 0,
                    1 if t in recommended else 0,
                    off_style(t),
                    abs(d - skill),
                )
            return primary + (last_seen(t),)

        return key

    def _comfort_types(self, profile: BehavioralSignature) -> set[str]:
        """Types the user has succeeded at, likes, or that exercise their strongest dimension."""
        comfort = profile.succeeded_types() | set(profile.preferred_puzzle_types)
        strongest = profile.strongest_dimension()
        if strongest is not None:
            comfort |= {t.value for t, dims in TYPE_DIMENSIONS.items() if strongest in dims}
        return comfort

    # ── Predictions ───────────────────────────

    @staticmethod
    def _predicted_success(profile: BehavioralSignature, dna: PuzzleDNA) -> float:
        logistic = 1.0 / (1.0 + math.exp(-PREDICTION_SLOPE * (profile.skill_level - dna.difficulty)))
        return _clamp(0.5 * logistic + 0.5 * dna.success_rate)

    @staticmethod
    def _predicted_engagement(profile: BehavioralSignature, dna: PuzzleDNA) -> float:
        fit = 1.0 - abs(dna.difficulty - profile.optimal_challenge_level)
        return _clamp(0.5 * dna.user_engagement + 0.5 * fit)

    def _strategic_value(
        self,
        allocation:   PoolAllocation,
        category:     PoolCategory,
        dna:          PuzzleDNA,
        recent_types: set[str],
    ) -> float:
        novel = dna.puzzle_type not in recent_types and dna.puzzle_type not in self._recent_types
        return _clamp(allocation.share_of(category) + (NOVELTY_BONUS if novel else 0.0))

    # ── Public: selection ─────────────────────

    def _plan_for(self, profile: BehavioralSignature) -> StateSnapshot:
        classification = classify(profile, thresholds=self.config.classification)
        allocation = plan(
            classification.primary_state,
            classification.modifiers,
            StrengthProfile.from_signature(profile),
            established=self.config.selection.strength_established_puzzles,
        )
        return StateSnapshot(classification=classification, allocation=allocation)

    def get_next_puzzle(
        self,
        candidate_pool: Sequence[Any],
        force_type:     Optional[str] = None,
    ) -> Recommendation:
        """
        Chooses one candidate for this user.

        Raises:
            EmptyCandidatePoolError: the pool is empty or every candidate is malformed.
        """
        with self._lock:
            pool = list(candidate_pool or [])
            valid = self._screen(pool)
            if not valid:
                self._log.warning("candidate_pool_empty", pool_size=len(pool))
                raise EmptyCandidatePoolError(pool_size=len(pool), excluded=len(pool))

            profile, _ = self._current_profile()
            snapshot = self._plan_for(profile)
            classification, allocation = snapshot.classification, snapshot.allocation

            scored = [(candidate, self.analyzer.analyze(candidate)) for candidate in valid]

            if force_type:
                forced = normalize_puzzle_type(force_type)
                wanted = forced.value if forced is not None else force_type.strip().lower()
                narrowed = [item for item in scored if item[1].puzzle_type == wanted]
                if narrowed:
                    scored = narrowed
                else:
                    self._log.warning("force_type_unavailable", force_type=force_type)

            category = self._sample_category(allocation)
            ceiling = self._ceiling(classification, profile)
            lo, hi = self._band(category, profile, ceiling)
            matches, steps, fallback = self._filter_band(scored, lo, hi, ceiling)

            recent_types = {e.puzzle_type for e in profile.recent_window(self.config.classification.recent_window_size)}
            style = learning_style(profile)
            key = self._rank_key(category, profile, recent_types, self._comfort_types(profile), style)
            candidate, dna = min(matches, key=key)

            recommendation = Recommendation(
                puzzle=candidate,
                dna=dna,
                category=category,
                selection_reason=f"{category.value}:{dna.puzzle_type}",
                predicted_success=self._predicted_success(profile, dna),
                predicted_engagement=self._predicted_engagement(profile, dna),
                strategic_value=self._strategic_value(allocation, category, dna, recent_types),
                classification=classification,
                allocation=allocation,
                fallback_used=fallback,
                relaxation_steps=steps,
                recommended_at=self._clock(),
            )

            self._recent_types.append(dna.puzzle_type)
            self._pending.pop(dna.puzzle_id, None)
            self._pending[dna.puzzle_id] = recommendation
            while len(self._pending) > PENDING_RECOMMENDATIONS_LIMIT:
                self._pending.popitem(last=False)

            self._log.info(
                "puzzle_selected",
                puzzle_id=dna.puzzle_id,
                selection_reason=recommendation.selection_reason,
                difficulty=round(dna.difficulty, 4),
                state=classification.primary_state.value,
                modifiers=sorted(m.value for m in classification.modifiers),
                allocation=allocation.as_list(),
                band=[round(lo, 3), round(hi, 3)],
                ceiling=round(ceiling, 3),
                learning_style=style_label(style),
                relaxation_steps=steps,
                fallback=fallback,
                excluded=len(pool) - len(valid),
            )
            return recommendation

    # ── Public: responses ─────────────────────

    def record_response(
        self,
        recommendation: Recommendation,
        correct:        bool,
        solve_time_ms:  float,
        confidence:     float = 0.5,
        engagement:     float = 0.7,
        used_power_up:  bool = False,
    ) -> ResponseOutcome:
        """
        Updates puzzle DNA, then the user's signature (on a working copy),
        records any state transition, and saves. A failed save leaves the
        stored signature untouched and is retried on the next request.

        Raises:
            ValueError: a non-finite time, confidence or engagement. Neither the
                        puzzle DNA nor the signature is changed.
        """
        with self._lock:
            now = self._clock()
            check_response_values(solve_time_ms, confidence, engagement)
            signal = OBSERVED_SUCCESS_SIGNAL if correct else OBSERVED_FAILURE_SIGNAL
            self.analyzer.update(
                recommendation.dna.puzzle_id,
                DNAObservation(success_rate=signal, engagement=_clamp(engagement)),
            )

            profile, authoritative = self._current_profile()
            working = copy.deepcopy(profile)
            if working.current_session_id is None:
                open_session(working, uuid.uuid4().hex, now)

            event = ResponseEvent(
                puzzle_id=recommendation.dna.puzzle_id,
                puzzle_type=recommendation.dna.puzzle_type,
                difficulty=recommendation.dna.difficulty,
                correct=bool(correct),
                solve_time_ms=solve_time_ms,
                confidence=confidence,
                engagement=engagement,
                used_power_up=bool(used_power_up),
                timestamp=now,
                session_id=working.current_session_id,
                category=recommendation.category.value,
            )
            step = apply_response(working, event)

            classification = classify(working, thresholds=self.config.classification)
            record_state_transition(
                working,
                classification.primary_state.value,
                classification.recent_success_rate,
                now,
            )

            persisted = self._save(working, authoritative)
            self._pending.pop(recommendation.dna.puzzle_id, None)

            risk = estimate_retention_risk(working, classification, self.config.classification.recent_window_size)
            self._log.info(
                "response_recorded",
                puzzle_id=recommendation.dna.puzzle_id,
                correct=bool(correct),
                skill_level=round(working.skill_level, 4),
                skill_step=round(step, 4),
                state=classification.primary_state.value,
                persisted=persisted,
            )
            self._log.info("retention_risk_computed", risk=round(risk, 4), band=risk_band(risk))

            return ResponseOutcome(
                puzzle_id=recommendation.dna.puzzle_id,
                skill_level=working.skill_level,
                skill_step=step,
                classification=classification,
                retention_risk=risk,
                persisted=persisted,
            )

    def record_response_for(self, puzzle_id: str, **response: Any) -> ResponseOutcome:
        """record_response for an outstanding recommendation looked up by puzzle id."""
        with self._lock:
            recommendation = self._pending.get(puzzle_id)
            if recommendation is None:
                raise UnknownRecommendationError(self.user_id, puzzle_id)
            return self.record_response(recommendation, **response)

    # ── Public: read-only views ───────────────

    def current_state(self) -> StateSnapshot:
        with self._lock:
            profile, _ = self._current_profile()
            return self._plan_for(profile)

    def get_retention_risk(self, profile: Optional[BehavioralSignature] = None) -> float:
        """Observability only; never influences selection."""
        with self._lock:
            if profile is None:
                profile, _ = self._current_profile()
            classification = classify(profile, thresholds=self.config.classification)
            return estimate_retention_risk(profile, classification, self.config.classification.recent_window_size)

    def get_metrics(self) -> MetricsResponse:
        with self._lock:
            profile, _ = self._current_profile()
            try:
                size = self._call_store("storage_size", self.store.storage_size, self.user_id)
            except StorageUnavailableError as exc:
                self._log.critical("storage_degraded", operation="storage_size", error=str(exc))
                size = 0
            return MetricsResponse(
                user_metrics=UserMetrics(
                    total_sessions=profile.total_sessions,
                    total_puzzles_solved=profile.total_puzzles_solved,
                    overall_accuracy=profile.overall_accuracy,
                    current_skill_level=profile.skill_level,
                ),
                system_metrics=SystemMetrics(storage_size=int(size or 0)),
            )

    def get_learning_metrics(self) -> LearningMetrics:
        with self._lock:
            profile, _ = self._current_profile()
            snapshot = self._plan_for(profile)
            classification = snapshot.classification
            risk = estimate_retention_risk(profile, classification, self.config.classification.recent_window_size)
            return LearningMetrics(
                skill_level=profile.skill_level,
                dimensions={d.value: est.value for d, est in profile.dimensions.items()},
                dimension_confidence={d.value: est.confidence for d, est in profile.dimensions.items()},
                recent_success_rate=classification.recent_success_rate,
                learning_trend=classification.learning_trend.value,
                primary_state=classification.primary_state.value,
                modifiers=sorted(m.value for m in classification.modifiers),
                avg_response_time_ms=profile.avg_response_time_ms,
                avg_engagement=profile.avg_engagement,
                flow_duration_min=profile.flow_duration_min,
                optimal_challenge_level=profile.optimal_challenge_level,
                power_up_dependency=profile.power_up_dependency,
                consecutive_failures=profile.consecutive_failures,
                preferred_puzzle_types=list(profile.preferred_puzzle_types),
                type_success_rates={t: s.success_rate for t, s in profile.type_stats.items() if t != UNKNOWN_TYPE},
                retention_risk=risk,
                risk_band=risk_band(risk),
                learning_style=style_label(learning_style(profile)),
                progression_cap=progression_cap(profile, self.config.classification.recent_window_size),
                state_history=[
                    {
                        "from_state": t.from_state,
                        "to_state": t.to_state,
                        "timestamp": t.timestamp,
                        "recent_success_rate": t.recent_success_rate,
                    }
                    for t in profile.state_history
                ],
            )

    # ── Public: preferences ───────────────────

    def update_puzzle_type_preference(self, puzzle_type: str, liked: bool = True) -> list[str]:
        with self._lock:
            profile, authoritative = self._current_profile()
            working = copy.deepcopy(profile)
            preferred = update_preference(working, puzzle_type, liked)
            self._save(working, authoritative)
            self._log.info("preference_updated", puzzle_type=puzzle_type, liked=liked)
            return preferred


def puzzle_payload(puzzle: Any) -> dict:
    """Candidate as a plain dict for API responses."""
    if hasattr(puzzle, "model_dump"):
        return puzzle.model_dump()
    if isinstance(puzzle, dict):
        return dict(puzzle)
    return {"puzzle_type": puzzle_type_of(puzzle), "question": candidate_field(puzzle, "question")}
