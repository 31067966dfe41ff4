# analysis/puzzle_dna.py
# PuzzleFlow — Puzzle DNA: seed difficulty/engagement/success profile per puzzle,
# memoized by identity and refined from observed responses.
# No ML involved. Pure deterministic blending.
# Imports from: analysis/taxonomy.py, utils/constants.py, utils/logger.py

import hashlib
import json
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, replace
from typing import Any, Callable, Iterable, Mapping, Optional

from analysis.taxonomy import TYPE_BASE_COMPLEXITY, normalize_puzzle_type
from utils.constants import (
    DEFAULT_ENGAGEMENT,
    DEFAULT_SUCCESS_RATE,
    DIFFICULTY_LABELS,
    DIFFICULTY_REFINEMENT_WEIGHT,
    DNA_CACHE_MAX_ENTRIES,
    DNA_NEW_WEIGHT,
    DNA_OLD_WEIGHT,
    NEUTRAL_DIFFICULTY,
)
from utils.logger import get_logger

log = get_logger("analysis.puzzle_dna")

UNKNOWN_TYPE = "unknown"


# ─────────────────────────────────────────────
# Output contracts
# ─────────────────────────────────────────────

@dataclass(frozen=True)
class PuzzleDNA:
    puzzle_id:       str
    puzzle_type:     str      # canonical PuzzleType value, or the raw lower-cased type
    difficulty:      float    # [0, 1]
    user_engagement: float    # [0, 1]
    success_rate:    float    # [0, 1]
    generated_at:    float    # epoch seconds
    sample_count:    int = 0  # observations blended in so far


@dataclass(frozen=True)
class DNAObservation:
    success_rate: Optional[float] = None
    engagement:   Optional[float] = None


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


# ─────────────────────────────────────────────
# Candidate field access
# Candidates arrive as pydantic models, plain dicts, or arbitrary objects.
# ─────────────────────────────────────────────

def candidate_field(puzzle: Any, *names: str) -> Any:
    for name in names:
        if isinstance(puzzle, Mapping):
            value = puzzle.get(name)
        else:
            value = getattr(puzzle, name, None)
        if value is not None:
            return value
    return None


def puzzle_type_of(puzzle: Any) -> str:
    """Canonical type value when recognised, else the raw type lower-cased, else 'unknown'."""
    raw = candidate_field(puzzle, "puzzle_type", "type")
    normalized = normalize_puzzle_type(raw)
    if normalized is not None:
        return normalized.value
    if isinstance(raw, str) and raw.strip():
        return raw.strip().lower()
    return UNKNOWN_TYPE


def derive_puzzle_id(puzzle: Any) -> str:
    """
    Semantic id if the generator supplied one; otherwise a content hash so that
    structurally identical puzzles collapse onto a single DNA entry.
    """
    semantic_id = candidate_field(puzzle, "semantic_id", "id", "puzzle_id")
    if semantic_id is not None and str(semantic_id).strip():
        return str(semantic_id)

    options = candidate_field(puzzle, "options") or []
    canonical = json.dumps(
        {
            "question": candidate_field(puzzle, "question"),
            "options":  list(options),
            "type":     puzzle_type_of(puzzle),
        },
        sort_keys=True,
        default=str,
    )
    digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
    return f"puzzle_{digest[:16]}"


def seed_difficulty(puzzle: Any) -> float:
    """
    Priority:
        explicit difficulty label (easy 0.3, medium 0.6, hard 0.9, unrecognised 0.5)
        per-type base complexity
        neutral 0.5
    """
    label = candidate_field(puzzle, "difficulty_label", "difficulty")
    if isinstance(label, str) and label.strip():
        return DIFFICULTY_LABELS.get(label.strip().lower(), NEUTRAL_DIFFICULTY)

    puzzle_type = normalize_puzzle_type(candidate_field(puzzle, "puzzle_type", "type"))
    if puzzle_type is not None:
        return TYPE_BASE_COMPLEXITY[puzzle_type]
    return NEUTRAL_DIFFICULTY


# ─────────────────────────────────────────────
# Shared cache
# ─────────────────────────────────────────────

class DNACache:
    """
    Bounded puzzle_id -> PuzzleDNA map shared by every user session.

    The registry lock guards the dict structure only. Read-modify-write blends
    take the per-key lock from lock_for() so concurrent writers on one puzzle
    serialize while other puzzles proceed. Entries are immutable and replaced
    whole, so readers never observe a half-written DNA.
    """

    def __init__(self, max_entries: int = DNA_CACHE_MAX_ENTRIES) -> None:
        self.max_entries = max_entries
        self._entries: "OrderedDict[str, PuzzleDNA]" = OrderedDict()
        self._key_locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, puzzle_id: object) -> bool:
        return puzzle_id in self._entries

    def get(self, puzzle_id: str) -> Optional[PuzzleDNA]:
        return self._entries.get(puzzle_id)

    def lock_for(self, puzzle_id: str) -> Optional[threading.Lock]:
        """Per-key write lock, or None when puzzle_id is not cached."""
        with self._registry_lock:
            if puzzle_id not in self._entries:
                return None
            lock = self._key_locks.get(puzzle_id)
            if lock is None:
                lock = threading.Lock()
                self._key_locks[puzzle_id] = lock
            return lock

    @property
    def key_lock_count(self) -> int:
        return len(self._key_locks)

    def setdefault(self, dna: PuzzleDNA) -> PuzzleDNA:
        """Stores dna unless an entry already exists; returns whichever is cached."""
        with self._registry_lock:
            existing = self._entries.get(dna.puzzle_id)
            if existing is not None:
                return existing
            self._insert(dna)
            return dna

    def put(self, dna: PuzzleDNA) -> None:
        with self._registry_lock:
            if dna.puzzle_id in self._entries:
                self._entries[dna.puzzle_id] = dna
            else:
                self._insert(dna)

    def _insert(self, dna: PuzzleDNA) -> None:
        # caller holds the registry lock
        self._entries[dna.puzzle_id] = dna
        while len(self._entries) > self.max_entries:
            evicted_id, _ = self._entries.popitem(last=False)
            self._key_locks.pop(evicted_id, None)
            log.debug("dna_evicted", puzzle_id=evicted_id)

    def snapshot(self) -> list[PuzzleDNA]:
        with self._registry_lock:
            return list(self._entries.values())

    def restore(self, entries: Iterable[PuzzleDNA]) -> int:
        count = 0
        with self._registry_lock:
            for dna in entries:
                self._entries.pop(dna.puzzle_id, None)
                self._insert(dna)
                count += 1
        return count

    def clear(self) -> None:
        with self._registry_lock:
            self._entries.clear()
            self._key_locks.clear()


# ─────────────────────────────────────────────
# Analyzer
# ─────────────────────────────────────────────

class PuzzleDNAAnalyzer:
    """
    analyze() creates DNA lazily and memoizes it; update() only refines entries
    that analyze() already created.
    """

    def __init__(
        self,
        cache: Optional[DNACache] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.cache = cache if cache is not None else DNACache()
        self._clock = clock

    def analyze(self, puzzle: Any) -> PuzzleDNA:
        puzzle_id = derive_puzzle_id(puzzle)
        cached = self.cache.get(puzzle_id)
        if cached is not None:
            return cached

        dna = PuzzleDNA(
            puzzle_id=puzzle_id,
            puzzle_type=puzzle_type_of(puzzle),
            difficulty=seed_difficulty(puzzle),
            user_engagement=DEFAULT_ENGAGEMENT,
            success_rate=DEFAULT_SUCCESS_RATE,
            generated_at=self._clock(),
        )
        stored = self.cache.setdefault(dna)
        if stored is dna:
            log.debug(
                "dna_seeded",
                puzzle_id=puzzle_id,
                puzzle_type=dna.puzzle_type,
                difficulty=dna.difficulty,
            )
        return stored

    def get(self, puzzle_id: str) -> Optional[PuzzleDNA]:
        return self.cache.get(puzzle_id)

    def update(self, puzzle_id: str, observed: DNAObservation) -> Optional[PuzzleDNA]:
        """
        blended = 0.7 * observed + 0.3 * cached, per supplied field.
        Difficulty drifts toward (1 - success_rate) with weight 0.1.
        Unknown puzzle_id is a no-op and returns None.
        """
        key_lock = self.cache.lock_for(puzzle_id)
        if key_lock is None:
            log.debug("dna_update_skipped", puzzle_id=puzzle_id, reason="unknown_puzzle")
            return None

        with key_lock:
            current = self.cache.get(puzzle_id)
            if current is None:
                # evicted after the lock was handed out
                log.debug("dna_update_skipped", puzzle_id=puzzle_id, reason="evicted")
                return None

            success_rate = current.success_rate
            if observed.success_rate is not None:
                success_rate = _clamp(
                    DNA_NEW_WEIGHT * _clamp(observed.success_rate)
                    + DNA_OLD_WEIGHT * current.success_rate
                )

            engagement = current.user_engagement
            if observed.engagement is not None:
                engagement = _clamp(
                    DNA_NEW_WEIGHT * _clamp(observed.engagement)
                    + DNA_OLD_WEIGHT * current.user_engagement
                )

            difficulty = _clamp(
                (1.0 - DIFFICULTY_REFINEMENT_WEIGHT) * current.difficulty
                + DIFFICULTY_REFINEMENT_WEIGHT * (1.0 - success_rate)
            )

            updated = replace(
                current,
                difficulty=difficulty,
                user_engagement=engagement,
                success_rate=success_rate,
                sample_count=current.sample_count + 1,
            )
            self.cache.put(updated)

        log.debug(
            "dna_updated",
            puzzle_id=puzzle_id,
            difficulty=round(difficulty, 4),
            success_rate=round(success_rate, 4),
            engagement=round(engagement, 4),
        )
        return updated
