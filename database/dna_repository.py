# database/dna_repository.py
# PuzzleFlow — Persists snapshots of the shared Puzzle DNA cache.
# Loaded once on startup, flushed on shutdown (main.py lifespan).
# Imports from: analysis/puzzle_dna.py, database/db.py, database/models.py, utils/logger.py

from typing import Iterable, Optional

from sqlalchemy.engine import Engine

from analysis.puzzle_dna import PuzzleDNA
from database.db import SessionFactory, SessionLocal, db_session, make_session_factory
from database.models import PuzzleDNARow
from utils.logger import get_logger

log = get_logger("database.dna_repository")


def _to_row(dna: PuzzleDNA) -> PuzzleDNARow:
    return PuzzleDNARow(
        puzzle_id=dna.puzzle_id,
        puzzle_type=dna.puzzle_type,
        difficulty=dna.difficulty,
        user_engagement=dna.user_engagement,
        success_rate=dna.success_rate,
        generated_at=dna.generated_at,
        sample_count=dna.sample_count,
    )


def _from_row(row: PuzzleDNARow) -> PuzzleDNA:
    return PuzzleDNA(
        puzzle_id=row.puzzle_id,
        puzzle_type=row.puzzle_type,
        difficulty=row.difficulty,
        user_engagement=row.user_engagement,
        success_rate=row.success_rate,
        generated_at=row.generated_at,
        sample_count=row.sample_count or 0,
    )


class DNARepository:

    def __init__(self, db_engine: Optional[Engine] = None) -> None:
        self._factory: SessionFactory = (
            make_session_factory(db_engine) if db_engine is not None else SessionLocal
        )

    def load_all(self) -> list[PuzzleDNA]:
        """Oldest first by generated_at, so cache FIFO order survives a restart."""
        with db_session(self._factory) as db:
            rows = db.query(PuzzleDNARow).order_by(PuzzleDNARow.generated_at.asc()).all()
            entries = [_from_row(row) for row in rows]
        log.info("dna_snapshot_loaded", entries=len(entries))
        return entries

    def save_all(self, entries: Iterable[PuzzleDNA]) -> int:
        """Upserts every entry in one transaction. Returns the number written."""
        count = 0
        with db_session(self._factory) as db:
            for dna in entries:
                db.merge(_to_row(dna))
                count += 1
        log.info("dna_snapshot_saved", entries=count)
        return count
