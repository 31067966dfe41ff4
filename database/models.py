# database/models.py
# PuzzleFlow — SQLAlchemy ORM models for both tables.
# Imports from: sqlalchemy only. Zero internal dependencies.

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ─────────────────────────────────────────────
# TABLE 1: BehavioralSignatureRow
# One serialized signature per user. A save overwrites the row unless the
# row already holds a newer revision.
# ─────────────────────────────────────────────

class BehavioralSignatureRow(Base):
    __tablename__ = "behavioral_signatures"

    user_id         = Column(String, primary_key=True)
    payload         = Column(Text, nullable=False)      # SignatureRecord JSON
    payload_size    = Column(Integer, nullable=False)   # bytes, reported in metrics
    schema_version  = Column(Integer, nullable=False, default=1)
    revision        = Column(Integer, nullable=False, default=0)
    updated_at      = Column(DateTime, nullable=False, default=_now, onupdate=_now)

    def __repr__(self) -> str:
        return f"<BehavioralSignatureRow user_id={self.user_id} size={self.payload_size} rev={self.revision}>"


# ─────────────────────────────────────────────
# TABLE 2: PuzzleDNARow
# Snapshot of the shared DNA cache, loaded on startup and flushed on shutdown.
# ─────────────────────────────────────────────

class PuzzleDNARow(Base):
    __tablename__ = "puzzle_dna"

    puzzle_id       = Column(String, primary_key=True)
    puzzle_type     = Column(String, nullable=False)
    difficulty      = Column(Float, nullable=False)
    user_engagement = Column(Float, nullable=False)
    success_rate    = Column(Float, nullable=False)
    generated_at    = Column(Float, nullable=False)     # epoch seconds
    sample_count    = Column(Integer, nullable=False, default=0)
    updated_at      = Column(DateTime, nullable=False, default=_now, onupdate=_now)

    def __repr__(self) -> str:
        return f"<PuzzleDNARow id={self.puzzle_id} type={self.puzzle_type} difficulty={self.difficulty}>"
