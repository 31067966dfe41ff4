# database/signature_store.py
# PuzzleFlow — Persistent key-value store for Behavioral Signatures.
# Imports from: database/db.py, database/models.py, engine/errors.py,
#               schemas/signature.py, utils/logger.py
#
# Contract: load/save/delete keyed by user_id. A save carrying an older
# revision than the stored one is dropped, so a slow write that lands late
# cannot restore a stale record. Otherwise last write wins. Any backend
# failure surfaces as StorageUnavailableError. Timeouts are enforced by the
# caller (engine/puzzle_engine.py), not here.

import threading
from typing import Optional, Protocol

from pydantic import ValidationError
from sqlalchemy import update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from analysis.behavioral_signature import BehavioralSignature
from database.db import (
    SessionFactory,
    SessionLocal,
    db_session,
    init_db,
    make_session_factory,
)
from database.db import engine as default_engine
from database.models import BehavioralSignatureRow
from engine.errors import StorageUnavailableError
from schemas.signature import SCHEMA_VERSION, dump_signature, load_signature
from utils.logger import get_logger

log = get_logger("database.signature_store")


def _log_stale(user_id: str, stored: int, incoming: int) -> None:
    log.warning("stale_save_dropped", user_id=user_id, stored_revision=stored, incoming_revision=incoming)


class SignatureStore(Protocol):
    def initialize(self) -> None: ...

    def load(self, user_id: str) -> Optional[BehavioralSignature]: ...

    def save(self, user_id: str, signature: BehavioralSignature) -> None: ...

    def delete(self, user_id: str) -> bool: ...

    def storage_size(self, user_id: str) -> int: ...


# ─────────────────────────────────────────────
# In-memory store
# Keeps serialized JSON so callers never share mutable objects with it.
# ─────────────────────────────────────────────

class InMemorySignatureStore:

    def __init__(self) -> None:
        self._payloads: dict[str, str] = {}
        self._revisions: dict[str, int] = {}
        self._lock = threading.Lock()

    def initialize(self) -> None:
        return None

    def load(self, user_id: str) -> Optional[BehavioralSignature]:
        with self._lock:
            payload = self._payloads.get(user_id)
        if payload is None:
            return None
        try:
            return load_signature(payload)
        except ValidationError as exc:
            raise StorageUnavailableError("load", user_id, f"corrupt record: {exc.error_count()} errors") from exc

    def save(self, user_id: str, signature: BehavioralSignature) -> None:
        payload = dump_signature(signature)
        with self._lock:
            stored = self._revisions.get(user_id)
            if stored is not None and stored > signature.revision:
                _log_stale(user_id, stored, signature.revision)
                return
            self._payloads[user_id] = payload
            self._revisions[user_id] = signature.revision

    def delete(self, user_id: str) -> bool:
        with self._lock:
            self._revisions.pop(user_id, None)
            return self._payloads.pop(user_id, None) is not None

    def storage_size(self, user_id: str) -> int:
        with self._lock:
            payload = self._payloads.get(user_id)
        return len(payload.encode("utf-8")) if payload is not None else 0


# ─────────────────────────────────────────────
# SQL store
# ─────────────────────────────────────────────

class SqlSignatureStore:
    """
    One `behavioral_signatures` row per user holding the SignatureRecord JSON.
    Each save is a single transaction, so a failed write leaves the previous
    row intact. The revision check rides in the UPDATE's WHERE clause.
    """

    def __init__(self, db_engine: Optional[Engine] = None) -> None:
        self._engine = db_engine if db_engine is not None else default_engine
        self._factory: SessionFactory = (
            make_session_factory(db_engine) if db_engine is not None else SessionLocal
        )

    def initialize(self) -> None:
        try:
            init_db(self._engine)
        except SQLAlchemyError as exc:
            raise StorageUnavailableError("initialize", "*", str(exc)) from exc

    def load(self, user_id: str) -> Optional[BehavioralSignature]:
        try:
            with db_session(self._factory) as db:
                row = db.get(BehavioralSignatureRow, user_id)
                payload = row.payload if row is not None else None
        except SQLAlchemyError as exc:
            log.error("signature_load_failed", user_id=user_id, error=str(exc))
            raise StorageUnavailableError("load", user_id, str(exc)) from exc

        if payload is None:
            return None
        try:
            return load_signature(payload)
        except ValidationError as exc:
            log.error("signature_corrupt", user_id=user_id, errors=exc.error_count())
            raise StorageUnavailableError("load", user_id, "corrupt record") from exc

    def save(self, user_id: str, signature: BehavioralSignature) -> None:
        payload = dump_signature(signature)
        try:
            with db_session(self._factory) as db:
                values = dict(
                    payload=payload,
                    payload_size=len(payload.encode("utf-8")),
                    schema_version=SCHEMA_VERSION,
                    revision=signature.revision,
                )
                result = db.execute(
                    update(BehavioralSignatureRow)
                    .where(
                        BehavioralSignatureRow.user_id == user_id,
                        BehavioralSignatureRow.revision <= signature.revision,
                    )
                    .values(**values)
                )
                if result.rowcount == 0:
                    existing = db.get(BehavioralSignatureRow, user_id)
                    if existing is not None:
                        _log_stale(user_id, existing.revision, signature.revision)
                        return
                    db.add(BehavioralSignatureRow(user_id=user_id, **values))
        except SQLAlchemyError as exc:
            log.error("signature_save_failed", user_id=user_id, error=str(exc))
            raise StorageUnavailableError("save", user_id, str(exc)) from exc

    def delete(self, user_id: str) -> bool:
        try:
            with db_session(self._factory) as db:
                row = db.get(BehavioralSignatureRow, user_id)
                if row is None:
                    return False
                db.delete(row)
                return True
        except SQLAlchemyError as exc:
            raise StorageUnavailableError("delete", user_id, str(exc)) from exc

    def storage_size(self, user_id: str) -> int:
        try:
            with db_session(self._factory) as db:
                row = db.get(BehavioralSignatureRow, user_id)
                return int(row.payload_size) if row is not None else 0
        except SQLAlchemyError as exc:
            raise StorageUnavailableError("storage_size", user_id, str(exc)) from exc
