# database/db.py
# PuzzleFlow — SQLAlchemy engine, session factory, and table initialisation.
# Imports from: database/models.py, utils/logger.py
# Stores and repositories take a session factory; the module-level
# SessionLocal is the one the running service uses.

import os
from contextlib import contextmanager
from typing import Callable, Generator, Optional

from dotenv import load_dotenv
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from database.models import Base
from utils.logger import get_logger

load_dotenv()

log = get_logger("database.db")

SessionFactory = Callable[[], Session]

# ─────────────────────────────────────────────
# Engine configuration
# ─────────────────────────────────────────────

DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./puzzleflow.db")


def _sqlite_pragmas(dbapi_connection, connection_record) -> None:
    # WAL lets readers proceed during a signature write
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL;")
    cursor.execute("PRAGMA foreign_keys=ON;")
    cursor.close()


def make_engine(url: str = DATABASE_URL, **kwargs) -> Engine:
    """
    Builds an engine for `url`. SQLite URLs get check_same_thread=False
    (storage calls run on worker threads) and the WAL pragma listener.
    Extra kwargs (e.g. poolclass=StaticPool for in-memory tests) pass through.
    """
    is_sqlite = url.startswith("sqlite")
    if is_sqlite:
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    db_engine = create_engine(url, echo=False, **kwargs)
    if is_sqlite:
        event.listen(db_engine, "connect", _sqlite_pragmas)
    return db_engine


def make_session_factory(db_engine: Engine) -> sessionmaker:
    return sessionmaker(
        bind=db_engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,   # rows stay readable after the session closes
    )


engine: Engine = make_engine(DATABASE_URL)
SessionLocal: sessionmaker = make_session_factory(engine)


# ─────────────────────────────────────────────
# Context manager for store/repository usage
# Usage:
#   with db_session(factory) as db:
#       db.get(BehavioralSignatureRow, user_id)
# ─────────────────────────────────────────────

@contextmanager
def db_session(factory: Optional[SessionFactory] = None) -> Generator[Session, None, None]:
    db = (factory or SessionLocal)()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


# ─────────────────────────────────────────────
# Table initialisation: called once on startup
# ─────────────────────────────────────────────

def init_db(db_engine: Optional[Engine] = None) -> None:
    """
    Creates all tables that do not yet exist.
    Safe to call on every startup: create_all skips existing tables.
    """
    target = db_engine or engine
    log.info("db_init_start", database_url=str(target.url))
    try:
        Base.metadata.create_all(bind=target)
        log.info("db_tables_created", tables=sorted(Base.metadata.tables))
    except Exception as exc:
        log.exception("db_init_failed", error=str(exc))
        raise


# ─────────────────────────────────────────────
# Health-check utility: used by main.py /health
# ─────────────────────────────────────────────

def check_db_health(factory: Optional[SessionFactory] = None) -> bool:
    """Returns True if the DB is reachable."""
    try:
        with db_session(factory) as db:
            db.execute(text("SELECT 1"))
        return True
    except Exception as exc:
        log.error("db_health_check_failed", error=str(exc))
        return False
