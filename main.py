# main.py
# PuzzleFlow — FastAPI application entry point.
# Registers all routers. Builds the engine registry, signature store and DNA
# cache on startup; flushes the DNA cache on shutdown.
# Imports from: api/routes_*.py, analysis/puzzle_dna.py, database/*.py,
#               engine/registry.py, utils/config.py, utils/logger.py

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from analysis.puzzle_dna import DNACache, PuzzleDNAAnalyzer
from api.routes_puzzles import router as puzzles_router
from api.routes_users import router as users_router
from database.db import check_db_health, make_engine, make_session_factory
from database.dna_repository import DNARepository
from database.signature_store import SqlSignatureStore
from engine.registry import EngineRegistry
from utils.config import EngineConfig
from utils.logger import get_logger

log = get_logger("main")

VERSION = "1.0.0"


# ─────────────────────────────────────────────
# Lifespan: startup + shutdown
# ─────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup:
        1. Read EngineConfig from the environment (.env honoured)
        2. Create tables (idempotent)
        3. Restore the DNA cache snapshot (non-fatal if it fails)
        4. Build the per-user engine registry
    Shutdown:
        Flush the DNA cache snapshot, stop the storage worker pool.
    A registry injected before startup (tests) is used as-is.
    """
    if getattr(app.state, "registry", None) is not None:
        log.info("puzzleflow_startup_injected_registry")
        yield
        return

    log.info("puzzleflow_startup_begin")
    config = EngineConfig.from_env()

    db_engine = make_engine(config.storage.database_url)
    store = SqlSignatureStore(db_engine)
    try:
        store.initialize()
    except Exception as exc:
        log.exception("db_init_failed", error=str(exc))
        raise

    cache = DNACache()
    dna_repo = DNARepository(db_engine)
    try:
        restored = cache.restore(dna_repo.load_all())
        log.info("dna_cache_restored", entries=restored)
    except Exception as exc:
        log.exception("dna_cache_restore_failed", error=str(exc))
        # Non-fatal: DNA is re-seeded lazily from candidates

    registry = EngineRegistry(store=store, analyzer=PuzzleDNAAnalyzer(cache), config=config)
    app.state.registry = registry
    app.state.db_factory = make_session_factory(db_engine)

    log.info("puzzleflow_startup_complete")
    yield

    log.info("puzzleflow_shutdown")
    try:
        dna_repo.save_all(cache.snapshot())
    except Exception as exc:
        log.exception("dna_cache_flush_failed", error=str(exc))
    registry.shutdown()
    app.state.registry = None
    db_engine.dispose()


# ─────────────────────────────────────────────
# App factory
# ─────────────────────────────────────────────

def create_app(registry: Optional[EngineRegistry] = None) -> FastAPI:
    application = FastAPI(
        title="PuzzleFlow",
        description=(
            "Adaptive puzzle recommendation engine. Picks the next puzzle for "
            "each user from generator-supplied candidates and learns from every answer."
        ),
        version=VERSION,
        lifespan=lifespan,
    )
    application.state.registry = registry
    application.state.db_factory = None

    # CORS: game clients call from any origin
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.include_router(users_router)      # /users/{id}/initialize, sessions, metrics, state, preferences
    application.include_router(puzzles_router)    # /users/{id}/puzzles/next, /users/{id}/puzzles/{pid}/response

    @application.get("/health", tags=["system"], summary="Health check")
    def health_check(request: Request) -> dict:
        """Returns service status. Used by load balancer / monitoring."""
        state = request.app.state
        db_ok = check_db_health(state.db_factory) if state.db_factory is not None else None
        registry_ready = getattr(state, "registry", None) is not None
        return {
            "status":         "ok" if registry_ready and db_ok is not False else "degraded",
            "service":        "PuzzleFlow",
            "version":        VERSION,
            "database":       db_ok,
            "active_engines": len(state.registry) if registry_ready else 0,
        }

    return application


app = create_app()


# ─────────────────────────────────────────────
# Dev server entry point
# ─────────────────────────────────────────────

if __name__ == "__main__":
    import uvicorn
    from utils.constants import SERVER_HOST, SERVER_PORT

    log.info("starting_dev_server", host=SERVER_HOST, port=SERVER_PORT)
    uvicorn.run(
        "main:app",
        host=SERVER_HOST,
        port=SERVER_PORT,
        reload=True,
        log_level="info",
    )
