# engine/registry.py
# PuzzleFlow — Hands out one IntelligentPuzzleEngine per user.
# The registry lock guards only the engines dict; per-user work is serialized
# by each engine's own lock, so different users run in parallel. Past
# max_engines the least recently used idle engines are dropped; the store
# holds the profile, so a later request simply rebuilds the engine.
# Imports from: analysis/puzzle_dna.py, database/signature_store.py,
#               engine/puzzle_engine.py, utils/config.py, utils/constants.py, utils/logger.py

import random
import threading
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional

from analysis.puzzle_dna import PuzzleDNAAnalyzer
from database.signature_store import SignatureStore
from engine.puzzle_engine import IntelligentPuzzleEngine
from utils.config import EngineConfig
from utils.constants import MAX_ACTIVE_ENGINES, STORAGE_WORKERS
from utils.logger import get_logger

log = get_logger("engine.registry")

RngFactory = Callable[[str], random.Random]


class EngineRegistry:

    def __init__(
        self,
        store:       SignatureStore,
        analyzer:    Optional[PuzzleDNAAnalyzer] = None,
        config:      Optional[EngineConfig] = None,
        rng_factory: Optional[RngFactory] = None,
        max_engines: int = MAX_ACTIVE_ENGINES,
    ) -> None:
        self.store = store
        self.analyzer = analyzer if analyzer is not None else PuzzleDNAAnalyzer()
        self.config = config or EngineConfig()
        self._rng_factory = rng_factory or self._seeded_rng
        self._executor = ThreadPoolExecutor(
            max_workers=STORAGE_WORKERS, thread_name_prefix="puzzleflow-storage",
        )
        self.max_engines = max_engines
        self._engines: "OrderedDict[str, IntelligentPuzzleEngine]" = OrderedDict()
        self._lock = threading.Lock()

    def _seeded_rng(self, user_id: str) -> random.Random:
        seed = self.config.selection.rng_seed
        # Per-user stream so one user's draws never shift another's
        return random.Random(f"{seed}:{user_id}") if seed is not None else random.Random()

    def __len__(self) -> int:
        return len(self._engines)

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._engines

    def get(self, user_id: str) -> IntelligentPuzzleEngine:
        with self._lock:
            engine = self._engines.get(user_id)
            if engine is not None:
                self._engines.move_to_end(user_id)
            else:
                engine = IntelligentPuzzleEngine(
                    user_id=user_id,
                    store=self.store,
                    analyzer=self.analyzer,
                    config=self.config,
                    rng=self._rng_factory(user_id),
                    executor=self._executor,
                )
                self._engines[user_id] = engine
                log.debug("engine_created", user_id=user_id, active_engines=len(self._engines))
                self._evict_idle()
            return engine

    def _evict_idle(self) -> None:
        # caller holds the registry lock; the newest engine is never a candidate
        excess = len(self._engines) - self.max_engines
        if excess <= 0:
            return
        for user_id in list(self._engines)[:-1]:
            if excess <= 0:
                break
            engine = self._engines[user_id]
            if not engine.retirable():
                continue
            del self._engines[user_id]
            engine.close()
            excess -= 1
            log.debug("engine_evicted", user_id=user_id, active_engines=len(self._engines))
        if excess > 0:
            log.warning("engine_eviction_blocked", active_engines=len(self._engines), max_engines=self.max_engines)

    def discard(self, user_id: str) -> bool:
        with self._lock:
            return self._engines.pop(user_id, None) is not None

    def shutdown(self) -> None:
        with self._lock:
            self._engines.clear()
        self._executor.shutdown(wait=False)
        log.info("registry_shutdown")
