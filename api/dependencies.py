# api/dependencies.py
# PuzzleFlow — FastAPI dependency helpers shared by the routers.
# Imports from: engine/registry.py, engine/puzzle_engine.py
#
# Usage in a route:
#   def my_route(user_id: str, engine: IntelligentPuzzleEngine = Depends(get_engine)): ...

from fastapi import HTTPException, Path, Request

from engine.puzzle_engine import IntelligentPuzzleEngine
from engine.registry import EngineRegistry


def get_registry(request: Request) -> EngineRegistry:
    registry = getattr(request.app.state, "registry", None)
    if registry is None:
        raise HTTPException(status_code=503, detail="Engine registry is not ready.")
    return registry


def get_engine(
    request: Request,
    user_id: str = Path(..., min_length=1, max_length=128, description="User identifier"),
) -> IntelligentPuzzleEngine:
    return get_registry(request).get(user_id)
