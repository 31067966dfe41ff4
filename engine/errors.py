# engine/errors.py
# PuzzleFlow — Domain exceptions raised by the engine and storage layers.
# Imports from: nothing.


class PuzzleFlowError(Exception):
    """Base class for every error PuzzleFlow raises on purpose."""


class EmptyCandidatePoolError(PuzzleFlowError):
    """
    No structurally valid candidate to choose from: the pool was empty or every
    candidate was malformed. Caller-visible; the API maps it to 422.
    """

    def __init__(self, pool_size: int = 0, excluded: int = 0) -> None:
        self.pool_size = pool_size
        self.excluded = excluded
        if pool_size == 0:
            message = "candidate pool is empty"
        else:
            message = f"all {pool_size} candidates were malformed ({excluded} excluded)"
        super().__init__(message)


class StorageUnavailableError(PuzzleFlowError):
    """
    The signature store failed or timed out. The engine catches this and
    degrades to an in-memory profile; it never reaches API callers.
    """

    def __init__(self, operation: str, user_id: str, reason: str = "") -> None:
        self.operation = operation
        self.user_id = user_id
        self.reason = reason
        super().__init__(f"storage {operation} failed for {user_id}: {reason}" if reason
                         else f"storage {operation} failed for {user_id}")


class UnknownRecommendationError(PuzzleFlowError):
    """A response was reported for a puzzle this engine never recommended."""

    def __init__(self, user_id: str, puzzle_id: str) -> None:
        self.user_id = user_id
        self.puzzle_id = puzzle_id
        super().__init__(f"no outstanding recommendation {puzzle_id} for user {user_id}")
