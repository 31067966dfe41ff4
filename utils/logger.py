# utils/logger.py
# PuzzleFlow — Structured JSON logger used by every module.
# Imports from: nothing (zero internal dependencies by design).

import json
import logging
import os
import sys
import traceback
from datetime import datetime, timezone
from typing import Any, Optional

_NAMESPACE = "puzzleflow"

_RESERVED = {
    "name", "msg", "args", "levelname", "levelno", "pathname",
    "filename", "module", "exc_info", "exc_text", "stack_info",
    "lineno", "funcName", "created", "msecs", "relativeCreated",
    "thread", "threadName", "processName", "process", "message",
    "component", "taskName",
}


class JSONFormatter(logging.Formatter):
    """
    Formats every log record as a single-line JSON object.
    Fields: timestamp, level, component, event, and any structured kwargs.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_obj: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level":     record.levelname,
            "component": getattr(record, "component", record.name),
            "event":     record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED:
                log_obj[key] = value

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)
        elif record.exc_text:
            log_obj["exception"] = record.exc_text

        return json.dumps(log_obj, default=str)


def _root() -> logging.Logger:
    """Namespace logger that owns the single stdout JSON handler."""
    root = logging.getLogger(_NAMESPACE)
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
        root.addHandler(handler)
        root.setLevel(os.getenv("PUZZLEFLOW_LOG_LEVEL", "INFO").upper())
        root.propagate = False
    return root


def get_logger(component: str, **context: Any) -> "PuzzleFlowLogger":
    """
    Factory function. Every module obtains its logger once at import time.

    Usage:
        from utils.logger import get_logger
        log = get_logger("analysis.pool_planner")
        log.info("allocation_planned", state="stable", allocation=[2, 4, 3, 0, 1])

    Keyword context is attached to every record emitted by the returned logger.
    """
    return PuzzleFlowLogger(component, context)


class PuzzleFlowLogger:
    """
    Thin wrapper around stdlib Logger that:
    - Enforces JSON-only output through the namespace handler
    - Injects `component` and any bound context into every record
    - Accepts arbitrary kwargs as structured fields
    """

    def __init__(
        self,
        component: str,
        context: Optional[dict[str, Any]] = None,
        enabled: bool = True,
    ) -> None:
        _root()
        self.component = component
        self.enabled = enabled
        self._context = dict(context or {})
        self._logger = logging.getLogger(f"{_NAMESPACE}.{component}")

    def bind(self, **context: Any) -> "PuzzleFlowLogger":
        """Returns a logger for the same component with extra fields bound."""
        merged = {**self._context, **context}
        return PuzzleFlowLogger(self.component, merged, self.enabled)

    def muted(self, muted: bool = True) -> "PuzzleFlowLogger":
        """Same logger with output switched off (engines built with logging_enabled=False)."""
        return PuzzleFlowLogger(self.component, self._context, not muted)

    def _make_extra(self, kwargs: dict[str, Any]) -> dict[str, Any]:
        extra = {**self._context, **kwargs}
        extra["component"] = self.component
        return extra

    def _emit(self, level: int, event: str, kwargs: dict[str, Any]) -> None:
        if self.enabled:
            self._logger.log(level, event, extra=self._make_extra(kwargs))

    def info(self, event: str, **kwargs: Any) -> None:
        self._emit(logging.INFO, event, kwargs)

    def debug(self, event: str, **kwargs: Any) -> None:
        self._emit(logging.DEBUG, event, kwargs)

    def warning(self, event: str, **kwargs: Any) -> None:
        self._emit(logging.WARNING, event, kwargs)

    def error(self, event: str, **kwargs: Any) -> None:
        self._emit(logging.ERROR, event, kwargs)

    def critical(self, event: str, **kwargs: Any) -> None:
        self._emit(logging.CRITICAL, event, kwargs)

    def exception(self, event: str, **kwargs: Any) -> None:
        """Logs ERROR level with full traceback attached automatically."""
        kwargs["traceback"] = traceback.format_exc()
        self._emit(logging.ERROR, event, kwargs)
