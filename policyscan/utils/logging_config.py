"""
Structured logging and in-process metrics for PolicyScan.

Production emits one JSON object per line; development gets a compact
human-readable line. Every record carries the request id set by the API
middleware when there is one.

Stage functions are wrapped with `track_stage`, which feeds the shared
`metrics` collector; `/metrics` serves its snapshot, grouped per stage.
"""

import asyncio
import json
import logging
import sys
import time
from contextvars import ContextVar
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Dict, List, Optional

from policyscan.config import settings


request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

NOISY_LOGGERS = ("httpx", "httpcore", "openai", "anthropic")

DEV_FORMAT = "%(asctime)s %(levelname)-7s [%(name)s] %(message)s %(context)s"


class JSONFormatter(logging.Formatter):
    """One JSON object per record, keyword context under `context`."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "source": f"{record.module}:{record.funcName}:{record.lineno}",
            "env": settings.environment,
        }
        request_id = request_id_var.get()
        if request_id:
            entry["request_id"] = request_id
        context = getattr(record, "context", None)
        if context:
            entry["context"] = context
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class _ContextDefaultFilter(logging.Filter):
    """Give records from third-party loggers an empty `context` for DEV_FORMAT."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "context"):
            record.context = ""
        return True


class StructuredLogger:
    """
    Stdlib logger that takes keyword context.

        logger = StructuredLogger(__name__)
        logger.info("Stage completed", stage="policy_category_batch", attempts=2)
    """

    def __init__(self, name: str):
        self._logger = logging.getLogger(name)

    @property
    def name(self) -> str:
        return self._logger.name

    def _emit(self, level: int, message: str, context: Dict[str, Any], exc_info: bool = False):
        if self._logger.isEnabledFor(level):
            self._logger.log(
                level,
                message,
                exc_info=exc_info,
                extra={"context": context or ""},
                stacklevel=3,
            )

    def debug(self, message: str, **context):
        self._emit(logging.DEBUG, message, context)

    def info(self, message: str, **context):
        self._emit(logging.INFO, message, context)

    def warning(self, message: str, **context):
        self._emit(logging.WARNING, message, context)

    def error(self, message: str, exc_info: bool = False, **context):
        self._emit(logging.ERROR, message, context, exc_info=exc_info)


def setup_logging(level: str = "INFO", json_format: bool = True, log_file: Optional[str] = None):
    """
    Replace the root handlers.

    Args:
        level: root log level name
        json_format: JSON lines on stdout instead of DEV_FORMAT
        log_file: also write JSON lines to this path
    """
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    handlers[0].setFormatter(JSONFormatter() if json_format else logging.Formatter(DEV_FORMAT))
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(JSONFormatter())
        handlers.append(file_handler)

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level.upper())
    for handler in handlers:
        handler.addFilter(_ContextDefaultFilter())
        root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def init_logging():
    """JSON at INFO in production, readable lines at DEBUG elsewhere."""
    setup_logging(
        level="INFO" if settings.is_production else "DEBUG",
        json_format=settings.is_production,
    )


# ============== METRICS ==============


def _summarize(samples: List[float]) -> Dict[str, float]:
    ordered = sorted(samples)
    n = len(ordered)
    return {
        "count": n,
        "avg_ms": round(sum(ordered) / n * 1000, 2),
        "p50_ms": round(ordered[n // 2] * 1000, 2),
        "max_ms": round(ordered[-1] * 1000, 2),
    }


class MetricsCollector:
    """
    Process-wide counters and latency samples (seconds).

    Stage counters follow `stage.<name>.calls|errors` with latencies under
    `stage.<name>.latency`; `get_stats` also folds those into a per-stage view.
    """

    MAX_SAMPLES = 1000

    def __init__(self):
        self._counters: Dict[str, int] = {}
        self._latencies: Dict[str, List[float]] = {}
        self._started = time.monotonic()

    def increment(self, name: str, value: int = 1):
        self._counters[name] = self._counters.get(name, 0) + value

    def timing(self, name: str, seconds: float):
        samples = self._latencies.setdefault(name, [])
        samples.append(seconds)
        if len(samples) > self.MAX_SAMPLES:
            del samples[0]

    def get_counter(self, name: str) -> int:
        return self._counters.get(name, 0)

    def _stage_view(self) -> Dict[str, Dict[str, Any]]:
        stages: Dict[str, Dict[str, Any]] = {}
        for key, value in self._counters.items():
            parts = key.split(".")
            if len(parts) == 3 and parts[0] == "stage":
                stages.setdefault(parts[1], {"calls": 0, "errors": 0})[parts[2]] = value
        for key, samples in self._latencies.items():
            parts = key.split(".")
            if len(parts) == 3 and parts[0] == "stage" and samples:
                stages.setdefault(parts[1], {"calls": 0, "errors": 0})["latency"] = _summarize(samples)
        return stages

    def get_stats(self) -> Dict[str, Any]:
        return {
            "uptime_seconds": round(time.monotonic() - self._started, 1),
            "counters": dict(self._counters),
            "latencies": {name: _summarize(s) for name, s in self._latencies.items() if s},
            "stages": self._stage_view(),
        }

    def reset(self):
        self._counters.clear()
        self._latencies.clear()


metrics = MetricsCollector()


def track_stage(stage: str):
    """Count calls, errors and latency for one async pipeline stage."""
    def decorator(func):
        if not asyncio.iscoroutinefunction(func):
            raise TypeError(f"track_stage expects a coroutine function, got {func!r}")

        @wraps(func)
        async def wrapper(*args, **kwargs):
            metrics.increment(f"stage.{stage}.calls")
            started = time.perf_counter()
            try:
                return await func(*args, **kwargs)
            except Exception:
                metrics.increment(f"stage.{stage}.errors")
                raise
            finally:
                metrics.timing(f"stage.{stage}.latency", time.perf_counter() - started)

        return wrapper

    return decorator
