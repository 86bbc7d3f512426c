"""
Error-reporting sink.

The pipeline reports every tier failure and every exhausted parse through
an ErrorReporter. The default implementation writes a structured log record
and bumps a metrics counter; anything fancier (an external tracker) only
needs a `capture` method with the same signature. Reporting never raises.
"""

from typing import Any, Dict, Optional, Protocol

from policyscan.config import settings
from policyscan.utils.logging_config import StructuredLogger, metrics


def truncate_payload(payload: Any, max_chars: Optional[int] = None) -> str:
    """Shorten a raw model payload for inclusion in an error report."""
    limit = max_chars if max_chars is not None else settings.error_payload_max_chars
    text = payload if isinstance(payload, str) else str(payload)
    if len(text) <= limit:
        return text
    return text[:limit] + "...[truncated]"


class ErrorReporter(Protocol):
    def capture(
        self,
        error: BaseException,
        tags: Optional[Dict[str, str]] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        ...


class LoggingErrorReporter:
    """Reports errors as structured ERROR log records plus counters."""

    def __init__(self, logger_name: str = "policyscan.errors"):
        self._logger = StructuredLogger(logger_name)

    def capture(
        self,
        error: BaseException,
        tags: Optional[Dict[str, str]] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        tags = tags or {}
        try:
            payload = {
                "error_type": type(error).__name__,
                "error": str(error),
                "tags": tags,
            }
            if hasattr(error, "to_dict"):
                payload["details"] = error.to_dict()
            if extra:
                payload["extra"] = {
                    key: truncate_payload(value) if isinstance(value, str) else value
                    for key, value in extra.items()
                }
            self._logger.error("Error captured", **payload)
            metrics.increment("errors.captured")
            component = tags.get("component")
            if component:
                metrics.increment(f"errors.{component}")
        except Exception as report_error:
            self._logger.warning("Error reporter failed", error=str(report_error))
