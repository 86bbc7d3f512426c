"""
Exception hierarchy for PolicyScan.

Configuration errors are fatal at startup. Quota, parsing and stage errors
are raised inside a pipeline run and handled by the orchestrator, which
degrades to the next analysis mode instead of surfacing them to callers.
"""

from typing import Any, Dict, List, Optional


class PolicyScanError(Exception):
    """Base exception for all PolicyScan errors."""

    def __init__(self, message: str, error_code: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
        """
        Initialize base exception.

        Args:
            message: Human-readable error message
            error_code: Machine-readable error code
            context: Additional error context
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "context": self.context,
        }


class ConfigurationError(PolicyScanError):
    """No usable model provider credentials are configured."""
    pass


class EmptyTextError(PolicyScanError, ValueError):
    """Input text was empty or whitespace only."""

    def __init__(self, message: str = "No text provided for analysis."):
        super().__init__(message)


class QuotaExceededError(PolicyScanError):
    """A model call kept hitting quota/throttle limits until retries ran out."""

    def __init__(self, stage: str, retries: int, original_error: Exception):
        message = f"Quota exceeded during {stage} after {retries} retries"
        context = {
            "stage": stage,
            "retries": retries,
            "original_error": str(original_error),
        }
        super().__init__(message, context=context)
        self.stage = stage
        self.retries = retries
        self.original_error = original_error


class JSONParsingError(PolicyScanError):
    """Every structured-output strategy failed for a model response."""

    def __init__(self, strategies: List[str], raw_excerpt: str, last_error: Optional[str] = None):
        message = f"Failed to parse model output after {len(strategies)} strategies"
        context = {
            "strategies": strategies,
            "raw_excerpt": raw_excerpt,
            "last_error": last_error,
        }
        super().__init__(message, context=context)
        self.strategies = strategies
        self.raw_excerpt = raw_excerpt


class StageError(PolicyScanError):
    """A pipeline stage failed in a way it cannot recover from locally."""

    def __init__(self, stage: str, message: str, original_error: Optional[Exception] = None):
        context = {"stage": stage}
        if original_error is not None:
            context["original_error"] = str(original_error)
        super().__init__(f"{stage}: {message}", context=context)
        self.stage = stage
        self.original_error = original_error
