"""
Bounded exponential-backoff retry for model calls.

Only quota/throttle signals are retried. Anything else, including plain
timeouts, goes straight back to the caller.
"""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

import anthropic
import openai

from policyscan.config import settings
from policyscan.exceptions import QuotaExceededError
from policyscan.utils.logging_config import StructuredLogger, metrics

logger = StructuredLogger(__name__)

T = TypeVar("T")

THROTTLE_STATUS_CODES = {429, 503, 529}
THROTTLE_MARKERS = ("429", "rate limit", "quota", "overloaded")


def is_quota_error(error: BaseException) -> bool:
    """True when the error is a provider quota/throttle/overload signal."""
    if isinstance(error, (openai.RateLimitError, anthropic.RateLimitError)):
        return True
    if isinstance(error, (openai.APITimeoutError, anthropic.APITimeoutError)):
        return False

    status = getattr(error, "status_code", None) or getattr(error, "status", None)
    if status in THROTTLE_STATUS_CODES:
        return True

    message = str(error).lower()
    return any(marker in message for marker in THROTTLE_MARKERS)


def backoff_delay(attempt: int, max_delay: Optional[float] = None) -> float:
    """2^attempt seconds, capped."""
    cap = max_delay if max_delay is not None else settings.llm_retry_max_delay
    return float(min(2 ** attempt, cap))


async def call_with_retry(
    fn: Callable[[], Awaitable[T]],
    max_retries: Optional[int] = None,
    max_delay: Optional[float] = None,
    stage: str = "model_call",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Await `fn()`, retrying on quota errors.

    Args:
        fn: Zero-argument coroutine factory for one model call
        max_retries: Retries after the first attempt (default from config)
        max_delay: Cap on a single backoff sleep in seconds
        stage: Stage name for logs and the terminal error
        sleep: Injected for tests

    Returns:
        Whatever `fn()` returns

    Raises:
        QuotaExceededError: every attempt hit a quota/throttle error
    """
    retries = settings.llm_max_retries if max_retries is None else max_retries
    attempt = 0
    while True:
        try:
            return await fn()
        except Exception as e:
            if not is_quota_error(e):
                raise
            if attempt >= retries:
                metrics.increment("llm.quota_exhausted")
                raise QuotaExceededError(stage, attempt, e) from e
            delay = backoff_delay(attempt, max_delay)
            logger.warning(
                "Quota limit hit, retrying",
                stage=stage,
                attempt=attempt + 1,
                delay_seconds=delay,
                error=str(e),
            )
            metrics.increment("llm.quota_retries")
            await sleep(delay)
            attempt += 1
