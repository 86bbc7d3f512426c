"""
Shared plumbing for stage functions: call the model, parse the reply,
report and retry when the reply cannot be parsed.
"""

from dataclasses import dataclass
from typing import Any, Optional, Sequence, Type

from policyscan.config import settings
from policyscan.exceptions import JSONParsingError
from policyscan.services.error_reporter import ErrorReporter
from policyscan.services.llm_client import LLMInvoker
from policyscan.utils.logging_config import StructuredLogger
from policyscan.utils.structured_output import ModelT, ParseResult, StructuredOutputParser

logger = StructuredLogger(__name__)

COMPONENT_TAG = "analysis-pipeline"


@dataclass
class StageRuntime:
    """Everything a stage needs to talk to the model."""
    invoker: LLMInvoker
    parser: StructuredOutputParser
    reporter: ErrorReporter
    parse_retries: int = settings.stage_parse_retries

    @property
    def model_name(self) -> str:
        return self.invoker.model_name

    def report(self, error: BaseException, stage: str, **extra: Any) -> None:
        self.reporter.capture(
            error,
            tags={"component": COMPONENT_TAG, "stage": stage},
            extra=extra,
        )

    async def generate_structured(
        self,
        prompt: str,
        schema: Type[ModelT],
        stage: str,
        attempts: Optional[int] = None,
        category_keys: Optional[Sequence[str]] = None,
    ) -> ParseResult[ModelT]:
        """
        Generate and parse, re-asking the model when the output is unusable.

        Args:
            prompt: Full stage prompt
            schema: Pydantic model the reply must validate against
            stage: Stage name for logs, metrics and error tags
            attempts: Total model calls allowed (default 1 + parse_retries)
            category_keys: Expected category keys for manual extraction

        Raises:
            JSONParsingError: every attempt produced unparseable output
            QuotaExceededError: propagated from the invoker
        """
        total = attempts if attempts is not None else 1 + self.parse_retries
        last_error: Optional[JSONParsingError] = None

        for attempt in range(1, total + 1):
            raw = await self.invoker.generate(prompt, stage=stage)
            try:
                return self.parser.parse(raw, schema, category_keys=category_keys)
            except JSONParsingError as e:
                last_error = e
                self.report(
                    e,
                    stage,
                    attempt=attempt,
                    max_attempts=total,
                    raw_excerpt=e.raw_excerpt,
                )
                if attempt < total:
                    logger.warning("Unparseable stage output, retrying", stage=stage, attempt=attempt)

        raise last_error

