"""
Multi-stage content risk analysis with a three-tier fallback.

Enhanced mode runs the stages in order:

    context -> policy batch -> risk assessment (chunked for long text)
    -> confidence -> suggestions -> AI detection (with channel context)
    -> score aggregation

Any exception escaping enhanced mode drops to basic mode (one combined
model call); any exception escaping basic mode drops to emergency mode
(no model call). Only empty input is raised to the caller.
"""

import time
from typing import List, Optional

from policyscan.config import Settings, settings
from policyscan.exceptions import EmptyTextError
from policyscan.pipelines.fallback import (
    build_basic_result,
    build_emergency_result,
    perform_basic_analysis,
    utc_timestamp,
)
from policyscan.schemas.analysis_schemas import (
    AnalysisMetadata,
    ChannelContext,
    EnhancedAnalysisResult,
    RiskAssessment,
)
from policyscan.services.ai_detection_service import perform_ai_detection
from policyscan.services.confidence_service import perform_confidence_analysis
from policyscan.services.context_service import perform_context_analysis
from policyscan.services.error_reporter import ErrorReporter, LoggingErrorReporter
from policyscan.services.llm_client import LLMInvoker, LLMProvider, get_llm_provider
from policyscan.services.policy_service import perform_policy_category_analysis
from policyscan.services.rate_limiter import SlidingWindowRateLimiter
from policyscan.services.risk_assessment_service import (
    perform_chunked_risk_assessment,
    perform_risk_assessment,
)
from policyscan.services.stage_runtime import StageRuntime
from policyscan.services.suggestion_service import generate_suggestions
from policyscan.utils.chunking import needs_chunking
from policyscan.utils.false_positives import FalsePositiveFilter, PhrasePredicate, dedupe_phrases
from policyscan.utils.logging_config import StructuredLogger, metrics
from policyscan.utils.preprocessing import detect_language, prepare_text
from policyscan.utils.risk_levels import build_highlights, calculate_overall_risk_score, derive_risk_level
from policyscan.utils.structured_output import StructuredOutputParser

logger = StructuredLogger(__name__)


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


class AnalysisPipeline:
    """Runs one analysis per `analyze` call; only the rate limiter is shared between calls."""

    def __init__(
        self,
        runtime: StageRuntime,
        phrase_filter: Optional[PhrasePredicate] = None,
        config: Optional[Settings] = None,
    ):
        self.runtime = runtime
        self.phrase_filter = phrase_filter or FalsePositiveFilter()
        self.config = config or settings

    @property
    def model_name(self) -> str:
        return self.runtime.model_name

    async def analyze(
        self,
        text: str,
        channel_context: Optional[ChannelContext] = None,
    ) -> EnhancedAnalysisResult:
        """
        Analyze text, degrading to basic and then emergency mode on failure.

        Raises:
            EmptyTextError: text is empty or whitespace once entities are decoded
                (no model call is made)
        """
        start = time.perf_counter()
        prepared = prepare_text(text)
        if not prepared:
            raise EmptyTextError()
        language = detect_language(prepared)
        metrics.increment("analysis.requests")

        try:
            result = await self._run_enhanced(prepared, channel_context, start)
            metrics.increment("analysis.mode.enhanced")
            return result
        except Exception as enhanced_error:
            logger.warning("Enhanced analysis failed, falling back to basic", error=str(enhanced_error))
            self.runtime.report(
                enhanced_error,
                "enhanced",
                text_length=len(prepared),
                model=self.model_name,
            )

            try:
                basic = await perform_basic_analysis(prepared, self.runtime)
            except Exception as basic_error:
                logger.error("Basic analysis failed, using emergency result", error=str(basic_error))
                self.runtime.report(
                    basic_error,
                    "basic-fallback",
                    text_length=len(prepared),
                    model=self.model_name,
                    original_error=str(enhanced_error),
                )
                metrics.increment("analysis.mode.emergency")
                return build_emergency_result(prepared, _elapsed_ms(start))

            metrics.increment("analysis.mode.fallback")
            return build_basic_result(basic, prepared, self.model_name, _elapsed_ms(start), language)

    async def _run_enhanced(
        self,
        text: str,
        channel_context: Optional[ChannelContext],
        start: float,
    ) -> EnhancedAnalysisResult:
        runtime = self.runtime

        context = await perform_context_analysis(text, runtime)
        policy = await perform_policy_category_analysis(text, context, runtime)

        if needs_chunking(text, self.config.chunk_size):
            risk = await perform_chunked_risk_assessment(
                text,
                policy,
                context,
                runtime,
                chunk_size=self.config.chunk_size,
                overlap=self.config.chunk_overlap,
            )
        else:
            risk = await perform_risk_assessment(text, policy, context, runtime)
        risk = self._clean_phrases(risk)

        confidence = await perform_confidence_analysis(text, policy, context, runtime)
        suggestions = await generate_suggestions(text, policy, risk, runtime)

        ai_detection = None
        if channel_context is not None:
            ai_detection = await perform_ai_detection(text, context, channel_context, runtime)

        risk_score = calculate_overall_risk_score(policy)
        logger.info(
            "Enhanced analysis complete",
            risk_score=risk_score,
            chunked=needs_chunking(text, self.config.chunk_size),
            phrases=len(self._aggregate_phrases(risk)),
        )

        return EnhancedAnalysisResult(
            risk_score=risk_score,
            risk_level=derive_risk_level(risk_score),
            confidence_score=confidence.overall_confidence,
            flagged_section=risk.flagged_section or "Analysis incomplete",
            policy_categories=policy,
            context_analysis=context,
            highlights=build_highlights(policy),
            suggestions=suggestions,
            risky_spans=risk.risky_spans or [],
            risky_phrases=self._aggregate_phrases(risk),
            risky_phrases_by_category=risk.risky_phrases_by_category,
            ai_detection=ai_detection,
            analysis_metadata=AnalysisMetadata(
                model_used=self.model_name,
                analysis_timestamp=utc_timestamp(),
                processing_time_ms=_elapsed_ms(start),
                content_length=len(text),
                analysis_mode="enhanced",
            ),
        )

    def _clean_phrases(self, risk: RiskAssessment) -> RiskAssessment:
        """Dedupe and drop false positives from every per-category phrase list."""
        cleaned = {
            category: self._filter(dedupe_phrases(phrases))
            for category, phrases in risk.risky_phrases_by_category.items()
        }
        return risk.model_copy(update={"risky_phrases_by_category": cleaned})

    def _aggregate_phrases(self, risk: RiskAssessment) -> List[str]:
        combined = [p for phrases in risk.risky_phrases_by_category.values() for p in phrases]
        return self._filter(dedupe_phrases(combined))

    def _filter(self, phrases: List[str]) -> List[str]:
        return [p for p in phrases if self.phrase_filter.should_flag(p)]


def build_pipeline(
    config: Optional[Settings] = None,
    provider: Optional[LLMProvider] = None,
    reporter: Optional[ErrorReporter] = None,
    rate_limiter: Optional[SlidingWindowRateLimiter] = None,
) -> AnalysisPipeline:
    """
    Wire provider, rate limiter, retrying invoker, parser and reporter.

    Raises:
        ConfigurationError: no provider given and no credentials configured
    """
    config = config or settings
    provider = provider or get_llm_provider(config)
    limiter = rate_limiter or SlidingWindowRateLimiter(
        max_requests=config.llm_rate_limit_requests,
        window_seconds=config.llm_rate_limit_window,
    )
    invoker = LLMInvoker(
        provider,
        limiter,
        max_retries=config.llm_max_retries,
        max_delay=config.llm_retry_max_delay,
    )
    runtime = StageRuntime(
        invoker=invoker,
        parser=StructuredOutputParser(),
        reporter=reporter or LoggingErrorReporter(),
        parse_retries=config.stage_parse_retries,
    )
    logger.info(
        "Analysis pipeline built",
        provider=provider.name,
        rate_limit=f"{limiter.max_requests}/{limiter.window_seconds}s",
    )
    return AnalysisPipeline(runtime, config=config)
