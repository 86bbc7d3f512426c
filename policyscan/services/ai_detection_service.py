"""
AI-generated content detection.

The model's raw probability is damped by a content-type sensitivity
multiplier and, for established channels, by a further 0.7. Structured
formats such as gaming walkthroughs or tutorials read as "templated" to
the model far more often than they are generated.
"""

from typing import Optional

from policyscan.exceptions import JSONParsingError, QuotaExceededError
from policyscan.schemas.analysis_schemas import (
    AIDetectionOutput,
    AIDetectionResult,
    ChannelContext,
    ContextAnalysis,
)
from policyscan.services.prompts import AnalysisPrompts
from policyscan.services.stage_runtime import StageRuntime
from policyscan.utils.logging_config import StructuredLogger, track_stage
from policyscan.utils.normalization import clamp_score

logger = StructuredLogger(__name__)

STAGE = "ai_detection"

CONTENT_TYPE_MULTIPLIERS = {
    "gaming": 0.6,
    "vlog": 0.4,
    "entertainment": 0.7,
    "educational": 0.8,
    "tutorial": 0.8,
    "review": 0.7,
    "news": 0.9,
}
DEFAULT_MULTIPLIER = 0.8
ESTABLISHED_CHANNEL_MULTIPLIER = 0.7


def get_sensitivity_multiplier(content_type: Optional[str]) -> float:
    return CONTENT_TYPE_MULTIPLIERS.get((content_type or "").strip().lower(), DEFAULT_MULTIPLIER)


def adjust_ai_probability(raw_probability: float, content_type: Optional[str], established: bool) -> int:
    """Clamp to 0-100, apply the content-type multiplier and the established-channel damping."""
    probability = min(100.0, max(0.0, float(raw_probability))) * get_sensitivity_multiplier(content_type)
    if established:
        probability *= ESTABLISHED_CHANNEL_MULTIPLIER
    return clamp_score(probability)


def failed_detection_result() -> AIDetectionResult:
    return AIDetectionResult(
        probability=0,
        confidence=0,
        patterns=[],
        explanation="AI detection analysis failed",
        content_type_adjustment="Analysis failed - defaulting to 0%",
    )


@track_stage(STAGE)
async def perform_ai_detection(
    text: str,
    context: ContextAnalysis,
    channel_context: ChannelContext,
    runtime: StageRuntime,
) -> AIDetectionResult:
    content_type = context.content_type
    established = channel_context.is_established
    prompt = AnalysisPrompts.ai_detection(
        text,
        content_type=content_type,
        channel_age_years=channel_context.resolved_age_years(),
        established=established,
        subscriber_count=channel_context.subscriber_count,
        video_count=channel_context.video_count,
        channel_ai_probability=channel_context.ai_probability,
    )

    try:
        result = await runtime.generate_structured(prompt, AIDetectionOutput, stage=STAGE, attempts=1)
    except QuotaExceededError:
        raise
    except JSONParsingError:
        logger.warning("AI detection unparseable, returning zeroed result", stage=STAGE)
        return failed_detection_result()
    except Exception as e:
        runtime.report(e, STAGE, text_length=len(text))
        logger.warning("AI detection failed, returning zeroed result", error=str(e))
        return failed_detection_result()

    raw = result.data
    multiplier = get_sensitivity_multiplier(content_type)
    return AIDetectionResult(
        probability=adjust_ai_probability(raw.ai_probability, content_type, established),
        confidence=raw.confidence,
        patterns=raw.patterns,
        indicators=raw.indicators,
        explanation=raw.explanation or "AI detection analysis completed",
        content_type_adjustment=(
            raw.content_type_adjustment
            or f"Applied {content_type} sensitivity multiplier ({multiplier})"
        ),
    )
