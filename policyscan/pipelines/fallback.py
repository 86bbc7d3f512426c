"""
Degraded analysis modes.

Basic mode asks for the headline numbers in a single model call. Emergency
mode makes no model call at all and returns a neutral placeholder so the
caller always gets a well-formed result.
"""

from datetime import datetime, timezone
from typing import Optional

from policyscan.schemas.analysis_schemas import (
    AnalysisMetadata,
    BasicAnalysisOutput,
    ContextAnalysis,
    EnhancedAnalysisResult,
    Highlight,
    Suggestion,
)
from policyscan.services.prompts import AnalysisPrompts
from policyscan.services.stage_runtime import StageRuntime
from policyscan.utils.logging_config import track_stage
from policyscan.utils.preprocessing import word_count
from policyscan.utils.risk_levels import MAX_HIGHLIGHTS, derive_risk_level

STAGE = "basic_analysis"

BASIC_CONFIDENCE = 75
BASIC_SUGGESTION_COUNT = 3
BASIC_MAX_SUGGESTIONS = 12

EMERGENCY_RISK_SCORE = 50
EMERGENCY_CONFIDENCE = 25
EMERGENCY_MODEL = "emergency-fallback"


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def general_context(text: str, language: str) -> ContextAnalysis:
    return ContextAnalysis(
        content_type="General",
        target_audience="General Audience",
        monetization_impact=50,
        content_length=word_count(text),
        language_detected=language,
    )


@track_stage(STAGE)
async def perform_basic_analysis(text: str, runtime: StageRuntime) -> BasicAnalysisOutput:
    """One combined call. Parse failure propagates so the caller can go to emergency mode."""
    result = await runtime.generate_structured(
        AnalysisPrompts.basic_analysis(text, suggestion_count=BASIC_SUGGESTION_COUNT),
        BasicAnalysisOutput,
        stage=STAGE,
        attempts=1,
    )
    return result.data


def build_basic_result(
    basic: BasicAnalysisOutput,
    text: str,
    model_name: str,
    processing_time_ms: int,
    language: str,
) -> EnhancedAnalysisResult:
    return EnhancedAnalysisResult(
        risk_score=basic.risk_score,
        risk_level=basic.risk_level or derive_risk_level(basic.risk_score),
        confidence_score=BASIC_CONFIDENCE,
        flagged_section=basic.flagged_section,
        policy_categories={},
        context_analysis=general_context(text, language),
        highlights=[
            Highlight(category=h.category, risk=h.risk, score=h.score, confidence=BASIC_CONFIDENCE)
            for h in basic.highlights[:MAX_HIGHLIGHTS]
        ],
        suggestions=[
            Suggestion(title=s.title, text=s.text, priority="MEDIUM", impact_score=50)
            for s in basic.suggestions[:BASIC_MAX_SUGGESTIONS]
        ],
        analysis_metadata=AnalysisMetadata(
            model_used=model_name,
            analysis_timestamp=utc_timestamp(),
            processing_time_ms=processing_time_ms,
            content_length=len(text),
            analysis_mode="fallback",
        ),
    )


def build_emergency_result(
    text: str,
    processing_time_ms: int,
    language: Optional[str] = None,
) -> EnhancedAnalysisResult:
    return EnhancedAnalysisResult(
        risk_score=EMERGENCY_RISK_SCORE,
        risk_level="MEDIUM",
        confidence_score=EMERGENCY_CONFIDENCE,
        flagged_section="Content analysis unavailable due to service limits",
        policy_categories={},
        context_analysis=general_context(text, language or "Unknown"),
        highlights=[
            Highlight(
                category="Service Status",
                risk="Analysis Unavailable",
                score=0,
                confidence=EMERGENCY_CONFIDENCE,
            )
        ],
        suggestions=[
            Suggestion(
                title="Service Temporarily Unavailable",
                text="AI analysis service is currently at capacity. Please try again later or contact support.",
                priority="HIGH",
                impact_score=0,
            )
        ],
        analysis_metadata=AnalysisMetadata(
            model_used=EMERGENCY_MODEL,
            analysis_timestamp=utc_timestamp(),
            processing_time_ms=processing_time_ms,
            content_length=len(text),
            analysis_mode="emergency",
        ),
    )
