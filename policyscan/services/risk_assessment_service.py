"""
Risk assessment: overall score, flagged section, risky phrases and spans.

Long transcripts are assessed chunk by chunk. Chunk spans are shifted to
document offsets and merged; phrase lists are unioned since phrases carry
no position.
"""

from typing import Dict, List, Optional

from policyscan.config import settings
from policyscan.exceptions import JSONParsingError
from policyscan.schemas.analysis_schemas import (
    ContextAnalysis,
    PolicyCategoryAnalysis,
    RiskAssessment,
    RiskSpan,
)
from policyscan.services.prompts import AnalysisPrompts
from policyscan.services.stage_runtime import StageRuntime
from policyscan.utils.chunking import chunk_text, merge_overlapping_spans, offset_span
from policyscan.utils.false_positives import dedupe_phrases
from policyscan.utils.logging_config import StructuredLogger, track_stage

logger = StructuredLogger(__name__)

STAGE = "risk_assessment"

_LEVEL_RANK = {"LOW": 0, "MEDIUM": 1, "HIGH": 2}


def default_risk_assessment() -> RiskAssessment:
    return RiskAssessment(
        overall_risk_score=0,
        flagged_section="Analysis incomplete",
        risk_factors=[],
        severity_level="LOW",
        risky_phrases_by_category={},
        risky_spans=[],
    )


@track_stage(STAGE)
async def perform_risk_assessment(
    text: str,
    policy_analysis: Dict[str, PolicyCategoryAnalysis],
    context: ContextAnalysis,
    runtime: StageRuntime,
    chunked: bool = False,
) -> RiskAssessment:
    try:
        result = await runtime.generate_structured(
            AnalysisPrompts.risk_assessment(text, policy_analysis, context, chunked=chunked),
            RiskAssessment,
            stage=STAGE,
        )
    except JSONParsingError:
        logger.error("Risk assessment unparseable, using default", stage=STAGE)
        return default_risk_assessment()

    return result.data


def combine_chunk_assessments(
    assessments: List[RiskAssessment],
    spans: List[RiskSpan],
    document: str,
) -> RiskAssessment:
    """Fold per-chunk assessments into one document-level assessment."""
    if not assessments:
        return default_risk_assessment()

    worst = max(assessments, key=lambda a: a.overall_risk_score)
    severity = max((a.severity_level for a in assessments), key=_LEVEL_RANK.__getitem__)

    phrases_by_category: Dict[str, List[str]] = {}
    for assessment in assessments:
        for category, phrases in assessment.risky_phrases_by_category.items():
            phrases_by_category.setdefault(category, []).extend(phrases)

    return RiskAssessment(
        overall_risk_score=worst.overall_risk_score,
        flagged_section=worst.flagged_section,
        risk_factors=dedupe_phrases(f for a in assessments for f in a.risk_factors),
        severity_level=severity,
        risky_phrases_by_category={k: dedupe_phrases(v) for k, v in phrases_by_category.items()},
        risky_spans=merge_overlapping_spans(spans, document),
    )


async def perform_chunked_risk_assessment(
    text: str,
    policy_analysis: Dict[str, PolicyCategoryAnalysis],
    context: ContextAnalysis,
    runtime: StageRuntime,
    chunk_size: Optional[int] = None,
    overlap: Optional[int] = None,
) -> RiskAssessment:
    """
    Assess a long document one chunk at a time.

    Chunks run sequentially. The combined assessment keeps the highest
    chunk score and severity, the flagged section of the worst chunk,
    the union of phrase lists and the merged document-relative spans.
    """
    chunks = chunk_text(
        text,
        chunk_size=chunk_size or settings.chunk_size,
        overlap=overlap if overlap is not None else settings.chunk_overlap,
    )
    logger.info("Assessing chunked document", chunks=len(chunks), length=len(text))

    assessments: List[RiskAssessment] = []
    spans: List[RiskSpan] = []
    for chunk in chunks:
        assessment = await perform_risk_assessment(
            chunk.text, policy_analysis, context, runtime, chunked=True
        )
        assessments.append(assessment)
        spans.extend(offset_span(span, chunk) for span in assessment.risky_spans or [])

    return combine_chunk_assessments(assessments, spans, text)
