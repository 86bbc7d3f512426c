from typing import Dict

from policyscan.exceptions import JSONParsingError
from policyscan.schemas.analysis_schemas import ConfidenceAnalysis, ContextAnalysis, PolicyCategoryAnalysis
from policyscan.services.prompts import AnalysisPrompts
from policyscan.services.stage_runtime import StageRuntime
from policyscan.utils.logging_config import StructuredLogger, track_stage

logger = StructuredLogger(__name__)

STAGE = "confidence_analysis"


def default_confidence_analysis() -> ConfidenceAnalysis:
    return ConfidenceAnalysis(
        overall_confidence=50,
        text_clarity=50,
        policy_specificity=50,
        context_availability=50,
        confidence_factors=["Analysis confidence could not be determined"],
    )


@track_stage(STAGE)
async def perform_confidence_analysis(
    text: str,
    policy_analysis: Dict[str, PolicyCategoryAnalysis],
    context: ContextAnalysis,
    runtime: StageRuntime,
) -> ConfidenceAnalysis:
    """How much the run's findings can be trusted; 50 across the board when unknown."""
    try:
        result = await runtime.generate_structured(
            AnalysisPrompts.confidence_analysis(text, policy_analysis, context),
            ConfidenceAnalysis,
            stage=STAGE,
        )
    except JSONParsingError:
        logger.warning("Confidence analysis unparseable, using default", stage=STAGE)
        return default_confidence_analysis()
    return result.data
