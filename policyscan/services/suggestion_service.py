from typing import Dict, List, Optional

from policyscan.config import settings
from policyscan.exceptions import JSONParsingError
from policyscan.schemas.analysis_schemas import PolicyCategoryAnalysis, RiskAssessment, Suggestion, SuggestionsOutput
from policyscan.services.prompts import AnalysisPrompts
from policyscan.services.stage_runtime import StageRuntime
from policyscan.utils.logging_config import StructuredLogger, track_stage

logger = StructuredLogger(__name__)

STAGE = "suggestion_generation"

# Padding used when the model returns too few suggestions
BEST_PRACTICE_SUGGESTIONS = [
    ("General Best Practice",
     "It is advised to add a clear introduction that tells viewers what the video covers."),
    ("General Best Practice",
     "Consider reviewing your title, description and tags so they accurately reflect the content."),
    ("General Best Practice",
     "We recommend checking the advertiser-friendly content guidelines before publishing."),
    ("General Best Practice",
     "It is advised to keep language consistent with your intended audience throughout."),
    ("General Best Practice",
     "Consider adding context or disclaimers when discussing sensitive topics."),
]


def best_practice_suggestion(index: int) -> Suggestion:
    title, text = BEST_PRACTICE_SUGGESTIONS[index % len(BEST_PRACTICE_SUGGESTIONS)]
    return Suggestion(title=title, text=text, priority="LOW", impact_score=40)


def default_suggestions(min_count: Optional[int] = None) -> List[Suggestion]:
    first = Suggestion(
        title="Review Content",
        text="Please review your content for potential policy violations.",
        priority="MEDIUM",
        impact_score=50,
    )
    return fit_suggestion_count([first], min_count=min_count)


def fit_suggestion_count(
    suggestions: List[Suggestion],
    min_count: Optional[int] = None,
    max_count: Optional[int] = None,
) -> List[Suggestion]:
    """Truncate to the maximum, then pad with best-practice tips to the minimum."""
    min_count = settings.min_suggestions if min_count is None else min_count
    max_count = settings.max_suggestions if max_count is None else max_count

    fitted = list(suggestions[:max_count])
    padding = 0
    while len(fitted) < min_count:
        fitted.append(best_practice_suggestion(padding))
        padding += 1
    return fitted


@track_stage(STAGE)
async def generate_suggestions(
    text: str,
    policy_analysis: Dict[str, PolicyCategoryAnalysis],
    risk_assessment: RiskAssessment,
    runtime: StageRuntime,
) -> List[Suggestion]:
    try:
        result = await runtime.generate_structured(
            AnalysisPrompts.suggestions(
                text,
                policy_analysis,
                risk_assessment,
                min_count=settings.min_suggestions,
                max_count=settings.max_suggestions,
            ),
            SuggestionsOutput,
            stage=STAGE,
        )
    except JSONParsingError:
        logger.warning("Suggestions unparseable, using default", stage=STAGE)
        return default_suggestions()

    suggestions = fit_suggestion_count(result.data.suggestions)
    if len(suggestions) != len(result.data.suggestions):
        logger.debug(
            "Adjusted suggestion count",
            returned=len(result.data.suggestions),
            kept=len(suggestions),
        )
    return suggestions
