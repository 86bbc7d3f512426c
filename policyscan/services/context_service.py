from policyscan.exceptions import JSONParsingError, StageError
from policyscan.schemas.analysis_schemas import ContextAnalysis, ContextAnalysisOutput
from policyscan.services.prompts import AnalysisPrompts
from policyscan.services.stage_runtime import StageRuntime
from policyscan.utils.logging_config import track_stage
from policyscan.utils.preprocessing import detect_language, word_count

STAGE = "context_classification"


@track_stage(STAGE)
async def perform_context_analysis(text: str, runtime: StageRuntime) -> ContextAnalysis:
    """
    Classify content type, audience, monetization outlook and language.

    Missing fields fall back to General / General Audience / 50 / the
    local word count / the script-detected language. Unparseable output
    is terminal for the run.
    """
    try:
        result = await runtime.generate_structured(
            AnalysisPrompts.context_analysis(text),
            ContextAnalysisOutput,
            stage=STAGE,
            attempts=1,
        )
    except JSONParsingError as e:
        raise StageError(STAGE, "Failed to parse context analysis response", e) from e

    raw = result.data
    return ContextAnalysis(
        content_type=raw.content_type,
        target_audience=raw.target_audience,
        monetization_impact=raw.monetization_impact if raw.monetization_impact is not None else 50,
        content_length=int(raw.content_length) if raw.content_length else word_count(text),
        language_detected=raw.language_detected or detect_language(text),
    )
