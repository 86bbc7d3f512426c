"""
Policy-category batch analysis.

One model call scores every taxonomy category. The result always holds
exactly the taxonomy keys: unknown keys are dropped and missing ones get
a zero "no issues" record.
"""

from typing import Dict

from policyscan.exceptions import JSONParsingError
from policyscan.schemas.analysis_schemas import ContextAnalysis, PolicyBatchOutput, PolicyCategoryAnalysis
from policyscan.services.prompts import AnalysisPrompts
from policyscan.services.stage_runtime import StageRuntime
from policyscan.utils.logging_config import StructuredLogger, track_stage
from policyscan.utils.normalization import clamp_score, normalize_batch_scores
from policyscan.utils.policy_categories import POLICY_CATEGORY_KEYS, is_policy_category
from policyscan.utils.risk_levels import derive_category_severity, score_from_severity

logger = StructuredLogger(__name__)

STAGE = "policy_category_batch"

NO_ISSUES_EXPLANATION = "No issues detected for this category."
PARSE_FAILED_EXPLANATION = "Analysis failed for this category (JSON parse error)"


def default_category_analysis(explanation: str = NO_ISSUES_EXPLANATION) -> PolicyCategoryAnalysis:
    return PolicyCategoryAnalysis(
        risk_score=0,
        confidence=0,
        violations=[],
        severity="LOW",
        explanation=explanation,
    )


def complete_policy_map(partial: Dict[str, PolicyCategoryAnalysis]) -> Dict[str, PolicyCategoryAnalysis]:
    """Exactly the taxonomy keys, in taxonomy order."""
    return {
        key: partial[key] if key in partial else default_category_analysis()
        for key in POLICY_CATEGORY_KEYS
    }


def build_policy_map(batch: PolicyBatchOutput, already_normalized: bool = False) -> Dict[str, PolicyCategoryAnalysis]:
    """
    Normalize one batch's scores together and fill in missing categories.

    Severity always follows the normalized score; the model's own label
    only supplies a score for categories it left unscored.
    """
    known = {k: v for k, v in batch.categories.items() if is_policy_category(k)}
    dropped = sorted(set(batch.categories) - set(known))
    if dropped:
        logger.debug("Dropping unknown category keys", keys=dropped)

    keys = list(known)
    scored = [k for k in keys if known[k].risk_score is not None]
    raw_scores = [known[k].risk_score for k in scored]
    raw_confidences = [known[k].confidence for k in keys]
    if not already_normalized:
        raw_scores = normalize_batch_scores(raw_scores)
        raw_confidences = normalize_batch_scores(raw_confidences)

    # A label alone only counts when the model gave no score
    risk_scores = {k: score_from_severity(known[k].severity) for k in keys}
    risk_scores.update(zip(scored, raw_scores))

    analyzed = {}
    for key, conf in zip(keys, raw_confidences):
        risk = clamp_score(risk_scores[key])
        analyzed[key] = PolicyCategoryAnalysis(
            risk_score=risk,
            confidence=conf,
            violations=known[key].violations,
            severity=derive_category_severity(risk),
            explanation=known[key].explanation,
        )
    return complete_policy_map(analyzed)


@track_stage(STAGE)
async def perform_policy_category_analysis(
    text: str,
    context: ContextAnalysis,
    runtime: StageRuntime,
) -> Dict[str, PolicyCategoryAnalysis]:
    try:
        result = await runtime.generate_structured(
            AnalysisPrompts.policy_batch(text, context),
            PolicyBatchOutput,
            stage=STAGE,
            category_keys=POLICY_CATEGORY_KEYS,
        )
    except JSONParsingError:
        logger.error("Policy batch unparseable, using default analysis", stage=STAGE)
        return {key: default_category_analysis(PARSE_FAILED_EXPLANATION) for key in POLICY_CATEGORY_KEYS}

    policy_map = build_policy_map(result.data, already_normalized=result.strategy == "manual_fields")
    logger.info(
        "Policy batch analyzed",
        strategy=result.strategy,
        flagged=sum(1 for a in policy_map.values() if a.risk_score > 0),
    )
    return policy_map
