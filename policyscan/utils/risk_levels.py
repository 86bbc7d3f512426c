"""
Risk scoring.

Per-category scores are combined into one overall score with a fixed
category weighting, a boost driven by how many categories are elevated,
and a floor for content that is moderately risky across several categories.

Two level scales are in use and deliberately kept apart:
- overall score -> level: <=25 LOW, <=65 MEDIUM, else HIGH
- category score -> severity: <35 LOW, <70 MEDIUM, else HIGH
"""

from typing import Dict, List, Mapping, Optional

from policyscan.schemas.analysis_schemas import Highlight, PolicyCategoryAnalysis

HIGH_PRIORITY_CATEGORIES = {
    "CONTENT_SAFETY_VIOLENCE",
    "CONTENT_SAFETY_HARMFUL_CONTENT",
    "COMMUNITY_STANDARDS_HATE_SPEECH",
    "CONTENT_SAFETY_CHILD_SAFETY",
    "COMMUNITY_STANDARDS_HARASSMENT",
}

MEDIUM_PRIORITY_CATEGORIES = {
    "CONTENT_SAFETY_DANGEROUS_ACTS",
    "ADVERTISER_FRIENDLY_SEXUAL_CONTENT",
    "LEGAL_COMPLIANCE_PRIVACY",
    "MONETIZATION_MONETIZATION_ELIGIBILITY",
}

# Score for a category the model labelled without scoring
SEVERITY_FALLBACK_SCORES = {"HIGH": 80, "MEDIUM": 50, "LOW": 0}

OVERALL_LOW_MAX = 25
OVERALL_MEDIUM_MAX = 65
CATEGORY_MEDIUM_MIN = 35
CATEGORY_HIGH_MIN = 70

HIGHLIGHT_MIN_SCORE = 20
MAX_HIGHLIGHTS = 4


def get_category_weight(category: str) -> float:
    if category in HIGH_PRIORITY_CATEGORIES:
        return 2.0
    if category in MEDIUM_PRIORITY_CATEGORIES:
        return 1.5
    return 1.0


def score_from_severity(severity: Optional[str]) -> int:
    return SEVERITY_FALLBACK_SCORES.get(str(severity or "LOW").upper(), 0)


def calculate_overall_risk_score(
    policy_categories: Mapping[str, PolicyCategoryAnalysis],
    weights: Optional[Mapping[str, float]] = None,
) -> int:
    """
    Combine per-category scores into one 0-100 score.

    1. Weighted mean of category risk scores.
    2. First matching boost, capped at 100:
       any >= 80: +20; three or more in [40, 80): +15; two in [40, 80): +10;
       three or more in [20, 40) or one in [40, 80): +5.
    3. Floor: four or more categories >= 30 -> at least 35;
       two or more -> at least 25.

    Args:
        policy_categories: Category key -> analysis
        weights: Optional per-category weight overrides

    Returns:
        Rounded overall score; 0 for an empty map
    """
    if not policy_categories:
        return 0

    scores: Dict[str, float] = {key: float(a.risk_score) for key, a in policy_categories.items()}

    total_weight = 0.0
    weighted_sum = 0.0
    for key, score in scores.items():
        weight = weights.get(key, get_category_weight(key)) if weights else get_category_weight(key)
        weighted_sum += score * weight
        total_weight += weight
    weighted_mean = weighted_sum / total_weight if total_weight else 0.0

    values = list(scores.values())
    high = sum(1 for s in values if s >= 80)
    medium = sum(1 for s in values if 40 <= s < 80)
    low = sum(1 for s in values if 20 <= s < 40)

    if high >= 1:
        score = min(100.0, weighted_mean + 20)
    elif medium >= 3:
        score = min(100.0, weighted_mean + 15)
    elif medium >= 2:
        score = min(100.0, weighted_mean + 10)
    elif low >= 3 or medium >= 1:
        score = min(100.0, weighted_mean + 5)
    else:
        score = weighted_mean

    significant = sum(1 for s in values if s >= 30)
    if significant >= 4:
        score = max(score, 35.0)
    elif significant >= 2:
        score = max(score, 25.0)

    return int(round(score))


def derive_risk_level(score: float) -> str:
    """
    Overall risk level from the overall score.

    Returns:
        "LOW" (<= 25), "MEDIUM" (<= 65) or "HIGH"
    """
    if score <= OVERALL_LOW_MAX:
        return "LOW"
    if score <= OVERALL_MEDIUM_MAX:
        return "MEDIUM"
    return "HIGH"


def derive_category_severity(score: float) -> str:
    """Severity for a single category score (35/70 cut points)."""
    if score >= CATEGORY_HIGH_MIN:
        return "HIGH"
    if score >= CATEGORY_MEDIUM_MIN:
        return "MEDIUM"
    return "LOW"


def build_highlights(
    policy_categories: Mapping[str, PolicyCategoryAnalysis],
    limit: int = MAX_HIGHLIGHTS,
) -> List[Highlight]:
    """Top categories scoring above 20, highest first."""
    flagged = [
        (key, analysis) for key, analysis in policy_categories.items()
        if analysis.risk_score > HIGHLIGHT_MIN_SCORE
    ]
    flagged.sort(key=lambda item: item[1].risk_score, reverse=True)
    return [
        Highlight(
            category=key.replace("_", " "),
            risk=analysis.severity,
            score=analysis.risk_score,
            confidence=analysis.confidence,
        )
        for key, analysis in flagged[:limit]
    ]
