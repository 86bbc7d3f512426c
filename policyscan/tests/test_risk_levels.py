"""Tests for overall risk scoring and level derivation."""

import pytest

from policyscan.schemas.analysis_schemas import PolicyCategoryAnalysis
from policyscan.utils.risk_levels import (
    build_highlights,
    calculate_overall_risk_score,
    derive_category_severity,
    derive_risk_level,
    get_category_weight,
    score_from_severity,
)


def analysis(score, severity="LOW", confidence=80):
    return PolicyCategoryAnalysis(risk_score=score, confidence=confidence, severity=severity)


class TestCategoryWeight:
    """Tests for category weighting."""

    def test_high_priority(self):
        """Safety-critical categories weigh 2.0."""
        assert get_category_weight("CONTENT_SAFETY_VIOLENCE") == 2.0
        assert get_category_weight("COMMUNITY_STANDARDS_HATE_SPEECH") == 2.0

    def test_medium_priority(self):
        """Secondary categories weigh 1.5."""
        assert get_category_weight("LEGAL_COMPLIANCE_PRIVACY") == 1.5

    def test_everything_else(self):
        """Remaining and unknown categories weigh 1.0."""
        assert get_category_weight("ADVERTISER_FRIENDLY_PROFANITY") == 1.0
        assert get_category_weight("SOMETHING_ELSE") == 1.0


class TestOverallRiskScore:
    """Tests for weighted aggregation, boosts and floors."""

    def test_empty_map_scores_zero(self):
        """No categories means no risk."""
        assert calculate_overall_risk_score({}) == 0

    def test_one_high_category_boosts_by_twenty(self):
        """85/50/50 at weights 2/1/1: mean 67.5, +20 for the category at 80+."""
        categories = {"A": analysis(85), "B": analysis(50), "C": analysis(50)}
        score = calculate_overall_risk_score(categories, weights={"A": 2.0, "B": 1.0, "C": 1.0})
        assert score == 88
        assert derive_risk_level(score) == "HIGH"

    def test_boost_capped_at_hundred(self):
        """The boosted score never exceeds 100."""
        assert calculate_overall_risk_score({"CONTENT_SAFETY_VIOLENCE": analysis(95)}) == 100

    def test_three_medium_categories_boost_fifteen(self):
        """Three categories in [40, 80) add 15."""
        categories = {"A": analysis(40), "B": analysis(40), "C": analysis(40)}
        assert calculate_overall_risk_score(categories) == 55

    def test_two_medium_categories_boost_ten(self):
        """Two categories in [40, 80) add 10."""
        categories = {"A": analysis(40), "B": analysis(40), "C": analysis(10), "D": analysis(10)}
        assert calculate_overall_risk_score(categories) == 35

    def test_one_medium_category_boosts_five(self):
        """A single category in [40, 80) adds 5."""
        categories = {"A": analysis(60), "B": analysis(0), "C": analysis(0)}
        assert calculate_overall_risk_score(categories) == 25

    def test_floor_for_several_moderate_categories(self):
        """Four categories at 30+ lift the score to at least 35."""
        categories = {f"K{i}": analysis(30) for i in range(4)}
        categories.update({f"Z{i}": analysis(0) for i in range(16)})
        assert calculate_overall_risk_score(categories) == 35

    def test_severity_used_when_score_missing(self):
        """Plain mappings without a score fall back to the severity label."""
        categories = {"A": {"severity": "HIGH"}, "B": {"severity": "low"}}
        # mean (80 + 20) / 2 = 50, +20 for the 80
        assert calculate_overall_risk_score(categories) == 70


class TestRiskLevels:
    """Tests for the two threshold scales."""

    @pytest.mark.parametrize("score,level", [
        (0, "LOW"), (25, "LOW"), (26, "MEDIUM"), (65, "MEDIUM"), (66, "HIGH"), (100, "HIGH"),
    ])
    def test_overall_scale(self, score, level):
        """Overall: <=25 LOW, <=65 MEDIUM, else HIGH."""
        assert derive_risk_level(score) == level

    @pytest.mark.parametrize("score,severity", [
        (0, "LOW"), (34, "LOW"), (35, "MEDIUM"), (69, "MEDIUM"), (70, "HIGH"),
    ])
    def test_category_scale(self, score, severity):
        """Category: <35 LOW, <70 MEDIUM, else HIGH."""
        assert derive_category_severity(score) == severity

    @pytest.mark.parametrize("label,score", [
        ("HIGH", 80), ("medium", 50), ("LOW", 0), (None, 0), ("UNKNOWN", 0),
    ])
    def test_label_only_score(self, label, score):
        """Labels without a score map to HIGH 80, MEDIUM 50, anything else 0."""
        assert score_from_severity(label) == score


class TestHighlights:
    """Tests for highlight selection."""

    def test_top_four_above_twenty(self):
        """Only categories over 20 qualify, highest first, at most four."""
        categories = {
            "CONTENT_SAFETY_VIOLENCE": analysis(90, "HIGH"),
            "ADVERTISER_FRIENDLY_PROFANITY": analysis(60, "MEDIUM"),
            "COMMUNITY_STANDARDS_SPAM": analysis(20),
            "LEGAL_COMPLIANCE_COPYRIGHT": analysis(45, "MEDIUM"),
            "MONETIZATION_AD_POLICIES": analysis(30),
            "COMMUNITY_STANDARDS_HARASSMENT": analysis(25),
        }
        highlights = build_highlights(categories)
        assert [h.score for h in highlights] == [90, 60, 45, 30]
        assert highlights[0].category == "CONTENT SAFETY VIOLENCE"
        assert highlights[0].risk == "HIGH"
        assert highlights[0].confidence == 80
