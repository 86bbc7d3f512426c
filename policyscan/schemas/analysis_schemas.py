from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Literal, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator, model_validator

from policyscan.utils.normalization import clamp_score
from policyscan.utils.policy_categories import is_policy_category


RiskLevel = Literal["LOW", "MEDIUM", "HIGH"]
AnalysisMode = Literal["enhanced", "fallback", "emergency"]

CONTENT_TYPES = [
    "Gaming", "Educational", "Entertainment", "News", "Music",
    "Comedy", "Tutorial", "Review", "Vlog", "Documentary",
    "Sports", "Technology", "Fashion", "Cooking", "Travel",
]
DEFAULT_CONTENT_TYPE = "General"

TARGET_AUDIENCES = [
    "General Audience", "Children", "Teens", "Adults", "Family",
    "Educational", "Professional", "Entertainment",
]
DEFAULT_TARGET_AUDIENCE = "General Audience"

_SEVERITY_ALIASES = {
    "NONE": "LOW",
    "MINIMAL": "LOW",
    "MODERATE": "MEDIUM",
    "MED": "MEDIUM",
    "SEVERE": "HIGH",
    "CRITICAL": "HIGH",
}


def coerce_risk_level(value: Any) -> str:
    """Upper-case a severity label and map common synonyms."""
    if value is None or value == "":
        return "LOW"
    label = str(value).strip().upper()
    label = _SEVERITY_ALIASES.get(label, label)
    if label not in ("LOW", "MEDIUM", "HIGH"):
        raise ValueError(f"Unknown severity {value!r}")
    return label


def lenient_risk_level(value: Any) -> Optional[str]:
    """Like coerce_risk_level, but unknown labels become None."""
    if value is None or value == "":
        return None
    try:
        return coerce_risk_level(value)
    except ValueError:
        return None


def _lenient_number(value: Any) -> Any:
    if value is None or isinstance(value, (int, float)):
        return value
    try:
        return float(str(value).strip().rstrip("%"))
    except ValueError:
        return None


def _coerce_string_list(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    return value


Score = Annotated[int, BeforeValidator(clamp_score)]
Level = Annotated[RiskLevel, BeforeValidator(coerce_risk_level)]
OptionalLevel = Annotated[Optional[RiskLevel], BeforeValidator(lenient_risk_level)]
StringList = Annotated[List[str], BeforeValidator(_coerce_string_list)]
RawScore = Annotated[float, Field(ge=0)]
LenientNumber = Annotated[Optional[float], BeforeValidator(_lenient_number)]


# ============== INPUT ==============


class ChannelContext(BaseModel):
    """Creator/channel facts used to calibrate AI-content detection."""
    channel_age_years: Optional[float] = Field(None, ge=0)
    account_created: Optional[datetime] = None
    subscriber_count: int = Field(0, ge=0)
    video_count: int = Field(0, ge=0)
    ai_probability: Score = 0  # Historical channel-level estimate

    def resolved_age_years(self, now: Optional[datetime] = None) -> float:
        """Age in years; unknown age counts as one year."""
        if self.channel_age_years is not None:
            return self.channel_age_years
        if self.account_created is not None:
            now = now or datetime.now(timezone.utc)
            created = self.account_created
            if created.tzinfo is None:
                created = created.replace(tzinfo=timezone.utc)
            return max(0.0, (now - created).days / 365.0)
        return 1.0

    @property
    def is_established(self) -> bool:
        return self.resolved_age_years() > 1 or self.subscriber_count > 10000


# ============== STAGE OUTPUTS ==============


class ContextAnalysis(BaseModel):
    content_type: str = DEFAULT_CONTENT_TYPE
    target_audience: str = DEFAULT_TARGET_AUDIENCE
    monetization_impact: Score = 50
    content_length: int = Field(0, ge=0)
    language_detected: str = "English"

    @field_validator("content_type", mode="before")
    @classmethod
    def match_content_type(cls, v):
        if not v:
            return DEFAULT_CONTENT_TYPE
        for known in CONTENT_TYPES:
            if str(v).strip().lower() == known.lower():
                return known
        return DEFAULT_CONTENT_TYPE

    @field_validator("target_audience", mode="before")
    @classmethod
    def match_target_audience(cls, v):
        if not v:
            return DEFAULT_TARGET_AUDIENCE
        for known in TARGET_AUDIENCES:
            if str(v).strip().lower() == known.lower():
                return known
        return str(v).strip()


class ContextAnalysisOutput(BaseModel):
    """Raw context-classification payload; every field may be missing."""
    content_type: Optional[str] = None
    target_audience: Optional[str] = None
    monetization_impact: LenientNumber = None
    content_length: LenientNumber = None
    language_detected: Optional[str] = None


class PolicyCategoryAnalysis(BaseModel):
    risk_score: Score = 0
    confidence: Score = 0
    violations: StringList = Field(default_factory=list)
    severity: Level = "LOW"
    explanation: str = ""


class PolicyCategoryOutput(BaseModel):
    """One category as emitted by the model, before scale normalization."""
    risk_score: Optional[RawScore] = None
    confidence: RawScore = 0
    violations: StringList = Field(default_factory=list)
    severity: OptionalLevel = None
    explanation: str = ""


class PolicyBatchOutput(BaseModel):
    categories: Dict[str, PolicyCategoryOutput]

    @model_validator(mode="before")
    @classmethod
    def unwrap_flat_payload(cls, data):
        # Models sometimes drop the "categories" wrapper
        if isinstance(data, dict) and "categories" not in data:
            return {"categories": {k: v for k, v in data.items() if isinstance(v, dict)}}
        return data

    @model_validator(mode="after")
    def require_known_category(self):
        if not any(is_policy_category(key) for key in self.categories):
            raise ValueError("Batch contains no known policy category")
        return self


class RiskSpan(BaseModel):
    text: str
    start_index: Optional[int] = Field(None, ge=0)
    end_index: Optional[int] = Field(None, ge=0)
    risk_level: Level = "LOW"
    policy_category: str = ""
    explanation: str = ""


class RiskAssessment(BaseModel):
    overall_risk_score: Score = 0
    flagged_section: str = ""
    risk_factors: StringList = Field(default_factory=list)
    severity_level: Level = "LOW"
    risky_phrases_by_category: Dict[str, StringList] = Field(default_factory=dict)
    risky_spans: Optional[List[RiskSpan]] = None


class ConfidenceAnalysis(BaseModel):
    overall_confidence: Score = 50
    text_clarity: Score = 50
    policy_specificity: Score = 50
    context_availability: Score = 50
    confidence_factors: StringList = Field(default_factory=list)


class Suggestion(BaseModel):
    title: str
    text: str
    priority: Level = "MEDIUM"
    impact_score: Score = 50


class SuggestionsOutput(BaseModel):
    suggestions: List[Suggestion]


class AIDetectionIndicators(BaseModel):
    repetitive_language: Score = 0
    structured_content: Score = 0
    personal_voice: Score = 0
    grammar_consistency: Score = 0
    natural_flow: Score = 0


class AIDetectionOutput(BaseModel):
    ai_probability: RawScore = 0
    confidence: Score = 0
    patterns: StringList = Field(default_factory=list)
    indicators: AIDetectionIndicators = Field(default_factory=AIDetectionIndicators)
    explanation: str = ""
    content_type_adjustment: Optional[str] = None


class AIDetectionResult(BaseModel):
    probability: Score = 0
    confidence: Score = 0
    patterns: List[str] = Field(default_factory=list)
    indicators: AIDetectionIndicators = Field(default_factory=AIDetectionIndicators)
    explanation: str = ""
    content_type_adjustment: Optional[str] = None


# ============== BASIC MODE ==============


class BasicHighlight(BaseModel):
    category: str
    risk: str = "Low"
    score: Score = 0


class BasicSuggestion(BaseModel):
    title: str
    text: str


class BasicAnalysisOutput(BaseModel):
    risk_score: Score
    risk_level: Optional[Level] = None
    flagged_section: str = ""
    highlights: List[BasicHighlight] = Field(default_factory=list)
    suggestions: List[BasicSuggestion] = Field(default_factory=list)


# ============== RESULT ==============


class Highlight(BaseModel):
    category: str
    risk: str
    score: Score
    confidence: Score


class AnalysisMetadata(BaseModel):
    model_used: str
    analysis_timestamp: str
    processing_time_ms: int
    content_length: int
    analysis_mode: AnalysisMode


class EnhancedAnalysisResult(BaseModel):
    risk_score: Score
    risk_level: RiskLevel
    confidence_score: Score
    flagged_section: str
    policy_categories: Dict[str, PolicyCategoryAnalysis] = Field(default_factory=dict)
    context_analysis: ContextAnalysis
    highlights: List[Highlight] = Field(default_factory=list)
    suggestions: List[Suggestion] = Field(default_factory=list)
    risky_spans: List[RiskSpan] = Field(default_factory=list)
    risky_phrases: List[str] = Field(default_factory=list)
    risky_phrases_by_category: Dict[str, List[str]] = Field(default_factory=dict)
    ai_detection: Optional[AIDetectionResult] = None
    analysis_metadata: AnalysisMetadata


class AnalysisRequest(BaseModel):
    """Immutable input to one run; also the POST /analyze body."""
    model_config = ConfigDict(frozen=True)

    text: str = Field(..., description="Transcript or description to analyze")
    channel_context: Optional[ChannelContext] = None
