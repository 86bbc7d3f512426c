import json

import pytest
from fastapi.testclient import TestClient

from policyscan.api.server import app, get_pipeline
from policyscan.pipelines.analysis_pipeline import AnalysisPipeline
from policyscan.services.llm_client import LLMInvoker
from policyscan.services.rate_limiter import SlidingWindowRateLimiter
from policyscan.services.stage_runtime import StageRuntime
from policyscan.utils.logging_config import metrics
from policyscan.utils.policy_categories import POLICY_CATEGORY_KEYS
from policyscan.utils.structured_output import StructuredOutputParser

# A phrase unique to each stage prompt, used to route scripted responses
STAGE_MARKERS = {
    "context": "determine its context and characteristics",
    "policy": "video platform policy compliance",
    "risk": "Assess the overall risk",
    "confidence": "Assess how confident",
    "suggestions": "Generate specific, actionable suggestions",
    "ai_detection": "AI generation patterns",
    "basic": "expert video platform policy analyst",
}


def stage_of(prompt):
    for stage, marker in STAGE_MARKERS.items():
        if marker in prompt:
            return stage
    return "unknown"


class FakeProvider:
    """
    Scripted provider keyed by stage.

    A response may be a string, an exception instance (raised), a callable
    taking the prompt, or a list of those consumed in order (the last one
    repeats).
    """

    def __init__(self, responses=None, name="fake-model"):
        self.name = name
        self.responses = dict(responses or {})
        self.calls = []

    async def generate(self, prompt):
        stage = stage_of(prompt)
        self.calls.append((stage, prompt))
        response = self.responses.get(stage)
        if isinstance(response, list):
            response = response.pop(0) if len(response) > 1 else response[0]
        if response is None:
            raise RuntimeError(f"no scripted response for stage {stage!r}")
        if isinstance(response, BaseException):
            raise response
        if callable(response):
            return response(prompt)
        return response

    def calls_for(self, stage):
        return [prompt for s, prompt in self.calls if s == stage]


class FakeClock:
    """Monotonic clock that only moves when told to, or when slept on."""

    def __init__(self, start=1000.0):
        self.now = start
        self.sleeps = []

    def time(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


class RecordingReporter:
    def __init__(self):
        self.captured = []

    def capture(self, error, tags=None, extra=None):
        self.captured.append({"error": error, "tags": tags or {}, "extra": extra or {}})

    def stages(self):
        return [c["tags"].get("stage") for c in self.captured]


# ============== CANNED RESPONSES ==============


def context_json(**overrides):
    data = {
        "content_type": "Gaming",
        "target_audience": "Teens",
        "monetization_impact": 80,
        "content_length": 42,
        "language_detected": "English",
    }
    data.update(overrides)
    return json.dumps(data)


def policy_json(scores=None, confidence=90):
    """Every taxonomy key at 0 unless given in `scores`."""
    scores = scores or {}
    categories = {}
    for key in POLICY_CATEGORY_KEYS:
        score = scores.get(key, 0)
        categories[key] = {
            "risk_score": score,
            "confidence": confidence,
            "violations": ["strong language"] if score else [],
            "severity": "HIGH" if score >= 70 else "MEDIUM" if score >= 35 else "LOW",
            "explanation": "Flagged." if score else "Nothing found.",
        }
    return json.dumps({"categories": categories})


def risk_json(**overrides):
    data = {
        "overall_risk_score": 40,
        "flagged_section": "The closing rant uses strong profanity.",
        "risk_factors": ["profanity"],
        "severity_level": "MEDIUM",
        "risky_phrases_by_category": {
            "ADVERTISER_FRIENDLY_PROFANITY": ["fuck", "Fuck", "my kid"],
        },
        "risky_spans": [
            {
                "text": "fuck",
                "start_index": 10,
                "end_index": 14,
                "risk_level": "MEDIUM",
                "policy_category": "ADVERTISER_FRIENDLY_PROFANITY",
                "explanation": "Profanity",
            }
        ],
    }
    data.update(overrides)
    return json.dumps(data)


def confidence_json(overall=82):
    return json.dumps({
        "overall_confidence": overall,
        "text_clarity": 80,
        "policy_specificity": 75,
        "context_availability": 70,
        "confidence_factors": ["Clear language"],
    })


def suggestions_json(count=6):
    return json.dumps({
        "suggestions": [
            {
                "title": f"Suggestion {i}",
                "text": f"Consider revising part {i}.",
                "priority": "MEDIUM",
                "impact_score": 60,
            }
            for i in range(count)
        ]
    })


def ai_detection_json(probability=50):
    return json.dumps({
        "ai_probability": probability,
        "confidence": 70,
        "patterns": ["uniform sentence length"],
        "indicators": {
            "repetitive_language": 30,
            "structured_content": 60,
            "personal_voice": 40,
            "grammar_consistency": 70,
            "natural_flow": 50,
        },
        "explanation": "Some structured elements.",
    })


def basic_json(**overrides):
    data = {
        "risk_score": 55,
        "risk_level": "MEDIUM",
        "flagged_section": "Strong language near the end.",
        "highlights": [{"category": "Profanity", "risk": "medium", "score": 55}],
        "suggestions": [
            {"title": "Trim language", "text": "Consider muting the profanity."},
            {"title": "Add context", "text": "It is advised to add a content note."},
            {"title": "Check title", "text": "We recommend a neutral title."},
        ],
    }
    data.update(overrides)
    return json.dumps(data)


def enhanced_responses(**overrides):
    responses = {
        "context": context_json(),
        "policy": policy_json({"ADVERTISER_FRIENDLY_PROFANITY": 60}),
        "risk": risk_json(),
        "confidence": confidence_json(),
        "suggestions": suggestions_json(),
        "ai_detection": ai_detection_json(),
        "basic": basic_json(),
    }
    responses.update(overrides)
    return responses


# ============== FIXTURES ==============


@pytest.fixture(autouse=True)
def reset_metrics():
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def reporter():
    return RecordingReporter()


@pytest.fixture
def rate_limiter(clock):
    return SlidingWindowRateLimiter(
        max_requests=1000,
        window_seconds=60,
        clock=clock.time,
        sleep=clock.sleep,
    )


@pytest.fixture
def make_runtime(rate_limiter, reporter, clock):
    def factory(provider, parse_retries=2, max_retries=3):
        invoker = LLMInvoker(
            provider,
            rate_limiter,
            max_retries=max_retries,
            max_delay=30,
            sleep=clock.sleep,
        )
        return StageRuntime(
            invoker=invoker,
            parser=StructuredOutputParser(),
            reporter=reporter,
            parse_retries=parse_retries,
        )
    return factory


@pytest.fixture
def make_pipeline(make_runtime):
    def factory(provider, **kwargs):
        return AnalysisPipeline(make_runtime(provider, **kwargs))
    return factory


@pytest.fixture
def sample_transcript():
    return "Welcome back everyone. Today we fucking speedrun the whole game and it was wild."


@pytest.fixture
def client(make_pipeline):
    """FastAPI test client backed by a scripted provider."""
    provider = FakeProvider(enhanced_responses())
    app.dependency_overrides[get_pipeline] = lambda: make_pipeline(provider)
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
