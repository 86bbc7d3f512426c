"""Tests for the end-to-end analysis pipeline and its fallback tiers."""

import json

import pytest

from policyscan.exceptions import ConfigurationError, EmptyTextError
from policyscan.pipelines.analysis_pipeline import build_pipeline
from policyscan.schemas.analysis_schemas import ChannelContext
from policyscan.utils.logging_config import metrics
from policyscan.utils.policy_categories import POLICY_CATEGORY_KEYS

from conftest import FakeProvider, basic_json, enhanced_responses

GARBAGE = "Sorry, something went wrong on my side."


class TestEnhancedMode:
    """Tests for the full multi-stage run."""

    async def test_full_result(self, make_pipeline, sample_transcript):
        """A clean run fills every field of the result."""
        provider = FakeProvider(enhanced_responses())
        result = await make_pipeline(provider).analyze(sample_transcript)

        assert result.analysis_metadata.analysis_mode == "enhanced"
        assert result.analysis_metadata.model_used == "fake-model"
        assert result.analysis_metadata.content_length == len(sample_transcript)
        assert list(result.policy_categories) == POLICY_CATEGORY_KEYS
        assert result.context_analysis.content_type == "Gaming"
        assert result.confidence_score == 82
        assert len(result.suggestions) == 6
        assert result.flagged_section == "The closing rant uses strong profanity."
        assert result.ai_detection is None
        assert [stage for stage, _ in provider.calls] == [
            "context", "policy", "risk", "confidence", "suggestions",
        ]
        assert metrics.get_counter("analysis.mode.enhanced") == 1

    async def test_score_from_weighted_categories(self, make_pipeline, sample_transcript):
        """The overall score comes from the category map, not the risk stage."""
        provider = FakeProvider(enhanced_responses())
        result = await make_pipeline(provider).analyze(sample_transcript)

        # one category at 60 among 19 (total weight 26): 60/26 + 5
        assert result.risk_score == 7
        assert result.risk_level == "LOW"
        assert len(result.highlights) == 1
        assert result.highlights[0].category == "ADVERTISER FRIENDLY PROFANITY"

    async def test_phrases_deduped_and_filtered(self, make_pipeline, sample_transcript):
        """Duplicate spellings and benign phrases are removed everywhere."""
        provider = FakeProvider(enhanced_responses())
        result = await make_pipeline(provider).analyze(sample_transcript)

        assert result.risky_phrases == ["fuck"]
        assert result.risky_phrases_by_category == {"ADVERTISER_FRIENDLY_PROFANITY": ["fuck"]}
        assert result.risky_spans[0].text == "fuck"

    async def test_ai_detection_with_channel_context(self, make_pipeline, sample_transcript):
        """Channel context adds AI detection, kept out of the category map."""
        provider = FakeProvider(enhanced_responses())
        result = await make_pipeline(provider).analyze(
            sample_transcript,
            channel_context=ChannelContext(channel_age_years=0.5, subscriber_count=100),
        )

        assert result.ai_detection is not None
        assert result.ai_detection.probability == 30  # 50 x 0.6 for Gaming
        assert "AI_GENERATED_CONTENT" not in result.policy_categories
        assert provider.calls[-1][0] == "ai_detection"
        assert "Content Type: Gaming" in provider.calls_for("ai_detection")[0]

    async def test_long_text_is_chunked(self, make_pipeline):
        """Text over the chunk size is assessed one window at a time."""
        text = " ".join(["word"] * 1600)
        provider = FakeProvider(enhanced_responses())
        result = await make_pipeline(provider).analyze(text)

        assert len(provider.calls_for("risk")) == 3
        assert [s.start_index for s in result.risky_spans] == [10, 3260, 6510]
        assert result.analysis_metadata.analysis_mode == "enhanced"

    async def test_entities_decoded_before_prompting(self, make_pipeline):
        """Double-encoded entities reach the model decoded."""
        provider = FakeProvider(enhanced_responses())
        await make_pipeline(provider).analyze("Tom &amp;amp; Jerry fight   again")
        assert 'Content: "Tom & Jerry fight again"' in provider.calls_for("context")[0]


class TestFallbackModes:
    """Tests for degradation to basic and emergency modes."""

    async def test_stage_error_falls_back_to_basic(self, make_pipeline, reporter, sample_transcript):
        """A non-quota failure mid-run yields a basic result with no categories."""
        provider = FakeProvider(enhanced_responses(confidence=RuntimeError("socket closed")))
        result = await make_pipeline(provider).analyze(sample_transcript)

        assert result.analysis_metadata.analysis_mode == "fallback"
        assert result.policy_categories == {}
        assert result.risk_score == 55
        assert result.risk_level == "MEDIUM"
        assert result.confidence_score == 75
        assert result.context_analysis.content_type == "General"
        assert all(h.confidence == 75 for h in result.highlights)
        assert all(s.priority == "MEDIUM" and s.impact_score == 50 for s in result.suggestions)
        assert result.risky_phrases == []
        assert reporter.stages() == ["enhanced"]
        assert reporter.captured[0]["tags"]["component"] == "analysis-pipeline"
        assert reporter.captured[0]["extra"]["model"] == "fake-model"

    async def test_context_parse_failure_falls_back(self, make_pipeline, sample_transcript):
        """An unparseable context reply ends enhanced mode."""
        provider = FakeProvider(enhanced_responses(context=GARBAGE))
        result = await make_pipeline(provider).analyze(sample_transcript)
        assert result.analysis_metadata.analysis_mode == "fallback"
        assert provider.calls_for("policy") == []

    async def test_quota_exhaustion_falls_back(self, make_pipeline, sample_transcript):
        """Exhausted quota retries are not swallowed by a stage default."""
        provider = FakeProvider(enhanced_responses(risk=RuntimeError("429 Too Many Requests")))
        result = await make_pipeline(provider, max_retries=1).analyze(sample_transcript)
        assert result.analysis_metadata.analysis_mode == "fallback"
        assert len(provider.calls_for("risk")) == 2

    async def test_basic_level_derived_when_missing(self, make_pipeline, sample_transcript):
        """A basic reply without a level gets one from its score."""
        basic = json.loads(basic_json(risk_score=80))
        del basic["risk_level"]
        provider = FakeProvider(enhanced_responses(context=GARBAGE, basic=json.dumps(basic)))
        result = await make_pipeline(provider).analyze(sample_transcript)
        assert result.risk_level == "HIGH"

    async def test_both_tiers_fail_gives_emergency(self, make_pipeline, reporter, sample_transcript):
        """When basic mode fails too, the emergency result is returned."""
        provider = FakeProvider(enhanced_responses(context=GARBAGE, basic=GARBAGE))
        result = await make_pipeline(provider).analyze(sample_transcript)

        assert result.analysis_metadata.analysis_mode == "emergency"
        assert result.analysis_metadata.model_used == "emergency-fallback"
        assert result.risk_score == 50
        assert result.risk_level == "MEDIUM"
        assert result.confidence_score == 25
        assert result.flagged_section == "Content analysis unavailable due to service limits"
        assert result.context_analysis.language_detected == "Unknown"
        assert result.highlights[0].category == "Service Status"
        assert result.suggestions[0].title == "Service Temporarily Unavailable"
        assert (result.suggestions[0].priority, result.suggestions[0].impact_score) == ("HIGH", 0)
        assert "enhanced" in reporter.stages()
        assert reporter.stages()[-1] == "basic-fallback"
        assert "original_error" in reporter.captured[-1]["extra"]
        assert metrics.get_counter("analysis.mode.emergency") == 1


class TestInputValidation:
    """Tests for input checks."""

    @pytest.mark.parametrize("text", ["", "   ", "\n\t", "&nbsp;&#32;&nbsp;", "&amp;nbsp; &#9;"])
    async def test_empty_text_rejected_before_model_call(self, make_pipeline, text):
        """Blank input raises without touching the provider."""
        provider = FakeProvider(enhanced_responses())
        with pytest.raises(EmptyTextError) as exc_info:
            await make_pipeline(provider).analyze(text)
        assert str(exc_info.value) == "No text provided for analysis."
        assert provider.calls == []


class TestBuildPipeline:
    """Tests for the composition root."""

    def test_explicit_provider(self):
        """A supplied provider is used as-is."""
        pipeline = build_pipeline(provider=FakeProvider(name="injected"))
        assert pipeline.model_name == "injected"

    def test_missing_credentials(self):
        """Without a provider or credentials, building fails."""
        from policyscan.config import Settings

        with pytest.raises(ConfigurationError):
            build_pipeline(Settings(openai_api_key="", anthropic_api_key=""))

    def test_limiters_are_not_shared_between_pipelines(self):
        """Each pipeline owns its own rate limiter unless one is passed in."""
        first = build_pipeline(provider=FakeProvider())
        second = build_pipeline(provider=FakeProvider())
        assert first.runtime.invoker.rate_limiter is not second.runtime.invoker.rate_limiter
