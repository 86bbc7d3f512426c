"""
Prompt templates for every analysis stage.

All prompts ask for a single JSON object and spell out the schema. Scores
are always requested on a 0-100 scale; responses that ignore this are
rescaled by the score normalizer.
"""

import json
from typing import Any, Dict, List

from policyscan.schemas.analysis_schemas import CONTENT_TYPES, TARGET_AUDIENCES, DEFAULT_CONTENT_TYPE
from policyscan.utils.false_positives import COMMON_WORDS, FAMILY_TERMS, TECHNOLOGY_TERMS
from policyscan.utils.policy_categories import POLICY_CATEGORY_KEYS, get_display_name

AI_DETECTION_EXCERPT_CHARS = 2000

JSON_RULES = """IMPORTANT: Respond ONLY with valid JSON. No commentary or text outside the JSON object.
JSON FORMATTING RULES:
- Escape any double quote inside a string value as \\".
- Escape newlines inside strings as \\n.
- No comments, no trailing commas, no markdown fences."""

SCALE_RULE = (
    "Return every score as an integer between 0 and 100. "
    "Do NOT use a 0-5 or 0-10 scale."
)


def _dump(value: Any) -> str:
    if hasattr(value, "model_dump"):
        value = value.model_dump()
    elif isinstance(value, dict):
        value = {k: v.model_dump() if hasattr(v, "model_dump") else v for k, v in value.items()}
    return json.dumps(value, indent=2, ensure_ascii=False)


def _benign_examples(words: List[str], limit: int = 20) -> str:
    return ", ".join(f'"{w}"' for w in words[:limit])


class AnalysisPrompts:
    """Collection of stage prompts."""

    @staticmethod
    def context_analysis(text: str) -> str:
        return f"""{JSON_RULES}

Analyze the following content to determine its context and characteristics.

Content: "{text}"

Return JSON with this structure:
{{
  "content_type": "one of: {', '.join(CONTENT_TYPES)}",
  "target_audience": "one of: {', '.join(TARGET_AUDIENCES)}",
  "monetization_impact": "number 0-100, how likely this content type is to be monetized",
  "content_length": "number, word count",
  "language_detected": "primary language"
}}

Content type guidelines:
- Sports talk (teams, players, matches, goals, leagues) -> "Sports"
- Video games, gameplay, exploits, cheats -> "Gaming"
- Programming or software walkthroughs -> "Technology" or "Tutorial"
- Instructional material -> "Educational" or "Tutorial"
- Use "{DEFAULT_CONTENT_TYPE}" only when nothing else fits.
"""

    @staticmethod
    def policy_batch(text: str, context: Any) -> str:
        keys = "\n".join(f"- {key} ({get_display_name(key)})" for key in POLICY_CATEGORY_KEYS)
        return f"""{JSON_RULES}

Analyze the following content for video platform policy compliance. For EVERY category key
below give a risk score, confidence, violations, severity and explanation. Return a result
for every key, even when the risk is 0.

Analysis guidelines:
- Be conservative; only flag content that is genuinely problematic.
- Everyday words such as {_benign_examples(COMMON_WORDS)} are NOT violations.
- Family words such as {_benign_examples(FAMILY_TERMS, 12)} are normal family content.
- Device words such as {_benign_examples(TECHNOLOGY_TERMS, 10)} are normal tech content.
- Only flag actual profanity, hate speech, threats, graphic violence or sexual content.
- If in doubt, do not flag.

Category keys (use exactly these as JSON keys):
{keys}

{SCALE_RULE}

Content: "{text}"
Context: {_dump(context)}

Return JSON with this structure:
{{
  "categories": {{
    "CATEGORY_KEY": {{
      "risk_score": 0-100,
      "confidence": 0-100,
      "violations": ["string", ...],
      "severity": "LOW|MEDIUM|HIGH",
      "explanation": "string"
    }}
  }}
}}
"""

    @staticmethod
    def risk_assessment(text: str, policy_analysis: Dict[str, Any], context: Any, chunked: bool = False) -> str:
        keys = "\n".join(f"- {key}" for key in POLICY_CATEGORY_KEYS)
        chunk_note = (
            "This content is one excerpt of a longer transcript. Report character offsets "
            "relative to the start of this excerpt.\n"
            if chunked else ""
        )
        return f"""{JSON_RULES}

Assess the overall risk of the following content and identify ALL and ONLY the sections
that directly contain policy violations or concerns. Do not include generic intros or outros.
{chunk_note}
Content: "{text}"
Policy Analysis: {_dump(policy_analysis)}
Context: {_dump(context)}

Context-aware rules:
- Sports: "rival", "team", "score", "win", "lose" are normal.
- Gaming: "exploits", "kills", "weapons" are acceptable unless they teach real-world harm.
- Technology: security terms are acceptable in research or educational content.
- Educational: academic discussion of sensitive topics is generally acceptable.

Scoring: HIGH (70-100) only for serious violations, MEDIUM (40-69) for moderate concerns,
LOW (0-39) for minor issues or clean content. {SCALE_RULE}

For each category list the ACTUAL words or phrases from the content that cause the risk.
List each phrase once per category. Leave a category's list empty when nothing applies.
Use these category keys in risky_phrases_by_category:
{keys}

Return JSON with this structure:
{{
  "overall_risk_score": 0-100,
  "flagged_section": "one sentence on the most concerning part",
  "risk_factors": ["main risk factors"],
  "severity_level": "LOW|MEDIUM|HIGH",
  "risky_phrases_by_category": {{"CATEGORY_KEY": ["phrase", ...]}},
  "risky_spans": [
    {{"text": "exact text", "start_index": 0, "end_index": 10,
      "risk_level": "LOW|MEDIUM|HIGH", "policy_category": "CATEGORY_KEY",
      "explanation": "why"}}
  ]
}}
"""

    @staticmethod
    def confidence_analysis(text: str, policy_analysis: Dict[str, Any], context: Any) -> str:
        return f"""{JSON_RULES}

Assess how confident the following analysis can be.

Content Length: {len(text)} characters
Policy Analysis: {_dump(policy_analysis)}
Content Context: {_dump(context)}

Consider text clarity and ambiguity, policy specificity, context availability and
consistency of the analysis. {SCALE_RULE}

Return JSON with this structure:
{{
  "overall_confidence": 0-100,
  "text_clarity": 0-100,
  "policy_specificity": 0-100,
  "context_availability": 0-100,
  "confidence_factors": ["factors affecting confidence"]
}}
"""

    @staticmethod
    def suggestions(text: str, policy_analysis: Dict[str, Any], risk_assessment: Any,
                    min_count: int = 5, max_count: int = 12) -> str:
        return f"""{JSON_RULES}

Generate specific, actionable suggestions to improve the following content.

Content: "{text}"
Policy Analysis: {_dump(policy_analysis)}
Risk Assessment: {_dump(risk_assessment)}

Phrase every suggestion as advice ("It is advised to...", "Consider...", "We recommend..."),
never as a direct command. Provide between {min_count} and {max_count} suggestions for every
scan. If the content is safe, include tips on engagement, monetization or best practices.
Do NOT exceed {max_count} suggestions.

Return JSON with this structure:
{{
  "suggestions": [
    {{
      "title": "suggestion title",
      "text": "detailed explanation",
      "priority": "HIGH|MEDIUM|LOW",
      "impact_score": 0-100
    }}
  ]
}}
"""

    @staticmethod
    def ai_detection(
        text: str,
        content_type: str,
        channel_age_years: float,
        established: bool,
        subscriber_count: int,
        video_count: int,
        channel_ai_probability: int,
    ) -> str:
        excerpt = text[:AI_DETECTION_EXCERPT_CHARS]
        if len(text) > AI_DETECTION_EXCERPT_CHARS:
            excerpt += "..."
        return f"""{JSON_RULES}

Analyze this video transcript for AI generation patterns, considering channel context and
content type.

Channel Context:
- Channel Age: {channel_age_years:.1f} years
- Established Channel: {"Yes" if established else "No"}
- Subscriber Count: {subscriber_count}
- Video Count: {video_count}
- AI Probability (Channel Level): {channel_ai_probability}%

Content Type: {content_type}
Content Length: {len(text)} characters

Content: "{excerpt}"

Be VERY conservative. Only flag content with MULTIPLE clear indicators, such as unnaturally
perfect grammar in casual speech, no personal pronouns in personal content, exact repetitive
sentence structures, or template-like structure too rigid for human storytelling.
Do NOT flag structured narratives, specialized terminology, template intros/outros or
personal anecdotes. Keep the probability and the explanation consistent with each other.

Return JSON with this structure:
{{
  "ai_probability": 0-100,
  "confidence": 0-100,
  "patterns": ["pattern", ...],
  "indicators": {{
    "repetitive_language": 0-100,
    "structured_content": 0-100,
    "personal_voice": 0-100,
    "grammar_consistency": 0-100,
    "natural_flow": 0-100
  }},
  "explanation": "at least four sentences referencing the evidence",
  "content_type_adjustment": "how the content type affected detection"
}}
"""

    @staticmethod
    def basic_analysis(text: str, suggestion_count: int = 3) -> str:
        return f"""{JSON_RULES}

Act as an expert video platform policy analyst. Assess the following content against
community guidelines and advertiser-friendly policies.

Content:
---
"{text}"
---

1. risk_score: 0 (no risk) to 100 (high risk), the likelihood of demonetization or removal.
2. risk_level: "LOW", "MEDIUM" or "HIGH".
3. flagged_section: one sentence on the single most significant risk.
4. highlights: up to 4 policy areas at risk, each with category, risk ("high", "medium",
   "low") and score (0-100).
5. suggestions: {suggestion_count} actionable suggestions, each with a title and text.

Return JSON with this structure:
{{
  "risk_score": 0-100,
  "risk_level": "LOW|MEDIUM|HIGH",
  "flagged_section": "string",
  "highlights": [{{"category": "string", "risk": "string", "score": 0-100}}],
  "suggestions": [{{"title": "string", "text": "string"}}]
}}
"""
