"""
Structured-output parsing for model responses.

Model text is supposed to be one JSON object but regularly arrives with
trailing commas, unescaped quotes inside string values, surrounding prose
or markdown fences. Each repair is a separate strategy, tried in order;
the first candidate that both parses and validates against the expected
pydantic schema wins.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Generic, List, Optional, Sequence, Tuple, Type, TypeVar

from pydantic import BaseModel, ValidationError

from policyscan.exceptions import JSONParsingError
from policyscan.services.error_reporter import truncate_payload
from policyscan.utils.logging_config import StructuredLogger, metrics
from policyscan.utils.normalization import normalize_batch_scores

logger = StructuredLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

# String fields whose values most often carry unescaped quotes
KNOWN_STRING_FIELDS = (
    "explanation",
    "violations",
    "severity",
    "content_type",
    "target_audience",
    "language_detected",
    "flagged_section",
    "title",
    "text",
)

_FENCE = re.compile(r"^```(?:json|JSON)?\s*(.*?)\s*```$", re.DOTALL)
_TRAILING_COMMA = re.compile(r",(\s*[}\]])")
_UNESCAPED_QUOTE = re.compile(r'(?<!\\)"')
_KNOWN_FIELD_VALUE = re.compile(r'"(?:%s)"\s*:\s*"' % "|".join(KNOWN_STRING_FIELDS))
_ANY_FIELD_VALUE = re.compile(r'"[^"\\\n]+"\s*:\s*"')
# What may follow the closing quote of a string value
_VALUE_TERMINATOR = re.compile(r'\s*(?:$|[}\]]|,\s*(?:$|["{\[}\]]))')
_OBJECT_BLOCK = re.compile(r"\{[\s\S]*\}")

_MANUAL_INT = r'"%s"\s*:\s*"?(\d+(?:\.\d+)?)'
_MANUAL_SEVERITY = re.compile(r'"severity"\s*:\s*"([^"]+)"', re.IGNORECASE)
_MANUAL_VIOLATIONS = re.compile(r'"violations"\s*:\s*\[([^\]]*)\]', re.IGNORECASE)
_MANUAL_EXPLANATION = re.compile(r'"explanation"\s*:\s*"((?:[^"\\]|\\.)*)"', re.IGNORECASE)


@dataclass
class ParseResult(Generic[ModelT]):
    """A validated payload and the strategy that produced it."""
    data: ModelT
    strategy: str
    attempts: List[str] = field(default_factory=list)


# ============== TEXT REPAIRS ==============


def strip_code_fences(raw: str) -> str:
    text = (raw or "").strip()
    match = _FENCE.match(text)
    return match.group(1) if match else text


def sanitize_json(raw: str) -> str:
    """Drop trailing commas before closers and fix `\\'` escapes."""
    text = _TRAILING_COMMA.sub(r"\1", raw)
    return text.replace("\\'", "'")


def _find_value_end(text: str, start: int) -> Optional[int]:
    """Index of the quote that really closes the string value at `start`."""
    i = start
    length = len(text)
    while i < length:
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if ch == '"' and _VALUE_TERMINATOR.match(text, i + 1):
            return i
        i += 1
    return None


def escape_interior_quotes(raw: str, value_pattern: "re.Pattern[str]") -> str:
    """
    Escape bare quotes inside string values.

    `value_pattern` matches up to and including the opening quote of a
    value. The closing quote is the first one followed by `,`, `}` or `]`
    (or end of input), so `"He said "hi""}` becomes `"He said \\"hi\\""}`.
    """
    out = []
    pos = 0
    while True:
        match = value_pattern.search(raw, pos)
        if not match:
            out.append(raw[pos:])
            break
        value_start = match.end()
        out.append(raw[pos:value_start])
        value_end = _find_value_end(raw, value_start)
        if value_end is None:
            out.append(raw[value_start:])
            break
        out.append(_UNESCAPED_QUOTE.sub(r'\\"', raw[value_start:value_end]))
        out.append('"')
        pos = value_end + 1
    return "".join(out)


def extract_object_block(raw: str) -> Optional[str]:
    match = _OBJECT_BLOCK.search(raw or "")
    return match.group(0) if match else None


# ============== STRATEGIES ==============
# Each takes (raw text, expected category keys) and returns decoded JSON
# or raises ValueError.


def parse_direct(raw: str, category_keys: Sequence[str] = ()) -> Any:
    return json.loads(strip_code_fences(raw))


def parse_sanitized(raw: str, category_keys: Sequence[str] = ()) -> Any:
    return json.loads(sanitize_json(strip_code_fences(raw)))


def parse_known_field_repair(raw: str, category_keys: Sequence[str] = ()) -> Any:
    repaired = escape_interior_quotes(strip_code_fences(raw), _KNOWN_FIELD_VALUE)
    return json.loads(sanitize_json(repaired))


def parse_generic_quote_repair(raw: str, category_keys: Sequence[str] = ()) -> Any:
    repaired = escape_interior_quotes(strip_code_fences(raw), _ANY_FIELD_VALUE)
    return json.loads(sanitize_json(repaired))


def parse_extracted_object(raw: str, category_keys: Sequence[str] = ()) -> Any:
    """Pull the outermost {...} out of surrounding prose and re-run the repairs."""
    block = extract_object_block(raw)
    if block is None:
        raise ValueError("No JSON object found in response")

    last_error: Optional[Exception] = None
    for repair in (parse_direct, parse_sanitized, parse_known_field_repair, parse_generic_quote_repair):
        try:
            return repair(block)
        except ValueError as e:
            last_error = e
    raise ValueError(f"Extracted object did not parse: {last_error}")


def _manual_number(block: str, name: str) -> Optional[float]:
    match = re.search(_MANUAL_INT % name, block, re.IGNORECASE)
    return float(match.group(1)) if match else None


def parse_manual_fields(raw: str, category_keys: Sequence[str] = ()) -> Any:
    """
    Last resort for category batches: regex each expected category's block
    and pull its fields out one by one.
    """
    if not category_keys:
        raise ValueError("Manual extraction needs expected category keys")

    found: Dict[str, Dict[str, Any]] = {}
    for key in category_keys:
        match = re.search(r'"%s"\s*:\s*\{([^}]+)\}' % re.escape(key), raw or "", re.IGNORECASE)
        if not match:
            continue
        block = match.group(1)

        severity = _MANUAL_SEVERITY.search(block)
        violations = _MANUAL_VIOLATIONS.search(block)
        explanation = _MANUAL_EXPLANATION.search(block)

        found[key] = {
            "risk_score": _manual_number(block, "risk_score"),
            "confidence": _manual_number(block, "confidence") or 0.0,
            "severity": severity.group(1).upper() if severity else None,
            "violations": [
                v.strip().strip('"') for v in violations.group(1).split(",") if v.strip().strip('"')
            ] if violations else [],
            "explanation": (
                explanation.group(1).replace('\\"', '"').replace("\\\\", "\\")
                if explanation else "Analysis partially extracted from malformed response"
            ),
        }

    if not found:
        raise ValueError("No expected category found in response")

    # Unscored categories stay None and are scored from their label later
    scored = [k for k in found if found[k]["risk_score"] is not None]
    for key, risk in zip(scored, normalize_batch_scores(found[k]["risk_score"] for k in scored)):
        found[key]["risk_score"] = risk
    keys = list(found)
    for key, conf in zip(keys, normalize_batch_scores(found[k]["confidence"] for k in keys)):
        found[key]["confidence"] = conf

    return {"categories": found}


DEFAULT_STRATEGIES: List[Tuple[str, Callable[[str, Sequence[str]], Any]]] = [
    ("direct", parse_direct),
    ("sanitize", parse_sanitized),
    ("known_field_quote_repair", parse_known_field_repair),
    ("generic_quote_repair", parse_generic_quote_repair),
    ("extract_object", parse_extracted_object),
    ("manual_fields", parse_manual_fields),
]


class StructuredOutputParser:
    """
    Runs the strategy chain and validates each candidate.

    Usage:
        parser = StructuredOutputParser()
        result = parser.parse(raw_text, RiskAssessment)
        result.data          # validated RiskAssessment
        result.strategy      # e.g. "known_field_quote_repair"
    """

    def __init__(self, strategies: Optional[List[Tuple[str, Callable[[str, Sequence[str]], Any]]]] = None):
        self.strategies = strategies or DEFAULT_STRATEGIES

    def parse(
        self,
        raw: str,
        schema: Type[ModelT],
        category_keys: Optional[Sequence[str]] = None,
    ) -> ParseResult[ModelT]:
        """
        Raises:
            JSONParsingError: no strategy produced a payload that validates
        """
        attempts: List[str] = []
        last_error: Optional[str] = None
        keys = tuple(category_keys or ())

        for name, strategy in self.strategies:
            attempts.append(name)
            try:
                candidate = strategy(raw, keys)
                data = schema.model_validate(candidate)
            except (ValueError, TypeError, ValidationError) as e:
                last_error = f"{name}: {e}"
                continue

            if len(attempts) > 1:
                logger.info("Recovered malformed model output", strategy=name, schema=schema.__name__)
            metrics.increment(f"parser.strategy.{name}")
            return ParseResult(data=data, strategy=name, attempts=attempts)

        metrics.increment("parser.failures")
        raise JSONParsingError(
            strategies=attempts,
            raw_excerpt=truncate_payload(raw),
            last_error=last_error,
        )
