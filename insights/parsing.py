"""
Best-effort parsing of model output into Prediction records.

The model is asked for a JSON array but answers in free text. The parse
chain tries each strategy in order and keeps every strategy's failure on
the outcome, so a degraded parse is observable instead of silent:

    outcome = parse_predictions_text(text, "segmentation")
    outcome.strategy   # "direct", "bracket_slice" or None
    outcome.errors     # ParseStrategyError per failed strategy
    outcome.predictions

Custom segments use the same chain over a single JSON object; see
``parse_segment_text``.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from .config import DEFAULT_CONFIG, ScoringConfig
from .errors import ParseStrategyError
from .models import AnalysisType, CustomSegment, Prediction, PredictionMetadata, SegmentFilter

logger = logging.getLogger("insights.parsing")

DEFAULT_PROBABILITY = 50

_FENCE = re.compile(r"```[a-zA-Z]*")

# Accepted spellings per logical field, first present wins
FIELD_ALIASES = {
    "customer_id": ["customerId", "profileId", "id"],
    "profile_id": ["profileId", "customerId", "id"],
    "customer_name": ["customerName", "name", "müşteri_adı"],
    "current_product": ["currentProduct", "product", "mevcut_ürün"],
    "suggested_product": ["suggestedProduct", "suggested_product", "önerilen_ürün"],
    "probability": ["probability", "olasılık", "risk"],
    "reason": ["reason", "sebep", "açıklama"],
    "city": ["city", "şehir"],
    "hashtags": ["hashtags"],
    "opportunity_type": ["opportunityType", "fırsat_tipi"],
    "priority": ["priority"],
    "next_best_action": ["nextBestAction"],
    "customer_type": ["customerType"],
}


def strip_code_fences(text: str) -> str:
    """Remove Markdown code fences (``` and ```json) and surrounding space."""
    return _FENCE.sub("", text or "").strip()


def parse_direct(text: str) -> list:
    """
    Parse the whole text as JSON.

    A top-level object is accepted when it holds the array under
    ``predictions`` or ``data``.
    """
    try:
        value = json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        raise ParseStrategyError("direct", f"invalid JSON ({e})")

    if isinstance(value, dict):
        for key in ("predictions", "data"):
            if isinstance(value.get(key), list):
                return value[key]
        raise ParseStrategyError("direct", "object has no 'predictions' or 'data' array")
    if not isinstance(value, list):
        raise ParseStrategyError("direct", f"expected array, got {type(value).__name__}")
    return value


def parse_bracket_slice(text: str) -> list:
    """Parse the substring between the first '[' and the last ']'."""
    start = text.find("[")
    end = text.rfind("]")
    if start == -1 or end <= start:
        raise ParseStrategyError("bracket_slice", "no bracketed array found")
    try:
        value = json.loads(text[start:end + 1])
    except json.JSONDecodeError as e:
        raise ParseStrategyError("bracket_slice", f"invalid JSON ({e})")
    if not isinstance(value, list):
        raise ParseStrategyError("bracket_slice", "sliced value is not an array")
    return value


# Tried in order, first success wins
PARSE_STRATEGIES: list[tuple[str, Callable[[str], list]]] = [
    ("direct", parse_direct),
    ("bracket_slice", parse_bracket_slice),
]


@dataclass
class ParseOutcome:
    """Result of running the parse chain over one model response."""

    raw_items: list = field(default_factory=list)
    predictions: list[Prediction] = field(default_factory=list)
    strategy: Optional[str] = None
    errors: list[ParseStrategyError] = field(default_factory=list)
    dropped: int = 0

    @property
    def ok(self) -> bool:
        return self.strategy is not None


def extract_array(text: str) -> ParseOutcome:
    """Run the strategies over fence-stripped text."""
    cleaned = strip_code_fences(text)
    outcome = ParseOutcome()
    for name, strategy in PARSE_STRATEGIES:
        try:
            outcome.raw_items = strategy(cleaned)
        except ParseStrategyError as e:
            logger.debug("parse strategy %s failed: %s", name, e.message)
            outcome.errors.append(e)
            continue
        outcome.strategy = name
        break
    return outcome


def _pick(record: dict, field_name: str) -> Any:
    for key in FIELD_ALIASES[field_name]:
        value = record.get(key)
        if value is not None and value != "":
            return value
    return None


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        value = " ".join(str(v) for v in value)
    text = str(value).strip()
    return text or None


def _probability(value: Any) -> int:
    if value is None:
        return DEFAULT_PROBABILITY
    try:
        number = int(float(str(value).strip().rstrip("%")))
    except (ValueError, OverflowError):
        return DEFAULT_PROBABILITY
    return min(100, max(0, number))


def normalize_record(
    record: Any,
    analysis_type: AnalysisType | str,
    config: ScoringConfig = DEFAULT_CONFIG,
) -> Optional[Prediction]:
    """
    Map one raw element onto a Prediction.

    Returns None for non-objects and for records lacking a customer id or a
    customer name.
    """
    if not isinstance(record, dict):
        return None

    customer_id = _text(_pick(record, "customer_id"))
    customer_name = _text(_pick(record, "customer_name"))
    if customer_id is None or customer_name is None:
        return None

    probability = _probability(_pick(record, "probability"))
    return Prediction(
        analysis_type=AnalysisType.parse(analysis_type).value,
        customer_id=customer_id,
        profile_id=_text(_pick(record, "profile_id")) or customer_id,
        customer_name=customer_name,
        current_product=_text(_pick(record, "current_product")) or "",
        suggested_product=_text(_pick(record, "suggested_product")),
        probability=probability,
        reason=_text(_pick(record, "reason")) or "",
        city=_text(_pick(record, "city")),
        hashtags=_text(_pick(record, "hashtags")),
        metadata=PredictionMetadata(
            opportunity_type=_text(_pick(record, "opportunity_type")),
            priority=_text(_pick(record, "priority")) or config.get_priority(probability),
            next_best_action=(
                _text(_pick(record, "next_best_action"))
                or config.get_next_best_action(probability)
            ),
            customer_type=_text(_pick(record, "customer_type")),
        ),
    )


def parse_predictions_text(
    text: str,
    analysis_type: AnalysisType | str,
    config: ScoringConfig = DEFAULT_CONFIG,
) -> ParseOutcome:
    """
    Parse model output into predictions, never raising on bad content.

    Unparseable text gives an outcome with no predictions and one error per
    strategy; unusable elements are counted in ``dropped``.
    """
    outcome = extract_array(text)
    if not outcome.ok:
        logger.warning(
            "could not parse model output (%d chars): %s",
            len(text or ""), "; ".join(str(e) for e in outcome.errors),
        )
        return outcome

    for item in outcome.raw_items:
        prediction = normalize_record(item, analysis_type, config)
        if prediction is None:
            outcome.dropped += 1
        else:
            outcome.predictions.append(prediction)

    outcome.predictions.sort(key=lambda p: p.probability, reverse=True)
    logger.debug(
        "parsed %d predictions via %s (%d dropped)",
        len(outcome.predictions), outcome.strategy, outcome.dropped,
    )
    return outcome


# Custom segments: the model answers with one JSON object

DEFAULT_SEGMENT_TITLE = "Özel Segment"
DEFAULT_SEGMENT_CONFIDENCE = 75


def parse_object_direct(text: str) -> dict:
    try:
        value = json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        raise ParseStrategyError("direct", f"invalid JSON ({e})")
    if not isinstance(value, dict):
        raise ParseStrategyError("direct", f"expected object, got {type(value).__name__}")
    return value


def parse_brace_slice(text: str) -> dict:
    """Parse the substring between the first '{' and the last '}'."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        raise ParseStrategyError("brace_slice", "no braced object found")
    try:
        value = json.loads(text[start:end + 1])
    except json.JSONDecodeError as e:
        raise ParseStrategyError("brace_slice", f"invalid JSON ({e})")
    if not isinstance(value, dict):
        raise ParseStrategyError("brace_slice", "sliced value is not an object")
    return value


SEGMENT_STRATEGIES: list[tuple[str, Callable[[str], dict]]] = [
    ("direct", parse_object_direct),
    ("brace_slice", parse_brace_slice),
]


@dataclass
class SegmentParseOutcome:
    segment: Optional[CustomSegment] = None
    strategy: Optional[str] = None
    errors: list[ParseStrategyError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.segment is not None


def _confidence(value: Any) -> int:
    try:
        number = int(float(str(value).strip().rstrip("%")))
    except (ValueError, OverflowError):
        return DEFAULT_SEGMENT_CONFIDENCE
    return min(100, max(0, number))


def parse_segment_text(text: str, criteria: str) -> SegmentParseOutcome:
    """
    Parse a custom-segment answer, never raising on bad content.

    Title and insight fall back to a generic title and the user's criteria;
    an invalid ``filters`` object fails the parse like unreadable JSON.
    """
    cleaned = strip_code_fences(text)
    outcome = SegmentParseOutcome()
    data = None
    for name, strategy in SEGMENT_STRATEGIES:
        try:
            data = strategy(cleaned)
        except ParseStrategyError as e:
            logger.debug("segment parse strategy %s failed: %s", name, e.message)
            outcome.errors.append(e)
            continue
        outcome.strategy = name
        break

    if data is None:
        logger.warning(
            "could not parse segment output (%d chars): %s",
            len(text or ""), "; ".join(str(e) for e in outcome.errors),
        )
        return outcome

    try:
        filters = SegmentFilter.from_mapping(data.get("filters"))
    except ValueError as e:
        logger.warning("segment filters rejected: %s", e)
        outcome.errors.append(ParseStrategyError("filters", str(e)))
        return outcome

    outcome.segment = CustomSegment(
        criteria=criteria,
        title=_text(data.get("title")) or DEFAULT_SEGMENT_TITLE,
        insight=_text(data.get("insight")) or criteria,
        confidence=_confidence(data.get("confidence")),
        filters=filters,
    )
    return outcome
