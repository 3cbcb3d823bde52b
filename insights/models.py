"""
Domain records shared by the engines, the store and the LLM path.

Profiles and cancellation statistics are read-only inputs; predictions are
the engines' output and the unit the prediction store persists.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional


class AnalysisType(str, Enum):
    """Closed set of analysis types. Only the first two are rule-based."""

    CROSS_SELL = "cross_sell"
    CHURN = "churn_prediction"
    SEGMENTATION = "segmentation"
    PRODUCTS = "products"

    @property
    def is_rule_based(self) -> bool:
        return self in (AnalysisType.CROSS_SELL, AnalysisType.CHURN)

    @classmethod
    def parse(cls, value: "AnalysisType | str") -> "AnalysisType":
        """Resolve a raw string, raising ValueError for unknown types."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip())
        except ValueError:
            known = ", ".join(t.value for t in cls)
            raise ValueError(f"Unknown analysis type {value!r} (expected one of: {known})")


class Segment(str, Enum):
    PREMIUM = "premium"
    MID = "mid"
    BUDGET = "budget"


@dataclass
class CustomerProfile:
    """Aggregated customer profile as supplied by the profile repository."""

    profile_id: str
    name: str = ""
    account_code: Optional[str] = None
    customer_type: str = "Bireysel"
    city: Optional[str] = None
    products: str = ""
    policy_count: int = 0
    hashtags: str = ""

    @property
    def customer_id(self) -> str:
        """Account code when present, else the profile id."""
        return self.account_code or self.profile_id

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class CancellationStats:
    """Per-account cancellation aggregate, keyed by account code."""

    account_code: str
    cancelled_count: int = 0
    total_policies: int = 0
    reasons: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.total_policies = max(0, int(self.total_policies or 0))
        self.cancelled_count = min(
            max(0, int(self.cancelled_count or 0)), self.total_policies
        )

    @property
    def cancellation_ratio(self) -> Optional[float]:
        """Cancelled / total, or None when there are no policies."""
        if self.total_policies == 0:
            return None
        return self.cancelled_count / self.total_policies


@dataclass
class PredictionMetadata:
    """Named optional fields carried alongside a prediction."""

    opportunity_type: Optional[str] = None
    priority: Optional[str] = None
    next_best_action: Optional[str] = None
    customer_type: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "PredictionMetadata":
        data = data or {}
        return cls(
            opportunity_type=data.get("opportunity_type"),
            priority=data.get("priority"),
            next_best_action=data.get("next_best_action"),
            customer_type=data.get("customer_type"),
        )


@dataclass
class Prediction:
    """One normalized prediction record."""

    analysis_type: str
    customer_id: str
    profile_id: str
    customer_name: str = ""
    current_product: str = ""
    suggested_product: Optional[str] = None
    probability: int = 50
    reason: str = ""
    city: Optional[str] = None
    hashtags: Optional[str] = None
    metadata: PredictionMetadata = field(default_factory=PredictionMetadata)

    def __post_init__(self) -> None:
        if isinstance(self.analysis_type, AnalysisType):
            self.analysis_type = self.analysis_type.value
        self.probability = min(100, max(0, int(self.probability)))

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class PredictionFilter:
    """
    Read filter for stored predictions.

    Build from raw query parameters with ``from_mapping``, which validates
    and coerces each known key and ignores anything else.
    """

    analysis_type: Optional[str] = None
    min_probability: Optional[int] = None
    max_probability: Optional[int] = None
    search: Optional[str] = None
    product: Optional[str] = None
    city: Optional[str] = None

    def __post_init__(self) -> None:
        if (
            self.min_probability is not None
            and self.max_probability is not None
            and self.min_probability > self.max_probability
        ):
            raise ValueError(
                f"min_probability ({self.min_probability}) is greater than "
                f"max_probability ({self.max_probability})"
            )

    @classmethod
    def from_mapping(cls, params: Mapping[str, Any]) -> "PredictionFilter":
        """
        Validate raw parameters (camelCase or snake_case keys).

        Raises:
            ValueError: unknown analysis type, non-numeric probability,
                or min greater than max
        """

        def pick(*keys: str) -> Any:
            for key in keys:
                value = params.get(key)
                if value is None:
                    continue
                if isinstance(value, str):
                    value = value.strip()
                    if not value:
                        continue
                return value
            return None

        def probability(*keys: str) -> Optional[int]:
            value = pick(*keys)
            if value is None:
                return None
            try:
                number = int(value)
            except (TypeError, ValueError):
                raise ValueError(f"{keys[0]} must be an integer, got {value!r}")
            return min(100, max(0, number))

        analysis_type = pick("analysis_type", "analysisType")
        if analysis_type is not None:
            analysis_type = AnalysisType.parse(analysis_type).value

        return cls(
            analysis_type=analysis_type,
            min_probability=probability("min_probability", "minProbability"),
            max_probability=probability("max_probability", "maxProbability"),
            search=pick("search"),
            product=pick("product"),
            city=pick("city"),
        )


@dataclass(frozen=True)
class SegmentFilter:
    """
    Profile selection criteria proposed by the model for a custom segment.

    Product criteria name a product the way the agency writes it
    ("Oto Kaza (Kasko)") and are matched against the catalogue; every
    hashtag must be present; city and customer type compare case-folded.
    Build from the model's ``filters`` object with ``from_mapping``.
    """

    has_products: tuple[str, ...] = ()
    not_has_products: tuple[str, ...] = ()
    hashtags: tuple[str, ...] = ()
    city: Optional[str] = None
    customer_type: Optional[str] = None
    policy_count_min: Optional[int] = None
    policy_count_max: Optional[int] = None

    def __post_init__(self) -> None:
        if (
            self.policy_count_min is not None
            and self.policy_count_max is not None
            and self.policy_count_min > self.policy_count_max
        ):
            raise ValueError(
                f"policy_count_min ({self.policy_count_min}) is greater than "
                f"policy_count_max ({self.policy_count_max})"
            )

    @property
    def is_empty(self) -> bool:
        return self == SegmentFilter()

    def to_dict(self) -> dict:
        return {k: (list(v) if isinstance(v, tuple) else v) for k, v in asdict(self).items()}

    @classmethod
    def from_mapping(cls, params: Optional[Mapping[str, Any]]) -> "SegmentFilter":
        """
        Validate a raw filter object (camelCase keys as the model writes them).

        Keys: hasBranch, hasBranch2, notHasBranch, notHasBranch2, hashtag,
        hashtags, city, customerType, policyCountMin, policyCountMax. Other
        keys are ignored.

        Raises:
            ValueError: not an object, non-numeric or negative policy
                count, or min greater than max
        """
        if params is None:
            return cls()
        if not isinstance(params, Mapping):
            raise ValueError(f"filters must be an object, got {type(params).__name__}")

        def text(key: str) -> Optional[str]:
            value = params.get(key)
            if value is None or isinstance(value, (dict, list)):
                return None
            value = str(value).strip()
            return value or None

        def texts(*keys: str) -> tuple[str, ...]:
            return tuple(v for v in (text(k) for k in keys) if v)

        def count(key: str) -> Optional[int]:
            value = params.get(key)
            if value is None or value == "":
                return None
            try:
                number = int(value)
            except (TypeError, ValueError):
                raise ValueError(f"{key} must be an integer, got {value!r}")
            if number < 0:
                raise ValueError(f"{key} must not be negative, got {number}")
            return number

        raw_tags = []
        if text("hashtag"):
            raw_tags.append(text("hashtag"))
        listed = params.get("hashtags")
        if isinstance(listed, str):
            listed = listed.split()
        if isinstance(listed, (list, tuple)):
            raw_tags.extend(str(t).strip() for t in listed if str(t).strip())
        hashtags = []
        for tag in raw_tags:
            tag = tag if tag.startswith("#") else f"#{tag}"
            if tag not in hashtags:
                hashtags.append(tag)

        return cls(
            has_products=texts("hasBranch", "hasBranch2"),
            not_has_products=texts("notHasBranch", "notHasBranch2"),
            hashtags=tuple(hashtags),
            city=text("city"),
            customer_type=text("customerType"),
            policy_count_min=count("policyCountMin"),
            policy_count_max=count("policyCountMax"),
        )


@dataclass
class CustomSegment:
    """A model-proposed segment and the profiles its filter selects."""

    criteria: str
    title: str
    insight: str
    confidence: int = 75
    filters: SegmentFilter = field(default_factory=SegmentFilter)
    customer_ids: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.confidence = min(100, max(0, int(self.confidence)))

    @property
    def customer_count(self) -> int:
        return len(self.customer_ids)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["filters"] = self.filters.to_dict()
        return data
