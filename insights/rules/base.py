"""Base class for cross-sell rules."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

import pandas as pd

if TYPE_CHECKING:
    from ..config import ScoringConfig


CANDIDATE_COLUMNS = [
    "CUSTOMER_ID",
    "PROFILE_ID",
    "CUSTOMER_NAME",
    "CURRENT_PRODUCT",
    "SUGGESTED_PRODUCT",
    "PROBABILITY",
    "REASON",
    "CITY",
    "HASHTAGS",
    "OPPORTUNITY_TYPE",
    "CUSTOMER_TYPE",
    "RULE",
]


class BaseRule(ABC):
    """
    Abstract base class for cross-sell rules.

    A rule is an ownership predicate over the prepared profile frame plus a
    suggested product. The probability comes from the config, keyed by rule
    name and segment; a segment without a configured probability never
    fires. Each rule emits at most one candidate per profile.
    """

    name: str = "base"
    suggests: str = ""           # catalogue category
    opportunity: str = ""        # human label, e.g. "Trafik var Kasko yok"
    trigger: Optional[str] = None  # category shown as current product
    reasons: dict[str, str] = {}

    def __init__(self, config: "ScoringConfig"):
        """
        Initialize rule with configuration.

        Args:
            config: ScoringConfig instance with probabilities and labels
        """
        self.config = config

    @abstractmethod
    def applies(self, df: pd.DataFrame) -> pd.Series:
        """Boolean mask of profiles the rule fires for."""
        pass

    @property
    @abstractmethod
    def required_columns(self) -> list[str]:
        """List of columns required by this rule."""
        pass

    def validate(self, df: pd.DataFrame) -> None:
        """Validate required columns exist."""
        missing = set(self.required_columns) - set(df.columns)
        if missing:
            raise ValueError(
                f"{self.__class__.__name__} requires columns: {missing}"
            )

    def probabilities(self, df: pd.DataFrame) -> pd.Series:
        """Segment-adjusted probability, NaN where the segment is not covered."""
        return df["SEGMENT"].map(
            lambda segment: self.config.rule_probability(self.name, segment)
        ).astype(float)

    def current_product(self, df: pd.DataFrame) -> pd.Series:
        if self.trigger:
            return pd.Series(self.config.label(self.trigger), index=df.index)
        return df["PRODUCTS"]

    def candidates(self, df: pd.DataFrame) -> pd.DataFrame:
        """Emit one candidate row per matching profile."""
        self.validate(df)
        probability = self.probabilities(df)
        mask = self.applies(df).astype(bool) & probability.notna()
        hit = df[mask]

        if hit.empty:
            return pd.DataFrame(columns=CANDIDATE_COLUMNS)

        return pd.DataFrame({
            "CUSTOMER_ID": hit["CUSTOMER_ID"],
            "PROFILE_ID": hit["PROFILE_ID"],
            "CUSTOMER_NAME": hit["CUSTOMER_NAME"],
            "CURRENT_PRODUCT": self.current_product(hit),
            "SUGGESTED_PRODUCT": self.config.label(self.suggests),
            "PROBABILITY": probability[mask].astype(int),
            "REASON": hit["SEGMENT"].map(self.reason),
            "CITY": hit["CITY"],
            "HASHTAGS": hit["HASHTAGS"],
            "OPPORTUNITY_TYPE": self.opportunity,
            "CUSTOMER_TYPE": hit["CUSTOMER_TYPE"],
            "RULE": self.name,
        }, columns=CANDIDATE_COLUMNS)

    def reason(self, segment: str) -> str:
        return self.reasons.get(segment) or self.reasons.get("default", "")
