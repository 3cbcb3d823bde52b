"""
CrossSellEngine - runs the rule set over profiles and ranks the candidates.

Usage:
    from insights import CrossSellEngine

    engine = CrossSellEngine()
    predictions = engine.generate(profiles)

    # Or keep the frames for inspection
    result = engine.score(profiles)
    print(result.df[["CUSTOMER_ID", "SUGGESTED_PRODUCT", "PROBABILITY"]])
    print(result.summary())
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

import pandas as pd

from .config import DEFAULT_CONFIG, ScoringConfig
from .models import AnalysisType, Prediction
from .predictions import frame_to_predictions
from .profiles import prepare_profiles
from .rules import CANDIDATE_COLUMNS, DEFAULT_RULES, BaseRule
from .schemas import CROSS_SELL_OUTPUT_SCHEMA

logger = logging.getLogger("insights.cross_sell")


@dataclass
class CrossSellResult:
    """
    Container for cross-sell output.

    Attributes:
        candidates: Every candidate any rule emitted, in emission order
        df: Deduplicated candidates sorted by probability descending
    """

    candidates: pd.DataFrame
    df: pd.DataFrame
    config: ScoringConfig = field(default_factory=lambda: DEFAULT_CONFIG)

    def to_predictions(self) -> list[Prediction]:
        return frame_to_predictions(self.df, self.config)

    def summary(self) -> pd.DataFrame:
        """Counts and average probability per suggested product."""
        if self.df.empty:
            return pd.DataFrame(columns=["count", "avg_probability"])
        return (
            self.df.groupby("SUGGESTED_PRODUCT")
            .agg(
                count=("CUSTOMER_ID", "count"),
                avg_probability=("PROBABILITY", "mean"),
            )
            .sort_values("count", ascending=False)
            .round(1)
        )

    def rule_breakdown(self) -> pd.DataFrame:
        """How many candidates each rule emitted and how many survived dedup."""
        emitted = self.candidates.groupby("RULE").size().rename("emitted")
        kept = self.df.groupby("RULE").size().rename("kept")
        return pd.concat([emitted, kept], axis=1).fillna(0).astype(int)


class CrossSellEngine:
    """
    Deterministic cross-sell recommendation engine.

    Every rule is evaluated against every profile (rules are not
    exclusive). Candidates are then deduplicated per
    (customer, suggested product), keeping the highest probability with
    the first-emitted candidate winning exact ties, and sorted by
    probability descending.
    """

    def __init__(
        self,
        config: Optional[ScoringConfig] = None,
        rules: Optional[list[type[BaseRule]]] = None,
    ):
        """
        Initialize engine with configuration.

        Args:
            config: ScoringConfig instance. Uses DEFAULT_CONFIG if None.
            rules: Rule classes in evaluation order. Uses DEFAULT_RULES if None.
        """
        self.config = config or DEFAULT_CONFIG
        self.rules = [rule(self.config) for rule in (rules or DEFAULT_RULES)]

    def candidates(self, profiles) -> pd.DataFrame:
        """
        Raw candidates before dedup, in emission order.

        Emission order is profile by profile, and within a profile the
        rule order. Profiles with neither an account code nor a profile id
        have nothing to key a suggestion on and are skipped.
        """
        df = prepare_profiles(profiles, self.config)
        anonymous = df["CUSTOMER_ID"].str.strip() == ""
        if anonymous.any():
            logger.debug("skipping %d profiles without an identifier", int(anonymous.sum()))
            df = df[~anonymous].copy()
        frames = []
        for rule_position, rule in enumerate(self.rules):
            emitted = rule.candidates(df)
            if emitted.empty:
                continue
            emitted = emitted.assign(
                _PROFILE_POS=emitted.index.to_numpy(),
                _RULE_POS=rule_position,
            )
            frames.append(emitted)

        if not frames:
            return pd.DataFrame(columns=CANDIDATE_COLUMNS)

        candidates = (
            pd.concat(frames, ignore_index=True)
            .sort_values(["_PROFILE_POS", "_RULE_POS"], kind="stable")
            .drop(columns=["_PROFILE_POS", "_RULE_POS"])
            .reset_index(drop=True)
        )
        candidates["PROBABILITY"] = candidates["PROBABILITY"].astype(int)
        return candidates

    @staticmethod
    def deduplicate(candidates: pd.DataFrame) -> pd.DataFrame:
        """
        Keep one candidate per (CUSTOMER_ID, SUGGESTED_PRODUCT).

        A stable descending sort puts the highest probability first and
        keeps emission order among equals, so keeping the first row per
        pair implements "strictly higher wins, first seen wins ties" and
        leaves the result sorted.
        """
        if candidates.empty:
            return candidates.copy()
        ranked = candidates.sort_values("PROBABILITY", ascending=False, kind="stable")
        return ranked.drop_duplicates(
            subset=["CUSTOMER_ID", "SUGGESTED_PRODUCT"], keep="first"
        ).reset_index(drop=True)

    def score(self, profiles) -> CrossSellResult:
        """
        Run all rules and rank the results.

        Args:
            profiles: list of CustomerProfile (or dicts) or a profile DataFrame

        Returns:
            CrossSellResult with raw candidates and the ranked output
        """
        candidates = self.candidates(profiles)
        ranked = self.deduplicate(candidates)
        ranked.insert(0, "ANALYSIS_TYPE", AnalysisType.CROSS_SELL.value)
        ranked = CROSS_SELL_OUTPUT_SCHEMA.validate(ranked)

        logger.debug(
            "cross-sell: %d candidates, %d after dedup", len(candidates), len(ranked)
        )
        return CrossSellResult(candidates=candidates, df=ranked, config=self.config)

    def generate(self, profiles) -> list[Prediction]:
        """Ranked, deduplicated cross-sell predictions."""
        return self.score(profiles).to_predictions()
