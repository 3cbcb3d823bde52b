"""
ChurnEngine - renewal-risk predictions from cancellation history.

Usage:
    from insights import ChurnEngine

    engine = ChurnEngine()
    predictions = await engine.generate(profiles, stats_by_account, repository)

    # Pure scoring, no side effects
    result = engine.score(profiles, stats_by_account)
    print(result.df[["CUSTOMER_ID", "RISK_SCORE", "REASON"]])
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Mapping, Optional, Protocol

import pandas as pd

from .components import CancellationScorer, HistoryScorer, RatioScorer
from .config import DEFAULT_CONFIG, ScoringConfig
from .models import AnalysisType, CancellationStats, Prediction
from .predictions import frame_to_predictions
from .profiles import add_tag, has_tag, profiles_to_frame
from .schemas import CANCELLATION_STATS_SCHEMA, PROFILE_SCHEMA, churn_output_schema

logger = logging.getLogger("insights.churn")

STATS_COLUMNS = ["ACCOUNT_CODE", "CANCELLED_COUNT", "TOTAL_POLICIES", "REASONS"]


class HashtagWriter(Protocol):
    """Anything that can persist a profile's hashtag string."""

    async def update_hashtags(self, profile_id: str, hashtags: str) -> None:
        ...


def stats_to_frame(stats) -> pd.DataFrame:
    """
    Build the cancellation stats frame.

    Accepts a mapping of account code -> CancellationStats, an iterable of
    CancellationStats, or a DataFrame with STATS_COLUMNS.
    """
    if isinstance(stats, pd.DataFrame):
        df = stats.copy()
        for column in STATS_COLUMNS:
            if column not in df.columns:
                df[column] = [[] for _ in range(len(df))] if column == "REASONS" else 0
    else:
        records = stats.values() if isinstance(stats, Mapping) else (stats or [])
        rows = [
            {
                "ACCOUNT_CODE": s.account_code,
                "CANCELLED_COUNT": s.cancelled_count,
                "TOTAL_POLICIES": s.total_policies,
                "REASONS": list(s.reasons),
            }
            for s in records
            if isinstance(s, CancellationStats) and s.account_code
        ]
        df = pd.DataFrame(rows, columns=STATS_COLUMNS)

    df = df[df["ACCOUNT_CODE"].notna()].copy()
    df["ACCOUNT_CODE"] = df["ACCOUNT_CODE"].astype(str)
    df = df[df["ACCOUNT_CODE"].str.strip() != ""]
    df["TOTAL_POLICIES"] = pd.to_numeric(df["TOTAL_POLICIES"], errors="coerce").fillna(0).astype(int).clip(lower=0)
    df["CANCELLED_COUNT"] = (
        pd.to_numeric(df["CANCELLED_COUNT"], errors="coerce").fillna(0).astype(int)
        .clip(lower=0)
    )
    df["CANCELLED_COUNT"] = df["CANCELLED_COUNT"].where(
        df["CANCELLED_COUNT"] <= df["TOTAL_POLICIES"], df["TOTAL_POLICIES"]
    )
    df["REASONS"] = df["REASONS"].map(lambda r: list(r) if isinstance(r, (list, tuple)) else [])
    df = df.drop_duplicates(subset=["ACCOUNT_CODE"], keep="last")
    return CANCELLATION_STATS_SCHEMA.validate(df.reset_index(drop=True))


@dataclass
class ChurnResult:
    """
    Container for churn scoring results with component breakdown.

    Attributes:
        df: Every profile with matching stats, scores and reasons added
        component_columns: List of component score column names
    """

    df: pd.DataFrame
    component_columns: list[str]
    min_probability: int = 30

    def reported(self) -> pd.DataFrame:
        """Rows at or above the reporting floor, highest risk first."""
        return (
            self.df[self.df["RISK_SCORE"] >= self.min_probability]
            .sort_values("RISK_SCORE", ascending=False, kind="stable")
            .reset_index(drop=True)
        )

    def component_breakdown(self) -> pd.DataFrame:
        """Average contribution of each component."""
        stats = {}
        for col in self.component_columns:
            stats[col.replace("_score", "")] = {
                "mean": self.df[col].mean(),
                "max": self.df[col].max(),
                "min": self.df[col].min(),
            }
        return pd.DataFrame(stats).T.round(1)


@dataclass
class ChurnOutcome:
    """Predictions plus the bookkeeping of the hashtag side effect."""

    predictions: list[Prediction]
    updated: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


class ChurnEngine:
    """
    Renewal-risk scoring over per-account cancellation statistics.

    Components:
    - Cancellation (0-40): any cancelled policy
    - Ratio (0-30): cancelled / total policies, guarded for 0 policies
    - History (0-20): repeat cancellations

    The total is clamped to ``churn_max_probability``; rows below
    ``churn_min_probability`` are not reported. Profiles without an account
    code or without stats are skipped.
    """

    def __init__(self, config: Optional[ScoringConfig] = None):
        """
        Initialize engine with configuration.

        Args:
            config: ScoringConfig instance. Uses DEFAULT_CONFIG if None.
        """
        self.config = config or DEFAULT_CONFIG
        self._init_components()

    def _init_components(self) -> None:
        """Initialize all scoring components."""
        self.components = {
            "cancellation": CancellationScorer(self.config),
            "ratio": RatioScorer(self.config),
            "history": HistoryScorer(self.config),
        }

    def score(self, profiles, stats) -> ChurnResult:
        """
        Score every profile that has cancellation statistics.

        Args:
            profiles: list of CustomerProfile (or dicts) or a profile DataFrame
            stats: cancellation stats keyed by account code (see stats_to_frame)

        Returns:
            ChurnResult with component scores, RISK_SCORE and REASON
        """
        profile_df = PROFILE_SCHEMA.validate(profiles_to_frame(profiles))
        profile_df = profile_df[profile_df["ACCOUNT_CODE"].str.strip() != ""]
        df = profile_df.merge(stats_to_frame(stats), on="ACCOUNT_CODE", how="inner")

        component_cols = []
        reason_parts = []
        for name, component in self.components.items():
            col_name = f"{name}_score"
            df[col_name] = component.score(df) if len(df) else pd.Series(dtype=int)
            component_cols.append(col_name)
            reason_parts.append(component.explain(df) if len(df) else pd.Series(dtype=object))

        df["RISK_SCORE"] = (
            df[component_cols].sum(axis=1).clip(upper=self.config.churn_max_probability).astype(int)
        )
        df["REASON"] = self._join_reasons(df, reason_parts)

        return ChurnResult(
            df=df,
            component_columns=component_cols,
            min_probability=self.config.churn_min_probability,
        )

    def _join_reasons(self, df: pd.DataFrame, parts: list[pd.Series]) -> pd.Series:
        reasons = []
        for position in range(len(df)):
            fragments = [p.iloc[position] for p in parts if p.iloc[position]]
            stated = _distinct(df["REASONS"].iloc[position])[: self.config.churn_reason_limit]
            if stated:
                fragments.append("cancellation reasons: " + ", ".join(stated))
            reasons.append("; ".join(fragments))
        return pd.Series(reasons, index=df.index, dtype=object)

    def predictions_frame(self, result: ChurnResult) -> pd.DataFrame:
        """Reported rows shaped as a prediction frame, tag already applied."""
        reported = result.reported()
        tag = self.config.renewal_risk_tag
        frame = pd.DataFrame({
            "ANALYSIS_TYPE": AnalysisType.CHURN.value,
            "CUSTOMER_ID": reported["ACCOUNT_CODE"],
            "PROFILE_ID": reported["PROFILE_ID"],
            "CUSTOMER_NAME": reported["CUSTOMER_NAME"],
            "CURRENT_PRODUCT": reported["PRODUCTS"],
            "SUGGESTED_PRODUCT": None,
            "PROBABILITY": reported["RISK_SCORE"].astype(int),
            "REASON": reported["REASON"],
            "CITY": reported["CITY"],
            "HASHTAGS": reported["HASHTAGS"].map(lambda h: add_tag(h, tag)),
            "OPPORTUNITY_TYPE": "Yenileme riski",
            "CUSTOMER_TYPE": reported["CUSTOMER_TYPE"],
            "ORIGINAL_HASHTAGS": reported["HASHTAGS"],
        })
        schema = churn_output_schema(
            self.config.churn_min_probability, self.config.churn_max_probability
        )
        return schema.validate(frame)

    async def generate_outcome(
        self,
        profiles,
        stats,
        writer: Optional[HashtagWriter] = None,
    ) -> ChurnOutcome:
        """
        Score, emit predictions, then apply the renewal-risk tag updates.

        Predictions carry the tagged hashtag string before any update is
        awaited. Each update is isolated: a failing profile is logged and
        listed in ``failed``, the rest proceed.
        """
        frame = self.predictions_frame(self.score(profiles, stats))
        predictions = frame_to_predictions(frame, self.config)

        tag = self.config.renewal_risk_tag
        pending = {}
        for row in frame.itertuples(index=False):
            if not has_tag(row.ORIGINAL_HASHTAGS, tag):
                pending[row.PROFILE_ID] = row.HASHTAGS

        outcome = ChurnOutcome(predictions=predictions)
        if writer is not None and pending:
            results = await asyncio.gather(
                *(self._update_one(writer, pid, tags) for pid, tags in pending.items())
            )
            for profile_id, ok in zip(pending, results):
                (outcome.updated if ok else outcome.failed).append(profile_id)
            if outcome.failed:
                logger.warning(
                    "renewal-risk tag update failed for %d of %d profiles",
                    len(outcome.failed), len(pending),
                )

        logger.debug("churn: %d predictions, %d tag updates", len(predictions), len(pending))
        return outcome

    async def generate(self, profiles, stats, writer: Optional[HashtagWriter] = None) -> list[Prediction]:
        """Churn predictions sorted by probability descending."""
        outcome = await self.generate_outcome(profiles, stats, writer)
        return outcome.predictions

    @staticmethod
    async def _update_one(writer: HashtagWriter, profile_id: str, hashtags: str) -> bool:
        try:
            await writer.update_hashtags(profile_id, hashtags)
        except Exception as e:
            logger.error("hashtag update failed for profile %s: %s", profile_id, e)
            return False
        return True


def _distinct(reasons) -> list[str]:
    seen = []
    for reason in reasons or []:
        text = str(reason).strip()
        if text and text not in seen:
            seen.append(text)
    return seen
