"""Cancellation ratio component."""

import numpy as np
import pandas as pd

from .base import BaseScorer


class RatioScorer(BaseScorer):
    """
    Score based on cancelled / total policies.

    Bands are strictly greater-than, first match wins. Accounts with no
    policies get 0 points; the ratio is never computed for them.

    Points:
    - ratio > 50%: 30 (high)
    - ratio > 30%: 20 (medium)
    - otherwise: 0
    """

    name = "ratio"
    labels = ["high", "medium", "low"]

    @property
    def required_columns(self) -> list[str]:
        return ["CANCELLED_COUNT", "TOTAL_POLICIES"]

    def ratios(self, df: pd.DataFrame) -> pd.Series:
        """Cancellation ratio, NaN where TOTAL_POLICIES is 0."""
        self.validate(df)
        total = df["TOTAL_POLICIES"].astype(float)
        safe_total = total.where(total > 0)
        return df["CANCELLED_COUNT"].astype(float) / safe_total

    def _band(self, df: pd.DataFrame) -> pd.Series:
        ratio = self.ratios(df)
        conditions = [
            ratio.notna() & (ratio > threshold)
            for threshold, _ in self.config.churn_ratio_bands
        ]
        return pd.Series(
            np.select(conditions, list(range(len(conditions))), default=-1),
            index=df.index,
        )

    def score(self, df: pd.DataFrame) -> pd.Series:
        band = self._band(df)
        points = [p for _, p in self.config.churn_ratio_bands]
        return band.map(lambda b: points[b] if b >= 0 else 0).astype(int)

    def explain(self, df: pd.DataFrame) -> pd.Series:
        band = self._band(df)
        ratio = self.ratios(df)
        texts = []
        for b, r in zip(band, ratio):
            if b < 0:
                texts.append("")
            else:
                label = self.labels[b] if b < len(self.labels) else "elevated"
                texts.append(f"{label} cancellation ratio {r * 100:.0f}%")
        return pd.Series(texts, index=df.index, dtype=object)
