"""Repeated cancellation history component."""

import numpy as np
import pandas as pd

from .base import BaseScorer


class HistoryScorer(BaseScorer):
    """
    Extra points for repeat cancellers. Bands are mutually exclusive.

    Points:
    - 3+ cancellations: 20 ("multiple cancellation history")
    - 2 cancellations: 10 ("more than one cancellation")
    - otherwise: 0
    """

    name = "history"
    texts = ["multiple cancellation history", "more than one cancellation"]

    @property
    def required_columns(self) -> list[str]:
        return ["CANCELLED_COUNT"]

    def _conditions(self, df: pd.DataFrame) -> list[pd.Series]:
        self.validate(df)
        return [
            df["CANCELLED_COUNT"] >= threshold
            for threshold, _ in self.config.churn_history_bands
        ]

    def score(self, df: pd.DataFrame) -> pd.Series:
        choices = [p for _, p in self.config.churn_history_bands]
        return pd.Series(
            np.select(self._conditions(df), choices, default=0),
            index=df.index,
            dtype=int,
        )

    def explain(self, df: pd.DataFrame) -> pd.Series:
        conditions = self._conditions(df)
        choices = [
            self.texts[i] if i < len(self.texts) else "repeated cancellations"
            for i in range(len(conditions))
        ]
        return pd.Series(
            np.select(conditions, choices, default=""),
            index=df.index,
            dtype=object,
        )
