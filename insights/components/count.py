"""Cancelled policy count component."""

import numpy as np
import pandas as pd

from .base import BaseScorer


class CancellationScorer(BaseScorer):
    """
    Any cancellation at all is the strongest single renewal-risk signal.

    Points:
    - 1+ cancelled policies: 40
    - none: 0
    """

    name = "cancellation"

    @property
    def required_columns(self) -> list[str]:
        return ["CANCELLED_COUNT"]

    def score(self, df: pd.DataFrame) -> pd.Series:
        self.validate(df)
        return pd.Series(
            np.where(df["CANCELLED_COUNT"] >= 1, self.config.churn_cancelled_points, 0),
            index=df.index,
            dtype=int,
        )

    def explain(self, df: pd.DataFrame) -> pd.Series:
        self.validate(df)
        return df["CANCELLED_COUNT"].map(_cancelled_text)


def _cancelled_text(count: int) -> str:
    if count < 1:
        return ""
    noun = "policy" if count == 1 else "policies"
    return f"{count} {noun} cancelled"
