"""Base class for churn scoring components."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

import pandas as pd

if TYPE_CHECKING:
    from ..config import ScoringConfig


class BaseScorer(ABC):
    """
    Abstract base class for churn scoring components.

    Each component calculates a single aspect of renewal risk using
    vectorized pandas operations, and explains its points with a short
    reason fragment (empty string when it adds nothing).
    """

    name: str = "base"

    def __init__(self, config: "ScoringConfig"):
        """
        Initialize scorer with configuration.

        Args:
            config: ScoringConfig instance with thresholds and points
        """
        self.config = config

    @abstractmethod
    def score(self, df: pd.DataFrame) -> pd.Series:
        """
        Calculate component points for all rows.

        Args:
            df: DataFrame with required columns

        Returns:
            Series of integer points
        """
        pass

    @abstractmethod
    def explain(self, df: pd.DataFrame) -> pd.Series:
        """Reason fragment per row, "" where the component adds no points."""
        pass

    @property
    @abstractmethod
    def required_columns(self) -> list[str]:
        """List of columns required by this scorer."""
        pass

    def validate(self, df: pd.DataFrame) -> None:
        """Validate required columns exist."""
        missing = set(self.required_columns) - set(df.columns)
        if missing:
            raise ValueError(
                f"{self.__class__.__name__} requires columns: {missing}"
            )
