"""Scoring components for churn prediction."""

from .base import BaseScorer
from .count import CancellationScorer
from .ratio import RatioScorer
from .history import HistoryScorer

__all__ = [
    "BaseScorer",
    "CancellationScorer",
    "RatioScorer",
    "HistoryScorer",
]
