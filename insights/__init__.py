"""
Insurance CRM insight engine.

Rule-based cross-sell and renewal-risk predictions over customer profiles,
plus a model-backed path for the remaining analysis types.
"""

from .config import DEFAULT_CONFIG, ScoringConfig
from .models import (
    AnalysisType,
    CancellationStats,
    CustomerProfile,
    Prediction,
    PredictionFilter,
    PredictionMetadata,
    Segment,
    SegmentFilter,
)
from .cross_sell import CrossSellEngine
from .churn import ChurnEngine

__all__ = [
    "AnalysisType",
    "CancellationStats",
    "ChurnEngine",
    "CrossSellEngine",
    "CustomerProfile",
    "DEFAULT_CONFIG",
    "Prediction",
    "PredictionFilter",
    "PredictionMetadata",
    "ScoringConfig",
    "Segment",
    "SegmentFilter",
]
__version__ = "1.0.0"
