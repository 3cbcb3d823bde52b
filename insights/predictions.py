"""Conversion between prediction frames and Prediction records."""

import pandas as pd

from .config import DEFAULT_CONFIG, ScoringConfig
from .models import Prediction, PredictionMetadata

PREDICTION_COLUMNS = [
    "ANALYSIS_TYPE",
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
    "PRIORITY",
    "NEXT_BEST_ACTION",
    "CUSTOMER_TYPE",
]


def _text(value):
    """None for missing values (NaN, None, ''), else the string."""
    if value is None:
        return None
    if isinstance(value, float) and pd.isna(value):
        return None
    value = str(value)
    return value or None


def frame_to_predictions(df: pd.DataFrame, config: ScoringConfig = DEFAULT_CONFIG) -> list[Prediction]:
    """
    Build Prediction records from an engine output frame.

    Priority and next best action are derived from the probability with
    the config's bands.
    """
    predictions = []
    for row in df.to_dict("records"):
        probability = int(row["PROBABILITY"])
        predictions.append(Prediction(
            analysis_type=row["ANALYSIS_TYPE"],
            customer_id=str(row["CUSTOMER_ID"]),
            profile_id=str(row.get("PROFILE_ID") or row["CUSTOMER_ID"]),
            customer_name=_text(row.get("CUSTOMER_NAME")) or "",
            current_product=_text(row.get("CURRENT_PRODUCT")) or "",
            suggested_product=_text(row.get("SUGGESTED_PRODUCT")),
            probability=probability,
            reason=_text(row.get("REASON")) or "",
            city=_text(row.get("CITY")),
            hashtags=_text(row.get("HASHTAGS")),
            metadata=PredictionMetadata(
                opportunity_type=_text(row.get("OPPORTUNITY_TYPE")),
                priority=config.get_priority(probability),
                next_best_action=config.get_next_best_action(probability),
                customer_type=_text(row.get("CUSTOMER_TYPE")),
            ),
        ))
    return predictions


def predictions_to_frame(predictions: list[Prediction]) -> pd.DataFrame:
    """Flatten Prediction records (metadata included) into a frame."""
    rows = [
        {
            "ANALYSIS_TYPE": p.analysis_type,
            "CUSTOMER_ID": p.customer_id,
            "PROFILE_ID": p.profile_id,
            "CUSTOMER_NAME": p.customer_name,
            "CURRENT_PRODUCT": p.current_product,
            "SUGGESTED_PRODUCT": p.suggested_product,
            "PROBABILITY": p.probability,
            "REASON": p.reason,
            "CITY": p.city,
            "HASHTAGS": p.hashtags,
            "OPPORTUNITY_TYPE": p.metadata.opportunity_type,
            "PRIORITY": p.metadata.priority,
            "NEXT_BEST_ACTION": p.metadata.next_best_action,
            "CUSTOMER_TYPE": p.metadata.customer_type,
        }
        for p in predictions
    ]
    return pd.DataFrame(rows, columns=PREDICTION_COLUMNS)
