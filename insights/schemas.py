"""
Data schema definitions for the insight engines.

Uses Pandera for runtime validation of the profile, cancellation and
prediction frames, so engine bugs surface before anything is persisted.
"""

from pandera import Column, Check, DataFrameSchema


def _non_empty_text(series):
    return series.map(lambda v: isinstance(v, str) and v.strip() != "")


# Schema for normalized profile frames (output of profiles_to_frame)
PROFILE_SCHEMA = DataFrameSchema(
    {
        "PROFILE_ID": Column(
            nullable=False,
            description="Profile identifier, join key for predictions"
        ),
        "ACCOUNT_CODE": Column(
            nullable=False,
            description="Account code, '' when unknown; join key for cancellation stats"
        ),
        "CUSTOMER_NAME": Column(nullable=False),
        "CUSTOMER_TYPE": Column(nullable=False),
        "CITY": Column(nullable=True),
        "PRODUCTS": Column(
            nullable=False,
            description="Free-text product list"
        ),
        "POLICY_COUNT": Column(
            int,
            nullable=False,
            checks=Check.greater_than_or_equal_to(0),
            coerce=True,
        ),
        "HASHTAGS": Column(
            nullable=False,
            description="Space-delimited #tokens"
        ),
    },
    strict=False,  # Derived SEGMENT / HAS_* columns are allowed
    description="Schema for normalized customer profile frames"
)


# Schema for cancellation statistics frames
CANCELLATION_STATS_SCHEMA = DataFrameSchema(
    {
        "ACCOUNT_CODE": Column(
            nullable=False,
            unique=True,
            checks=Check(_non_empty_text),
        ),
        "CANCELLED_COUNT": Column(
            int,
            nullable=False,
            checks=Check.greater_than_or_equal_to(0),
            coerce=True,
        ),
        "TOTAL_POLICIES": Column(
            int,
            nullable=False,
            checks=Check.greater_than_or_equal_to(0),  # 0 allowed, ratio is guarded
            coerce=True,
        ),
        "REASONS": Column(nullable=False),
    },
    checks=Check(
        lambda df: df["CANCELLED_COUNT"] <= df["TOTAL_POLICIES"],
        error="cancelled count exceeds total policies",
    ),
    strict=False,
    description="Schema for per-account cancellation statistics"
)


_prediction_columns = {
    "ANALYSIS_TYPE": Column(nullable=False),
    "CUSTOMER_ID": Column(nullable=False, checks=Check(_non_empty_text)),
    "PROFILE_ID": Column(nullable=False),
    "CUSTOMER_NAME": Column(nullable=False),
    "CURRENT_PRODUCT": Column(nullable=False),
    "SUGGESTED_PRODUCT": Column(nullable=True),
    "PROBABILITY": Column(
        int,
        nullable=False,
        checks=[
            Check.greater_than_or_equal_to(0),
            Check.less_than_or_equal_to(100),
        ],
        coerce=True,
    ),
    "REASON": Column(nullable=False),
    "CITY": Column(nullable=True),
    "HASHTAGS": Column(nullable=True),
}

_sorted_by_probability = Check(
    lambda df: df["PROBABILITY"].is_monotonic_decreasing,
    error="predictions must be sorted by probability descending",
)


# Schema for engine output (any analysis type)
PREDICTION_SCHEMA = DataFrameSchema(
    _prediction_columns,
    checks=_sorted_by_probability,
    strict=False,
    description="Schema for normalized prediction frames"
)


# Cross-sell output: at most one record per (customer, suggested product)
CROSS_SELL_OUTPUT_SCHEMA = DataFrameSchema(
    _prediction_columns,
    checks=_sorted_by_probability,
    unique=["CUSTOMER_ID", "SUGGESTED_PRODUCT"],
    strict=False,
    description="Schema for deduplicated cross-sell output"
)


def churn_output_schema(min_probability: int = 30, max_probability: int = 95) -> DataFrameSchema:
    """Churn output: probability within the reporting window."""
    return PREDICTION_SCHEMA.update_column(
        "PROBABILITY",
        checks=[
            Check.greater_than_or_equal_to(min_probability),
            Check.less_than_or_equal_to(max_probability),
        ],
    )


__all__ = [
    "churn_output_schema",
    "PROFILE_SCHEMA",
    "CANCELLATION_STATS_SCHEMA",
    "PREDICTION_SCHEMA",
    "CROSS_SELL_OUTPUT_SCHEMA",
]
