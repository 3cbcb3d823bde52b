"""
Data quality and schema validation tests.

Tests input frame validation, range checks and output invariants.
"""

import pandas as pd
import pandera as pa
import pytest

from insights.churn import stats_to_frame
from insights.predictions import predictions_to_frame
from insights.profiles import generate_sample_profiles, profiles_to_frame
from insights.schemas import (
    CANCELLATION_STATS_SCHEMA,
    CROSS_SELL_OUTPUT_SCHEMA,
    PREDICTION_SCHEMA,
    PROFILE_SCHEMA,
    churn_output_schema,
)


def prediction_frame(**overrides):
    data = {
        "ANALYSIS_TYPE": ["cross_sell", "cross_sell"],
        "CUSTOMER_ID": ["H1", "H2"],
        "PROFILE_ID": ["P1", "P2"],
        "CUSTOMER_NAME": ["A", "B"],
        "CURRENT_PRODUCT": ["Trafik", "Konut"],
        "SUGGESTED_PRODUCT": ["Kasko", "DASK"],
        "PROBABILITY": [80, 60],
        "REASON": ["r", "r"],
        "CITY": [None, "IZMIR"],
        "HASHTAGS": ["", None],
    }
    data.update(overrides)
    return pd.DataFrame(data)


class TestInputSchemas:
    """Profile and cancellation statistics frames."""

    def test_sample_profiles_valid(self):
        df = profiles_to_frame(generate_sample_profiles(200, seed=7))
        validated = PROFILE_SCHEMA.validate(df)
        assert len(validated) == 200

    def test_negative_policy_count_rejected(self):
        df = profiles_to_frame(pd.DataFrame({"PROFILE_ID": ["P1"]})).assign(POLICY_COUNT=[-1])
        with pytest.raises(pa.errors.SchemaError):
            PROFILE_SCHEMA.validate(df)

    def test_negative_policy_count_clamped_on_load(self):
        df = profiles_to_frame(pd.DataFrame({"PROFILE_ID": ["P1"], "POLICY_COUNT": [-1]}))
        assert PROFILE_SCHEMA.validate(df)["POLICY_COUNT"].tolist() == [0]

    def test_stats_valid(self, cancellation_stats):
        validated = CANCELLATION_STATS_SCHEMA.validate(stats_to_frame(cancellation_stats))
        assert len(validated) == 4

    def test_stats_cancelled_above_total_rejected(self):
        df = pd.DataFrame({
            "ACCOUNT_CODE": ["H1"],
            "CANCELLED_COUNT": [3],
            "TOTAL_POLICIES": [2],
            "REASONS": [[]],
        })
        with pytest.raises(pa.errors.SchemaError):
            CANCELLATION_STATS_SCHEMA.validate(df)

    def test_stats_duplicate_accounts_rejected(self):
        df = pd.DataFrame({
            "ACCOUNT_CODE": ["H1", "H1"],
            "CANCELLED_COUNT": [0, 1],
            "TOTAL_POLICIES": [2, 2],
            "REASONS": [[], []],
        })
        with pytest.raises(pa.errors.SchemaError):
            CANCELLATION_STATS_SCHEMA.validate(df)


class TestOutputSchemas:
    """Engine output frames."""

    def test_valid_predictions(self):
        assert len(PREDICTION_SCHEMA.validate(prediction_frame())) == 2

    def test_unsorted_rejected(self):
        with pytest.raises(pa.errors.SchemaError):
            PREDICTION_SCHEMA.validate(prediction_frame(PROBABILITY=[60, 80]))

    @pytest.mark.parametrize("probability", [[101, 60], [80, -1]])
    def test_probability_range(self, probability):
        with pytest.raises(pa.errors.SchemaError):
            PREDICTION_SCHEMA.validate(prediction_frame(PROBABILITY=probability))

    def test_blank_customer_id_rejected(self):
        with pytest.raises(pa.errors.SchemaError):
            PREDICTION_SCHEMA.validate(prediction_frame(CUSTOMER_ID=["H1", " "]))

    def test_cross_sell_pairs_unique(self):
        df = prediction_frame(CUSTOMER_ID=["H1", "H1"], SUGGESTED_PRODUCT=["Kasko", "Kasko"])
        with pytest.raises(pa.errors.SchemaError):
            CROSS_SELL_OUTPUT_SCHEMA.validate(df)

    def test_churn_window(self):
        schema = churn_output_schema(30, 95)
        assert len(schema.validate(prediction_frame(PROBABILITY=[95, 30]))) == 2
        with pytest.raises(pa.errors.SchemaError):
            schema.validate(prediction_frame(PROBABILITY=[96, 30]))
        with pytest.raises(pa.errors.SchemaError):
            schema.validate(prediction_frame(PROBABILITY=[80, 29]))


class TestEngineOutputs:
    """Engines always produce frames their schemas accept."""

    def test_cross_sell_output(self, cross_sell_engine, sample_profiles):
        predictions = cross_sell_engine.generate(sample_profiles)
        df = predictions_to_frame(predictions)

        CROSS_SELL_OUTPUT_SCHEMA.validate(df)
        assert df["SUGGESTED_PRODUCT"].notna().all()

    def test_cross_sell_never_suggests_owned_category(self, cross_sell_engine, sample_profiles):
        result = cross_sell_engine.score(sample_profiles)
        owned = {p.customer_id: p.products.lower() for p in sample_profiles}

        for row in result.df.itertuples():
            assert row.SUGGESTED_PRODUCT.lower() not in owned[row.CUSTOMER_ID].split(", ")

    @pytest.mark.asyncio
    async def test_churn_output(self, churn_engine, edge_profiles, cancellation_stats):
        predictions = await churn_engine.generate(edge_profiles, cancellation_stats)
        df = predictions_to_frame(predictions)

        churn_output_schema().validate(df)
        assert len(df) == 3
        assert df["SUGGESTED_PRODUCT"].isna().all()
