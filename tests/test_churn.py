"""
Tests for the churn engine and its hashtag side effect.
"""

import pandas as pd
import pytest

from insights.churn import ChurnEngine, stats_to_frame
from insights.config import ScoringConfig
from insights.models import AnalysisType, CancellationStats


class RecordingWriter:
    """Hashtag writer that records calls and fails for chosen profiles."""

    def __init__(self, failing=()):
        self.failing = set(failing)
        self.calls = {}

    async def update_hashtags(self, profile_id, hashtags):
        if profile_id in self.failing:
            raise RuntimeError(f"database unavailable for {profile_id}")
        self.calls[profile_id] = hashtags


@pytest.fixture
def churn_profiles(profile_factory):
    return [
        profile_factory("P1", products="Kasko, Trafik"),
        profile_factory("P2", products="Trafik"),
        profile_factory("P3", products="Konut", hashtags="#premium #yenileme_riski"),
        profile_factory("P4", products="DASK"),
        profile_factory("P5", products="Hayat", account_code=None),
    ]


class TestScoring:
    """Point components and the clamp/floor."""

    def test_two_of_four_cancelled(self, churn_engine, churn_profiles, cancellation_stats):
        """40 (cancelled) + 20 (ratio 0.5 is medium) + 10 (two cancellations)."""
        result = churn_engine.score(churn_profiles, cancellation_stats)
        row = result.df.set_index("ACCOUNT_CODE").loc["H1"]

        assert row["cancellation_score"] == 40
        assert row["ratio_score"] == 20
        assert row["history_score"] == 10
        assert row["RISK_SCORE"] == 70
        assert "medium cancellation ratio 50%" in row["REASON"]
        assert "more than one cancellation" in row["REASON"]
        assert "cancellation reasons: Fiyat" in row["REASON"]

    def test_nothing_cancelled_not_reported(self, churn_engine, churn_profiles, cancellation_stats):
        result = churn_engine.score(churn_profiles, cancellation_stats)
        reported = result.reported()

        assert "H2" not in set(reported["ACCOUNT_CODE"])
        h2 = result.df.set_index("ACCOUNT_CODE").loc["H2"]
        assert h2["RISK_SCORE"] == 0

    def test_all_cancelled(self, churn_engine, churn_profiles, cancellation_stats):
        result = churn_engine.score(churn_profiles, cancellation_stats)
        row = result.df.set_index("ACCOUNT_CODE").loc["H3"]

        assert row["RISK_SCORE"] == 90
        assert "high cancellation ratio 100%" in row["REASON"]
        assert "multiple cancellation history" in row["REASON"]

    def test_single_cancellation_low_ratio(self, churn_engine, churn_profiles, cancellation_stats):
        result = churn_engine.score(churn_profiles, cancellation_stats)
        row = result.df.set_index("ACCOUNT_CODE").loc["H4"]

        assert row["RISK_SCORE"] == 40
        assert row["REASON"] == "1 policy cancelled"

    def test_zero_policies_ratio_guard(self, churn_engine, profile_factory):
        """No policies: ratio contributes 0, never NaN, never raises."""
        stats = {"H1": CancellationStats("H1", cancelled_count=0, total_policies=0)}
        result = churn_engine.score([profile_factory("P1")], stats)

        assert result.df["ratio_score"].iloc[0] == 0
        assert not result.df["RISK_SCORE"].isna().any()

    def test_clamped_to_maximum(self, profile_factory):
        config = ScoringConfig(churn_cancelled_points=80)
        engine = ChurnEngine(config)
        stats = {"H1": CancellationStats("H1", cancelled_count=3, total_policies=3)}

        result = engine.score([profile_factory("P1")], stats)
        assert result.df["RISK_SCORE"].iloc[0] == 95

    def test_floor_and_cap_on_random_stats(self, churn_engine, sample_profiles):
        rng = pd.Series(range(len(sample_profiles)))
        stats = {}
        for i, profile in enumerate(sample_profiles):
            if not profile.account_code:
                continue
            total = int(rng[i] % 7)
            stats[profile.account_code] = CancellationStats(
                profile.account_code, cancelled_count=int(rng[i] % 4), total_policies=total
            )

        frame = churn_engine.predictions_frame(churn_engine.score(sample_profiles, stats))
        assert (frame["PROBABILITY"] >= 30).all()
        assert (frame["PROBABILITY"] <= 95).all()

    def test_profiles_without_account_or_stats_skipped(self, churn_engine, churn_profiles, cancellation_stats):
        result = churn_engine.score(churn_profiles, cancellation_stats)
        # P5 has no account code, H5 has no stats
        assert set(result.df["PROFILE_ID"]) == {"P1", "P2", "P3", "P4"}

    def test_reason_limit(self, churn_engine, profile_factory):
        stats = {"H1": CancellationStats(
            "H1", cancelled_count=4, total_policies=4,
            reasons=["Fiyat", "Fiyat", "Hasar", "Taşınma", "Vefat"],
        )}
        result = churn_engine.score([profile_factory("P1")], stats)
        assert result.df["REASON"].iloc[0].endswith("cancellation reasons: Fiyat, Hasar, Taşınma")

    def test_component_breakdown(self, churn_engine, churn_profiles, cancellation_stats):
        breakdown = churn_engine.score(churn_profiles, cancellation_stats).component_breakdown()
        assert list(breakdown.index) == ["cancellation", "ratio", "history"]
        assert breakdown.loc["cancellation", "max"] == 40


class TestGenerate:
    """Async generation with the renewal-risk tag side effect."""

    @pytest.mark.asyncio
    async def test_predictions_sorted_and_shaped(self, churn_engine, churn_profiles, cancellation_stats):
        predictions = await churn_engine.generate(churn_profiles, cancellation_stats)

        assert [p.customer_id for p in predictions] == ["H3", "H1", "H4"]
        top = predictions[0]
        assert top.analysis_type == AnalysisType.CHURN.value
        assert top.current_product == "Konut"
        assert top.suggested_product is None
        assert top.metadata.opportunity_type == "Yenileme riski"
        assert top.metadata.priority == "High"

    @pytest.mark.asyncio
    async def test_tag_written_when_absent(self, churn_engine, churn_profiles, cancellation_stats):
        writer = RecordingWriter()
        outcome = await churn_engine.generate_outcome(churn_profiles, cancellation_stats, writer)

        # P3 already carries the tag
        assert set(writer.calls) == {"P1", "P4"}
        assert writer.calls["P1"] == "#yenileme_riski"
        assert sorted(outcome.updated) == ["P1", "P4"]
        assert outcome.failed == []

    @pytest.mark.asyncio
    async def test_prediction_hashtags_reflect_tag(self, churn_engine, churn_profiles, cancellation_stats):
        predictions = await churn_engine.generate(churn_profiles, cancellation_stats)
        by_id = {p.customer_id: p for p in predictions}

        assert by_id["H1"].hashtags == "#yenileme_riski"
        assert by_id["H3"].hashtags == "#premium #yenileme_riski"

    @pytest.mark.asyncio
    async def test_failed_update_isolated(self, churn_engine, churn_profiles, cancellation_stats):
        writer = RecordingWriter(failing={"P1"})
        outcome = await churn_engine.generate_outcome(churn_profiles, cancellation_stats, writer)

        assert len(outcome.predictions) == 3
        assert outcome.failed == ["P1"]
        assert outcome.updated == ["P4"]
        assert "P4" in writer.calls

    @pytest.mark.asyncio
    async def test_empty_inputs(self, churn_engine):
        assert await churn_engine.generate([], {}) == []


class TestStatsFrame:

    def test_from_list_and_frame(self):
        from_list = stats_to_frame([CancellationStats("H1", 1, 2)])
        from_frame = stats_to_frame(pd.DataFrame({
            "ACCOUNT_CODE": ["H1"], "CANCELLED_COUNT": [1], "TOTAL_POLICIES": [2],
        }))
        assert from_list["CANCELLED_COUNT"].iloc[0] == from_frame["CANCELLED_COUNT"].iloc[0] == 1
        assert from_frame["REASONS"].iloc[0] == []

    def test_cancelled_clamped_to_total(self):
        df = stats_to_frame(pd.DataFrame({
            "ACCOUNT_CODE": ["H1", "", None],
            "CANCELLED_COUNT": [5, 1, 1],
            "TOTAL_POLICIES": [2, 1, 1],
        }))
        assert list(df["ACCOUNT_CODE"]) == ["H1"]
        assert df["CANCELLED_COUNT"].iloc[0] == 2
