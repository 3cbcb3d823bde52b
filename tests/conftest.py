"""
Pytest fixtures for the insight engine tests.
"""

import pandas as pd
import pytest
import pytest_asyncio

# Add package to path
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from insights.config import ScoringConfig
from insights.cross_sell import CrossSellEngine
from insights.churn import ChurnEngine
from insights.models import CancellationStats, CustomerProfile
from insights.profiles import generate_sample_profiles
from insights.store import PredictionStore, ProfileRepository, create_all, open_engine


@pytest.fixture
def default_config():
    """Default scoring configuration."""
    return ScoringConfig()


@pytest.fixture
def cross_sell_engine(default_config):
    """CrossSellEngine with default config."""
    return CrossSellEngine(default_config)


@pytest.fixture
def churn_engine(default_config):
    """ChurnEngine with default config."""
    return ChurnEngine(default_config)


@pytest.fixture
def sample_profiles():
    """100 sample profiles with realistic product mixes."""
    return generate_sample_profiles(n_profiles=100, seed=42)


def make_profile(profile_id="P1", products="", hashtags="", policy_count=1, **kwargs):
    """Profile with sensible defaults; account code mirrors the profile id."""
    kwargs.setdefault("account_code", f"H{profile_id[1:]}")
    kwargs.setdefault("name", f"Customer {profile_id}")
    return CustomerProfile(
        profile_id=profile_id,
        products=products,
        hashtags=hashtags,
        policy_count=policy_count,
        **kwargs,
    )


@pytest.fixture
def profile_factory():
    return make_profile


@pytest.fixture
def edge_profiles():
    """Specific profiles for boundary conditions."""
    return [
        # Scenario A: mid segment, Trafik only
        make_profile("P1", products="Trafik"),
        # Scenario B: both motor products owned
        make_profile("P2", products="Kasko, Trafik"),
        # Home without DASK, premium
        make_profile("P3", products="Konut", hashtags="#premium"),
        # Budget customer with nothing relevant
        make_profile("P4", products="Hayat", hashtags="#ekonomik"),
        # No account code, corporate, family
        make_profile(
            "P5",
            products="Kasko",
            hashtags="#aile",
            policy_count=2,
            account_code=None,
            customer_type="Kurumsal",
        ),
        # Missing everything
        make_profile("P6", products="", hashtags="", policy_count=0),
    ]


@pytest.fixture
def cancellation_stats():
    """Stats keyed by account code, covering every churn band."""
    return {
        # Scenario C: 2 of 4 -> 40 + 20 + 10 = 70
        "H1": CancellationStats("H1", cancelled_count=2, total_policies=4, reasons=["Fiyat"]),
        # Scenario D: nothing cancelled
        "H2": CancellationStats("H2", cancelled_count=0, total_policies=3),
        # 3 of 3 -> 40 + 30 + 20 = 90
        "H3": CancellationStats("H3", cancelled_count=3, total_policies=3),
        # 1 of 10 -> 40 only
        "H4": CancellationStats("H4", cancelled_count=1, total_policies=10),
    }


@pytest.fixture
def policy_records():
    """Raw policy records for two accounts."""
    rows = []
    for number in range(1, 5):
        rows.append({
            "ACCOUNT_CODE": "H1",
            "POLICY_NUMBER": f"POL-{number}",
            "RECORD_TYPE": "Satış",
            "ISSUE_DATE": "2024-01-01",
            "BRANCH": "Kasko",
            "COMPANY": "Anadolu",
            "CITY": "ANKARA",
            "CUSTOMER_NAME": "Customer P1",
            "CANCEL_REASON": None,
        })
    for number, reason in [(1, "Fiyat"), (2, "Araç satışı")]:
        rows.append({
            "ACCOUNT_CODE": "H1",
            "POLICY_NUMBER": f"POL-{number}",
            "RECORD_TYPE": "İptal",
            "ISSUE_DATE": f"2024-0{number + 2}-01",
            "BRANCH": "Kasko",
            "COMPANY": "Anadolu",
            "CITY": "ANKARA",
            "CUSTOMER_NAME": "Customer P1",
            "CANCEL_REASON": reason,
        })
    rows.append({
        "ACCOUNT_CODE": "H2",
        "POLICY_NUMBER": "POL-9",
        "RECORD_TYPE": "Satış",
        "ISSUE_DATE": "2024-02-01",
        "BRANCH": "Trafik",
        "COMPANY": "Allianz",
        "CITY": "IZMIR",
        "CUSTOMER_NAME": "Customer P2",
        "CANCEL_REASON": None,
    })
    return pd.DataFrame(rows)


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """File-backed SQLite database with all tables created."""
    engine = open_engine(f"sqlite+aiosqlite:///{tmp_path / 'insights.db'}")
    await create_all(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def prediction_store(db_engine):
    return PredictionStore(db_engine)


@pytest.fixture
def profile_repository(db_engine):
    return ProfileRepository(db_engine)
