"""
Persistence for profiles, policy records and predictions.

SQLAlchemy Core over an async engine: asyncpg against PostgreSQL in
production, aiosqlite in tests.

    engine = open_engine(settings.database_url)
    await create_all(engine)

    store = PredictionStore(engine)
    await store.replace_all(AnalysisType.CROSS_SELL, predictions)
    rows = await store.query(PredictionFilter(analysis_type="cross_sell"))
"""

import logging
from typing import Iterable, Optional, Sequence

import pandas as pd
from sqlalchemy import (
    JSON,
    Column,
    Date,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    delete,
    func,
    insert,
    or_,
    select,
    update,
)
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from .cancellation import POLICY_RECORD_COLUMNS, build_cancellation_stats
from .models import (
    AnalysisType,
    CancellationStats,
    CustomerProfile,
    Prediction,
    PredictionFilter,
    PredictionMetadata,
)

logger = logging.getLogger("insights.store")

metadata = MetaData()

customer_profiles = Table(
    "customer_profiles",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("account_code", String(64), index=True),
    Column("name", String(255), nullable=False, default=""),
    Column("customer_type", String(32), nullable=False, default="Bireysel"),
    Column("city", String(100)),
    Column("products", Text, nullable=False, default=""),
    Column("policy_count", Integer, nullable=False, default=0),
    Column("hashtags", Text, nullable=False, default=""),
)

policy_records = Table(
    "policy_records",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("account_code", String(64), index=True),
    Column("policy_number", String(64), index=True),
    Column("record_type", String(64)),
    Column("issue_date", Date),
    Column("branch", String(100)),
    Column("company", String(255)),
    Column("city", String(100)),
    Column("customer_name", String(255)),
    Column("cancel_reason", Text),
)

predictions = Table(
    "predictions",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("analysis_type", String(32), nullable=False, index=True),
    Column("customer_id", String(64), nullable=False, index=True),
    Column("profile_id", String(64), nullable=False),
    Column("customer_name", String(255), nullable=False),
    Column("current_product", Text, nullable=False),
    Column("suggested_product", String(255)),
    Column("probability", Integer, nullable=False),
    Column("reason", Text, nullable=False),
    Column("city", String(100)),
    Column("hashtags", Text),
    Column("metadata", JSON),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
)


def open_engine(url: str, echo: bool = False) -> AsyncEngine:
    """Async engine for the URL; in-memory SQLite shares one connection."""
    if url.startswith("sqlite") and ":memory:" in url:
        return create_async_engine(url, echo=echo, poolclass=StaticPool)
    return create_async_engine(url, echo=echo, pool_pre_ping=True)


async def create_all(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)


def _prediction_row(prediction: Prediction) -> dict:
    return {
        "analysis_type": prediction.analysis_type,
        "customer_id": prediction.customer_id,
        "profile_id": prediction.profile_id,
        "customer_name": prediction.customer_name,
        "current_product": prediction.current_product,
        "suggested_product": prediction.suggested_product,
        "probability": prediction.probability,
        "reason": prediction.reason,
        "city": prediction.city,
        "hashtags": prediction.hashtags,
        "metadata": prediction.metadata.to_dict(),
    }


def _prediction_from_row(row) -> Prediction:
    return Prediction(
        analysis_type=row.analysis_type,
        customer_id=row.customer_id,
        profile_id=row.profile_id,
        customer_name=row.customer_name,
        current_product=row.current_product,
        suggested_product=row.suggested_product,
        probability=row.probability,
        reason=row.reason,
        city=row.city,
        hashtags=row.hashtags,
        metadata=PredictionMetadata.from_dict(row.metadata),
    )


class PredictionStore:
    """Prediction table access. One analysis type is replaced as a unit."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine

    async def replace_all(
        self,
        analysis_type: AnalysisType | str,
        batch: Sequence[Prediction],
    ) -> int:
        """
        Atomically swap every stored prediction of the type for ``batch``.

        Delete and insert share one transaction: readers see the old batch
        or the new one, and a failed insert leaves the old batch in place.

        Returns:
            Number of predictions inserted
        """
        analysis_type = AnalysisType.parse(analysis_type).value
        rows = [_prediction_row(p) for p in batch]
        async with self.engine.begin() as conn:
            result = await conn.execute(
                delete(predictions).where(predictions.c.analysis_type == analysis_type)
            )
            if rows:
                await conn.execute(insert(predictions), rows)
        logger.info(
            "replaced %s predictions: %d removed, %d inserted",
            analysis_type, result.rowcount, len(rows),
        )
        return len(rows)

    async def delete_all_of_type(self, analysis_type: AnalysisType | str) -> int:
        analysis_type = AnalysisType.parse(analysis_type).value
        async with self.engine.begin() as conn:
            result = await conn.execute(
                delete(predictions).where(predictions.c.analysis_type == analysis_type)
            )
        return result.rowcount

    async def insert_batch(self, batch: Sequence[Prediction]) -> int:
        rows = [_prediction_row(p) for p in batch]
        if not rows:
            return 0
        async with self.engine.begin() as conn:
            await conn.execute(insert(predictions), rows)
        return len(rows)

    async def query(self, flt: Optional[PredictionFilter] = None) -> list[Prediction]:
        """
        Stored predictions matching the filter, highest probability first.

        Probability bounds are inclusive; text matching is case-insensitive
        (``search`` over name, reason and both products, ``product`` over
        both products, ``city`` exact).
        """
        flt = flt or PredictionFilter()
        c = predictions.c
        stmt = select(predictions)

        if flt.analysis_type:
            stmt = stmt.where(c.analysis_type == flt.analysis_type)
        if flt.min_probability is not None:
            stmt = stmt.where(c.probability >= flt.min_probability)
        if flt.max_probability is not None:
            stmt = stmt.where(c.probability <= flt.max_probability)
        if flt.search:
            stmt = stmt.where(or_(
                c.customer_name.icontains(flt.search, autoescape=True),
                c.reason.icontains(flt.search, autoescape=True),
                c.current_product.icontains(flt.search, autoescape=True),
                c.suggested_product.icontains(flt.search, autoescape=True),
            ))
        if flt.product:
            stmt = stmt.where(or_(
                c.current_product.icontains(flt.product, autoescape=True),
                c.suggested_product.icontains(flt.product, autoescape=True),
            ))
        if flt.city:
            stmt = stmt.where(func.lower(c.city) == flt.city.lower())

        stmt = stmt.order_by(c.probability.desc(), c.id)
        async with self.engine.connect() as conn:
            result = await conn.execute(stmt)
            return [_prediction_from_row(row) for row in result]

    async def for_customer(self, customer_id: str) -> list[Prediction]:
        """Every stored prediction for one customer, any analysis type."""
        c = predictions.c
        stmt = (
            select(predictions)
            .where(or_(c.customer_id == customer_id, c.profile_id == customer_id))
            .order_by(c.probability.desc(), c.id)
        )
        async with self.engine.connect() as conn:
            result = await conn.execute(stmt)
            return [_prediction_from_row(row) for row in result]

    async def counts(self) -> dict[str, int]:
        """Stored prediction count per analysis type."""
        stmt = select(predictions.c.analysis_type, func.count()).group_by(
            predictions.c.analysis_type
        )
        async with self.engine.connect() as conn:
            result = await conn.execute(stmt)
            return {analysis_type: count for analysis_type, count in result}


class ProfileRepository:
    """Read access to profiles and policy records, plus the hashtag update."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine

    async def list_profiles(self, limit: Optional[int] = None) -> list[CustomerProfile]:
        stmt = select(customer_profiles).order_by(customer_profiles.c.id)
        if limit is not None:
            stmt = stmt.limit(limit)
        async with self.engine.connect() as conn:
            result = await conn.execute(stmt)
            return [
                CustomerProfile(
                    profile_id=row.id,
                    account_code=row.account_code,
                    name=row.name or "",
                    customer_type=row.customer_type or "Bireysel",
                    city=row.city,
                    products=row.products or "",
                    policy_count=row.policy_count or 0,
                    hashtags=row.hashtags or "",
                )
                for row in result
            ]

    async def load_policy_records(self) -> pd.DataFrame:
        """All policy records as a frame with POLICY_RECORD_COLUMNS."""
        c = policy_records.c
        stmt = select(
            c.account_code,
            c.policy_number,
            c.record_type,
            c.issue_date,
            c.branch,
            c.company,
            c.city,
            c.customer_name,
            c.cancel_reason,
        ).order_by(c.id)
        async with self.engine.connect() as conn:
            result = await conn.execute(stmt)
            rows = [tuple(row) for row in result]
        return pd.DataFrame(rows, columns=POLICY_RECORD_COLUMNS)

    async def cancellation_stats(self) -> dict[str, CancellationStats]:
        return build_cancellation_stats(await self.load_policy_records())

    async def update_hashtags(self, profile_id: str, hashtags: str) -> None:
        """
        Overwrite one profile's hashtag string.

        Raises:
            LookupError: no profile with that id
        """
        async with self.engine.begin() as conn:
            result = await conn.execute(
                update(customer_profiles)
                .where(customer_profiles.c.id == profile_id)
                .values(hashtags=hashtags)
            )
        if result.rowcount == 0:
            raise LookupError(f"profile {profile_id!r} not found")

    async def add_profiles(self, profiles: Iterable[CustomerProfile]) -> int:
        rows = [
            {
                "id": p.profile_id,
                "account_code": p.account_code,
                "name": p.name,
                "customer_type": p.customer_type,
                "city": p.city,
                "products": p.products,
                "policy_count": p.policy_count,
                "hashtags": p.hashtags,
            }
            for p in profiles
        ]
        if not rows:
            return 0
        async with self.engine.begin() as conn:
            await conn.execute(insert(customer_profiles), rows)
        return len(rows)

    async def add_policy_records(self, records: pd.DataFrame) -> int:
        """Insert raw policy records (columns as POLICY_RECORD_COLUMNS)."""
        df = records.reindex(columns=POLICY_RECORD_COLUMNS)
        df["ISSUE_DATE"] = pd.to_datetime(df["ISSUE_DATE"], errors="coerce").dt.date
        df = df.astype(object).where(df.notna(), None)
        rows = [
            {column.lower(): value for column, value in record.items()}
            for record in df.to_dict("records")
        ]
        if not rows:
            return 0
        async with self.engine.begin() as conn:
            await conn.execute(insert(policy_records), rows)
        return len(rows)
