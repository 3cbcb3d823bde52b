"""
Cancellation statistics from raw policy records.

A policy number can appear on several records: the first sale, later
endorsements, and cancellations. Any record type containing "iptal" is a
cancellation, everything else is a normal record. Per policy:

- sale date: earliest normal record (branch, company, city, account from it)
- cancel date: earliest cancellation record (cancel reason from it)

Per-account aggregates feed the churn engine; the portfolio report
reproduces the cancellation KPI dashboard.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

import numpy as np
import pandas as pd

from .models import CancellationStats
from .profiles import fold_text

logger = logging.getLogger("insights.cancellation")

UNKNOWN = "Bilinmiyor"

POLICY_RECORD_COLUMNS = [
    "ACCOUNT_CODE",
    "POLICY_NUMBER",
    "RECORD_TYPE",
    "ISSUE_DATE",
    "BRANCH",
    "COMPANY",
    "CITY",
    "CUSTOMER_NAME",
    "CANCEL_REASON",
]

REASON_LIMIT = 15
TREND_MONTHS = 12
BREAKDOWN_MIN_POLICIES = 10
RISKY_MIN_POLICIES = 20
RISKY_LIMIT = 10

# Days between sale and cancellation, upper edges inclusive
LIFETIME_BINS = [-1, 0, 7, 15, 30, 60, 90, 180, 365, np.inf]
LIFETIME_LABELS = [
    "0 gün",
    "1-7 gün",
    "8-15 gün",
    "16-30 gün",
    "31-60 gün",
    "61-90 gün",
    "91-180 gün",
    "181-365 gün",
    "365+ gün",
]


POLICY_COLUMNS = [
    "POLICY_NUMBER",
    "ACCOUNT_CODE",
    "SALE_DATE",
    "CANCEL_DATE",
    "CANCELLED",
    "CANCEL_REASON",
    "BRANCH",
    "COMPANY",
    "CITY",
    "CUSTOMER_NAME",
]


def is_cancellation(record_types: pd.Series) -> pd.Series:
    """True where the record type contains 'iptal' (Turkish case-insensitive)."""
    return record_types.map(fold_text).str.contains("iptal", regex=False).astype(bool)


def _empty_policies() -> pd.DataFrame:
    df = pd.DataFrame({column: pd.Series(dtype=object) for column in POLICY_COLUMNS})
    df["SALE_DATE"] = pd.Series(dtype="datetime64[ns]")
    df["CANCEL_DATE"] = pd.Series(dtype="datetime64[ns]")
    df["CANCELLED"] = pd.Series(dtype=bool)
    return df


def summarize_policies(records: pd.DataFrame) -> pd.DataFrame:
    """
    Collapse policy records to one row per policy number.

    Records without a policy number or a parseable issue date are ignored.

    Returns:
        DataFrame with POLICY_COLUMNS, in first-seen policy order
    """
    df = records.copy()
    for column in POLICY_RECORD_COLUMNS:
        if column not in df.columns:
            df[column] = None

    df["ISSUE_DATE"] = pd.to_datetime(df["ISSUE_DATE"], errors="coerce")
    df["POLICY_NUMBER"] = df["POLICY_NUMBER"].fillna("").astype(str).str.strip()
    df = df[(df["POLICY_NUMBER"] != "") & df["ISSUE_DATE"].notna()]
    if df.empty:
        logger.debug("%d records, none usable", len(records))
        return _empty_policies()

    df = df.sort_values("ISSUE_DATE", kind="stable")
    cancel_mask = is_cancellation(df["RECORD_TYPE"])
    sale = (
        df[~cancel_mask]
        .drop_duplicates("POLICY_NUMBER", keep="first")
        .rename(columns={"ISSUE_DATE": "SALE_DATE"})
        [["POLICY_NUMBER", "ACCOUNT_CODE", "SALE_DATE", "BRANCH", "COMPANY", "CITY", "CUSTOMER_NAME"]]
    )
    cancel = (
        df[cancel_mask]
        .drop_duplicates("POLICY_NUMBER", keep="first")
        .rename(columns={"ISSUE_DATE": "CANCEL_DATE", "ACCOUNT_CODE": "CANCEL_ACCOUNT"})
        [["POLICY_NUMBER", "CANCEL_ACCOUNT", "CANCEL_DATE", "CANCEL_REASON"]]
    )

    policies = (
        pd.DataFrame({"POLICY_NUMBER": df["POLICY_NUMBER"].unique()})
        .merge(sale, on="POLICY_NUMBER", how="left")
        .merge(cancel, on="POLICY_NUMBER", how="left")
    )
    # Cancellation-only policies take the account from the cancel record
    policies["ACCOUNT_CODE"] = policies["ACCOUNT_CODE"].astype(object).where(
        policies["ACCOUNT_CODE"].notna(), policies["CANCEL_ACCOUNT"]
    )
    policies["SALE_DATE"] = pd.to_datetime(policies["SALE_DATE"])
    policies["CANCEL_DATE"] = pd.to_datetime(policies["CANCEL_DATE"])
    policies["CANCELLED"] = policies["CANCEL_DATE"].notna()
    policies = policies[POLICY_COLUMNS]

    logger.debug(
        "%d records -> %d policies (%d cancelled)",
        len(records), len(policies), int(policies["CANCELLED"].sum()),
    )
    return policies


def build_cancellation_stats(records: pd.DataFrame) -> dict[str, CancellationStats]:
    """
    Per-account cancellation statistics keyed by account code.

    Reasons are the stated cancel reasons of the account's cancelled
    policies, earliest cancellation first.
    """
    policies = summarize_policies(records)
    if policies.empty:
        return {}
    policies["ACCOUNT_CODE"] = policies["ACCOUNT_CODE"].fillna("").astype(str).str.strip()
    policies = policies[policies["ACCOUNT_CODE"] != ""]

    stats = {}
    for account, group in policies.groupby("ACCOUNT_CODE", sort=True):
        cancelled = group[group["CANCELLED"]].sort_values("CANCEL_DATE", kind="stable")
        reasons = [
            str(r).strip() for r in cancelled["CANCEL_REASON"]
            if isinstance(r, str) and r.strip()
        ]
        stats[account] = CancellationStats(
            account_code=account,
            cancelled_count=len(cancelled),
            total_policies=len(group),
            reasons=reasons,
        )
    return stats


def _rate(part, whole) -> float:
    return round(part / whole * 100, 2) if whole else 0.0


@dataclass
class CancellationReport:
    """
    Portfolio cancellation KPIs.

    Attributes:
        total_policies: Distinct policy numbers
        cancelled_policies: Policies with at least one cancellation record
        cancel_rate: Cancelled share in percent, two decimals
        reasons: reason / count / percentage, top 15 by count
        monthly_trend: month (YYYY-MM) / count, last 12 months with data
        branches: branch / total / cancelled / cancel_rate, groups of 10+
        companies: company / total / cancelled / cancel_rate, groups of 10+
        lifetime: label / count / percentage, days from sale to cancellation
        risky_products: branches with 20+ policies, top 10 by rate
    """

    total_policies: int = 0
    cancelled_policies: int = 0
    cancel_rate: float = 0.0
    reasons: pd.DataFrame = field(default_factory=pd.DataFrame)
    monthly_trend: pd.DataFrame = field(default_factory=pd.DataFrame)
    branches: pd.DataFrame = field(default_factory=pd.DataFrame)
    companies: pd.DataFrame = field(default_factory=pd.DataFrame)
    lifetime: pd.DataFrame = field(default_factory=pd.DataFrame)
    risky_products: pd.DataFrame = field(default_factory=pd.DataFrame)

    def to_dict(self) -> dict:
        return {
            "general": {
                "total_policies": self.total_policies,
                "cancelled_policies": self.cancelled_policies,
                "cancel_rate": self.cancel_rate,
            },
            "reasons": self.reasons.to_dict("records"),
            "monthly_trend": self.monthly_trend.to_dict("records"),
            "branches": self.branches.to_dict("records"),
            "companies": self.companies.to_dict("records"),
            "lifetime": self.lifetime.to_dict("records"),
            "risky_products": self.risky_products.to_dict("records"),
        }


def _breakdown(policies: pd.DataFrame, column: str, name: str) -> pd.DataFrame:
    grouped = (
        policies.assign(**{name: policies[column].fillna(UNKNOWN).replace("", UNKNOWN)})
        .groupby(name, sort=True)
        .agg(total=("POLICY_NUMBER", "count"), cancelled=("CANCELLED", "sum"))
        .reset_index()
    )
    grouped["cancelled"] = grouped["cancelled"].astype(int)
    grouped["cancel_rate"] = [_rate(c, t) for c, t in zip(grouped["cancelled"], grouped["total"])]
    grouped = grouped[grouped["total"] >= BREAKDOWN_MIN_POLICIES]
    return grouped.sort_values("cancel_rate", ascending=False, kind="stable").reset_index(drop=True)


def _lifetime(cancelled: pd.DataFrame) -> pd.DataFrame:
    days = (cancelled["CANCEL_DATE"] - cancelled["SALE_DATE"]).dt.days.dropna()
    days = days[days >= 0]
    buckets = pd.cut(days, bins=LIFETIME_BINS, labels=LIFETIME_LABELS)
    counts = buckets.value_counts().reindex(LIFETIME_LABELS, fill_value=0)
    total = int(counts.sum())
    return pd.DataFrame({
        "label": LIFETIME_LABELS,
        "count": counts.astype(int).to_list(),
        "percentage": [_rate(c, total) for c in counts],
    })


def analyze_cancellations(records: pd.DataFrame) -> CancellationReport:
    """Build the portfolio KPI report from raw policy records."""
    policies = summarize_policies(records)
    if policies.empty:
        return CancellationReport(lifetime=_lifetime(policies))

    total = len(policies)
    cancelled = policies[policies["CANCELLED"]]

    reasons = (
        cancelled["CANCEL_REASON"].fillna(UNKNOWN).replace("", UNKNOWN)
        .value_counts(sort=True)
        .rename_axis("reason")
        .reset_index(name="count")
        .head(REASON_LIMIT)
    )
    reasons["percentage"] = [_rate(c, len(cancelled)) for c in reasons["count"]]

    trend = (
        cancelled["CANCEL_DATE"].dt.strftime("%Y-%m")
        .value_counts()
        .sort_index()
        .rename_axis("month")
        .reset_index(name="count")
        .tail(TREND_MONTHS)
        .reset_index(drop=True)
    )

    branches = _breakdown(policies, "BRANCH", "branch")
    risky = (
        branches[branches["total"] >= RISKY_MIN_POLICIES]
        .head(RISKY_LIMIT)
        .rename(columns={"branch": "product"})
        .reset_index(drop=True)
    )

    return CancellationReport(
        total_policies=total,
        cancelled_policies=len(cancelled),
        cancel_rate=_rate(len(cancelled), total),
        reasons=reasons,
        monthly_trend=trend,
        branches=branches,
        companies=_breakdown(policies, "COMPANY", "company"),
        lifetime=_lifetime(cancelled),
        risky_products=risky,
    )
