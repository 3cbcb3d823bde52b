"""Travel and commercial rules."""

import pandas as pd

from .base import BaseRule


class TravelRule(BaseRule):
    """Premium/mid customers with two or more policies and no travel cover."""

    name = "travel"
    suggests = "seyahat"
    opportunity = "Seyahat sigortası yok"
    reasons = {
        "premium": "Premium profile likely to travel abroad; annual Seyahat Sağlık policy fits.",
        "mid": "Established customer without travel cover; suggest before the holiday season.",
    }

    @property
    def required_columns(self) -> list[str]:
        return ["HAS_SEYAHAT", "POLICY_COUNT", "SEGMENT"]

    def applies(self, df: pd.DataFrame) -> pd.Series:
        return (
            df["SEGMENT"].isin(["premium", "mid"])
            & (df["POLICY_COUNT"] >= self.config.multi_policy_min)
            & ~df["HAS_SEYAHAT"]
        )


class CorporateWorkplaceRule(BaseRule):
    """Corporate customers without workplace insurance."""

    name = "corporate_workplace"
    suggests = "isyeri"
    opportunity = "Kurumsal müşteri İşyeri yok"
    reasons = {
        "premium": "High-potential corporate account without İşyeri cover; package with liability.",
        "mid": "Corporate customer without workplace insurance; premises and stock are exposed.",
        "budget": "Corporate customer without İşyeri cover; a basic package protects the premises.",
    }

    @property
    def required_columns(self) -> list[str]:
        return ["HAS_ISYERI", "IS_CORPORATE", "SEGMENT"]

    def applies(self, df: pd.DataFrame) -> pd.Series:
        return df["IS_CORPORATE"] & ~df["HAS_ISYERI"]
