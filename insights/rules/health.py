"""Health and life rules."""

import pandas as pd

from .base import BaseRule


class PremiumHealthRule(BaseRule):
    """
    Premium or heavily engaged customers without private health cover.

    Fires for the premium segment, or for any customer holding at least
    ``heavy_policy_min`` policies.
    """

    name = "premium_health"
    suggests = "ozel_saglik"
    opportunity = "Premium müşteri Özel Sağlık yok"
    reasons = {
        "premium": "Premium profile without private health insurance; strong fit for Özel Sağlık.",
        "mid": "Loyal multi-policy customer without private health cover.",
        "budget": "Loyal multi-policy customer without private health cover.",
    }

    @property
    def required_columns(self) -> list[str]:
        return ["HAS_OZEL_SAGLIK", "POLICY_COUNT", "SEGMENT"]

    def applies(self, df: pd.DataFrame) -> pd.Series:
        qualifies = (df["SEGMENT"] == "premium") | (
            df["POLICY_COUNT"] >= self.config.heavy_policy_min
        )
        return qualifies & ~df["HAS_OZEL_SAGLIK"]


class BudgetHealthRule(BaseRule):
    """Budget customers with no health product of any kind."""

    name = "budget_health"
    suggests = "tamamlayici_saglik"
    opportunity = "Sağlık sigortası yok"
    reasons = {
        "budget": "No health cover; Tamamlayıcı Sağlık gives private hospital access at SGK-linked prices.",
    }

    @property
    def required_columns(self) -> list[str]:
        return ["HAS_SAGLIK", "HAS_OZEL_SAGLIK", "HAS_TAMAMLAYICI_SAGLIK", "SEGMENT"]

    def applies(self, df: pd.DataFrame) -> pd.Series:
        any_health = df["HAS_SAGLIK"] | df["HAS_OZEL_SAGLIK"] | df["HAS_TAMAMLAYICI_SAGLIK"]
        return (df["SEGMENT"] == "budget") & ~any_health


class FamilyLifeRule(BaseRule):
    """Family-tagged customers without life insurance."""

    name = "family_life"
    suggests = "hayat"
    opportunity = "Aile müşterisi Hayat yok"
    reasons = {
        "premium": "Family profile with high potential and no life cover; offer an investment-linked Hayat plan.",
        "mid": "Family profile without life insurance; protects dependants against income loss.",
        "budget": "Family profile without life insurance; term life is an affordable safeguard.",
    }

    @property
    def required_columns(self) -> list[str]:
        return ["HAS_HAYAT", "IS_FAMILY", "SEGMENT"]

    def applies(self, df: pd.DataFrame) -> pd.Series:
        return df["IS_FAMILY"] & ~df["HAS_HAYAT"]
