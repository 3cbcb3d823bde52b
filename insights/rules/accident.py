"""Personal accident (Ferdi Kaza) rules."""

import pandas as pd

from .base import BaseRule


class BudgetAccidentRule(BaseRule):
    name = "budget_accident"
    suggests = "ferdi_kaza"
    opportunity = "Ferdi Kaza yok"
    reasons = {
        "budget": "No personal accident cover; Ferdi Kaza is one of the cheapest essential products.",
    }

    @property
    def required_columns(self) -> list[str]:
        return ["HAS_FERDI_KAZA", "SEGMENT"]

    def applies(self, df: pd.DataFrame) -> pd.Series:
        return (df["SEGMENT"] == "budget") & ~df["HAS_FERDI_KAZA"]


class MidAccidentRule(BaseRule):
    """Multi-policy mid-segment customers missing personal accident cover."""

    name = "mid_accident"
    suggests = "ferdi_kaza"
    opportunity = "Çoklu poliçe Ferdi Kaza yok"
    reasons = {
        "mid": "Multi-policy customer without Ferdi Kaza; easy add-on to the existing relationship.",
    }

    @property
    def required_columns(self) -> list[str]:
        return ["HAS_FERDI_KAZA", "POLICY_COUNT", "SEGMENT"]

    def applies(self, df: pd.DataFrame) -> pd.Series:
        return (
            (df["SEGMENT"] == "mid")
            & (df["POLICY_COUNT"] >= self.config.multi_policy_min)
            & ~df["HAS_FERDI_KAZA"]
        )


class VehicleAccidentRule(BaseRule):
    """Vehicle owners with several policies but no driver/passenger accident cover."""

    name = "vehicle_accident"
    suggests = "ferdi_kaza"
    opportunity = "Araç var Ferdi Kaza yok"
    reasons = {
        "premium": "Vehicle owner with a premium profile; Ferdi Kaza covers the driver beyond Kasko limits.",
        "mid": "Vehicle owner without Ferdi Kaza; covers driver and passengers in an accident.",
        "budget": "Vehicle owner without Ferdi Kaza; low premium, high perceived value.",
    }

    @property
    def required_columns(self) -> list[str]:
        return ["HAS_KASKO", "HAS_TRAFIK", "HAS_FERDI_KAZA", "POLICY_COUNT", "SEGMENT"]

    def applies(self, df: pd.DataFrame) -> pd.Series:
        has_vehicle = df["HAS_KASKO"] | df["HAS_TRAFIK"]
        return (
            has_vehicle
            & (df["POLICY_COUNT"] >= self.config.multi_policy_min)
            & ~df["HAS_FERDI_KAZA"]
        )
