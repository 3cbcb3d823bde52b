"""Rules for gaps around mandatory products (Trafik, DASK)."""

import pandas as pd

from .base import BaseRule


class TrafikWithoutKaskoRule(BaseRule):
    """
    Mandatory motor liability held, comprehensive cover missing.

    Probability scales with segment (premium 90, mid 75, budget 50).
    """

    name = "trafik_without_kasko"
    suggests = "kasko"
    trigger = "trafik"
    opportunity = "Trafik var Kasko yok"
    reasons = {
        "premium": "Premium customer with Trafik only; vehicle value justifies full Kasko cover.",
        "mid": "Holds mandatory Trafik but no Kasko; own-damage risk is uninsured.",
        "budget": "Trafik only; an entry-level Kasko package closes the own-damage gap.",
    }

    @property
    def required_columns(self) -> list[str]:
        return ["HAS_TRAFIK", "HAS_KASKO", "SEGMENT"]

    def applies(self, df: pd.DataFrame) -> pd.Series:
        return df["HAS_TRAFIK"] & ~df["HAS_KASKO"]


class KaskoWithoutTrafikRule(BaseRule):
    """Kasko held but the legally required Trafik policy is elsewhere."""

    name = "kasko_without_trafik"
    suggests = "trafik"
    trigger = "kasko"
    opportunity = "Kasko var Trafik yok"
    reasons = {
        "default": "Has Kasko but no Trafik with us; Trafik is a legal requirement for every vehicle.",
    }

    @property
    def required_columns(self) -> list[str]:
        return ["HAS_TRAFIK", "HAS_KASKO", "SEGMENT"]

    def applies(self, df: pd.DataFrame) -> pd.Series:
        return df["HAS_KASKO"] & ~df["HAS_TRAFIK"]


class KonutWithoutDaskRule(BaseRule):
    """
    Home insurance without compulsory earthquake cover.

    Legal requirement: 95 in every segment, the highest fixed value.
    """

    name = "konut_without_dask"
    suggests = "dask"
    trigger = "konut"
    opportunity = "Konut var DASK yok"
    reasons = {
        "default": "Home insurance without DASK; compulsory earthquake insurance is required by law.",
    }

    @property
    def required_columns(self) -> list[str]:
        return ["HAS_KONUT", "HAS_DASK", "SEGMENT"]

    def applies(self, df: pd.DataFrame) -> pd.Series:
        return df["HAS_KONUT"] & ~df["HAS_DASK"]


class DaskWithoutKonutRule(BaseRule):
    """DASK only covers the building against earthquake; contents are open."""

    name = "dask_without_konut"
    suggests = "konut"
    trigger = "dask"
    opportunity = "DASK var Konut yok"
    reasons = {
        "premium": "Premium customer with DASK only; home contents and valuables are uninsured.",
        "mid": "Holds DASK but no home policy; fire, theft and water damage are not covered.",
        "budget": "DASK only; a basic home package adds fire and theft cover at low cost.",
    }

    @property
    def required_columns(self) -> list[str]:
        return ["HAS_KONUT", "HAS_DASK", "SEGMENT"]

    def applies(self, df: pd.DataFrame) -> pd.Series:
        return df["HAS_DASK"] & ~df["HAS_KONUT"]


class BudgetDaskRule(BaseRule):
    """Budget customers with no property cover: DASK is cheap and compulsory."""

    name = "budget_dask"
    suggests = "dask"
    opportunity = "Konut ve DASK yok"
    reasons = {
        "budget": "No property cover at all; DASK is the low-cost compulsory starting point.",
    }

    @property
    def required_columns(self) -> list[str]:
        return ["HAS_KONUT", "HAS_DASK", "SEGMENT"]

    def applies(self, df: pd.DataFrame) -> pd.Series:
        return (df["SEGMENT"] == "budget") & ~df["HAS_DASK"] & ~df["HAS_KONUT"]
