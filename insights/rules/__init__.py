"""Cross-sell rules, in evaluation order."""

from .base import BaseRule, CANDIDATE_COLUMNS
from .legal import (
    TrafikWithoutKaskoRule,
    KaskoWithoutTrafikRule,
    KonutWithoutDaskRule,
    DaskWithoutKonutRule,
    BudgetDaskRule,
)
from .health import PremiumHealthRule, BudgetHealthRule, FamilyLifeRule
from .accident import BudgetAccidentRule, MidAccidentRule, VehicleAccidentRule
from .lifestyle import TravelRule, CorporateWorkplaceRule

# Order matters: on equal probability the earlier rule's candidate wins
DEFAULT_RULES = [
    TrafikWithoutKaskoRule,
    KaskoWithoutTrafikRule,
    KonutWithoutDaskRule,
    DaskWithoutKonutRule,
    PremiumHealthRule,
    BudgetHealthRule,
    BudgetAccidentRule,
    BudgetDaskRule,
    MidAccidentRule,
    TravelRule,
    VehicleAccidentRule,
    FamilyLifeRule,
    CorporateWorkplaceRule,
]

__all__ = [
    "BaseRule",
    "CANDIDATE_COLUMNS",
    "DEFAULT_RULES",
    "TrafikWithoutKaskoRule",
    "KaskoWithoutTrafikRule",
    "KonutWithoutDaskRule",
    "DaskWithoutKonutRule",
    "BudgetDaskRule",
    "PremiumHealthRule",
    "BudgetHealthRule",
    "FamilyLifeRule",
    "BudgetAccidentRule",
    "MidAccidentRule",
    "VehicleAccidentRule",
    "TravelRule",
    "CorporateWorkplaceRule",
]
