"""
Profile normalization: records -> DataFrame with segment and ownership flags.

Usage:
    from insights.profiles import prepare_profiles

    df = prepare_profiles(profiles)
    print(df[["CUSTOMER_ID", "SEGMENT", "HAS_KASKO", "HAS_TRAFIK"]])
"""

import re
from dataclasses import fields
from typing import Optional

import numpy as np
import pandas as pd

from .config import DEFAULT_CONFIG, ScoringConfig
from .models import CustomerProfile, Segment, SegmentFilter
from .schemas import PROFILE_SCHEMA

# Frame column -> (CustomerProfile attribute, default)
PROFILE_COLUMNS = {
    "PROFILE_ID": ("profile_id", ""),
    "ACCOUNT_CODE": ("account_code", ""),
    "CUSTOMER_NAME": ("name", ""),
    "CUSTOMER_TYPE": ("customer_type", "Bireysel"),
    "CITY": ("city", None),
    "PRODUCTS": ("products", ""),
    "POLICY_COUNT": ("policy_count", 0),
    "HASHTAGS": ("hashtags", ""),
}

_TURKISH_FOLD = str.maketrans({
    "İ": "i", "I": "i", "ı": "i",
    "Ğ": "g", "ğ": "g",
    "Ş": "s", "ş": "s",
    "Ç": "c", "ç": "c",
    "Ö": "o", "ö": "o",
    "Ü": "u", "ü": "u",
    "Â": "a", "â": "a",
})

_TAG_SPLIT = re.compile(r"[\s,;]+")

# List separators in free-text product fields: "Kasko, Trafik", "Kasko; Trafik",
# "Kasko / Trafik", "Trafik ve Kasko"
_PRODUCT_SPLIT = re.compile(r"[,;/+&|\n]|\s(?:ve|and)\s", re.IGNORECASE)


def fold_text(value) -> str:
    """Lowercase and strip Turkish diacritics ("SAĞLIK" -> "saglik")."""
    if not isinstance(value, str):
        return ""
    return value.translate(_TURKISH_FOLD).lower()


def split_hashtags(value) -> list[str]:
    """Tokens starting with '#', in order, without duplicates."""
    if not isinstance(value, str):
        return []
    seen = []
    for token in _TAG_SPLIT.split(value):
        if token.startswith("#") and len(token) > 1 and token not in seen:
            seen.append(token)
    return seen


def has_tag(hashtags, tag: str) -> bool:
    """Case and diacritic insensitive tag membership."""
    wanted = fold_text(tag)
    return any(fold_text(t) == wanted for t in split_hashtags(hashtags))


def add_tag(hashtags, tag: str) -> str:
    """Append a tag unless it is already present."""
    current = hashtags.strip() if isinstance(hashtags, str) else ""
    if has_tag(current, tag):
        return current
    return f"{current} {tag}".strip()


def match_product(item: str, config: ScoringConfig = DEFAULT_CONFIG) -> Optional[str]:
    """
    Category of a single product name.

    The catalogue is scanned in order and the first category with a keyword
    contained in the folded name wins.
    """
    folded = fold_text(item).strip()
    if not folded:
        return None
    for category, keywords in config.product_catalogue:
        for keyword in keywords:
            if keyword in folded:
                return category
    return None


def split_products(products) -> list[str]:
    """Product names of a free-text list, blanks dropped."""
    if not isinstance(products, str):
        return []
    return [item.strip() for item in _PRODUCT_SPLIT.split(products) if item.strip()]


def owned_categories(products, config: ScoringConfig = DEFAULT_CONFIG) -> set[str]:
    """Categories owned according to a free-text product list."""
    owned = set()
    for item in split_products(products):
        category = match_product(item, config)
        if category:
            owned.add(category)
    return owned


def profiles_to_frame(profiles) -> pd.DataFrame:
    """
    Build the raw profile frame.

    Accepts a DataFrame (missing columns are added with defaults) or an
    iterable of CustomerProfile objects / dicts with CustomerProfile keys.
    """
    if isinstance(profiles, pd.DataFrame):
        df = profiles.copy()
    else:
        rows = [_profile_row(p) for p in profiles]
        df = pd.DataFrame(rows, columns=list(PROFILE_COLUMNS))

    for column, (_, default) in PROFILE_COLUMNS.items():
        if column not in df.columns:
            df[column] = default

    for column in ("PROFILE_ID", "ACCOUNT_CODE", "CUSTOMER_NAME", "PRODUCTS", "HASHTAGS"):
        df[column] = df[column].fillna("").astype(str)
    df["CUSTOMER_TYPE"] = df["CUSTOMER_TYPE"].fillna("Bireysel").astype(str)
    df["CITY"] = df["CITY"].astype(object).where(df["CITY"].notna(), None)
    df["POLICY_COUNT"] = (
        pd.to_numeric(df["POLICY_COUNT"], errors="coerce").fillna(0).clip(lower=0).astype(int)
    )
    df["CUSTOMER_ID"] = df["ACCOUNT_CODE"].where(
        df["ACCOUNT_CODE"].str.strip() != "", df["PROFILE_ID"]
    )
    return df.reset_index(drop=True)


def _profile_row(profile) -> dict:
    if isinstance(profile, CustomerProfile):
        source = profile.to_dict()
    elif isinstance(profile, dict):
        known = {f.name for f in fields(CustomerProfile)}
        source = {k: v for k, v in profile.items() if k in known}
    else:
        source = {}
    return {
        column: source.get(attr, default)
        for column, (attr, default) in PROFILE_COLUMNS.items()
    }


def classify_segments(hashtags: pd.Series, config: ScoringConfig = DEFAULT_CONFIG) -> pd.Series:
    """Premium tags first, then budget tags, otherwise mid."""
    tokens = hashtags.map(lambda h: {fold_text(t) for t in split_hashtags(h)})
    premium = {fold_text(t) for t in config.premium_tags}
    budget = {fold_text(t) for t in config.budget_tags}

    is_premium = tokens.map(lambda t: bool(t & premium)).astype(bool)
    is_budget = tokens.map(lambda t: bool(t & budget)).astype(bool)
    return pd.Series(
        np.select(
            [is_premium, is_budget],
            [Segment.PREMIUM.value, Segment.BUDGET.value],
            default=Segment.MID.value,
        ),
        index=hashtags.index,
    )


def ownership_flags(products: pd.Series, config: ScoringConfig = DEFAULT_CONFIG) -> pd.DataFrame:
    """One boolean HAS_<CATEGORY> column per catalogue category."""
    owned = products.map(lambda p: owned_categories(p, config))
    return pd.DataFrame(
        {
            f"HAS_{category.upper()}": owned.map(lambda c, cat=category: cat in c).astype(bool)
            for category, _ in config.product_catalogue
        },
        index=products.index,
    )


def prepare_profiles(profiles, config: ScoringConfig = DEFAULT_CONFIG) -> pd.DataFrame:
    """Profile frame with SEGMENT, IS_CORPORATE, IS_FAMILY and ownership flags."""
    df = PROFILE_SCHEMA.validate(profiles_to_frame(profiles))
    df["SEGMENT"] = classify_segments(df["HASHTAGS"], config)
    corporate = {fold_text(t) for t in config.corporate_types}
    df["IS_CORPORATE"] = df["CUSTOMER_TYPE"].map(
        lambda t: any(c in fold_text(t) for c in corporate)
    ).astype(bool)
    df["IS_FAMILY"] = df["HASHTAGS"].map(lambda h: has_tag(h, config.family_tag)).astype(bool)
    flags = ownership_flags(df["PRODUCTS"], config)
    return pd.concat([df, flags], axis=1)


def _owns(products: pd.Series, product: str, config: ScoringConfig) -> pd.Series:
    category = match_product(product, config)
    if category is not None:
        return products.map(lambda p: category in owned_categories(p, config)).astype(bool)
    # Not in the catalogue: plain substring over the folded list
    wanted = fold_text(product).strip()
    return products.map(lambda p: wanted in fold_text(p)).astype(bool)


def segment_mask(df: pd.DataFrame, flt: SegmentFilter, config: ScoringConfig = DEFAULT_CONFIG) -> pd.Series:
    """Boolean mask of profile rows matching every criterion of the filter."""
    mask = pd.Series(True, index=df.index)
    for product in flt.has_products:
        mask &= _owns(df["PRODUCTS"], product, config)
    for product in flt.not_has_products:
        mask &= ~_owns(df["PRODUCTS"], product, config)
    for tag in flt.hashtags:
        mask &= df["HASHTAGS"].map(lambda h, t=tag: has_tag(h, t)).astype(bool)
    if flt.city:
        city = fold_text(flt.city).strip()
        mask &= df["CITY"].map(lambda c: fold_text(c).strip() == city).astype(bool)
    if flt.customer_type:
        customer_type = fold_text(flt.customer_type).strip()
        mask &= df["CUSTOMER_TYPE"].map(lambda t: fold_text(t).strip() == customer_type).astype(bool)
    if flt.policy_count_min is not None:
        mask &= df["POLICY_COUNT"] >= flt.policy_count_min
    if flt.policy_count_max is not None:
        mask &= df["POLICY_COUNT"] <= flt.policy_count_max
    return mask


def select_segment(profiles, flt: SegmentFilter, config: ScoringConfig = DEFAULT_CONFIG) -> pd.DataFrame:
    """Profile rows selected by a segment filter, in input order."""
    df = PROFILE_SCHEMA.validate(profiles_to_frame(profiles))
    return df[segment_mask(df, flt, config)].reset_index(drop=True)

def generate_sample_profiles(n_profiles: int = 100, seed: int = 42) -> list[CustomerProfile]:
    """
    Generate realistic sample profiles for testing.

    Product mixes lean on motor products (Trafik/Kasko) as in a typical
    agency portfolio; roughly a fifth of profiles carry a segment tag.
    """
    rng = np.random.default_rng(seed)
    product_pool = np.array([
        "Trafik", "Oto Kaza (Kasko)", "Konut", "Zorunlu Deprem (DASK)",
        "Sağlık", "Özel Sağlık", "Tamamlayıcı Sağlık", "Ferdi Kaza",
        "Seyahat Sağlık", "Hayat", "İşyeri",
    ])
    weights = np.array([0.24, 0.16, 0.12, 0.12, 0.06, 0.04, 0.05, 0.06, 0.04, 0.05, 0.06])
    tag_pool = ["", "", "", "#premium", "#ekonomik", "#aile", "#sadik_musteri", "#yuksek_potansiyel"]
    cities = ["İSTANBUL", "ANKARA", "İZMİR", "BURSA", "ANTALYA"]

    profiles = []
    for i in range(n_profiles):
        count = int(rng.integers(1, 5))
        chosen = rng.choice(product_pool, size=count, replace=False, p=weights)
        tags = " ".join(t for t in rng.choice(tag_pool, size=2) if t)
        profiles.append(CustomerProfile(
            profile_id=f"P{i:05d}",
            account_code=f"H{i:05d}" if rng.random() > 0.05 else None,
            name=f"Müşteri {i}",
            customer_type="Kurumsal" if rng.random() < 0.15 else "Bireysel",
            city=str(rng.choice(cities)),
            products=", ".join(str(p) for p in chosen),
            policy_count=count,
            hashtags=tags,
        ))
    return profiles
