"""
Scoring configuration for the cross-sell and churn rule engines.

All probabilities, thresholds and tag vocabularies are defined here for easy
tuning. Rule predicates live in ``insights.rules`` and ``insights.churn``;
the numbers they emit come from this file.
"""

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Dict, List, Tuple

import yaml


@dataclass
class ScoringConfig:
    """
    Configuration for both rule engines.

    Cross-sell probabilities are keyed by rule name, then by segment
    ("premium", "mid", "budget"). Churn points are additive and clamped
    to ``churn_max_probability``.
    """

    # === Segment classification ===
    # Premium tags override budget tags
    premium_tags: List[str] = field(default_factory=lambda: [
        "#premium", "#luks", "#vip", "#yuksek_potansiyel",
    ])
    budget_tags: List[str] = field(default_factory=lambda: [
        "#ekonomik", "#butce", "#dusuk_butce",
    ])
    family_tag: str = "#aile"
    corporate_types: List[str] = field(default_factory=lambda: [
        "kurumsal", "tuzel",
    ])

    # === Product catalogue ===
    # Ordered: an item belongs to the FIRST category with a matching keyword.
    # Keywords are ascii-folded lowercase; specific names precede the
    # generic names they contain ("ozel saglik", "seyahat saglik" before "saglik").
    product_catalogue: List[Tuple[str, List[str]]] = field(default_factory=lambda: [
        ("tamamlayici_saglik", ["tamamlayici saglik", "tamamlayici"]),
        ("ozel_saglik", ["ozel saglik"]),
        ("seyahat", ["seyahat"]),
        ("saglik", ["saglik"]),
        ("ferdi_kaza", ["ferdi kaza"]),
        ("kasko", ["kasko"]),
        ("trafik", ["trafik"]),
        ("dask", ["dask", "zorunlu deprem"]),
        ("konut", ["konut"]),
        ("hayat", ["hayat"]),
        ("isyeri", ["isyeri"]),
    ])
    product_labels: Dict[str, str] = field(default_factory=lambda: {
        "tamamlayici_saglik": "Tamamlayıcı Sağlık",
        "ozel_saglik": "Özel Sağlık",
        "saglik": "Sağlık",
        "ferdi_kaza": "Ferdi Kaza",
        "kasko": "Kasko",
        "trafik": "Trafik",
        "dask": "DASK",
        "konut": "Konut",
        "seyahat": "Seyahat",
        "hayat": "Hayat",
        "isyeri": "İşyeri",
    })

    # === Cross-sell probabilities (premium / mid / budget) ===
    rule_probabilities: Dict[str, Dict[str, int]] = field(default_factory=lambda: {
        "trafik_without_kasko": {"premium": 90, "mid": 75, "budget": 50},
        "kasko_without_trafik": {"premium": 90, "mid": 90, "budget": 90},
        # Legal requirement, same for every segment
        "konut_without_dask": {"premium": 95, "mid": 95, "budget": 95},
        "dask_without_konut": {"premium": 90, "mid": 75, "budget": 65},
        "premium_health": {"premium": 85, "mid": 70, "budget": 70},
        "budget_health": {"budget": 65},
        "budget_accident": {"budget": 55},
        "budget_dask": {"budget": 50},
        "mid_accident": {"mid": 50},
        "travel": {"premium": 60, "mid": 45},
        "vehicle_accident": {"premium": 60, "mid": 55, "budget": 45},
        "family_life": {"premium": 70, "mid": 60, "budget": 50},
        "corporate_workplace": {"premium": 80, "mid": 70, "budget": 60},
    })
    multi_policy_min: int = 2     # "multi-policy" customers
    heavy_policy_min: int = 3     # qualifies for premium health without a tag

    # === Churn points ===
    churn_cancelled_points: int = 40
    # (ratio strictly above, points); first matching band wins
    churn_ratio_bands: List[Tuple[float, int]] = field(default_factory=lambda: [
        (0.5, 30),
        (0.3, 20),
    ])
    # (cancelled count at least, points); first matching band wins
    churn_history_bands: List[Tuple[int, int]] = field(default_factory=lambda: [
        (3, 20),
        (2, 10),
    ])
    churn_max_probability: int = 95   # never report certainty
    churn_min_probability: int = 30   # sub-threshold risk is not reported
    renewal_risk_tag: str = "#yenileme_riski"
    churn_reason_limit: int = 3

    # === Priority bands (probability at least) ===
    priority_levels: Dict[str, int] = field(default_factory=lambda: {
        "High": 70,
        "Medium": 50,
        "Low": 0,
    })
    next_best_actions: Dict[str, str] = field(default_factory=lambda: {
        "High": "Call",
        "Medium": "Email",
        "Low": "Visit",
    })

    # === Metadata ===
    version: str = "1.0.0"

    def rule_probability(self, rule: str, segment: str) -> int | None:
        """Probability for a rule in a segment, or None when it does not apply."""
        return self.rule_probabilities.get(rule, {}).get(segment)

    def get_priority(self, probability: int) -> str:
        """Map a probability to its priority band."""
        for level, low in sorted(
            self.priority_levels.items(), key=lambda item: item[1], reverse=True
        ):
            if probability >= low:
                return level
        return "Low"

    def get_next_best_action(self, probability: int) -> str:
        return self.next_best_actions[self.get_priority(probability)]

    def label(self, category: str) -> str:
        return self.product_labels.get(category, category)

    @classmethod
    def from_yaml(cls, path: Path | str) -> "ScoringConfig":
        """Load configuration from YAML; missing keys keep their defaults."""
        path = Path(path)
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if "product_catalogue" in data:
            data["product_catalogue"] = [
                (name, list(keywords)) for name, keywords in data["product_catalogue"]
            ]
        for key in ("churn_ratio_bands", "churn_history_bands"):
            if key in data:
                data[key] = [tuple(band) for band in data[key]]
        return cls(**data)

    def to_yaml(self, path: Path | str) -> None:
        """Save configuration to YAML file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        data = asdict(self)
        data["product_catalogue"] = [
            [name, keywords] for name, keywords in self.product_catalogue
        ]
        data["churn_ratio_bands"] = [list(b) for b in self.churn_ratio_bands]
        data["churn_history_bands"] = [list(b) for b in self.churn_history_bands]
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False, allow_unicode=True)


# Default configuration instance
DEFAULT_CONFIG = ScoringConfig()
