from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict

FREE_TIER = "free"
PRO_TIER = "pro"


@dataclass(frozen=True)
class TierConfig:
    name: str
    max_screens: float
    flow_highlighting: bool
    interaction_labels: bool
    pdf_export: bool

    def allows_screens(self, count: int) -> bool:
        return count <= self.max_screens

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "max_screens": None if math.isinf(self.max_screens) else int(self.max_screens),
            "flow_highlighting": self.flow_highlighting,
            "interaction_labels": self.interaction_labels,
            "pdf_export": self.pdf_export,
        }


TIERS: Dict[str, TierConfig] = {
    FREE_TIER: TierConfig(
        name=FREE_TIER,
        max_screens=10,
        flow_highlighting=False,
        interaction_labels=False,
        pdf_export=False,
    ),
    PRO_TIER: TierConfig(
        name=PRO_TIER,
        max_screens=math.inf,
        flow_highlighting=True,
        interaction_labels=True,
        pdf_export=True,
    ),
}


def resolve_tier(value: str | TierConfig | None) -> TierConfig:
    if isinstance(value, TierConfig):
        return value
    normalized = str(value or "").strip().lower()
    return TIERS.get(normalized, TIERS[FREE_TIER])
