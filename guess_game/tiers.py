import dataclasses
from typing import Any, Dict, Optional


@dataclasses.dataclass(frozen=True)
class Tier:
    number: Optional[int]
    multiplier: int
    max_bps: Optional[int]
    label: str

    @property
    def is_win(self) -> bool:
        return self.multiplier > 0

    def to_dict(self) -> Dict[str, Any]:
        return {"number": self.number, "multiplier": self.multiplier, "label": self.label}


# Upper bounds are inclusive.
TIERS = (
    Tier(1, 10, 10, "Tier 1 (<=0.1%) - 10x"),
    Tier(2, 5, 50, "Tier 2 (<=0.5%) - 5x"),
    Tier(3, 3, 100, "Tier 3 (<=1.0%) - 3x"),
    Tier(4, 2, 200, "Tier 4 (<=2.0%) - 2x"),
    Tier(5, 1, 500, "Tier 5 (<=5.0%) - 1x"),
)
LOSS = Tier(None, 0, None, "No win (>5.0%)")


def classify(accuracy_bps: int) -> Tier:
    if accuracy_bps < 0:
        raise ValueError("accuracy_bps must be non-negative")
    for tier in TIERS:
        if accuracy_bps <= tier.max_bps:
            return tier
    return LOSS
