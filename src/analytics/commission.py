from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from src.models.staff_performance import CommissionTierRecord


@dataclass(frozen=True)
class CommissionBreakdown:
    tier_name: str
    service_commission: Decimal
    product_commission: Decimal

    @property
    def total_commission(self) -> Decimal:
        return self.service_commission + self.product_commission


NO_TIER = CommissionBreakdown(
    tier_name="",
    service_commission=Decimal("0"),
    product_commission=Decimal("0"),
)


def select_commission_tier(
    tiers: Iterable[CommissionTierRecord], qualifying_revenue: Decimal
) -> Optional[CommissionTierRecord]:
    """Pick the tier with the highest threshold not exceeding ``qualifying_revenue``.

    Tiers sharing the winning threshold resolve to the first one listed.
    """
    selected: Optional[CommissionTierRecord] = None
    for tier in tiers:
        if tier.min_revenue > qualifying_revenue:
            continue
        if selected is None or tier.min_revenue > selected.min_revenue:
            selected = tier
    return selected


def calculate_commission(
    tiers: Iterable[CommissionTierRecord],
    service_revenue: Decimal,
    product_revenue: Decimal,
) -> CommissionBreakdown:
    tier = select_commission_tier(tiers, service_revenue + product_revenue)
    if tier is None:
        return NO_TIER
    return CommissionBreakdown(
        tier_name=tier.tier_name,
        service_commission=service_revenue * tier.service_rate,
        product_commission=product_revenue * tier.product_rate,
    )
