from __future__ import annotations

from decimal import Decimal

import pytest

from src.analytics.commission import NO_TIER, calculate_commission, select_commission_tier
from tests.factories import commission_tier

BASE_AND_SILVER = [
    commission_tier("Base", "0", "0.10", "0.05"),
    commission_tier("Silver", "1000", "0.15", "0.08"),
]


def test_total_revenue_selects_tier_and_rates_apply_per_stream() -> None:
    result = calculate_commission(BASE_AND_SILVER, Decimal("800"), Decimal("300"))

    assert result.tier_name == "Silver"
    assert result.service_commission == Decimal("120")
    assert result.product_commission == Decimal("24")
    assert result.total_commission == Decimal("144")


def test_revenue_below_next_threshold_stays_on_base() -> None:
    result = calculate_commission(BASE_AND_SILVER, Decimal("600"), Decimal("300"))

    assert result.tier_name == "Base"
    assert result.service_commission == Decimal("60")
    assert result.product_commission == Decimal("15")


def test_threshold_is_inclusive() -> None:
    tier = select_commission_tier(BASE_AND_SILVER, Decimal("1000"))
    assert tier is not None
    assert tier.tier_name == "Silver"


def test_unordered_tiers_still_select_highest_qualifying_threshold() -> None:
    tiers = [
        commission_tier("Gold", "5000", "0.20", "0.10"),
        commission_tier("Base", "0", "0.10", "0.05"),
        commission_tier("Silver", "1000", "0.15", "0.08"),
    ]
    assert select_commission_tier(tiers, Decimal("4999.99")).tier_name == "Silver"
    assert select_commission_tier(tiers, Decimal("5000")).tier_name == "Gold"


def test_no_qualifying_tier_returns_zero_commission() -> None:
    tiers = [commission_tier("Starter", "500", "0.10", "0.05")]

    result = calculate_commission(tiers, Decimal("0"), Decimal("0"))

    assert result is NO_TIER
    assert result.tier_name == ""
    assert result.total_commission == Decimal("0")
    assert calculate_commission([], Decimal("900"), Decimal("100")) is NO_TIER


def test_duplicate_thresholds_keep_first_listed_tier() -> None:
    tiers = [
        commission_tier("Silver A", "1000", "0.15", "0.08"),
        commission_tier("Silver B", "1000", "0.12", "0.06"),
    ]
    assert select_commission_tier(tiers, Decimal("2000")).tier_name == "Silver A"


@pytest.mark.parametrize(
    "lower,higher",
    [("0", "999.99"), ("999.99", "1000"), ("1000", "4000"), ("250", "8000")],
)
def test_selected_threshold_never_decreases_as_revenue_grows(lower, higher) -> None:
    tiers = BASE_AND_SILVER + [commission_tier("Gold", "5000", "0.20", "0.10")]
    low_tier = select_commission_tier(tiers, Decimal(lower))
    high_tier = select_commission_tier(tiers, Decimal(higher))
    assert high_tier.min_revenue >= low_tier.min_revenue
