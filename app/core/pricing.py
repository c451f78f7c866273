"""District volume pricing. Per-school monthly price never increases as the school count grows."""

from dataclasses import dataclass
from decimal import Decimal

from app.core.enums import SubscriptionTier


# (minimum school count, tier, monthly price per school), checked top-down
DISTRICT_PRICE_TIERS = (
    (31, SubscriptionTier.ENTERPRISE, Decimal("60")),
    (16, SubscriptionTier.LARGE, Decimal("64")),
    (6, SubscriptionTier.MEDIUM, Decimal("68")),
    (1, SubscriptionTier.SMALL, Decimal("72")),
)


@dataclass(frozen=True)
class DistrictPricing:
    tier: SubscriptionTier
    price_per_school: Decimal
    total: Decimal


def calculate_district_price(school_count: int) -> DistrictPricing:
    """
    Price a district subscription for school_count schools.

    Examples:
        3  -> small, 72/school, 216
        20 -> large, 64/school, 1280
    """
    if school_count < 1:
        raise ValueError("school_count must be at least 1")
    for minimum, tier, price in DISTRICT_PRICE_TIERS:
        if school_count >= minimum:
            return DistrictPricing(tier=tier, price_per_school=price, total=price * school_count)
    raise AssertionError("unreachable")
