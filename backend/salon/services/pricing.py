# backend/salon/services/pricing.py
"""
Pricing rules for reservations.

Pure functions only; database lookups live in discount_resolver.

Rules:
  original_price = floor(price * (1 + tax_rate))   (truncated, never rounded)
  percent        → floor(original_price * value / 100)
  fixed          → min(value, original_price)
  final_price    = original_price - discount_amount  (never negative)

Discounts do NOT stack: a reservation has at most one source, coupon or
campaign.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional


PERCENT = "percent"
FIXED = "fixed"


@dataclass(frozen=True)
class DiscountSource:
    """Where a reservation's discount came from: none, coupon(id) or campaign(id)."""
    kind: str = "none"
    id: Optional[int] = None

    @classmethod
    def coupon(cls, coupon_id: int) -> "DiscountSource":
        return cls("coupon", coupon_id)

    @classmethod
    def campaign(cls, campaign_id: int) -> "DiscountSource":
        return cls("campaign", campaign_id)

    @classmethod
    def from_ids(
        cls,
        coupon_id: Optional[int],
        campaign_id: Optional[int],
    ) -> "DiscountSource":
        if coupon_id is not None and campaign_id is not None:
            raise ValueError("A reservation cannot carry both a coupon and a campaign")
        if coupon_id is not None:
            return cls.coupon(coupon_id)
        if campaign_id is not None:
            return cls.campaign(campaign_id)
        return NO_DISCOUNT

    @property
    def coupon_id(self) -> Optional[int]:
        return self.id if self.kind == "coupon" else None

    @property
    def campaign_id(self) -> Optional[int]:
        return self.id if self.kind == "campaign" else None


NO_DISCOUNT = DiscountSource()


@dataclass(frozen=True)
class PriceQuote:
    original_price: int
    discount_amount: int = 0
    source: DiscountSource = NO_DISCOUNT

    @property
    def final_price(self) -> int:
        return self.original_price - self.discount_amount


def calculate_original_price(price: int, tax_rate: float) -> int:
    """Tax-inclusive price, fractional units truncated."""
    return math.floor(price * (1 + tax_rate))


def calculate_discount(
    original_price: int,
    discount_type: str,
    discount_value: int,
) -> int:
    """Discount amount, always within [0, original_price]."""
    if discount_type == PERCENT:
        amount = original_price * discount_value // 100
    elif discount_type == FIXED:
        amount = min(discount_value, original_price)
    else:
        raise ValueError(f"Unknown discount type: {discount_type!r}")
    return max(0, min(amount, original_price))


def _in_window(start: datetime, end: datetime, now: datetime) -> bool:
    return start <= now <= end


def coupon_is_applicable(
    coupon,
    store_id: int,
    menu_id: int,
    original_price: int,
    now: datetime,
) -> bool:
    """
    Whether a coupon qualifies for this reservation.

    Empty store/menu scope means "all". The usage cap is checked here for an
    early answer, but only the conditional claim in discount_resolver is
    authoritative under concurrency.
    """
    if not coupon.is_active:
        return False
    if not _in_window(coupon.start_date, coupon.end_date, now):
        return False

    store_ids = coupon.store_ids
    if store_ids and store_id not in store_ids:
        return False

    menu_ids = coupon.menu_ids
    if menu_ids and menu_id not in menu_ids:
        return False

    if coupon.max_usage_total is not None and coupon.usage_count >= coupon.max_usage_total:
        return False

    if coupon.min_purchase_amount is not None and original_price < coupon.min_purchase_amount:
        return False

    return True


def campaign_is_applicable(
    campaign,
    store_id: int,
    menu_id: int,
    now: datetime,
) -> bool:
    """Campaigns must name both the store and the menu explicitly."""
    return (
        bool(campaign.is_active)
        and _in_window(campaign.start_date, campaign.end_date, now)
        and store_id in campaign.store_ids
        and menu_id in campaign.menu_ids
    )


def pick_campaign(campaigns: Iterable):
    """
    Best campaign: largest discount_value; ties go to the most recently
    created, then the highest id.
    """
    best = None
    for campaign in campaigns:
        key = (campaign.discount_value, campaign.created_at or "", campaign.id)
        if best is None or key > best[0]:
            best = (key, campaign)
    return best[1] if best else None
