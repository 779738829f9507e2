# backend/salon/services/discount_resolver.py
"""
Discount resolution for a new reservation.

Rule: discounts do NOT stack.
  1. coupon (customer-entered code) if it qualifies and its usage can be claimed
  2. otherwise the best qualifying campaign
  3. otherwise no discount

Coupon problems are never errors: an unknown, expired, out-of-scope or
exhausted code just means full price.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import or_, update
from sqlalchemy.orm import Session, selectinload

from ..models.generated import (
    Campaigns as DBCampaign,
    Coupons as DBCoupon,
)
from .pricing import (
    DiscountSource,
    PriceQuote,
    calculate_discount,
    campaign_is_applicable,
    coupon_is_applicable,
    pick_campaign,
)

logger = logging.getLogger(__name__)


def resolve_discount(
    db: Session,
    store_id: int,
    menu_id: int,
    original_price: int,
    coupon_code: Optional[str],
    now: datetime,
) -> PriceQuote:
    """
    Resolve the single discount for a reservation.

    A qualifying coupon's usage counter is incremented inside the caller's
    transaction; the caller must commit (or roll back) together with the
    reservation insert.
    """
    if coupon_code:
        quote = _try_coupon(db, store_id, menu_id, original_price, coupon_code, now)
        if quote is not None:
            return quote

    campaign = find_best_campaign(db, store_id, menu_id, now)
    if campaign is not None:
        amount = calculate_discount(original_price, campaign.discount_type, campaign.discount_value)
        return PriceQuote(original_price, amount, DiscountSource.campaign(campaign.id))

    return PriceQuote(original_price)


def find_best_campaign(
    db: Session,
    store_id: int,
    menu_id: int,
    now: datetime,
) -> Optional[DBCampaign]:
    campaigns = (
        db.query(DBCampaign)
        .options(
            selectinload(DBCampaign.campaign_stores),
            selectinload(DBCampaign.campaign_menus),
        )
        .filter(
            DBCampaign.is_active == 1,
            DBCampaign.start_date <= now,
            DBCampaign.end_date >= now,
        )
        .all()
    )
    return pick_campaign(
        c for c in campaigns if campaign_is_applicable(c, store_id, menu_id, now)
    )


def _try_coupon(
    db: Session,
    store_id: int,
    menu_id: int,
    original_price: int,
    code: str,
    now: datetime,
) -> Optional[PriceQuote]:
    coupon = (
        db.query(DBCoupon)
        .options(
            selectinload(DBCoupon.coupon_stores),
            selectinload(DBCoupon.coupon_menus),
        )
        .filter(DBCoupon.code == code)
        .first()
    )
    if coupon is None:
        logger.info(f"Coupon not applied: code={code!r} not found")
        return None

    if not coupon_is_applicable(coupon, store_id, menu_id, original_price, now):
        logger.info(f"Coupon not applied: code={code!r} does not qualify")
        return None

    if not claim_coupon_usage(db, coupon.id):
        logger.info(f"Coupon not applied: code={code!r} usage cap reached")
        return None

    amount = calculate_discount(original_price, coupon.discount_type, coupon.discount_value)
    logger.info(f"Coupon claimed: coupon_id={coupon.id}, discount={amount}")
    return PriceQuote(original_price, amount, DiscountSource.coupon(coupon.id))


def claim_coupon_usage(db: Session, coupon_id: int) -> bool:
    """
    Increment usage_count only while it is under max_usage_total.

    Single conditional UPDATE, so concurrent claims cannot push the count past
    the cap. Returns False when nothing was updated.
    """
    result = db.execute(
        update(DBCoupon)
        .where(
            DBCoupon.id == coupon_id,
            or_(
                DBCoupon.max_usage_total.is_(None),
                DBCoupon.usage_count < DBCoupon.max_usage_total,
            ),
        )
        .values(usage_count=DBCoupon.usage_count + 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1
