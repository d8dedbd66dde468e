"""Pure scoring and pricing rules used by services and reports.

Keeping these as plain functions makes the thresholds easy to unit test
without touching the database.
"""

import math
from datetime import datetime
from typing import Optional

# stock level thresholds (inclusive upper bounds)
CRITICAL_STOCK = 5
LOW_STOCK = 10
MEDIUM_STOCK = 20
OVERSTOCK = 100

RFM_SEGMENTS = [
    (13, "Champion"),
    (11, "Loyal Customer"),
    (9, "Potential Loyalist"),
    (7, "At Risk"),
    (5, "Cannot Lose Them"),
]


def stock_level(quantity: int) -> str:
    if quantity <= CRITICAL_STOCK:
        return "critical"
    if quantity <= LOW_STOCK:
        return "low"
    if quantity <= MEDIUM_STOCK:
        return "medium"
    return "high"


def inventory_status(quantity: int, reorder_level: Optional[int] = None) -> str:
    if quantity <= 0:
        return "OUT_OF_STOCK"
    if quantity <= (reorder_level or LOW_STOCK):
        return "LOW_STOCK"
    return "IN_STOCK"


def turnover_rate(units_sold: int, stock: int) -> float:
    """Annualised turnover estimate: `(sold / stock) * 12`, 0 without stock."""
    if stock <= 0:
        return 0.0
    return (units_sold / stock) * 12


def days_on_hand(turnover: float) -> int:
    if turnover <= 0:
        return 0
    return math.floor(365 / turnover)


def _recency_score(days: int) -> int:
    for limit, score in ((30, 5), (60, 4), (90, 3), (180, 2)):
        if days <= limit:
            return score
    return 1


def _frequency_score(orders: int) -> int:
    for limit, score in ((10, 5), (7, 4), (5, 3), (3, 2)):
        if orders >= limit:
            return score
    return 1


def _monetary_score(spent: float) -> int:
    for limit, score in ((100000, 5), (50000, 4), (25000, 3), (10000, 2)):
        if spent >= limit:
            return score
    return 1


def rfm_score(days_since_last_order: int, order_count: int, total_spent: float) -> str:
    """Bucket a customer into an RFM marketing segment.

    Recency, frequency and monetary value are each scored 1-5 and the sum
    is mapped onto a named segment.
    """
    total = (
        _recency_score(days_since_last_order)
        + _frequency_score(order_count)
        + _monetary_score(total_spent)
    )
    for threshold, name in RFM_SEGMENTS:
        if total >= threshold:
            return name
    return "Lost Customer"


def customer_value_segment(total_spent: float, order_count: int) -> str:
    if total_spent >= 200000 and order_count >= 10:
        return "VIP"
    if total_spent >= 100000 or order_count >= 5:
        return "Regular"
    if order_count <= 2:
        return "New"
    return "At Risk"


def order_count_segment(order_count: int) -> Optional[str]:
    """Segment used by the analytics dashboard; None for customers without orders."""
    if order_count >= 5:
        return "VIP"
    if order_count >= 2:
        return "Regular"
    if order_count == 1:
        return "New"
    return None


def _ratio(numerator: float, denominator: float, scale: float = 1.0) -> float:
    if not denominator:
        return 0.0
    return round(numerator / denominator * scale, 2)


def campaign_metrics(impressions: int, clicks: int, conversions: int, spent: float, revenue: float) -> dict:
    return {
        "ctr": _ratio(clicks, impressions, 100),
        "conversion_rate": _ratio(conversions, clicks, 100),
        "roas": _ratio(revenue, spent),
        "cpa": _ratio(spent, conversions),
    }


def calculate_discount(subtotal: float, coupon_type: str, value: float, maximum_discount: Optional[float] = None) -> float:
    """Discount granted on `subtotal`, rounded to cents.

    FIXED coupons never discount more than the subtotal; PERCENTAGE coupons
    are capped by `maximum_discount` when one is set.
    """
    if coupon_type == "FIXED":
        discount = min(value, subtotal)
    else:
        discount = subtotal * value / 100
        if maximum_discount:
            discount = min(discount, maximum_discount)
    return round(discount, 2)


def growth_rate(current: float, previous: float) -> float:
    """Percentage change versus the previous window.

    A previous value of zero yields 100 when there is current activity and
    0 otherwise.
    """
    if not previous:
        return 100.0 if current else 0.0
    return round((current - previous) / previous * 100, 2)


def coupon_state(coupon, now: datetime) -> str:
    """Effective state of a coupon at `now`.

    One of INACTIVE, SCHEDULED, EXPIRED, EXHAUSTED or ACTIVE, checked in
    that order.
    """
    status = getattr(coupon.status, "value", coupon.status)
    if status != "ACTIVE":
        return "INACTIVE"
    if coupon.starts_at and now < coupon.starts_at:
        return "SCHEDULED"
    if coupon.expires_at and coupon.expires_at < now:
        return "EXPIRED"
    if coupon.usage_limit is not None and coupon.usage_count >= coupon.usage_limit:
        return "EXHAUSTED"
    return "ACTIVE"
