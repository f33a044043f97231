"""
Shop-fee ledger — platform fee / shop revenue split and sales aggregation.

The fee is rounded half-up to the cent and the shop keeps the remainder, so
platform_fee + shop_revenue always equals the price exactly.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from services.billing_periods import add_months

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


# ── Data classes ───────────────────────────────────────────

@dataclass
class FeeSplit:
    platform_fee: Decimal
    shop_revenue: Decimal


@dataclass
class SalesSummary:
    total_revenue: Decimal
    platform_fees: Decimal
    net_revenue: Decimal
    count: int


# ── Core Functions ─────────────────────────────────────────

def split_fee(price, percent) -> FeeSplit:
    """
    Split a price between the platform and the shop.

    Args:
        price: Sale price in dollars
        percent: Platform fee percentage, 0-100

    Returns:
        FeeSplit with both halves rounded to the cent
    """
    price = Decimal(price)
    percent = Decimal(percent)
    if percent < 0 or percent > 100:
        raise ValueError(f"Platform fee percent must be between 0 and 100, got {percent}")

    platform_fee = (price * percent / 100).quantize(CENT, rounding=ROUND_HALF_UP)
    return FeeSplit(platform_fee=platform_fee, shop_revenue=price - platform_fee)


def summarize_sales(sessions) -> SalesSummary:
    """Totals over completed checkout sessions (anything with price/platform_fee)."""
    total = sum((Decimal(s.price) for s in sessions), ZERO)
    fees = sum((Decimal(s.platform_fee) for s in sessions), ZERO)
    return SalesSummary(
        total_revenue=total,
        platform_fees=fees,
        net_revenue=total - fees,
        count=len(sessions),
    )


def monthly_revenue(sessions, start: datetime, end: datetime) -> list[dict]:
    """
    Revenue per calendar month from start's month through end's month.

    Months with no sales are included with zero revenue.
    """
    buckets: dict[tuple[int, int], Decimal] = {}
    cursor = start.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    while (cursor.year, cursor.month) <= (end.year, end.month):
        buckets[(cursor.year, cursor.month)] = ZERO
        cursor = add_months(cursor, 1)

    for s in sessions:
        key = (s.created_at.year, s.created_at.month)
        if key in buckets:
            buckets[key] += Decimal(s.price)

    return [
        {"month": datetime(year, month, 1).strftime("%b %Y"), "revenue": revenue}
        for (year, month), revenue in buckets.items()
    ]
