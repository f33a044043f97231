"""
Pricing resolver — package price per billing cycle.

Rules:
  1. one_time → base_price; weekly/monthly/yearly → the matching field
  2. An unset field means the cycle is not offered (no substitution)
  3. Checkout may override the resolved price with a custom amount
  4. Provider amounts are integer minor units (cents), half-up rounded
"""

import logging
from decimal import Decimal, ROUND_HALF_UP

from models.enums import BillingCycle
from services.errors import InvalidBillingCycle

logger = logging.getLogger(__name__)


# ── Constants ──────────────────────────────────────────────

PRICE_FIELD = {
    BillingCycle.ONE_TIME: "base_price",
    BillingCycle.WEEKLY: "weekly_price",
    BillingCycle.MONTHLY: "monthly_price",
    BillingCycle.YEARLY: "yearly_price",
}

STRIPE_INTERVAL = {
    BillingCycle.WEEKLY: "week",
    BillingCycle.MONTHLY: "month",
    BillingCycle.YEARLY: "year",
}


# ── Core Functions ─────────────────────────────────────────

def resolve_price(package, cycle) -> Decimal | None:
    """
    Price of `package` under `cycle`, or None when the cycle is not offered.

    Args:
        package: Any object with base/weekly/monthly/yearly price attributes
        cycle: BillingCycle member or its string value

    Returns:
        The configured Decimal price, or None if that field is unset
    """
    try:
        field = PRICE_FIELD[BillingCycle(cycle)]
    except ValueError:
        # Unknown cycles get the base price; callers should validate first
        logger.warning("Unknown billing cycle %r, falling back to base_price", cycle)
        field = "base_price"

    price = getattr(package, field)
    if price is None:
        return None
    return Decimal(price)


def require_price(package, cycle) -> Decimal:
    """resolve_price, raising InvalidBillingCycle when the cycle is not offered."""
    price = resolve_price(package, cycle)
    if price is None:
        raise InvalidBillingCycle(f"Package has no price for billing cycle {getattr(cycle, 'value', cycle)}")
    return price


def to_minor_units(amount: Decimal) -> int:
    """Dollars → cents."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def stripe_interval(cycle) -> str:
    try:
        return STRIPE_INTERVAL[BillingCycle(cycle)]
    except (KeyError, ValueError):
        raise InvalidBillingCycle(f"Billing cycle {cycle} has no recurring interval")
