"""
Subscription service — recurring purchases and their Stripe mirror.

Every write that sets a price also re-derives platform_fee / shop_revenue
from the shop's fee percentage, so price == platform_fee + shop_revenue.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.enums import BillingCycle, SubscriptionStatus
from models.shop import Shop
from models.subscription import Subscription
from services.errors import InvalidBillingCycle, InvalidState, NotFound
from services.fees import split_fee
from services.packages import get_package
from services.pricing import require_price

logger = logging.getLogger(__name__)

# Stripe subscription.status → ours
STRIPE_STATUS = {
    "active": SubscriptionStatus.ACTIVE,
    "trialing": SubscriptionStatus.TRIALING,
    "past_due": SubscriptionStatus.PAST_DUE,
    "unpaid": SubscriptionStatus.UNPAID,
    "canceled": SubscriptionStatus.CANCELLED,
    "incomplete": SubscriptionStatus.PAST_DUE,
    "incomplete_expired": SubscriptionStatus.CANCELLED,
    "paused": SubscriptionStatus.UNPAID,
}


def from_unix(ts: int | None) -> datetime | None:
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).replace(tzinfo=None)


async def _shop_fee_percent(db: AsyncSession, shop_id: uuid.UUID):
    result = await db.execute(select(Shop.platform_fee_percent).where(Shop.id == shop_id))
    percent = result.scalar_one_or_none()
    if percent is None:
        raise NotFound(f"Shop with ID {shop_id} not found")
    return percent


async def create_subscription(db: AsyncSession, data) -> Subscription:
    split = split_fee(data.price, await _shop_fee_percent(db, data.shop_id))
    subscription = Subscription(
        **data.model_dump(),
        platform_fee=split.platform_fee,
        shop_revenue=split.shop_revenue,
    )
    db.add(subscription)
    await db.commit()
    await db.refresh(subscription)
    logger.info("Subscription %s created for user %s", subscription.id, subscription.user_id)
    return subscription


async def get_subscription(db: AsyncSession, subscription_id: uuid.UUID) -> Subscription:
    result = await db.execute(select(Subscription).where(Subscription.id == subscription_id))
    subscription = result.scalar_one_or_none()
    if not subscription:
        raise NotFound(f"Subscription with ID {subscription_id} not found")
    return subscription


async def list_subscriptions(db: AsyncSession) -> list[Subscription]:
    result = await db.execute(select(Subscription).order_by(Subscription.created_at.desc()))
    return list(result.scalars().all())


async def list_user_subscriptions(db: AsyncSession, user_id: str) -> list[Subscription]:
    result = await db.execute(
        select(Subscription).where(Subscription.user_id == user_id).order_by(Subscription.created_at.desc())
    )
    return list(result.scalars().all())


async def list_shop_subscriptions(db: AsyncSession, shop_id: uuid.UUID) -> list[Subscription]:
    result = await db.execute(
        select(Subscription).where(Subscription.shop_id == shop_id).order_by(Subscription.created_at.desc())
    )
    return list(result.scalars().all())


async def find_by_stripe_id(db: AsyncSession, stripe_subscription_id: str) -> Subscription | None:
    result = await db.execute(
        select(Subscription).where(Subscription.stripe_subscription_id == stripe_subscription_id)
    )
    return result.scalar_one_or_none()


# ── Lifecycle ──────────────────────────────────────────────

async def cancel_subscription(
    db: AsyncSession,
    subscription_id: uuid.UUID,
    at_period_end: bool = True,
    now: datetime | None = None,
) -> Subscription:
    """
    Cancel now, or flag for cancellation when the current period ends.

    The period-end cutover itself arrives from Stripe as
    customer.subscription.deleted (see sync_from_stripe).
    """
    subscription = await get_subscription(db, subscription_id)
    if at_period_end:
        subscription.cancel_at_period_end = True
    else:
        subscription.status = SubscriptionStatus.CANCELLED
        subscription.cancelled_at = now or datetime.utcnow()
    await db.commit()
    await db.refresh(subscription)
    logger.info("Subscription %s cancelled (at_period_end=%s)", subscription_id, at_period_end)
    return subscription


async def resume_subscription(db: AsyncSession, subscription_id: uuid.UUID) -> Subscription:
    subscription = await get_subscription(db, subscription_id)
    subscription.status = SubscriptionStatus.ACTIVE
    subscription.cancel_at_period_end = False
    subscription.cancelled_at = None
    await db.commit()
    await db.refresh(subscription)
    logger.info("Subscription %s resumed", subscription_id)
    return subscription


async def update_billing_period(
    db: AsyncSession, subscription_id: uuid.UUID, start: datetime, end: datetime,
) -> Subscription:
    subscription = await get_subscription(db, subscription_id)
    subscription.current_period_start = start
    subscription.current_period_end = end
    await db.commit()
    await db.refresh(subscription)
    return subscription


async def change_billing_cycle(db: AsyncSession, subscription_id: uuid.UUID, cycle) -> Subscription:
    """Switch to another recurring cycle of the same package, re-pricing it."""
    cycle = BillingCycle(cycle)
    subscription = await get_subscription(db, subscription_id)
    if subscription.status == SubscriptionStatus.CANCELLED:
        raise InvalidState("Cannot change the plan of a cancelled subscription")
    if cycle == BillingCycle.ONE_TIME:
        raise InvalidBillingCycle("Subscriptions need a recurring billing cycle")

    package = await get_package(db, subscription.package_id)
    price = require_price(package, cycle)
    split = split_fee(price, await _shop_fee_percent(db, subscription.shop_id))

    subscription.billing_cycle = cycle
    subscription.price = price
    subscription.platform_fee = split.platform_fee
    subscription.shop_revenue = split.shop_revenue
    await db.commit()
    await db.refresh(subscription)
    logger.info("Subscription %s moved to %s at %s", subscription_id, cycle.value, price)
    return subscription


async def list_active_subscriptions(db: AsyncSession) -> list[Subscription]:
    result = await db.execute(select(Subscription).where(Subscription.status == SubscriptionStatus.ACTIVE))
    return list(result.scalars().all())


async def list_expiring_subscriptions(
    db: AsyncSession, days_ahead: int = 7, now: datetime | None = None,
) -> list[Subscription]:
    """Flagged-for-cancellation subscriptions and trials ending within `days_ahead`."""
    horizon = (now or datetime.utcnow()) + timedelta(days=days_ahead)
    result = await db.execute(
        select(Subscription).where(
            or_(
                and_(
                    Subscription.status == SubscriptionStatus.ACTIVE,
                    Subscription.cancel_at_period_end.is_(True),
                    Subscription.current_period_end < horizon,
                ),
                and_(
                    Subscription.status == SubscriptionStatus.TRIALING,
                    Subscription.trial_end < horizon,
                ),
            )
        )
    )
    return list(result.scalars().all())


# ── Stripe sync ────────────────────────────────────────────

def _period_bounds(stripe_sub: dict) -> tuple[int | None, int | None]:
    # Newer API versions carry the period on the subscription item
    start = stripe_sub.get("current_period_start")
    end = stripe_sub.get("current_period_end")
    if start is None or end is None:
        items = (stripe_sub.get("items") or {}).get("data") or []
        if items:
            start = start or items[0].get("current_period_start")
            end = end or items[0].get("current_period_end")
    return start, end


async def sync_from_stripe(db: AsyncSession, stripe_sub: dict, deleted: bool = False) -> Subscription | None:
    """
    Mirror a Stripe subscription object onto the local row.

    Handles customer.subscription.updated and .deleted. Unknown subscriptions
    are logged and ignored.
    """
    subscription = await find_by_stripe_id(db, stripe_sub["id"])
    if not subscription:
        logger.warning("Stripe subscription %s has no local record", stripe_sub["id"])
        return None

    if deleted:
        if subscription.status != SubscriptionStatus.CANCELLED:
            subscription.status = SubscriptionStatus.CANCELLED
            subscription.cancelled_at = from_unix(stripe_sub.get("canceled_at")) or datetime.utcnow()
    else:
        status = STRIPE_STATUS.get(stripe_sub.get("status"))
        if status is None:
            logger.warning("Unmapped Stripe subscription status %r", stripe_sub.get("status"))
        else:
            subscription.status = status
        start, end = _period_bounds(stripe_sub)
        if start is not None and end is not None:
            subscription.current_period_start = from_unix(start)
            subscription.current_period_end = from_unix(end)
        subscription.cancel_at_period_end = bool(stripe_sub.get("cancel_at_period_end"))

    await db.commit()
    await db.refresh(subscription)
    logger.info("Subscription %s synced from Stripe: %s", subscription.id, subscription.status.value)
    return subscription


async def mark_past_due_by_stripe_id(db: AsyncSession, stripe_subscription_id: str) -> Subscription | None:
    subscription = await find_by_stripe_id(db, stripe_subscription_id)
    if not subscription:
        logger.warning("invoice.payment_failed for unknown subscription %s", stripe_subscription_id)
        return None
    subscription.status = SubscriptionStatus.PAST_DUE
    await db.commit()
    await db.refresh(subscription)
    logger.info("Subscription %s marked past_due", subscription.id)
    return subscription
