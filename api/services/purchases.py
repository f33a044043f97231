"""
Purchase ledger — time-bounded entitlements and their transitions.

Lifecycle:
  PENDING → COMPLETED (payment captured)
  PENDING | COMPLETED → CANCELLED | REFUNDED
Re-applying a transition that already happened is a no-op, so provider
webhooks may be delivered more than once.
"""

import logging
import uuid
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.enums import BillingCycle, PurchaseStatus
from models.package import Package
from models.purchase import Purchase
from services.billing_periods import calculate_end_date, extend_by_days
from services.errors import InvalidBillingCycle, InvalidState, NotFound
from services.pricing import require_price

logger = logging.getLogger(__name__)

REVERSIBLE_FROM = (PurchaseStatus.PENDING, PurchaseStatus.COMPLETED)


async def create_purchase(db: AsyncSession, data, now: datetime | None = None) -> Purchase:
    """
    Record a pending purchase for a recurring cycle.

    Args:
        data: PurchaseCreate payload
        now: Start of the first period (defaults to utcnow)

    Returns:
        The persisted Purchase with price and period filled in
    """
    result = await db.execute(
        select(Package).where(Package.id == data.package_id, Package.is_active.is_(True))
    )
    package = result.scalar_one_or_none()
    if not package:
        raise NotFound("Package not found")

    if data.billing_cycle == BillingCycle.ONE_TIME:
        raise InvalidBillingCycle("Purchases need a recurring billing cycle")

    price = require_price(package, data.billing_cycle)
    start = now or datetime.utcnow()

    fields = data.model_dump(exclude={"metadata"})
    purchase = Purchase(
        **fields,
        metadata_=data.metadata,
        price=price,
        start_date=start,
        end_date=calculate_end_date(start, data.billing_cycle),
        status=PurchaseStatus.PENDING,
    )
    db.add(purchase)
    await db.commit()
    await db.refresh(purchase)
    logger.info("Purchase %s created for user %s (%s)", purchase.id, purchase.user_id, purchase.billing_cycle.value)
    return purchase


async def get_purchase(db: AsyncSession, purchase_id: uuid.UUID) -> Purchase:
    result = await db.execute(select(Purchase).where(Purchase.id == purchase_id))
    purchase = result.scalar_one_or_none()
    if not purchase:
        raise NotFound(f"Purchase with ID {purchase_id} not found")
    return purchase


# ── Transitions ────────────────────────────────────────────

async def complete_purchase(db: AsyncSession, purchase_id: uuid.UUID, payment_id: str) -> Purchase:
    purchase = await get_purchase(db, purchase_id)

    if purchase.status == PurchaseStatus.COMPLETED:
        if purchase.payment_id == payment_id:
            return purchase
        raise InvalidState("Purchase already completed with a different payment")
    if purchase.status != PurchaseStatus.PENDING:
        raise InvalidState(f"Cannot complete a {purchase.status.value} purchase")

    purchase.status = PurchaseStatus.COMPLETED
    purchase.payment_id = payment_id
    await db.commit()
    await db.refresh(purchase)
    logger.info("Purchase %s completed (payment %s)", purchase_id, payment_id)
    return purchase


async def _reverse(db: AsyncSession, purchase_id: uuid.UUID, target: PurchaseStatus) -> Purchase:
    purchase = await get_purchase(db, purchase_id)
    if purchase.status == target:
        return purchase
    if purchase.status not in REVERSIBLE_FROM:
        raise InvalidState(f"Cannot move a {purchase.status.value} purchase to {target.value}")

    purchase.status = target
    await db.commit()
    await db.refresh(purchase)
    logger.info("Purchase %s %s", purchase_id, target.value)
    return purchase


async def cancel_purchase(db: AsyncSession, purchase_id: uuid.UUID) -> Purchase:
    return await _reverse(db, purchase_id, PurchaseStatus.CANCELLED)


async def refund_purchase(db: AsyncSession, purchase_id: uuid.UUID) -> Purchase:
    return await _reverse(db, purchase_id, PurchaseStatus.REFUNDED)


async def renew_purchase(db: AsyncSession, purchase_id: uuid.UUID, now: datetime | None = None) -> Purchase:
    """Add one billing period after the current end date; only active purchases renew."""
    purchase = await get_purchase(db, purchase_id)
    if not purchase.is_active(now):
        raise InvalidState("Cannot renew expired or inactive purchase")

    purchase.end_date = calculate_end_date(purchase.end_date, purchase.billing_cycle)
    await db.commit()
    await db.refresh(purchase)
    logger.info("Purchase %s renewed until %s", purchase_id, purchase.end_date)
    return purchase


async def extend_purchase(db: AsyncSession, purchase_id: uuid.UUID, days: int) -> Purchase:
    if days <= 0:
        raise ValueError("days must be positive")
    purchase = await get_purchase(db, purchase_id)
    if purchase.status != PurchaseStatus.COMPLETED:
        raise InvalidState("Can only extend completed purchases")

    purchase.end_date = extend_by_days(purchase.end_date, days)
    await db.commit()
    await db.refresh(purchase)
    return purchase


# ── Queries ────────────────────────────────────────────────

async def list_purchases(db: AsyncSession) -> list[Purchase]:
    result = await db.execute(select(Purchase).order_by(Purchase.created_at.desc()))
    return list(result.scalars().all())


async def list_user_purchases(db: AsyncSession, user_id: str) -> list[Purchase]:
    result = await db.execute(
        select(Purchase).where(Purchase.user_id == user_id).order_by(Purchase.created_at.desc())
    )
    return list(result.scalars().all())


async def list_active_purchases(db: AsyncSession, user_id: str, now: datetime | None = None) -> list[Purchase]:
    now = now or datetime.utcnow()
    result = await db.execute(
        select(Purchase)
        .where(
            Purchase.user_id == user_id,
            Purchase.status == PurchaseStatus.COMPLETED,
            Purchase.start_date <= now,
            Purchase.end_date > now,
        )
        .order_by(Purchase.created_at.desc())
    )
    return list(result.scalars().all())


async def list_expiring_purchases(
    db: AsyncSession, days_ahead: int = 7, now: datetime | None = None,
) -> list[Purchase]:
    now = now or datetime.utcnow()
    result = await db.execute(
        select(Purchase)
        .where(
            Purchase.status == PurchaseStatus.COMPLETED,
            Purchase.end_date >= now,
            Purchase.end_date <= now + timedelta(days=days_ahead),
        )
        .order_by(Purchase.end_date)
    )
    return list(result.scalars().all())


async def list_purchases_between(db: AsyncSession, start: datetime, end: datetime) -> list[Purchase]:
    result = await db.execute(
        select(Purchase)
        .where(Purchase.created_at >= start, Purchase.created_at <= end)
        .order_by(Purchase.created_at.desc())
    )
    return list(result.scalars().all())


async def purchase_stats(db: AsyncSession, user_id: str | None = None, now: datetime | None = None) -> dict:
    now = now or datetime.utcnow()
    query = select(Purchase)
    if user_id:
        query = query.where(Purchase.user_id == user_id)
    result = await db.execute(query)
    purchases = list(result.scalars().all())

    completed = [p for p in purchases if p.status == PurchaseStatus.COMPLETED]
    return {
        "total": len(purchases),
        "active": sum(1 for p in completed if p.end_date > now),
        "expired": sum(1 for p in completed if p.end_date <= now),
        "total_spent": sum((Decimal(p.price) for p in completed), Decimal("0.00")),
    }
