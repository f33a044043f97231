"""
Shop service — seller storefronts, Stripe status and the shop dashboard.

Status rules:
  - New shops start PENDING
  - PENDING → ACTIVE automatically the first time charges_enabled turns on
  - Nothing here ever demotes a shop; SUSPENDED is an explicit admin action
"""

import logging
import re
import uuid
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.checkout_session import CheckoutSession
from models.enums import BillingCycle, CheckoutSessionStatus, ShopStatus, SubscriptionStatus
from models.package import Package
from models.shop import Shop
from models.subscription import Subscription
from services.errors import Conflict, NotFound
from services.fees import monthly_revenue, summarize_sales

logger = logging.getLogger(__name__)

DASHBOARD_DEFAULT_DAYS = 30
RECENT_SALES_LIMIT = 10


def slugify(text: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")
    return slug or "shop"


# ── Shop CRUD ──────────────────────────────────────────────

async def create_shop(db: AsyncSession, data) -> Shop:
    existing = await db.execute(select(Shop.id).where(Shop.slug == data.slug))
    if existing.scalar_one_or_none():
        raise Conflict("Shop with this slug already exists")

    shop = Shop(**data.model_dump())
    db.add(shop)
    await db.commit()
    await db.refresh(shop)
    logger.info("Shop %s created: %s", shop.id, shop.slug)
    return shop


async def list_shops(db: AsyncSession) -> list[Shop]:
    result = await db.execute(select(Shop).where(Shop.is_active.is_(True)).order_by(Shop.created_at))
    return list(result.scalars().all())


async def get_shop(db: AsyncSession, shop_id: uuid.UUID) -> Shop:
    result = await db.execute(select(Shop).where(Shop.id == shop_id))
    shop = result.scalar_one_or_none()
    if not shop:
        raise NotFound(f"Shop with ID {shop_id} not found")
    return shop


async def get_shop_by_slug(db: AsyncSession, slug: str) -> Shop:
    result = await db.execute(select(Shop).where(Shop.slug == slug, Shop.is_active.is_(True)))
    shop = result.scalar_one_or_none()
    if not shop:
        raise NotFound(f"Shop with slug {slug} not found")
    return shop


async def list_owner_shops(db: AsyncSession, owner_id: str) -> list[Shop]:
    result = await db.execute(select(Shop).where(Shop.owner_id == owner_id))
    return list(result.scalars().all())


async def update_shop(db: AsyncSession, shop_id: uuid.UUID, data) -> Shop:
    shop = await get_shop(db, shop_id)
    changes = data.model_dump(exclude_unset=True)
    if changes.get("name") and not changes.get("slug"):
        changes["slug"] = slugify(changes["name"])

    new_slug = changes.get("slug")
    if new_slug and new_slug != shop.slug:
        taken = await db.execute(select(Shop.id).where(Shop.slug == new_slug, Shop.id != shop_id))
        if taken.scalar_one_or_none():
            raise Conflict("Shop with this slug already exists")

    for field, value in changes.items():
        setattr(shop, field, value)
    await db.commit()
    await db.refresh(shop)
    return shop


async def deactivate_shop(db: AsyncSession, shop_id: uuid.UUID) -> None:
    shop = await get_shop(db, shop_id)
    shop.is_active = False
    await db.commit()
    logger.info("Shop %s deactivated", shop_id)


# ── Stripe status / moderation ─────────────────────────────

async def set_stripe_account(db: AsyncSession, shop_id: uuid.UUID, account_id: str) -> Shop:
    shop = await get_shop(db, shop_id)
    shop.stripe_account_id = account_id
    await db.commit()
    await db.refresh(shop)
    return shop


async def update_stripe_status(
    db: AsyncSession,
    shop_id: uuid.UUID,
    charges_enabled: bool | None = None,
    payouts_enabled: bool | None = None,
    onboarding_complete: bool | None = None,
) -> Shop:
    """Persist connected-account flags; promotes a PENDING shop once charges are enabled."""
    shop = await get_shop(db, shop_id)
    if charges_enabled is not None:
        shop.charges_enabled = charges_enabled
    if payouts_enabled is not None:
        shop.payouts_enabled = payouts_enabled
    if onboarding_complete is not None:
        shop.onboarding_complete = onboarding_complete

    if shop.charges_enabled and shop.status == ShopStatus.PENDING:
        shop.status = ShopStatus.ACTIVE
        logger.info("Shop %s activated: charges enabled", shop_id)

    await db.commit()
    await db.refresh(shop)
    return shop


async def approve_shop(db: AsyncSession, shop_id: uuid.UUID) -> Shop:
    shop = await get_shop(db, shop_id)
    shop.status = ShopStatus.ACTIVE
    await db.commit()
    await db.refresh(shop)
    logger.info("Shop %s approved", shop_id)
    return shop


async def suspend_shop(db: AsyncSession, shop_id: uuid.UUID) -> Shop:
    shop = await get_shop(db, shop_id)
    shop.status = ShopStatus.SUSPENDED
    await db.commit()
    await db.refresh(shop)
    logger.info("Shop %s suspended", shop_id)
    return shop


# ── Dashboard ──────────────────────────────────────────────

async def shop_dashboard(
    db: AsyncSession,
    shop_id: uuid.UUID,
    start: datetime | None = None,
    end: datetime | None = None,
    now: datetime | None = None,
) -> dict:
    """
    Revenue, subscription and catalog figures for one shop.

    Args:
        shop_id: Shop to report on
        start: Window start, defaults to 30 days before `end`
        end: Window end, defaults to now

    Returns:
        Dict with revenue (total/net/platform_fees/monthly), subscriptions,
        packages and the most recent completed sales
    """
    await get_shop(db, shop_id)
    end = end or now or datetime.utcnow()
    start = start or end - timedelta(days=DASHBOARD_DEFAULT_DAYS)

    result = await db.execute(
        select(CheckoutSession).where(
            CheckoutSession.shop_id == shop_id,
            CheckoutSession.status == CheckoutSessionStatus.COMPLETED,
            CheckoutSession.created_at >= start,
            CheckoutSession.created_at <= end,
        )
    )
    sessions = list(result.scalars().all())
    summary = summarize_sales(sessions)

    active_subs = await db.execute(
        select(func.count()).select_from(Subscription).where(
            Subscription.shop_id == shop_id,
            Subscription.status == SubscriptionStatus.ACTIVE,
        )
    )
    total_packages = await db.execute(
        select(func.count()).select_from(Package).where(Package.shop_id == shop_id)
    )
    active_packages = await db.execute(
        select(func.count()).select_from(Package).where(
            Package.shop_id == shop_id, Package.is_active.is_(True),
        )
    )
    recent = await db.execute(
        select(CheckoutSession)
        .where(
            CheckoutSession.shop_id == shop_id,
            CheckoutSession.status == CheckoutSessionStatus.COMPLETED,
        )
        .order_by(CheckoutSession.created_at.desc())
        .limit(RECENT_SALES_LIMIT)
    )

    return {
        "revenue": {
            "total": summary.total_revenue,
            "net": summary.net_revenue,
            "platform_fees": summary.platform_fees,
            "monthly": monthly_revenue(sessions, start, end),
        },
        "subscriptions": {
            "active": active_subs.scalar_one(),
            "total": summary.count,
        },
        "packages": {
            "total": total_packages.scalar_one(),
            "active": active_packages.scalar_one(),
        },
        "recent_sales": [
            {
                "session_id": s.session_token,
                "package_id": s.package_id,
                "package_name": s.package.name if s.package else None,
                "email": s.email,
                "billing_cycle": s.billing_cycle,
                "price": s.price,
                "platform_fee": s.platform_fee,
                "created_at": s.created_at,
            }
            for s in recent.scalars().all()
        ],
    }


async def top_packages(db: AsyncSession, shop_id: uuid.UUID, limit: int = 5) -> list[dict]:
    total_revenue = func.sum(CheckoutSession.price).label("total_revenue")
    result = await db.execute(
        select(
            Package.id,
            Package.name,
            func.count(CheckoutSession.id).label("sales_count"),
            total_revenue,
        )
        .join(Package, CheckoutSession.package_id == Package.id)
        .where(
            CheckoutSession.shop_id == shop_id,
            CheckoutSession.status == CheckoutSessionStatus.COMPLETED,
        )
        .group_by(Package.id, Package.name)
        .order_by(total_revenue.desc())
        .limit(limit)
    )
    return [
        {
            "package_id": row.id,
            "name": row.name,
            "sales_count": row.sales_count,
            "total_revenue": Decimal(row.total_revenue or 0),
        }
        for row in result.all()
    ]


async def subscription_metrics(db: AsyncSession, shop_id: uuid.UUID) -> dict:
    result = await db.execute(select(Subscription).where(Subscription.shop_id == shop_id))
    subs = list(result.scalars().all())

    def count(status):
        return sum(1 for s in subs if s.status == status)

    def active_revenue(cycle):
        return sum(
            (Decimal(s.price) for s in subs
             if s.status == SubscriptionStatus.ACTIVE and s.billing_cycle == cycle),
            Decimal("0.00"),
        )

    return {
        "total": len(subs),
        "active": count(SubscriptionStatus.ACTIVE),
        "cancelled": count(SubscriptionStatus.CANCELLED),
        "past_due": count(SubscriptionStatus.PAST_DUE),
        "trialing": count(SubscriptionStatus.TRIALING),
        "monthly_revenue": active_revenue(BillingCycle.MONTHLY),
        "yearly_revenue": active_revenue(BillingCycle.YEARLY),
    }


# ── Shop package management ────────────────────────────────

async def list_shop_packages(db: AsyncSession, shop_id: uuid.UUID) -> list[Package]:
    result = await db.execute(
        select(Package).where(Package.shop_id == shop_id).order_by(Package.created_at.desc())
    )
    return list(result.scalars().all())


async def create_shop_package(db: AsyncSession, shop_id: uuid.UUID, data) -> Package:
    await get_shop(db, shop_id)
    fields = data.model_dump()
    fields["shop_id"] = shop_id
    package = Package(**fields, slug=f"{slugify(data.name)}-{uuid.uuid4().hex[:8]}")
    db.add(package)
    await db.commit()
    await db.refresh(package)
    logger.info("Shop %s added package %s", shop_id, package.id)
    return package


async def _get_shop_package(db: AsyncSession, shop_id: uuid.UUID, package_id: uuid.UUID) -> Package:
    result = await db.execute(
        select(Package).where(Package.id == package_id, Package.shop_id == shop_id)
    )
    package = result.scalar_one_or_none()
    if not package:
        raise NotFound("Package not found")
    return package


async def update_shop_package(db: AsyncSession, shop_id: uuid.UUID, package_id: uuid.UUID, data) -> Package:
    package = await _get_shop_package(db, shop_id, package_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(package, field, value)
    await db.commit()
    await db.refresh(package)
    return package


async def delete_shop_package(db: AsyncSession, shop_id: uuid.UUID, package_id: uuid.UUID) -> None:
    """Soft delete, like the public catalog; sales history keeps its package."""
    package = await _get_shop_package(db, shop_id, package_id)
    package.is_active = False
    await db.commit()
