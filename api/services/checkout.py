"""
Checkout session manager.

Flow:
  1. create_checkout_session snapshots price + platform fee, valid for 24h
  2. The storefront reads it back by token (stale sessions flip to EXPIRED)
  3. create_stripe_checkout opens a hosted Stripe Checkout on the shop's
     connected account
  4. The checkout.session.completed webhook calls fulfil_checkout

PENDING → COMPLETED and PENDING → EXPIRED are conditional updates, so each
happens at most once even when a read, the sweep and a webhook race.
"""

import logging
import uuid
from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from models.checkout_session import CheckoutSession
from models.enums import (
    BillingCycle, CheckoutSessionStatus, PaymentMethod, PurchaseStatus, SubscriptionStatus,
)
from models.package import Package
from models.purchase import Purchase
from models.shop import Shop
from models.subscription import Subscription
from services import subscriptions
from services.billing_periods import calculate_end_date
from services.errors import InvalidState, NotEligible, NotFound
from services.fees import split_fee
from services.pricing import require_price, stripe_interval, to_minor_units
from services.stripe_gateway import StripeGateway

logger = logging.getLogger(__name__)


# ── Create / read ──────────────────────────────────────────

async def create_checkout_session(db: AsyncSession, data, now: datetime | None = None) -> dict:
    """
    Open a checkout session for one package under one billing cycle.

    Args:
        data: CheckoutSessionCreate payload
        now: Creation time (defaults to utcnow)

    Returns:
        {"session_id": token, "checkout_url": storefront URL}
    """
    result = await db.execute(
        select(Package).where(Package.id == data.package_id, Package.is_active.is_(True))
    )
    package = result.scalar_one_or_none()
    if not package or package.shop_id is None:
        raise NotFound("Package not found")
    if data.shop_id and data.shop_id != package.shop_id:
        raise NotFound("Package not found in this shop")

    result = await db.execute(
        select(Shop).where(Shop.id == package.shop_id, Shop.is_active.is_(True))
    )
    shop = result.scalar_one_or_none()
    if not shop:
        raise NotFound("Shop not found")
    if not shop.charges_enabled:
        raise NotEligible("Shop has not completed payment onboarding")

    if data.custom_amount is not None:
        price = data.custom_amount
    else:
        price = require_price(package, data.billing_cycle)
    fee = split_fee(price, shop.platform_fee_percent)

    now = now or datetime.utcnow()
    token = str(uuid.uuid4())
    session = CheckoutSession(
        session_token=token,
        package_id=package.id,
        shop_id=shop.id,
        email=data.email,
        name=data.name,
        billing_cycle=data.billing_cycle,
        price=price,
        platform_fee=fee.platform_fee,
        custom_amount=data.custom_amount,
        metadata_=data.metadata,
        status=CheckoutSessionStatus.PENDING,
        expires_at=now + timedelta(hours=settings.CHECKOUT_SESSION_TTL_HOURS),
        created_at=now,
    )
    db.add(session)
    await db.commit()
    logger.info("Checkout session %s created: package=%s price=%s fee=%s", token, package.id, price, fee.platform_fee)

    return {
        "session_id": token,
        "checkout_url": f"{settings.FRONTEND_URL}/checkout/{token}",
    }


async def _expire(db: AsyncSession, session: CheckoutSession) -> None:
    result = await db.execute(
        update(CheckoutSession)
        .where(
            CheckoutSession.id == session.id,
            CheckoutSession.status == CheckoutSessionStatus.PENDING,
        )
        .values(status=CheckoutSessionStatus.EXPIRED)
    )
    await db.commit()
    if result.rowcount:
        logger.info("Checkout session %s expired", session.session_token)
    await db.refresh(session)


async def get_checkout_session(db: AsyncSession, token: str, now: datetime | None = None) -> CheckoutSession:
    """Load a session by token, expiring it first if its 24h window has passed."""
    result = await db.execute(select(CheckoutSession).where(CheckoutSession.session_token == token))
    session = result.scalar_one_or_none()
    if not session:
        raise NotFound("Checkout session not found")

    now = now or datetime.utcnow()
    if session.status == CheckoutSessionStatus.PENDING and now > session.expires_at:
        await _expire(db, session)
    return session


# ── Provider checkout ──────────────────────────────────────

def build_stripe_params(session: CheckoutSession, package: Package, shop: Shop) -> dict:
    """Stripe Checkout parameters for a session on the shop's connected account."""
    one_time = session.billing_cycle == BillingCycle.ONE_TIME
    token = session.session_token

    price_data = {
        "currency": settings.CURRENCY,
        "unit_amount": to_minor_units(session.price),
        "product_data": {"name": package.name},
    }
    if package.description:
        price_data["product_data"]["description"] = package.description
    if package.images:
        price_data["product_data"]["images"] = list(package.images)
    if not one_time:
        price_data["recurring"] = {"interval": stripe_interval(session.billing_cycle)}

    metadata = {
        "checkoutSessionId": token,
        "packageId": str(package.id),
        "shopId": str(shop.id),
        "billingCycle": session.billing_cycle.value,
    }
    if (session.metadata_ or {}).get("userId"):
        metadata["userId"] = str(session.metadata_["userId"])

    params = {
        "mode": "payment" if one_time else "subscription",
        "payment_method_types": ["card"],
        "line_items": [{"price_data": price_data, "quantity": 1}],
        "success_url": f"{settings.FRONTEND_URL}/success?session_id={{CHECKOUT_SESSION_ID}}",
        "cancel_url": f"{settings.FRONTEND_URL}/checkout/{token}",
        "metadata": metadata,
    }
    if session.email:
        params["customer_email"] = session.email

    transfer = {"destination": shop.stripe_account_id}
    if one_time:
        params["payment_intent_data"] = {
            "application_fee_amount": to_minor_units(session.platform_fee),
            "transfer_data": transfer,
            "metadata": metadata,
        }
    else:
        subscription_data = {
            "application_fee_percent": float(shop.platform_fee_percent),
            "transfer_data": transfer,
            "metadata": metadata,
        }
        if package.trial_days and package.trial_days > 0:
            subscription_data["trial_period_days"] = package.trial_days
        params["subscription_data"] = subscription_data
    return params


async def create_stripe_checkout(
    db: AsyncSession,
    token: str,
    contact,
    gateway: StripeGateway,
    now: datetime | None = None,
) -> dict:
    """
    Start hosted Stripe Checkout for a pending session.

    Args:
        token: Checkout session token
        contact: CheckoutContact (email, optional name) collected on the checkout page
        gateway: Stripe gateway

    Returns:
        {"url": hosted checkout URL}
    """
    session = await get_checkout_session(db, token, now=now)
    if session.status != CheckoutSessionStatus.PENDING:
        raise InvalidState(f"Checkout session is {session.status.value}")

    package = session.package
    shop = session.shop
    if not shop.stripe_account_id:
        raise NotEligible("Shop has no connected Stripe account")

    session.email = contact.email
    if contact.name:
        session.name = contact.name

    stripe_session = gateway.create_checkout_session(build_stripe_params(session, package, shop))

    session.stripe_checkout_session_id = stripe_session.id
    await db.commit()
    logger.info("Stripe checkout %s opened for session %s", stripe_session.id, token)
    return {"url": stripe_session.url}


# ── Completion / fulfilment ────────────────────────────────

async def mark_session_completed(db: AsyncSession, token: str) -> bool:
    """
    PENDING → COMPLETED. Returns True when this call made the change.

    Completed sessions are left alone; expired ones stay expired.
    """
    result = await db.execute(
        update(CheckoutSession)
        .where(
            CheckoutSession.session_token == token,
            CheckoutSession.status == CheckoutSessionStatus.PENDING,
        )
        .values(status=CheckoutSessionStatus.COMPLETED, updated_at=datetime.utcnow())
    )
    await db.commit()
    if result.rowcount:
        logger.info("Checkout session %s completed", token)
        return True

    current = await db.execute(
        select(CheckoutSession.status).where(CheckoutSession.session_token == token)
    )
    status = current.scalar_one_or_none()
    if status is None:
        raise NotFound("Checkout session not found")
    if status == CheckoutSessionStatus.EXPIRED:
        logger.warning("Payment reported for expired checkout session %s; left expired", token)
    return False


async def fulfil_checkout(db: AsyncSession, stripe_session: dict, now: datetime | None = None) -> None:
    """
    Handle checkout.session.completed for one of our sessions.

    Recurring checkouts also get a completed Purchase and a Subscription with
    the fee split from the snapshotted price. Re-deliveries are no-ops.
    """
    metadata = stripe_session.get("metadata") or {}
    token = metadata.get("checkoutSessionId")
    if not token:
        logger.info("Stripe checkout %s has no checkoutSessionId; ignoring", stripe_session.get("id"))
        return

    await mark_session_completed(db, token)

    stripe_subscription_id = stripe_session.get("subscription")
    if not stripe_subscription_id:
        return
    if await subscriptions.find_by_stripe_id(db, stripe_subscription_id):
        return

    result = await db.execute(select(CheckoutSession).where(CheckoutSession.session_token == token))
    session = result.scalar_one()
    if session.billing_cycle == BillingCycle.ONE_TIME:
        return

    now = now or datetime.utcnow()
    end = calculate_end_date(now, session.billing_cycle)
    details = stripe_session.get("customer_details") or {}
    email = session.email or details.get("email")
    user_id = metadata.get("userId") or email or stripe_session.get("customer")

    purchase = Purchase(
        package_id=session.package_id,
        user_id=user_id,
        billing_cycle=session.billing_cycle,
        price=session.price,
        status=PurchaseStatus.COMPLETED,
        payment_method=PaymentMethod.STRIPE_CARD,
        payment_id=stripe_session.get("id"),
        customer_email=email,
        customer_name=session.name or details.get("name"),
        start_date=now,
        end_date=end,
        is_recurring=True,
        metadata_={"checkoutSessionId": token},
    )
    db.add(purchase)
    await db.flush()

    split = split_fee(session.price, session.shop.platform_fee_percent)
    trial_days = session.package.trial_days or 0
    subscription = Subscription(
        purchase_id=purchase.id,
        package_id=session.package_id,
        shop_id=session.shop_id,
        user_id=user_id,
        stripe_subscription_id=stripe_subscription_id,
        stripe_customer_id=stripe_session.get("customer"),
        billing_cycle=session.billing_cycle,
        price=session.price,
        platform_fee=split.platform_fee,
        shop_revenue=split.shop_revenue,
        current_period_start=now,
        current_period_end=end,
    )
    if trial_days > 0:
        subscription.status = SubscriptionStatus.TRIALING
        subscription.trial_start = now
        subscription.trial_end = now + timedelta(days=trial_days)
    db.add(subscription)
    await db.commit()
    logger.info(
        "Checkout %s fulfilled: purchase %s, subscription %s",
        token, purchase.id, stripe_subscription_id,
    )


# ── Expiry sweep ───────────────────────────────────────────

async def expire_stale_sessions(db: AsyncSession, now: datetime | None = None) -> int:
    """Flip every PENDING session past its expiry to EXPIRED. Returns the count."""
    now = now or datetime.utcnow()
    result = await db.execute(
        update(CheckoutSession)
        .where(
            CheckoutSession.status == CheckoutSessionStatus.PENDING,
            CheckoutSession.expires_at < now,
        )
        .values(status=CheckoutSessionStatus.EXPIRED)
    )
    await db.commit()
    if result.rowcount:
        logger.info("Expired %d stale checkout sessions", result.rowcount)
    return result.rowcount
