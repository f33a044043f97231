"""
Stripe Connect — seller onboarding and transfers for shops.

Shops get an Express account; its charges/payouts flags are mirrored onto the
Shop row (via shops.update_stripe_status) whenever we fetch the account or
Stripe sends account.updated.
"""

import logging
import uuid

import stripe
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from models.shop import Shop
from services import shops
from services.errors import NotFound
from services.pricing import to_minor_units
from services.stripe_gateway import StripeGateway

logger = logging.getLogger(__name__)


async def _shop_with_account(db: AsyncSession, shop_id: uuid.UUID) -> Shop:
    shop = await shops.get_shop(db, shop_id)
    if not shop.stripe_account_id:
        raise NotFound("Shop or Stripe account not found")
    return shop


async def create_connected_account(db: AsyncSession, shop_id: uuid.UUID, gateway: StripeGateway) -> dict:
    shop = await shops.get_shop(db, shop_id)
    if shop.stripe_account_id:
        return {"account_id": shop.stripe_account_id}

    business_profile = {
        "name": shop.name,
        "product_description": shop.description or "Digital products",
    }
    if shop.website:
        business_profile["url"] = shop.website

    account = gateway.call(
        "connected account create", stripe.Account.create,
        type="express",
        country=settings.STRIPE_CONNECT_COUNTRY,
        email=shop.email,
        capabilities={
            "card_payments": {"requested": True},
            "transfers": {"requested": True},
        },
        business_type="individual",
        business_profile=business_profile,
        metadata={"shopId": str(shop.id)},
    )
    await shops.set_stripe_account(db, shop_id, account.id)
    logger.info("Shop %s connected to Stripe account %s", shop_id, account.id)
    return {"account_id": account.id}


async def create_account_link(db: AsyncSession, shop_id: uuid.UUID, gateway: StripeGateway) -> dict:
    shop = await _shop_with_account(db, shop_id)
    link = gateway.call(
        "account link create", stripe.AccountLink.create,
        account=shop.stripe_account_id,
        refresh_url=f"{settings.FRONTEND_URL}/shops/{shop_id}/connect/refresh",
        return_url=f"{settings.FRONTEND_URL}/shops/{shop_id}/connect/success",
        type="account_onboarding",
    )
    return {"url": link.url}


async def create_login_link(db: AsyncSession, shop_id: uuid.UUID, gateway: StripeGateway) -> dict:
    shop = await _shop_with_account(db, shop_id)
    link = gateway.call("login link create", stripe.Account.create_login_link, shop.stripe_account_id)
    return {"url": link.url}


async def get_account_status(db: AsyncSession, shop_id: uuid.UUID, gateway: StripeGateway) -> dict:
    """Fetch the connected account and persist its flags onto the shop."""
    shop = await _shop_with_account(db, shop_id)
    account = gateway.call("account retrieve", stripe.Account.retrieve, shop.stripe_account_id)

    charges = bool(account.charges_enabled)
    payouts = bool(account.payouts_enabled)
    await shops.update_stripe_status(
        db, shop_id,
        charges_enabled=charges,
        payouts_enabled=payouts,
        onboarding_complete=charges,
    )
    requirements = getattr(account, "requirements", None)
    if hasattr(requirements, "to_dict"):
        requirements = requirements.to_dict()
    return {
        "charges_enabled": charges,
        "payouts_enabled": payouts,
        "requirements": requirements,
    }


async def handle_account_updated(db: AsyncSession, account: dict) -> Shop | None:
    result = await db.execute(select(Shop.id).where(Shop.stripe_account_id == account["id"]))
    shop_id = result.scalar_one_or_none()
    if not shop_id:
        logger.warning("account.updated for unknown Stripe account %s", account["id"])
        return None

    charges = bool(account.get("charges_enabled"))
    return await shops.update_stripe_status(
        db, shop_id,
        charges_enabled=charges,
        payouts_enabled=bool(account.get("payouts_enabled")),
        onboarding_complete=charges,
    )


async def process_webhook(db: AsyncSession, event: dict) -> None:
    event_type = event.get("type")
    obj = event.get("data", {}).get("object", {})

    if event_type == "account.updated":
        await handle_account_updated(db, obj)
    elif event_type == "transfer.created":
        logger.info("Transfer %s created for amount %s", obj.get("id"), obj.get("amount"))
    else:
        logger.info("Unhandled Connect event type: %s", event_type)


def create_transfer(gateway: StripeGateway, destination: str, amount, currency: str | None = None, metadata: dict | None = None):
    """Move `amount` dollars from the platform balance to a connected account."""
    return gateway.call(
        "transfer create", stripe.Transfer.create,
        amount=to_minor_units(amount),
        currency=currency or settings.CURRENCY,
        destination=destination,
        metadata=metadata or {},
    )
