"""Stripe Connect endpoints — shop onboarding and the Connect webhook."""

import logging
import uuid

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from db.database import get_db
from services import stripe_connect
from services.stripe_gateway import StripeGateway, get_stripe_gateway
from services.webhook_events import first_delivery, forget_delivery

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/shops/{shop_id}/account")
async def create_account(
    shop_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    gateway: StripeGateway = Depends(get_stripe_gateway),
):
    return await stripe_connect.create_connected_account(db, shop_id, gateway)


@router.post("/shops/{shop_id}/onboard")
async def onboarding_link(
    shop_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    gateway: StripeGateway = Depends(get_stripe_gateway),
):
    return await stripe_connect.create_account_link(db, shop_id, gateway)


@router.post("/shops/{shop_id}/login")
async def login_link(
    shop_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    gateway: StripeGateway = Depends(get_stripe_gateway),
):
    return await stripe_connect.create_login_link(db, shop_id, gateway)


@router.post("/shops/{shop_id}/status")
async def account_status(
    shop_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    gateway: StripeGateway = Depends(get_stripe_gateway),
):
    return await stripe_connect.get_account_status(db, shop_id, gateway)


@router.post("/webhook")
async def connect_webhook(
    request: Request,
    stripe_signature: str | None = Header(None, alias="stripe-signature"),
    db: AsyncSession = Depends(get_db),
    gateway: StripeGateway = Depends(get_stripe_gateway),
):
    payload = await request.body()
    event = gateway.construct_event(payload, stripe_signature, settings.STRIPE_CONNECT_WEBHOOK_SECRET)

    if not await first_delivery(event.get("id")):
        logger.info("Duplicate Connect event %s ignored", event.get("id"))
        return {"received": True}

    try:
        await stripe_connect.process_webhook(db, event)
    except Exception:
        await forget_delivery(event.get("id"))
        raise
    return {"received": True}
