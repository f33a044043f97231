"""
Stripe payment endpoints — payment intents, refunds and the platform webhook.

Webhook events handled:
  checkout.session.completed     → complete the checkout session (and
                                   record purchase + subscription if recurring)
  payment_intent.succeeded       → complete the purchase in metadata.purchaseId
  payment_intent.payment_failed  → logged
  customer.subscription.updated  → mirror status / period / cancel flag
  customer.subscription.deleted  → mark cancelled
  invoice.payment_failed         → mark past_due
Anything else is logged and acknowledged.
"""

import logging
import uuid

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from db.database import get_db
from schemas import PaymentIntentConfirm, PaymentIntentCreate, RefundCreate
from services import checkout, purchases, subscriptions
from services.errors import InvalidState, NotFound
from services.pricing import to_minor_units
from services.stripe_gateway import StripeGateway, as_dict, get_stripe_gateway
from services.webhook_events import first_delivery, forget_delivery

logger = logging.getLogger(__name__)

router = APIRouter()


# ── Payment intents ────────────────────────────────────────

@router.post("/create-payment-intent")
async def create_payment_intent(data: PaymentIntentCreate, gateway: StripeGateway = Depends(get_stripe_gateway)):
    metadata = dict(data.metadata)
    if data.purchase_id:
        metadata["purchaseId"] = str(data.purchase_id)
    intent = gateway.create_payment_intent(
        amount=to_minor_units(data.amount),
        currency=data.currency,
        customer_email=data.customer_email,
        metadata=metadata,
    )
    return {
        "id": intent.id,
        "client_secret": intent.client_secret,
        "amount": intent.amount,
        "currency": intent.currency,
    }


@router.get("/payment-intents/{payment_intent_id}")
async def retrieve_payment_intent(payment_intent_id: str, gateway: StripeGateway = Depends(get_stripe_gateway)):
    return as_dict(gateway.retrieve_payment_intent(payment_intent_id))


@router.post("/payment-intents/{payment_intent_id}/confirm")
async def confirm_payment_intent(
    payment_intent_id: str,
    data: PaymentIntentConfirm | None = None,
    gateway: StripeGateway = Depends(get_stripe_gateway),
):
    payment_method = data.payment_method if data else None
    return as_dict(gateway.confirm_payment_intent(payment_intent_id, payment_method))


@router.post("/payment-intents/{payment_intent_id}/cancel")
async def cancel_payment_intent(payment_intent_id: str, gateway: StripeGateway = Depends(get_stripe_gateway)):
    return as_dict(gateway.cancel_payment_intent(payment_intent_id))


@router.post("/refund/{payment_intent_id}")
async def create_refund(
    payment_intent_id: str,
    data: RefundCreate | None = None,
    gateway: StripeGateway = Depends(get_stripe_gateway),
):
    amount = to_minor_units(data.amount) if data and data.amount is not None else None
    refund = gateway.create_refund(payment_intent_id, amount)
    return {"id": refund.id, "status": refund.status, "amount": refund.amount}


@router.get("/checkout-sessions/{session_id}")
async def retrieve_checkout_session(session_id: str, gateway: StripeGateway = Depends(get_stripe_gateway)):
    return as_dict(gateway.retrieve_checkout_session(session_id))


@router.get("/config")
async def stripe_config(gateway: StripeGateway = Depends(get_stripe_gateway)):
    return {"publishable_key": gateway.publishable_key}


# ── Webhook ────────────────────────────────────────────────

async def _complete_from_metadata(db: AsyncSession, metadata: dict, payment_id: str | None) -> None:
    purchase_id = (metadata or {}).get("purchaseId")
    if not purchase_id or not payment_id:
        return
    try:
        await purchases.complete_purchase(db, uuid.UUID(purchase_id), payment_id)
    except (InvalidState, NotFound, ValueError) as e:
        logger.warning("Could not complete purchase %s from webhook: %s", purchase_id, e)


def _invoice_subscription_id(invoice: dict) -> str | None:
    if invoice.get("subscription"):
        return invoice["subscription"]
    details = (invoice.get("parent") or {}).get("subscription_details") or {}
    return details.get("subscription")


async def dispatch_event(db: AsyncSession, event: dict) -> None:
    event_type = event.get("type")
    obj = event.get("data", {}).get("object", {})

    if event_type == "checkout.session.completed":
        await checkout.fulfil_checkout(db, obj)
        await _complete_from_metadata(db, obj.get("metadata"), obj.get("payment_intent"))
    elif event_type == "payment_intent.succeeded":
        await _complete_from_metadata(db, obj.get("metadata"), obj.get("id"))
        logger.info("Payment intent succeeded: %s", obj.get("id"))
    elif event_type == "payment_intent.payment_failed":
        error = (obj.get("last_payment_error") or {}).get("message")
        logger.warning("Payment intent failed: %s (%s)", obj.get("id"), error)
    elif event_type == "customer.subscription.updated":
        await subscriptions.sync_from_stripe(db, obj)
    elif event_type == "customer.subscription.deleted":
        await subscriptions.sync_from_stripe(db, obj, deleted=True)
    elif event_type == "invoice.payment_failed":
        sub_id = _invoice_subscription_id(obj)
        if sub_id:
            await subscriptions.mark_past_due_by_stripe_id(db, sub_id)
    else:
        logger.info("Unhandled Stripe event type: %s", event_type)


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: str | None = Header(None, alias="stripe-signature"),
    db: AsyncSession = Depends(get_db),
    gateway: StripeGateway = Depends(get_stripe_gateway),
):
    payload = await request.body()
    event = gateway.construct_event(payload, stripe_signature)

    if not await first_delivery(event.get("id")):
        logger.info("Duplicate Stripe event %s ignored", event.get("id"))
        return {"received": True}

    logger.info("Stripe webhook: %s", event.get("type"))
    try:
        await dispatch_event(db, event)
    except Exception:
        await forget_delivery(event.get("id"))
        raise
    return {"received": True}
