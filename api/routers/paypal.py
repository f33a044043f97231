"""PayPal payment endpoints — orders for purchases, capture, refunds and payouts."""

import logging
import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from db.database import get_db
from models.enums import PurchaseStatus
from schemas import PayPalOrderCreate, PayPalPayoutCreate, RefundCreate
from services import purchases
from services.errors import InvalidState
from services.paypal import PayPalClient, capture_custom_id, get_paypal_client

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/create-order")
async def create_order(
    data: PayPalOrderCreate,
    db: AsyncSession = Depends(get_db),
    paypal: PayPalClient = Depends(get_paypal_client),
):
    purchase = await purchases.get_purchase(db, data.purchase_id)
    if purchase.status != PurchaseStatus.PENDING:
        raise InvalidState(f"Purchase is {purchase.status.value}")

    return await paypal.create_order(
        description=purchase.package.name,
        price=purchase.price,
        return_url=data.return_url or f"{settings.FRONTEND_URL}/success?paypal=true",
        cancel_url=data.cancel_url or f"{settings.FRONTEND_URL}/cancel?paypal=true",
        custom_id=str(purchase.id),
    )


@router.post("/{order_id}/capture")
async def capture_order(
    order_id: str,
    db: AsyncSession = Depends(get_db),
    paypal: PayPalClient = Depends(get_paypal_client),
):
    result = await paypal.capture_order(order_id)

    if result.get("status") == "COMPLETED":
        purchase_id = capture_custom_id(result)
        if purchase_id:
            await purchases.complete_purchase(db, uuid.UUID(purchase_id), order_id)
        else:
            logger.warning("PayPal order %s captured without a purchase reference", order_id)
    return result


@router.get("/{order_id}/details")
async def order_details(order_id: str, paypal: PayPalClient = Depends(get_paypal_client)):
    return await paypal.get_order(order_id)


@router.post("/refund/{capture_id}")
async def refund_capture(
    capture_id: str,
    data: RefundCreate | None = None,
    paypal: PayPalClient = Depends(get_paypal_client),
):
    return await paypal.refund_capture(capture_id, data.amount if data else None)


@router.post("/payout")
async def create_payout(data: PayPalPayoutCreate, paypal: PayPalClient = Depends(get_paypal_client)):
    return await paypal.create_payout(data.recipient_email, data.amount, data.currency)


@router.get("/config")
async def paypal_config(paypal: PayPalClient = Depends(get_paypal_client)):
    return {
        "client_id": paypal.client_id,
        "environment": paypal.environment,
        "is_configured": paypal.is_configured(),
    }


@router.get("/health")
async def paypal_health(paypal: PayPalClient = Depends(get_paypal_client)):
    return {
        "status": "healthy" if paypal.is_configured() else "misconfigured",
        "configured": paypal.is_configured(),
        "environment": paypal.environment,
    }
