"""Checkout endpoints — session creation, lookup and hosted Stripe checkout."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from db.database import get_db
from schemas import CheckoutContact, CheckoutSessionCreate, CheckoutSessionCreated, CheckoutSessionResponse, CheckoutUrl
from services import checkout
from services.stripe_gateway import StripeGateway, get_stripe_gateway

router = APIRouter()


@router.post("/create-session", response_model=CheckoutSessionCreated, status_code=201)
async def create_session(data: CheckoutSessionCreate, db: AsyncSession = Depends(get_db)):
    return await checkout.create_checkout_session(db, data)


@router.get("/{session_id}", response_model=CheckoutSessionResponse)
async def get_session(session_id: str, db: AsyncSession = Depends(get_db)):
    return await checkout.get_checkout_session(db, session_id)


@router.post("/{session_id}/stripe", response_model=CheckoutUrl)
async def start_stripe_checkout(
    session_id: str,
    contact: CheckoutContact,
    db: AsyncSession = Depends(get_db),
    gateway: StripeGateway = Depends(get_stripe_gateway),
):
    return await checkout.create_stripe_checkout(db, session_id, contact, gateway)
