"""Purchase ledger endpoints."""

import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from db.database import get_db
from schemas import PurchaseComplete, PurchaseCreate, PurchaseExtend, PurchaseResponse, PurchaseStats
from services import purchases

router = APIRouter()


@router.post("/", response_model=PurchaseResponse, status_code=201)
async def create_purchase(data: PurchaseCreate, db: AsyncSession = Depends(get_db)):
    return await purchases.create_purchase(db, data)


@router.get("/", response_model=list[PurchaseResponse])
async def list_purchases(db: AsyncSession = Depends(get_db)):
    return await purchases.list_purchases(db)


@router.get("/stats", response_model=PurchaseStats)
async def purchase_stats(user_id: str | None = None, db: AsyncSession = Depends(get_db)):
    return await purchases.purchase_stats(db, user_id)


@router.get("/expiring", response_model=list[PurchaseResponse])
async def expiring_purchases(days: int = Query(7, ge=1, le=365), db: AsyncSession = Depends(get_db)):
    return await purchases.list_expiring_purchases(db, days)


@router.get("/date-range", response_model=list[PurchaseResponse])
async def purchases_between(start: datetime, end: datetime, db: AsyncSession = Depends(get_db)):
    if end < start:
        raise HTTPException(400, "end must not be before start")
    return await purchases.list_purchases_between(db, start, end)


@router.get("/user/{user_id}", response_model=list[PurchaseResponse])
async def user_purchases(user_id: str, db: AsyncSession = Depends(get_db)):
    return await purchases.list_user_purchases(db, user_id)


@router.get("/user/{user_id}/active", response_model=list[PurchaseResponse])
async def user_active_purchases(user_id: str, db: AsyncSession = Depends(get_db)):
    return await purchases.list_active_purchases(db, user_id)


@router.get("/{purchase_id}", response_model=PurchaseResponse)
async def get_purchase(purchase_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    return await purchases.get_purchase(db, purchase_id)


# ── Transitions ────────────────────────────────────────────

@router.patch("/{purchase_id}/complete", response_model=PurchaseResponse)
async def complete_purchase(purchase_id: uuid.UUID, data: PurchaseComplete, db: AsyncSession = Depends(get_db)):
    return await purchases.complete_purchase(db, purchase_id, data.payment_id)


@router.patch("/{purchase_id}/cancel", response_model=PurchaseResponse)
async def cancel_purchase(purchase_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    return await purchases.cancel_purchase(db, purchase_id)


@router.patch("/{purchase_id}/refund", response_model=PurchaseResponse)
async def refund_purchase(purchase_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    return await purchases.refund_purchase(db, purchase_id)


@router.patch("/{purchase_id}/renew", response_model=PurchaseResponse)
async def renew_purchase(purchase_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    return await purchases.renew_purchase(db, purchase_id)


@router.patch("/{purchase_id}/extend", response_model=PurchaseResponse)
async def extend_purchase(purchase_id: uuid.UUID, data: PurchaseExtend, db: AsyncSession = Depends(get_db)):
    return await purchases.extend_purchase(db, purchase_id, data.days)
