"""Subscription endpoints."""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from db.database import get_db
from schemas import SubscriptionCancel, SubscriptionChangePlan, SubscriptionResponse
from services import subscriptions

router = APIRouter()


@router.get("/", response_model=list[SubscriptionResponse])
async def list_subscriptions(db: AsyncSession = Depends(get_db)):
    return await subscriptions.list_subscriptions(db)


@router.get("/admin/active", response_model=list[SubscriptionResponse])
async def active_subscriptions(db: AsyncSession = Depends(get_db)):
    return await subscriptions.list_active_subscriptions(db)


@router.get("/admin/expiring-soon", response_model=list[SubscriptionResponse])
async def expiring_subscriptions(days: int = Query(7, ge=1, le=365), db: AsyncSession = Depends(get_db)):
    return await subscriptions.list_expiring_subscriptions(db, days)


@router.get("/user/{user_id}", response_model=list[SubscriptionResponse])
async def user_subscriptions(user_id: str, db: AsyncSession = Depends(get_db)):
    return await subscriptions.list_user_subscriptions(db, user_id)


@router.get("/shops/{shop_id}", response_model=list[SubscriptionResponse])
async def shop_subscriptions(shop_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    return await subscriptions.list_shop_subscriptions(db, shop_id)


@router.get("/{subscription_id}", response_model=SubscriptionResponse)
async def get_subscription(subscription_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    return await subscriptions.get_subscription(db, subscription_id)


@router.post("/{subscription_id}/cancel", response_model=SubscriptionResponse)
async def cancel_subscription(
    subscription_id: uuid.UUID, data: SubscriptionCancel | None = None, db: AsyncSession = Depends(get_db),
):
    at_period_end = data.at_period_end if data else True
    return await subscriptions.cancel_subscription(db, subscription_id, at_period_end)


@router.post("/{subscription_id}/resume", response_model=SubscriptionResponse)
async def resume_subscription(subscription_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    return await subscriptions.resume_subscription(db, subscription_id)


@router.patch("/{subscription_id}/change-plan", response_model=SubscriptionResponse)
async def change_plan(subscription_id: uuid.UUID, data: SubscriptionChangePlan, db: AsyncSession = Depends(get_db)):
    return await subscriptions.change_billing_cycle(db, subscription_id, data.billing_cycle)
