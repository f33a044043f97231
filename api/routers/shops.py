"""Shop endpoints — storefront CRUD, moderation and the owner dashboard."""

import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from db.database import get_db
from schemas import PackageCreate, PackageResponse, PackageUpdate, ShopCreate, ShopResponse, ShopUpdate
from services import shops

router = APIRouter()


@router.post("/", response_model=ShopResponse, status_code=201)
async def create_shop(data: ShopCreate, db: AsyncSession = Depends(get_db)):
    return await shops.create_shop(db, data)


@router.get("/", response_model=list[ShopResponse])
async def list_shops(db: AsyncSession = Depends(get_db)):
    return await shops.list_shops(db)


@router.get("/owner/{owner_id}", response_model=list[ShopResponse])
async def owner_shops(owner_id: str, db: AsyncSession = Depends(get_db)):
    return await shops.list_owner_shops(db, owner_id)


@router.get("/{slug}", response_model=ShopResponse)
async def get_shop_by_slug(slug: str, db: AsyncSession = Depends(get_db)):
    return await shops.get_shop_by_slug(db, slug)


@router.patch("/{shop_id}", response_model=ShopResponse)
async def update_shop(shop_id: uuid.UUID, data: ShopUpdate, db: AsyncSession = Depends(get_db)):
    return await shops.update_shop(db, shop_id, data)


@router.delete("/{shop_id}", status_code=204)
async def delete_shop(shop_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    await shops.deactivate_shop(db, shop_id)


@router.post("/{shop_id}/approve", response_model=ShopResponse)
async def approve_shop(shop_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    return await shops.approve_shop(db, shop_id)


@router.post("/{shop_id}/suspend", response_model=ShopResponse)
async def suspend_shop(shop_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    return await shops.suspend_shop(db, shop_id)


# ── Dashboard ──────────────────────────────────────────────

@router.get("/{shop_id}/dashboard/stats")
async def dashboard_stats(
    shop_id: uuid.UUID,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    db: AsyncSession = Depends(get_db),
):
    return await shops.shop_dashboard(db, shop_id, start_date, end_date)


@router.get("/{shop_id}/dashboard/packages", response_model=list[PackageResponse])
async def dashboard_packages(shop_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    return await shops.list_shop_packages(db, shop_id)


@router.post("/{shop_id}/dashboard/packages", response_model=PackageResponse, status_code=201)
async def dashboard_create_package(shop_id: uuid.UUID, data: PackageCreate, db: AsyncSession = Depends(get_db)):
    return await shops.create_shop_package(db, shop_id, data)


@router.patch("/{shop_id}/dashboard/packages/{package_id}", response_model=PackageResponse)
async def dashboard_update_package(
    shop_id: uuid.UUID, package_id: uuid.UUID, data: PackageUpdate, db: AsyncSession = Depends(get_db),
):
    return await shops.update_shop_package(db, shop_id, package_id, data)


@router.delete("/{shop_id}/dashboard/packages/{package_id}", status_code=204)
async def dashboard_delete_package(shop_id: uuid.UUID, package_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    await shops.delete_shop_package(db, shop_id, package_id)


@router.get("/{shop_id}/dashboard/analytics/top-packages")
async def dashboard_top_packages(
    shop_id: uuid.UUID, limit: int = Query(5, ge=1, le=50), db: AsyncSession = Depends(get_db),
):
    return await shops.top_packages(db, shop_id, limit)


@router.get("/{shop_id}/dashboard/analytics/subscriptions")
async def dashboard_subscription_metrics(shop_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    return await shops.subscription_metrics(db, shop_id)
