"""Package catalog endpoints."""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from db.database import get_db
from models.enums import BillingCycle
from schemas import PackageCreate, PackagePrice, PackageResponse, PackageUpdate
from services import packages
from services.pricing import require_price

router = APIRouter()


@router.get("/", response_model=list[PackageResponse])
async def list_packages(db: AsyncSession = Depends(get_db)):
    return await packages.list_active_packages(db)


@router.get("/search", response_model=list[PackageResponse])
async def search_packages(q: str = Query(..., min_length=1), db: AsyncSession = Depends(get_db)):
    return await packages.search_packages(db, q)


@router.get("/popular", response_model=list[PackageResponse])
async def popular_packages(limit: int = Query(5, ge=1, le=50), db: AsyncSession = Depends(get_db)):
    return await packages.list_popular_packages(db, limit)


@router.post("/seed", response_model=list[PackageResponse])
async def seed_packages(db: AsyncSession = Depends(get_db)):
    """Create the sample catalog (idempotent)."""
    return await packages.seed_sample_packages(db)


@router.get("/{package_id}", response_model=PackageResponse)
async def get_package(package_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    return await packages.get_package(db, package_id)


@router.get("/{package_id}/price/{cycle}", response_model=PackagePrice)
async def package_price(package_id: uuid.UUID, cycle: BillingCycle, db: AsyncSession = Depends(get_db)):
    package = await packages.get_package(db, package_id)
    return {"price": require_price(package, cycle), "currency": settings.CURRENCY}


@router.post("/", response_model=PackageResponse, status_code=201)
async def create_package(data: PackageCreate, db: AsyncSession = Depends(get_db)):
    return await packages.create_package(db, data)


@router.patch("/{package_id}", response_model=PackageResponse)
async def update_package(package_id: uuid.UUID, data: PackageUpdate, db: AsyncSession = Depends(get_db)):
    return await packages.update_package(db, package_id, data)


@router.delete("/{package_id}", status_code=204)
async def delete_package(package_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    await packages.deactivate_package(db, package_id)
