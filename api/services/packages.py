"""Package catalog — CRUD, search and sample data."""

import logging
import uuid
from decimal import Decimal

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.package import Package
from services.errors import NotFound

logger = logging.getLogger(__name__)

SAMPLE_PACKAGES = [
    {
        "name": "Starter Digital Pack",
        "description": "Perfect for individuals just starting their digital journey",
        "base_price": Decimal("29.99"),
        "weekly_price": Decimal("9.99"),
        "monthly_price": Decimal("29.99"),
        "yearly_price": Decimal("299.99"),
        "features": [
            "Basic digital tools",
            "Email support",
            "1GB cloud storage",
            "Access to templates",
        ],
        "image_url": "https://via.placeholder.com/300x200/4F46E5/FFFFFF?text=Starter",
    },
    {
        "name": "Professional Digital Suite",
        "description": "Complete digital toolkit for professionals and small businesses",
        "base_price": Decimal("99.99"),
        "weekly_price": Decimal("29.99"),
        "monthly_price": Decimal("99.99"),
        "yearly_price": Decimal("999.99"),
        "features": [
            "Advanced digital tools",
            "Priority support",
            "50GB cloud storage",
            "Premium templates",
            "Analytics dashboard",
            "Team collaboration",
        ],
        "image_url": "https://via.placeholder.com/300x200/10B981/FFFFFF?text=Professional",
    },
    {
        "name": "Enterprise Digital Platform",
        "description": "Enterprise-grade digital solution for large organizations",
        "base_price": Decimal("299.99"),
        "weekly_price": Decimal("89.99"),
        "monthly_price": Decimal("299.99"),
        "yearly_price": Decimal("2999.99"),
        "features": [
            "All Professional features",
            "Unlimited cloud storage",
            "Dedicated support",
            "Custom integrations",
            "Advanced analytics",
            "SLA guarantee",
            "Custom training",
            "API access",
        ],
        "image_url": "https://via.placeholder.com/300x200/8B5CF6/FFFFFF?text=Enterprise",
    },
]


async def create_package(db: AsyncSession, data) -> Package:
    package = Package(**data.model_dump())
    db.add(package)
    await db.commit()
    await db.refresh(package)
    logger.info("Package %s created: %s", package.id, package.name)
    return package


async def list_active_packages(db: AsyncSession) -> list[Package]:
    result = await db.execute(
        select(Package).where(Package.is_active.is_(True)).order_by(Package.created_at.desc())
    )
    return list(result.scalars().all())


async def get_package(db: AsyncSession, package_id: uuid.UUID) -> Package:
    result = await db.execute(select(Package).where(Package.id == package_id))
    package = result.scalar_one_or_none()
    if not package:
        raise NotFound(f"Package with ID {package_id} not found")
    return package


async def update_package(db: AsyncSession, package_id: uuid.UUID, data) -> Package:
    package = await get_package(db, package_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(package, field, value)
    await db.commit()
    await db.refresh(package)
    return package


async def deactivate_package(db: AsyncSession, package_id: uuid.UUID) -> None:
    """Soft delete; past sessions and purchases keep referencing the row."""
    package = await get_package(db, package_id)
    package.is_active = False
    await db.commit()
    logger.info("Package %s deactivated", package_id)


async def search_packages(db: AsyncSession, query: str) -> list[Package]:
    pattern = f"%{query.lower()}%"
    result = await db.execute(
        select(Package)
        .where(
            Package.is_active.is_(True),
            or_(
                func.lower(Package.name).like(pattern),
                func.lower(Package.description).like(pattern),
            ),
        )
        .order_by(Package.name)
    )
    return list(result.scalars().all())


async def list_popular_packages(db: AsyncSession, limit: int = 5) -> list[Package]:
    # Newest first until sales counts are joined in (shops.top_packages has them per shop)
    result = await db.execute(
        select(Package)
        .where(Package.is_active.is_(True))
        .order_by(Package.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def count_active_packages(db: AsyncSession) -> int:
    result = await db.execute(
        select(func.count()).select_from(Package).where(Package.is_active.is_(True))
    )
    return result.scalar_one()


async def seed_sample_packages(db: AsyncSession) -> list[Package]:
    """Insert the sample catalog; packages that already exist by name are reused."""
    packages = []
    for sample in SAMPLE_PACKAGES:
        result = await db.execute(select(Package).where(Package.name == sample["name"]))
        existing = result.scalars().first()
        if existing:
            packages.append(existing)
            continue
        package = Package(**sample, is_active=True)
        db.add(package)
        packages.append(package)
    await db.commit()
    for package in packages:
        await db.refresh(package)
    return packages
