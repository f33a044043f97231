"""Shared fixtures: in-memory database, model factories, API client."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "api"))

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
os.environ.setdefault("FRONTEND_URL", "http://shop.test")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_platform")
os.environ.setdefault("STRIPE_CONNECT_WEBHOOK_SECRET", "whsec_test_connect")
os.environ.setdefault("CHECKOUT_SWEEP_INTERVAL_SEC", "0")

from decimal import Decimal

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import models  # noqa: F401  (registers tables)
from db.database import Base, get_db
from models.package import Package
from models.shop import Shop
from models.enums import ShopStatus


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db(engine):
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_shop(db):
    async def _make(**overrides) -> Shop:
        fields = {
            "name": "Pixel Forge",
            "slug": f"pixel-forge-{os.urandom(3).hex()}",
            "owner_id": "owner-1",
            "email": "owner@pixelforge.test",
            "stripe_account_id": "acct_test123",
            "charges_enabled": True,
            "payouts_enabled": True,
            "onboarding_complete": True,
            "platform_fee_percent": Decimal("15.00"),
            "status": ShopStatus.ACTIVE,
        }
        fields.update(overrides)
        shop = Shop(**fields)
        db.add(shop)
        await db.commit()
        await db.refresh(shop)
        return shop
    return _make


@pytest.fixture
def make_package(db):
    async def _make(shop: Shop | None = None, **overrides) -> Package:
        fields = {
            "shop_id": shop.id if shop else None,
            "name": "Icon Pack Pro",
            "description": "Vector icons for product teams",
            "base_price": Decimal("49.00"),
            "weekly_price": Decimal("5.00"),
            "monthly_price": Decimal("100.00"),
            "yearly_price": Decimal("1000.00"),
            "features": ["SVG", "Figma"],
            "images": [],
        }
        fields.update(overrides)
        package = Package(**fields)
        db.add(package)
        await db.commit()
        await db.refresh(package)
        return package
    return _make


@pytest_asyncio.fixture
async def client(db):
    from main import app

    async def _override_db():
        yield db

    app.dependency_overrides[get_db] = _override_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
