"""API-level tests through the FastAPI app."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "api"))

import uuid

import pytest


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_create_and_read_checkout_session(client, db, make_shop, make_package):
    shop = await make_shop()
    package = await make_package(shop)

    resp = await client.post("/api/checkout/create-session", json={
        "package_id": str(package.id),
        "email": "buyer@example.com",
        "billing_cycle": "yearly",
    })
    assert resp.status_code == 201
    token = resp.json()["session_id"]
    assert resp.json()["checkout_url"].endswith(f"/checkout/{token}")
    db.expunge_all()

    resp = await client.get(f"/api/checkout/{token}")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "pending"
    assert body["billing_cycle"] == "yearly"
    assert float(body["price"]) == 1000.0
    assert float(body["platform_fee"]) == 150.0


@pytest.mark.asyncio
async def test_ineligible_shop_renders_detail(client, make_shop, make_package):
    shop = await make_shop(charges_enabled=False)
    package = await make_package(shop)

    resp = await client.post("/api/checkout/create-session", json={
        "package_id": str(package.id),
        "email": "buyer@example.com",
        "billing_cycle": "monthly",
    })
    assert resp.status_code == 400
    assert resp.json() == {"detail": "Shop has not completed payment onboarding"}


@pytest.mark.asyncio
async def test_unknown_purchase_is_404(client):
    resp = await client.get(f"/api/purchases/{uuid.uuid4()}")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_package_needs_a_price(client):
    resp = await client.post("/api/packages/", json={"name": "Free lunch"})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_duplicate_shop_slug_is_409(client):
    body = {"name": "Glyph Lab", "slug": "glyph-lab", "owner_id": "owner-1", "email": "owner@example.com"}
    first = await client.post("/api/shops/", json=body)
    assert first.status_code == 201
    assert first.json()["status"] == "pending"

    second = await client.post("/api/shops/", json=body)
    assert second.status_code == 409


@pytest.mark.asyncio
async def test_create_session_without_contact_details(client, make_shop, make_package):
    shop = await make_shop()
    package = await make_package(shop)

    resp = await client.post("/api/checkout/create-session", json={
        "package_id": str(package.id),
        "billing_cycle": "monthly",
    })
    assert resp.status_code == 201
    token = resp.json()["session_id"]

    resp = await client.get(f"/api/checkout/{token}")
    assert resp.status_code == 200
    assert resp.json()["email"] is None


@pytest.mark.asyncio
async def test_package_price_for_cycle(client, make_shop, make_package):
    shop = await make_shop()
    package = await make_package(shop, yearly_price=None)

    resp = await client.get(f"/api/packages/{package.id}/price/monthly")
    assert resp.status_code == 200
    body = resp.json()
    assert float(body["price"]) == 100.0
    assert body["currency"] == "usd"

    resp = await client.get(f"/api/packages/{package.id}/price/one_time")
    assert float(resp.json()["price"]) == 49.0

    resp = await client.get(f"/api/packages/{package.id}/price/yearly")
    assert resp.status_code == 400
    assert resp.json() == {"detail": "Package has no price for billing cycle yearly"}


@pytest.mark.asyncio
async def test_package_price_rejects_unknown_cycle_and_package(client, make_shop, make_package):
    shop = await make_shop()
    package = await make_package(shop)

    resp = await client.get(f"/api/packages/{package.id}/price/fortnightly")
    assert resp.status_code == 422

    resp = await client.get(f"/api/packages/{uuid.uuid4()}/price/monthly")
    assert resp.status_code == 404
