"""Tests for the Stripe platform and Connect webhooks, signed end to end."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "api"))

import hashlib
import hmac
import json
import time
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy import select

from main import app
from models.checkout_session import CheckoutSession
from models.enums import BillingCycle, CheckoutSessionStatus, ShopStatus
from schemas import CheckoutSessionCreate
from services import checkout, stripe_connect
from services.stripe_gateway import StripeGateway, get_stripe_gateway

PLATFORM_SECRET = "whsec_test_platform"
CONNECT_SECRET = "whsec_test_connect"


def _sign(payload: str, secret: str) -> str:
    ts = int(time.time())
    digest = hmac.new(secret.encode(), f"{ts}.{payload}".encode(), hashlib.sha256).hexdigest()
    return f"t={ts},v1={digest}"


def _event(event_type: str, obj: dict, event_id: str = "evt_1") -> str:
    return json.dumps({"id": event_id, "object": "event", "type": event_type, "data": {"object": obj}})


@pytest.fixture
def fake_redis():
    r = AsyncMock()
    r.set.return_value = True
    with patch("services.webhook_events.get_redis", AsyncMock(return_value=r)):
        yield r


@pytest_asyncio.fixture
async def webhook_client(client, fake_redis):
    app.dependency_overrides[get_stripe_gateway] = lambda: StripeGateway(
        "sk_test_dummy", webhook_secret=PLATFORM_SECRET,
    )
    yield client


async def _pending_session(db, make_shop, make_package) -> str:
    shop = await make_shop()
    package = await make_package(shop)
    created = await checkout.create_checkout_session(
        db,
        CheckoutSessionCreate(package_id=package.id, email="buyer@example.com", billing_cycle=BillingCycle.ONE_TIME),
    )
    return created["session_id"]


async def _status(db, token):
    result = await db.execute(
        select(CheckoutSession.status).where(CheckoutSession.session_token == token)
    )
    return result.scalar_one()


async def _post(client, path, payload, secret):
    return await client.post(
        path,
        content=payload,
        headers={"stripe-signature": _sign(payload, secret), "content-type": "application/json"},
    )


@pytest.mark.asyncio
async def test_checkout_completed_marks_session(webhook_client, db, make_shop, make_package):
    token = await _pending_session(db, make_shop, make_package)
    payload = _event("checkout.session.completed", {"id": "cs_1", "metadata": {"checkoutSessionId": token}})

    resp = await _post(webhook_client, "/api/payments/stripe/webhook", payload, PLATFORM_SECRET)

    assert resp.status_code == 200
    assert resp.json() == {"received": True}
    assert await _status(db, token) == CheckoutSessionStatus.COMPLETED


@pytest.mark.asyncio
async def test_reserialized_body_fails_verification(webhook_client, db, make_shop, make_package):
    token = await _pending_session(db, make_shop, make_package)
    payload = _event("checkout.session.completed", {"id": "cs_1", "metadata": {"checkoutSessionId": token}})
    signature = _sign(payload, PLATFORM_SECRET)
    reserialized = json.dumps(json.loads(payload), indent=2)

    resp = await webhook_client.post(
        "/api/payments/stripe/webhook",
        content=reserialized,
        headers={"stripe-signature": signature},
    )

    assert resp.status_code == 400
    assert await _status(db, token) == CheckoutSessionStatus.PENDING


@pytest.mark.asyncio
async def test_missing_signature_rejected(webhook_client):
    resp = await webhook_client.post("/api/payments/stripe/webhook", content=_event("ping", {}))
    assert resp.status_code == 400
    assert resp.json() == {"detail": "Missing stripe-signature header"}


@pytest.mark.asyncio
async def test_wrong_secret_rejected(webhook_client):
    payload = _event("ping", {})
    resp = await _post(webhook_client, "/api/payments/stripe/webhook", payload, "whsec_someone_else")
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_unknown_event_acknowledged(webhook_client):
    payload = _event("customer.created", {"id": "cus_1"})
    resp = await _post(webhook_client, "/api/payments/stripe/webhook", payload, PLATFORM_SECRET)
    assert resp.status_code == 200
    assert resp.json() == {"received": True}


@pytest.mark.asyncio
async def test_redelivered_event_is_skipped(webhook_client, fake_redis, db, make_shop, make_package):
    token = await _pending_session(db, make_shop, make_package)
    fake_redis.set.return_value = None
    payload = _event("checkout.session.completed", {"id": "cs_1", "metadata": {"checkoutSessionId": token}})

    resp = await _post(webhook_client, "/api/payments/stripe/webhook", payload, PLATFORM_SECRET)

    assert resp.status_code == 200
    assert await _status(db, token) == CheckoutSessionStatus.PENDING


@pytest.mark.asyncio
async def test_redis_outage_still_processes(webhook_client, fake_redis, db, make_shop, make_package):
    token = await _pending_session(db, make_shop, make_package)
    fake_redis.set.side_effect = RedisConnectionError("down")
    payload = _event("checkout.session.completed", {"id": "cs_1", "metadata": {"checkoutSessionId": token}})

    resp = await _post(webhook_client, "/api/payments/stripe/webhook", payload, PLATFORM_SECRET)

    assert resp.status_code == 200
    assert await _status(db, token) == CheckoutSessionStatus.COMPLETED


@pytest.mark.asyncio
async def test_connect_account_updated_activates_shop(webhook_client, db, make_shop):
    shop = await make_shop(
        stripe_account_id="acct_onboarding", charges_enabled=False, status=ShopStatus.PENDING,
    )
    payload = _event(
        "account.updated",
        {"id": "acct_onboarding", "charges_enabled": True, "payouts_enabled": True},
        event_id="evt_connect_1",
    )

    resp = await _post(webhook_client, "/api/stripe-connect/webhook", payload, CONNECT_SECRET)

    assert resp.status_code == 200
    await db.refresh(shop)
    assert shop.charges_enabled is True
    assert shop.status == ShopStatus.ACTIVE


def _remember_keys(fake_redis) -> dict:
    """Make the fake honour SET NX and DEL like Redis."""
    keys = {}

    async def _set(key, value, nx=False, ex=None):
        if nx and key in keys:
            return None
        keys[key] = value
        return True

    async def _delete(key):
        return 1 if keys.pop(key, None) is not None else 0

    fake_redis.set.side_effect = _set
    fake_redis.delete.side_effect = _delete
    return keys


def _fail_once(real):
    calls = []

    async def _flaky(db, obj):
        calls.append(obj)
        if len(calls) == 1:
            raise RuntimeError("database went away")
        return await real(db, obj)
    return _flaky


@pytest.mark.asyncio
async def test_failed_dispatch_is_retried(webhook_client, fake_redis, db, make_shop, make_package):
    keys = _remember_keys(fake_redis)
    token = await _pending_session(db, make_shop, make_package)
    payload = _event("checkout.session.completed", {"id": "cs_1", "metadata": {"checkoutSessionId": token}})

    with patch("services.checkout.fulfil_checkout", _fail_once(checkout.fulfil_checkout)):
        with pytest.raises(RuntimeError):
            await _post(webhook_client, "/api/payments/stripe/webhook", payload, PLATFORM_SECRET)
        assert keys == {}
        assert await _status(db, token) == CheckoutSessionStatus.PENDING

        resp = await _post(webhook_client, "/api/payments/stripe/webhook", payload, PLATFORM_SECRET)

    assert resp.status_code == 200
    assert await _status(db, token) == CheckoutSessionStatus.COMPLETED
    assert "webhook:stripe:evt_1" in keys


@pytest.mark.asyncio
async def test_failed_connect_dispatch_is_retried(webhook_client, fake_redis, db, make_shop):
    keys = _remember_keys(fake_redis)
    shop = await make_shop(
        stripe_account_id="acct_onboarding", charges_enabled=False, status=ShopStatus.PENDING,
    )
    payload = _event(
        "account.updated",
        {"id": "acct_onboarding", "charges_enabled": True, "payouts_enabled": True},
        event_id="evt_connect_2",
    )

    with patch("services.stripe_connect.process_webhook", _fail_once(stripe_connect.process_webhook)):
        with pytest.raises(RuntimeError):
            await _post(webhook_client, "/api/stripe-connect/webhook", payload, CONNECT_SECRET)
        assert keys == {}

        resp = await _post(webhook_client, "/api/stripe-connect/webhook", payload, CONNECT_SECRET)

    assert resp.status_code == 200
    await db.refresh(shop)
    assert shop.status == ShopStatus.ACTIVE
