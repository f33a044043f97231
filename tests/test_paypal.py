"""Tests for the PayPal REST client against a mocked transport."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "api"))

import json

import httpx
import pytest

from services.errors import PaymentProviderError
from services.paypal import PayPalClient, capture_custom_id, capture_id


def _client(handler) -> PayPalClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return PayPalClient("client-id", "client-secret", "sandbox", http=http)


def _token_response():
    return httpx.Response(200, json={"access_token": "A21-token", "expires_in": 32400})


@pytest.mark.asyncio
async def test_create_order_returns_approval_url_and_reuses_token():
    calls = []

    def handler(request: httpx.Request):
        calls.append(request.url.path)
        if request.url.path == "/v1/oauth2/token":
            assert request.headers["Authorization"].startswith("Basic ")
            return _token_response()
        assert request.headers["Authorization"] == "Bearer A21-token"
        body = json.loads(request.content)
        unit = body["purchase_units"][0]
        assert body["intent"] == "CAPTURE"
        assert unit["amount"] == {"currency_code": "USD", "value": "100.00"}
        assert unit["custom_id"] == "purchase-1"
        return httpx.Response(201, json={
            "id": "ORDER-1",
            "links": [
                {"rel": "self", "href": "https://api.sandbox.paypal.test/ORDER-1"},
                {"rel": "approve", "href": "https://www.sandbox.paypal.test/checkoutnow?token=ORDER-1"},
            ],
        })

    client = _client(handler)
    assert client.environment == "sandbox"

    first = await client.create_order("Icon Pack Pro", 100, "http://shop/ok", "http://shop/cancel", custom_id="purchase-1")
    await client.create_order("Icon Pack Pro", 100, "http://shop/ok", "http://shop/cancel", custom_id="purchase-1")

    assert first == {
        "order_id": "ORDER-1",
        "approval_url": "https://www.sandbox.paypal.test/checkoutnow?token=ORDER-1",
    }
    assert calls.count("/v1/oauth2/token") == 1
    assert calls.count("/v2/checkout/orders") == 2


@pytest.mark.asyncio
async def test_provider_error_is_wrapped():
    def handler(request: httpx.Request):
        if request.url.path == "/v1/oauth2/token":
            return _token_response()
        return httpx.Response(422, json={"name": "UNPROCESSABLE_ENTITY"})

    client = _client(handler)
    with pytest.raises(PaymentProviderError) as exc:
        await client.capture_order("ORDER-1")
    assert "capture PayPal order" in exc.value.message


@pytest.mark.asyncio
async def test_token_failure_is_wrapped():
    client = _client(lambda request: httpx.Response(401, json={"error": "invalid_client"}))
    with pytest.raises(PaymentProviderError):
        await client.get_order("ORDER-1")


@pytest.mark.asyncio
async def test_unconfigured_client_refuses_calls():
    client = PayPalClient("", "", "live", http=httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(500))))
    assert client.environment == "live"
    assert not client.is_configured()
    with pytest.raises(PaymentProviderError):
        await client.create_order("x", 1, "http://ok", "http://cancel")


def test_capture_helpers():
    capture = {
        "id": "ORDER-1",
        "status": "COMPLETED",
        "purchase_units": [
            {"payments": {"captures": [{"id": "CAP-1", "custom_id": "purchase-1"}]}},
        ],
    }
    assert capture_custom_id(capture) == "purchase-1"
    assert capture_id(capture) == "CAP-1"
    assert capture_custom_id({"purchase_units": []}) is None
