"""
PayPal REST client — orders, captures, refunds and payouts.

Auth:
  - OAuth2 client-credentials token, cached in memory
  - Refreshed when it is within 5 minutes of expiry
  - sandbox / live base URL picked from PAYPAL_MODE
"""

import logging
import time
import uuid
from decimal import Decimal

import httpx

from config import settings
from services.errors import PaymentProviderError

logger = logging.getLogger(__name__)

SANDBOX_URL = "https://api-m.sandbox.paypal.com"
LIVE_URL = "https://api-m.paypal.com"
TOKEN_REFRESH_MARGIN = 300  # seconds

_client: "PayPalClient | None" = None


def _money(amount) -> str:
    return f"{Decimal(amount):.2f}"


class PayPalClient:
    def __init__(
        self,
        client_id: str,
        client_secret: str,
        mode: str = "sandbox",
        http: httpx.AsyncClient | None = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.base_url = LIVE_URL if mode == "live" else SANDBOX_URL
        self._http = http or httpx.AsyncClient(timeout=10.0)
        self._token: str | None = None
        self._token_expiry = 0.0

        if not self.is_configured():
            logger.warning("PayPal credentials not configured; PayPal payments are disabled")

    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    @property
    def environment(self) -> str:
        return "sandbox" if "sandbox" in self.base_url else "live"

    async def _access_token(self) -> str:
        if self._token and time.time() < self._token_expiry - TOKEN_REFRESH_MARGIN:
            return self._token
        if not self.is_configured():
            raise PaymentProviderError("PayPal credentials not configured")

        try:
            resp = await self._http.post(
                f"{self.base_url}/v1/oauth2/token",
                data={"grant_type": "client_credentials"},
                auth=(self.client_id, self.client_secret),
            )
            resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("PayPal token request failed: %s", e)
            raise PaymentProviderError(f"Failed to get PayPal access token: {e}")

        body = resp.json()
        self._token = body["access_token"]
        self._token_expiry = time.time() + int(body.get("expires_in", 0))
        return self._token

    async def _request(self, method: str, path: str, action: str, json: dict | None = None) -> dict:
        token = await self._access_token()
        try:
            resp = await self._http.request(
                method,
                f"{self.base_url}{path}",
                json=json,
                headers={"Authorization": f"Bearer {token}"},
            )
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            detail = e.response.text
            logger.error("PayPal %s failed (%s): %s", action, e.response.status_code, detail)
            raise PaymentProviderError(f"Failed to {action}: {detail}")
        except httpx.HTTPError as e:
            logger.error("PayPal %s failed: %s", action, e)
            raise PaymentProviderError(f"Failed to {action}: {e}")
        return resp.json() if resp.content else {}

    # ── Orders ─────────────────────────────────────────────

    async def create_order(
        self,
        description: str,
        price,
        return_url: str,
        cancel_url: str,
        custom_id: str | None = None,
    ) -> dict:
        """
        Create a CAPTURE-intent order.

        Args:
            description: Shown to the buyer (package name)
            price: Amount in dollars
            return_url: Where PayPal sends the buyer after approval
            cancel_url: Where PayPal sends the buyer on cancel
            custom_id: Our purchase id, read back on capture

        Returns:
            {"order_id": ..., "approval_url": ...}
        """
        unit = {
            "description": description,
            "amount": {"currency_code": "USD", "value": _money(price)},
        }
        if custom_id:
            unit["custom_id"] = custom_id
        order = await self._request(
            "POST", "/v2/checkout/orders", "create PayPal order",
            json={
                "intent": "CAPTURE",
                "purchase_units": [unit],
                "application_context": {
                    "brand_name": settings.PAYPAL_BRAND_NAME,
                    "landing_page": "BILLING",
                    "user_action": "PAY_NOW",
                    "return_url": return_url,
                    "cancel_url": cancel_url,
                },
            },
        )
        approval = next((link["href"] for link in order.get("links", []) if link.get("rel") == "approve"), None)
        logger.info("PayPal order %s created", order.get("id"))
        return {"order_id": order.get("id"), "approval_url": approval}

    async def capture_order(self, order_id: str) -> dict:
        return await self._request("POST", f"/v2/checkout/orders/{order_id}/capture", "capture PayPal order", json={})

    async def get_order(self, order_id: str) -> dict:
        return await self._request("GET", f"/v2/checkout/orders/{order_id}", "get PayPal order details")

    async def refund_capture(self, capture_id: str, amount=None) -> dict:
        body = {}
        if amount is not None:
            body["amount"] = {"currency_code": "USD", "value": _money(amount)}
        return await self._request("POST", f"/v2/payments/captures/{capture_id}/refund", "refund PayPal payment", json=body)

    async def create_payout(self, recipient_email: str, amount, currency: str = "USD") -> dict:
        return await self._request(
            "POST", "/v1/payments/payouts", "create PayPal payout",
            json={
                "sender_batch_header": {
                    "sender_batch_id": f"batch_{uuid.uuid4().hex}",
                    "email_subject": "You have a payment!",
                    "email_message": f"You have received a payment from {settings.PAYPAL_BRAND_NAME}",
                },
                "items": [
                    {
                        "recipient_type": "EMAIL",
                        "amount": {"value": _money(amount), "currency": currency},
                        "receiver": recipient_email,
                        "note": f"Payment from {settings.PAYPAL_BRAND_NAME}",
                    }
                ],
            },
        )


def capture_custom_id(capture: dict) -> str | None:
    """The custom_id (our purchase id) carried by a captured order."""
    for unit in capture.get("purchase_units", []):
        if unit.get("custom_id"):
            return unit["custom_id"]
        for cap in (unit.get("payments") or {}).get("captures", []):
            if cap.get("custom_id"):
                return cap["custom_id"]
    return None


def capture_id(capture: dict) -> str | None:
    for unit in capture.get("purchase_units", []):
        for cap in (unit.get("payments") or {}).get("captures", []):
            return cap.get("id")
    return None


def get_paypal_client() -> PayPalClient:
    """Process-wide PayPal client (FastAPI dependency)."""
    global _client
    if _client is None:
        _client = PayPalClient(
            settings.PAYPAL_CLIENT_ID,
            settings.PAYPAL_CLIENT_SECRET,
            settings.PAYPAL_MODE,
        )
    return _client
