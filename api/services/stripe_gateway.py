"""
Stripe gateway — hosted checkout, payment intents, refunds, webhook verification.

One gateway per process; the API key is set once when it is created.
Every stripe.StripeError is re-raised as PaymentProviderError carrying the
provider's message.
"""

import json
import logging
from functools import lru_cache

import stripe

from config import settings
from services.errors import InvalidSignature, PaymentProviderError

logger = logging.getLogger(__name__)


class StripeGateway:
    def __init__(self, secret_key: str, publishable_key: str = "", webhook_secret: str = ""):
        stripe.api_key = secret_key
        self.publishable_key = publishable_key
        self.webhook_secret = webhook_secret

    def call(self, action: str, fn, *args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except stripe.StripeError as e:
            message = getattr(e, "user_message", None) or str(e)
            logger.error("Stripe error during %s: %s", action, message)
            raise PaymentProviderError(message)

    # ── Checkout ───────────────────────────────────────────

    def create_checkout_session(self, params: dict):
        return self.call("checkout session create", stripe.checkout.Session.create, **params)

    def retrieve_checkout_session(self, session_id: str):
        return self.call("checkout session retrieve", stripe.checkout.Session.retrieve, session_id)

    # ── Payment intents ────────────────────────────────────

    def create_payment_intent(
        self,
        amount: int,
        currency: str | None = None,
        customer_email: str | None = None,
        metadata: dict | None = None,
    ):
        """
        Create a card PaymentIntent.

        Args:
            amount: Amount in minor units (cents)
            currency: ISO currency, defaults to settings.CURRENCY
            customer_email: Sent as receipt_email when given
            metadata: Free-form string map (purchaseId is read back by the webhook)
        """
        params = {
            "amount": amount,
            "currency": currency or settings.CURRENCY,
            "automatic_payment_methods": {"enabled": True},
            "metadata": metadata or {},
        }
        if customer_email:
            params["receipt_email"] = customer_email
        return self.call("payment intent create", stripe.PaymentIntent.create, **params)

    def retrieve_payment_intent(self, payment_intent_id: str):
        return self.call("payment intent retrieve", stripe.PaymentIntent.retrieve, payment_intent_id)

    def confirm_payment_intent(self, payment_intent_id: str, payment_method: str | None = None):
        params = {"payment_method": payment_method} if payment_method else {}
        return self.call("payment intent confirm", stripe.PaymentIntent.confirm, payment_intent_id, **params)

    def cancel_payment_intent(self, payment_intent_id: str):
        return self.call("payment intent cancel", stripe.PaymentIntent.cancel, payment_intent_id)

    def create_refund(self, payment_intent_id: str, amount: int | None = None):
        """Full refund, or partial when `amount` (cents) is given."""
        params = {"payment_intent": payment_intent_id}
        if amount is not None:
            params["amount"] = amount
        return self.call("refund create", stripe.Refund.create, **params)

    # ── Webhooks ───────────────────────────────────────────

    def construct_event(self, payload: bytes, signature: str | None, secret: str | None = None) -> dict:
        """
        Verify a webhook delivery and return the event as a plain dict.

        `payload` must be the raw request body; re-serialized JSON will not
        match the signature.
        """
        secret = secret or self.webhook_secret
        if not signature:
            raise InvalidSignature("Missing stripe-signature header")
        try:
            stripe.Webhook.construct_event(payload, signature, secret)
        except stripe.SignatureVerificationError:
            logger.warning("Stripe webhook signature verification failed")
            raise InvalidSignature("Invalid signature")
        except ValueError:
            raise InvalidSignature("Invalid payload")
        return json.loads(payload)


def as_dict(obj):
    """Plain dict for a Stripe resource, so it can be returned as JSON."""
    return obj.to_dict() if hasattr(obj, "to_dict") else obj


@lru_cache(maxsize=1)
def get_stripe_gateway() -> StripeGateway:
    """Process-wide gateway (FastAPI dependency)."""
    return StripeGateway(
        secret_key=settings.STRIPE_SECRET_KEY,
        publishable_key=settings.STRIPE_PUBLISHABLE_KEY,
        webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
    )
