"""
Service-layer errors.

Services raise these where the problem is detected; main.py renders them as
`{"detail": message}` with the class's HTTP status code.
"""


class StorefrontError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(StorefrontError):
    status_code = 404


class InvalidState(StorefrontError):
    """Transition not allowed from the entity's current status."""


class NotEligible(StorefrontError):
    """Shop or package cannot take payments right now."""


class InvalidBillingCycle(StorefrontError):
    """Package has no price for the cycle, or the cycle has no period."""


class InvalidSignature(StorefrontError):
    """Webhook payload failed provider signature verification."""


class PaymentProviderError(StorefrontError):
    """Stripe or PayPal rejected the call; message is the provider's."""


class Conflict(StorefrontError):
    status_code = 409
