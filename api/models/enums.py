"""Closed enumerations shared by the ORM models and API schemas."""

from enum import Enum

from sqlalchemy import Enum as SAEnum


class BillingCycle(str, Enum):
    ONE_TIME = "one_time"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class CheckoutSessionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    EXPIRED = "expired"


class PurchaseStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    REFUNDED = "refunded"


class PaymentMethod(str, Enum):
    STRIPE_CARD = "stripe_card"
    STRIPE_POPUP = "stripe_popup"
    PAYPAL = "paypal"
    STRIPE = "stripe"  # legacy


class ShopStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    REJECTED = "rejected"


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"
    PAST_DUE = "past_due"
    UNPAID = "unpaid"
    TRIALING = "trialing"


def db_enum(enum_cls: type[Enum], name: str) -> SAEnum:
    """Column type storing the lower-case enum values rather than member names."""
    return SAEnum(
        enum_cls,
        name=name,
        values_callable=lambda e: [m.value for m in e],
        validate_strings=True,
    )
