"""Pydantic schemas for API request/response models."""

from __future__ import annotations
import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import AliasChoices, BaseModel, EmailStr, Field, model_validator

from models.enums import (
    BillingCycle, CheckoutSessionStatus, PaymentMethod, PurchaseStatus,
    ShopStatus, SubscriptionStatus,
)

Money = Decimal


# ── Shop Schemas ───────────────────────────────────────────

class ShopCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    slug: str = Field(..., min_length=1, max_length=255, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
    owner_id: str
    email: EmailStr
    description: str | None = None
    logo: str | None = None
    phone: str | None = None
    website: str | None = None
    platform_fee_percent: Decimal = Field(Decimal("15.00"), ge=0, le=100)


class ShopUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    slug: str | None = Field(None, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
    email: EmailStr | None = None
    description: str | None = None
    logo: str | None = None
    phone: str | None = None
    website: str | None = None
    platform_fee_percent: Decimal | None = Field(None, ge=0, le=100)


class ShopResponse(BaseModel):
    id: uuid.UUID
    name: str
    slug: str
    owner_id: str
    email: str
    description: str | None
    logo: str | None
    phone: str | None
    website: str | None
    stripe_account_id: str | None
    onboarding_complete: bool
    charges_enabled: bool
    payouts_enabled: bool
    platform_fee_percent: Decimal
    status: ShopStatus
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class DashboardRange(BaseModel):
    start_date: datetime | None = None
    end_date: datetime | None = None


# ── Package Schemas ────────────────────────────────────────

class PackageCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    base_price: Money | None = Field(None, ge=0)
    weekly_price: Money | None = Field(None, ge=0)
    monthly_price: Money | None = Field(None, ge=0)
    yearly_price: Money | None = Field(None, ge=0)
    features: list[str] = Field(default_factory=list, max_length=20)
    image_url: str | None = Field(None, max_length=500)
    images: list[str] = Field(default_factory=list)
    category: str | None = None
    is_subscription: bool = False
    trial_days: int | None = Field(None, ge=0)
    is_active: bool = True
    shop_id: uuid.UUID | None = None

    @model_validator(mode="after")
    def check_some_price(self):
        if all(
            p is None
            for p in (self.base_price, self.weekly_price, self.monthly_price, self.yearly_price)
        ):
            raise ValueError("At least one price must be set")
        return self


class PackageUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    base_price: Money | None = Field(None, ge=0)
    weekly_price: Money | None = Field(None, ge=0)
    monthly_price: Money | None = Field(None, ge=0)
    yearly_price: Money | None = Field(None, ge=0)
    features: list[str] | None = Field(None, max_length=20)
    image_url: str | None = Field(None, max_length=500)
    images: list[str] | None = None
    category: str | None = None
    is_subscription: bool | None = None
    trial_days: int | None = Field(None, ge=0)
    is_active: bool | None = None


class PackageResponse(BaseModel):
    id: uuid.UUID
    shop_id: uuid.UUID | None
    name: str
    slug: str | None
    description: str | None
    base_price: Decimal | None
    weekly_price: Decimal | None
    monthly_price: Decimal | None
    yearly_price: Decimal | None
    features: list[str]
    image_url: str | None
    images: list[str]
    category: str | None
    is_subscription: bool
    trial_days: int | None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class PackagePrice(BaseModel):
    price: Decimal
    currency: str


# ── Checkout Schemas ───────────────────────────────────────

class CheckoutSessionCreate(BaseModel):
    package_id: uuid.UUID
    shop_id: uuid.UUID | None = None
    email: EmailStr | None = None
    name: str | None = Field(None, max_length=255)
    billing_cycle: BillingCycle
    custom_amount: Money | None = Field(None, ge=0)
    metadata: dict = Field(default_factory=dict)


class CheckoutSessionCreated(BaseModel):
    session_id: str
    checkout_url: str


class CheckoutContact(BaseModel):
    email: EmailStr
    name: str | None = None


class CheckoutUrl(BaseModel):
    url: str


class CheckoutSessionResponse(BaseModel):
    session_token: str
    package_id: uuid.UUID
    shop_id: uuid.UUID
    email: str | None
    name: str | None
    billing_cycle: BillingCycle
    price: Decimal
    platform_fee: Decimal
    custom_amount: Decimal | None
    metadata: dict = Field(default_factory=dict, validation_alias=AliasChoices("metadata_", "metadata"))
    status: CheckoutSessionStatus
    expires_at: datetime
    created_at: datetime
    package: PackageResponse | None = None

    class Config:
        from_attributes = True


# ── Purchase Schemas ───────────────────────────────────────

class PurchaseCreate(BaseModel):
    package_id: uuid.UUID
    user_id: str = Field(..., min_length=1)
    billing_cycle: BillingCycle
    payment_method: PaymentMethod | None = None
    customer_email: EmailStr | None = None
    customer_name: str | None = None
    is_recurring: bool = False
    metadata: dict = Field(default_factory=dict)


class PurchaseComplete(BaseModel):
    payment_id: str = Field(..., min_length=1)


class PurchaseExtend(BaseModel):
    days: int = Field(..., gt=0)


class PurchaseResponse(BaseModel):
    id: uuid.UUID
    package_id: uuid.UUID
    user_id: str
    billing_cycle: BillingCycle
    price: Decimal
    status: PurchaseStatus
    payment_method: PaymentMethod | None
    payment_id: str | None
    customer_email: str | None
    customer_name: str | None
    start_date: datetime
    end_date: datetime
    is_recurring: bool
    metadata: dict = Field(default_factory=dict, validation_alias=AliasChoices("metadata_", "metadata"))
    created_at: datetime

    class Config:
        from_attributes = True


class PurchaseStats(BaseModel):
    total: int
    active: int
    expired: int
    total_spent: Decimal


# ── Subscription Schemas ───────────────────────────────────

class SubscriptionCreate(BaseModel):
    package_id: uuid.UUID
    shop_id: uuid.UUID
    user_id: str
    billing_cycle: BillingCycle
    price: Money = Field(..., ge=0)
    current_period_start: datetime
    current_period_end: datetime
    purchase_id: uuid.UUID | None = None
    stripe_subscription_id: str | None = None
    stripe_customer_id: str | None = None
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    trial_start: datetime | None = None
    trial_end: datetime | None = None


class SubscriptionCancel(BaseModel):
    at_period_end: bool = True


class SubscriptionChangePlan(BaseModel):
    billing_cycle: BillingCycle


class SubscriptionResponse(BaseModel):
    id: uuid.UUID
    purchase_id: uuid.UUID | None
    package_id: uuid.UUID
    shop_id: uuid.UUID
    user_id: str
    stripe_subscription_id: str | None
    billing_cycle: BillingCycle
    price: Decimal
    platform_fee: Decimal
    shop_revenue: Decimal
    status: SubscriptionStatus
    current_period_start: datetime
    current_period_end: datetime
    cancel_at_period_end: bool
    cancelled_at: datetime | None
    trial_start: datetime | None
    trial_end: datetime | None
    created_at: datetime

    class Config:
        from_attributes = True


# ── Payment Schemas ────────────────────────────────────────

class PaymentIntentCreate(BaseModel):
    amount: Money = Field(..., gt=0)
    currency: str | None = None
    customer_email: EmailStr | None = None
    purchase_id: uuid.UUID | None = None
    metadata: dict[str, str] = Field(default_factory=dict)


class PaymentIntentConfirm(BaseModel):
    payment_method: str | None = None


class RefundCreate(BaseModel):
    amount: Money | None = Field(None, gt=0)


class PayPalOrderCreate(BaseModel):
    purchase_id: uuid.UUID
    return_url: str | None = None
    cancel_url: str | None = None


class PayPalPayoutCreate(BaseModel):
    recipient_email: EmailStr
    amount: Money = Field(..., gt=0)
    currency: str = "USD"
