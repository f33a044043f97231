"""Tests for subscriptions: lifecycle, plan changes and the Stripe mirror."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "api"))

from datetime import datetime
from decimal import Decimal

import pytest

from models.enums import BillingCycle, SubscriptionStatus
from schemas import SubscriptionCreate
from services import subscriptions
from services.errors import InvalidBillingCycle, InvalidState

START = datetime(2024, 5, 1)
END = datetime(2024, 6, 1)


async def _subscription(db, shop, package, **overrides):
    fields = {
        "package_id": package.id,
        "shop_id": shop.id,
        "user_id": "user-1",
        "billing_cycle": BillingCycle.MONTHLY,
        "price": Decimal("100.00"),
        "current_period_start": START,
        "current_period_end": END,
        "stripe_subscription_id": "sub_123",
    }
    fields.update(overrides)
    return await subscriptions.create_subscription(db, SubscriptionCreate(**fields))


@pytest.mark.asyncio
async def test_create_splits_fee(db, make_shop, make_package):
    shop = await make_shop(platform_fee_percent=Decimal("12.50"))
    package = await make_package(shop)
    sub = await _subscription(db, shop, package, price=Decimal("9.99"))

    assert sub.platform_fee == Decimal("1.25")
    assert sub.shop_revenue == Decimal("8.74")
    assert sub.platform_fee + sub.shop_revenue == sub.price


@pytest.mark.asyncio
async def test_cancel_at_period_end_then_resume(db, make_shop, make_package):
    shop = await make_shop()
    package = await make_package(shop)
    sub = await _subscription(db, shop, package)

    flagged = await subscriptions.cancel_subscription(db, sub.id)
    assert flagged.status == SubscriptionStatus.ACTIVE
    assert flagged.cancel_at_period_end is True

    resumed = await subscriptions.resume_subscription(db, sub.id)
    assert resumed.cancel_at_period_end is False


@pytest.mark.asyncio
async def test_cancel_immediately(db, make_shop, make_package):
    shop = await make_shop()
    package = await make_package(shop)
    sub = await _subscription(db, shop, package)

    cancelled = await subscriptions.cancel_subscription(db, sub.id, at_period_end=False, now=START)
    assert cancelled.status == SubscriptionStatus.CANCELLED
    assert cancelled.cancelled_at == START


@pytest.mark.asyncio
async def test_change_billing_cycle_reprices(db, make_shop, make_package):
    shop = await make_shop()
    package = await make_package(shop)
    sub = await _subscription(db, shop, package)

    yearly = await subscriptions.change_billing_cycle(db, sub.id, "yearly")
    assert yearly.billing_cycle == BillingCycle.YEARLY
    assert yearly.price == Decimal("1000.00")
    assert yearly.platform_fee == Decimal("150.00")
    assert yearly.shop_revenue == Decimal("850.00")

    with pytest.raises(InvalidBillingCycle):
        await subscriptions.change_billing_cycle(db, sub.id, BillingCycle.ONE_TIME)

    await subscriptions.cancel_subscription(db, sub.id, at_period_end=False)
    with pytest.raises(InvalidState):
        await subscriptions.change_billing_cycle(db, sub.id, BillingCycle.WEEKLY)


@pytest.mark.asyncio
async def test_sync_from_stripe_item_periods(db, make_shop, make_package):
    shop = await make_shop()
    package = await make_package(shop)
    sub = await _subscription(db, shop, package)

    stripe_sub = {
        "id": "sub_123",
        "status": "past_due",
        "cancel_at_period_end": True,
        "items": {"data": [{"current_period_start": 1719792000, "current_period_end": 1722470400}]},
    }
    synced = await subscriptions.sync_from_stripe(db, stripe_sub)

    assert synced.id == sub.id
    assert synced.status == SubscriptionStatus.PAST_DUE
    assert synced.cancel_at_period_end is True
    assert synced.current_period_start == datetime(2024, 7, 1)
    assert synced.current_period_end == datetime(2024, 8, 1)


@pytest.mark.asyncio
async def test_sync_deleted_marks_cancelled(db, make_shop, make_package):
    shop = await make_shop()
    package = await make_package(shop)
    await _subscription(db, shop, package)

    synced = await subscriptions.sync_from_stripe(
        db, {"id": "sub_123", "status": "canceled", "canceled_at": 1719792000}, deleted=True,
    )
    assert synced.status == SubscriptionStatus.CANCELLED
    assert synced.cancelled_at == datetime(2024, 7, 1)


@pytest.mark.asyncio
async def test_sync_unknown_subscription_is_ignored(db):
    assert await subscriptions.sync_from_stripe(db, {"id": "sub_unknown", "status": "active"}) is None
    assert await subscriptions.mark_past_due_by_stripe_id(db, "sub_unknown") is None


@pytest.mark.asyncio
async def test_expiring_lists_flagged_and_trials(db, make_shop, make_package):
    shop = await make_shop()
    package = await make_package(shop)
    flagged = await _subscription(db, shop, package, stripe_subscription_id="sub_a")
    await subscriptions.cancel_subscription(db, flagged.id)
    trial = await _subscription(
        db, shop, package, stripe_subscription_id="sub_b",
        status=SubscriptionStatus.TRIALING, trial_start=START, trial_end=datetime(2024, 5, 28),
    )
    await _subscription(db, shop, package, stripe_subscription_id="sub_c")

    expiring = await subscriptions.list_expiring_subscriptions(db, days_ahead=7, now=datetime(2024, 5, 27))
    assert {s.id for s in expiring} == {flagged.id, trial.id}
