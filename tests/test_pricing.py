"""Tests for the pricing resolver and the fee ledger."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "api"))

from datetime import datetime
from decimal import Decimal
from types import SimpleNamespace

import pytest

from models.enums import BillingCycle
from services.errors import InvalidBillingCycle
from services.fees import monthly_revenue, split_fee, summarize_sales
from services.pricing import require_price, resolve_price, stripe_interval, to_minor_units


def _package(**prices):
    fields = {"base_price": None, "weekly_price": None, "monthly_price": None, "yearly_price": None}
    fields.update(prices)
    return SimpleNamespace(**fields)


def test_resolve_price_matches_cycle_field():
    """Each cycle reads its own field; one_time reads base_price."""
    pkg = _package(
        base_price=Decimal("49.00"), weekly_price=Decimal("5.00"),
        monthly_price=Decimal("100.00"), yearly_price=Decimal("1000.00"),
    )
    assert resolve_price(pkg, BillingCycle.ONE_TIME) == Decimal("49.00")
    assert resolve_price(pkg, BillingCycle.WEEKLY) == Decimal("5.00")
    assert resolve_price(pkg, BillingCycle.MONTHLY) == Decimal("100.00")
    assert resolve_price(pkg, "yearly") == Decimal("1000.00")


def test_unset_cycle_is_not_substituted():
    """A missing yearly price must not fall back to monthly or base."""
    pkg = _package(base_price=Decimal("49.00"), monthly_price=Decimal("100.00"))
    assert resolve_price(pkg, BillingCycle.YEARLY) is None
    with pytest.raises(InvalidBillingCycle):
        require_price(pkg, BillingCycle.YEARLY)


def test_unknown_cycle_falls_back_to_base_price(caplog):
    pkg = _package(base_price=Decimal("49.00"), monthly_price=Decimal("100.00"))
    assert resolve_price(pkg, "fortnightly") == Decimal("49.00")
    assert "fortnightly" in caplog.text


def test_to_minor_units_rounds_half_up():
    assert to_minor_units(Decimal("100.00")) == 10000
    assert to_minor_units(Decimal("0.005")) == 1
    assert to_minor_units(Decimal("19.994")) == 1999


def test_stripe_interval():
    assert stripe_interval(BillingCycle.WEEKLY) == "week"
    assert stripe_interval(BillingCycle.MONTHLY) == "month"
    assert stripe_interval(BillingCycle.YEARLY) == "year"
    with pytest.raises(InvalidBillingCycle):
        stripe_interval(BillingCycle.ONE_TIME)


# ── Fee split ──────────────────────────────────────────────

def test_fifteen_percent_of_hundred():
    split = split_fee(Decimal("100.00"), Decimal("15"))
    assert split.platform_fee == Decimal("15.00")
    assert split.shop_revenue == Decimal("85.00")


def test_fee_split_always_sums_to_price():
    """platform_fee + shop_revenue == price for every whole percentage."""
    for price in (Decimal("0.01"), Decimal("9.99"), Decimal("33.33"), Decimal("1234.57")):
        for pct in range(0, 101):
            split = split_fee(price, pct)
            assert split.platform_fee + split.shop_revenue == price
            assert split.platform_fee >= 0
            assert split.shop_revenue >= 0


def test_fee_rounds_half_up_to_cent():
    # 10% of 0.05 = 0.005 → 0.01
    assert split_fee(Decimal("0.05"), 10).platform_fee == Decimal("0.01")


def test_fee_percent_out_of_range():
    with pytest.raises(ValueError):
        split_fee(Decimal("10.00"), 101)
    with pytest.raises(ValueError):
        split_fee(Decimal("10.00"), -1)


def test_summarize_sales():
    sessions = [
        SimpleNamespace(price=Decimal("100.00"), platform_fee=Decimal("15.00")),
        SimpleNamespace(price=Decimal("20.00"), platform_fee=Decimal("3.00")),
    ]
    summary = summarize_sales(sessions)
    assert summary.total_revenue == Decimal("120.00")
    assert summary.platform_fees == Decimal("18.00")
    assert summary.net_revenue == Decimal("102.00")
    assert summary.count == 2


def test_monthly_revenue_includes_empty_months():
    sessions = [
        SimpleNamespace(price=Decimal("10.00"), created_at=datetime(2024, 1, 15)),
        SimpleNamespace(price=Decimal("5.00"), created_at=datetime(2024, 3, 2)),
        SimpleNamespace(price=Decimal("7.00"), created_at=datetime(2024, 3, 30)),
    ]
    buckets = monthly_revenue(sessions, datetime(2024, 1, 10), datetime(2024, 3, 31))
    assert [b["month"] for b in buckets] == ["Jan 2024", "Feb 2024", "Mar 2024"]
    assert [b["revenue"] for b in buckets] == [Decimal("10.00"), Decimal("0.00"), Decimal("12.00")]


def test_unknown_cycle_without_base_price_is_rejected():
    with pytest.raises(InvalidBillingCycle) as exc:
        require_price(_package(), "fortnightly")
    assert "fortnightly" in exc.value.message
