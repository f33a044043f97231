"""Entitlement period arithmetic for recurring billing cycles."""

import calendar
from datetime import datetime, timedelta

from models.enums import BillingCycle
from services.errors import InvalidBillingCycle


def add_months(dt: datetime, months: int) -> datetime:
    """
    Shift `dt` by whole calendar months, clamping the day to the target month.

    Jan 31 + 1 month → Feb 28/29; time of day is preserved.
    """
    month_index = dt.month - 1 + months
    year = dt.year + month_index // 12
    month = month_index % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def calculate_end_date(start: datetime, cycle) -> datetime:
    """
    End of one billing period starting at `start`.

    weekly → +7 days, monthly → +1 calendar month, yearly → +1 calendar year.
    One-time purchases have no period and raise InvalidBillingCycle.
    """
    cycle = BillingCycle(cycle)
    if cycle == BillingCycle.WEEKLY:
        return start + timedelta(days=7)
    if cycle == BillingCycle.MONTHLY:
        return add_months(start, 1)
    if cycle == BillingCycle.YEARLY:
        return add_months(start, 12)
    raise InvalidBillingCycle("One-time purchases have no billing period")


def extend_by_days(end: datetime, days: int) -> datetime:
    return end + timedelta(days=days)
