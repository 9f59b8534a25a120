"""Billing-cycle arithmetic shared by the renewal service and analytics."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

import pandas as pd

from core.models import BillingCycle, Subscription, monthly_equivalent

__all__ = [
    "monthly_equivalent",
    "annual_cost",
    "advance_billing_date",
    "is_overdue",
    "is_due_soon",
    "is_trial_expired",
    "days_until_trial_end",
    "renews_within",
]

logger = logging.getLogger(__name__)

_CYCLE_OFFSETS: dict[BillingCycle, pd.DateOffset] = {
    BillingCycle.DAILY: pd.DateOffset(days=1),
    BillingCycle.WEEKLY: pd.DateOffset(weeks=1),
    BillingCycle.BIWEEKLY: pd.DateOffset(weeks=2),
    BillingCycle.MONTHLY: pd.DateOffset(months=1),
    BillingCycle.QUARTERLY: pd.DateOffset(months=3),
    BillingCycle.SEMIANNUAL: pd.DateOffset(months=6),
    BillingCycle.ANNUAL: pd.DateOffset(years=1),
}


def annual_cost(subscription: Subscription) -> float:
    return subscription.monthly_equivalent * 12


def advance_billing_date(current: datetime, cycle: BillingCycle) -> Optional[datetime]:
    """Return ``current`` moved forward by exactly one billing cycle.

    Lifetime subscriptions never renew, so ``None`` is returned for them.
    Month arithmetic clamps to the last day of shorter months. If the
    calendar cannot represent the result the current date is returned
    unchanged and the failure is logged.
    """

    offset = _CYCLE_OFFSETS.get(cycle)
    if offset is None:
        return None
    try:
        return (pd.Timestamp(current) + offset).to_pydatetime()
    except (ValueError, OverflowError):
        logger.warning("Could not advance %s by one %s cycle", current, cycle.value, exc_info=True)
        return current


def is_overdue(subscription: Subscription, now: datetime) -> bool:
    if not subscription.is_active or not subscription.billing_cycle.renews:
        return False
    return subscription.next_billing_date < now


def renews_within(subscription: Subscription, now: datetime, days: int) -> bool:
    """``True`` when an active renewing subscription bills in ``[now, now + days]``."""

    if not subscription.is_active or not subscription.billing_cycle.renews:
        return False
    return now <= subscription.next_billing_date <= now + timedelta(days=days)


def is_due_soon(subscription: Subscription, now: datetime, days: int = 3) -> bool:
    return renews_within(subscription, now, days)


def is_trial_expired(subscription: Subscription, now: datetime) -> bool:
    if subscription.trial_end_date is None:
        return False
    return subscription.trial_end_date < now


def days_until_trial_end(subscription: Subscription, now: datetime) -> Optional[int]:
    if subscription.trial_end_date is None:
        return None
    return (subscription.trial_end_date - now).days
