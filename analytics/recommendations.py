"""Unused, price-increase and trial detection plus savings recommendations."""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import IntEnum
from typing import Iterable, Sequence

from core.billing import annual_cost
from core.formatting import (
    describe_annual_conversion,
    describe_price_increase,
    describe_trial_ending,
    describe_unused,
)
from core.models import (
    AnnualSuggestion,
    BillingCycle,
    PriceChange,
    SavingsSuggestion,
    Subscription,
    SuggestionPriority,
    SuggestionType,
)

__all__ = [
    "UnusedThreshold",
    "detect_unused_subscriptions",
    "detect_price_increases",
    "detect_trials_ending_soon",
    "suggest_annual_conversions",
    "generate_savings_opportunities",
    "suggest_cancellations",
]


class UnusedThreshold(IntEnum):
    """Days without usage before a subscription counts as unused, per use case."""

    DETECTION = 30
    SAVINGS = 60
    CANCELLATION = 90


MIN_ANNUAL_CONVERSION_PRICE = 5.0
ANNUAL_PLAN_MONTHS = 10
MIN_ANNUAL_SAVINGS = 10.0
CANCELLATION_TRIAL_DAYS = 3

_UNUSED_HIGH_PRIORITY = 100.0
_ANNUAL_HIGH_PRIORITY = 50.0


def detect_unused_subscriptions(
    subscriptions: Iterable[Subscription],
    now: datetime,
    threshold_days: int = UnusedThreshold.DETECTION,
) -> list[Subscription]:
    """Active subscriptions not used within ``threshold_days``.

    A subscription that was never used qualifies once it is older than the
    threshold.
    """

    cutoff = now - timedelta(days=int(threshold_days))
    unused: list[Subscription] = []
    for sub in subscriptions:
        if not sub.is_active:
            continue
        if sub.last_used_date is not None:
            if sub.last_used_date < cutoff:
                unused.append(sub)
        elif sub.usage_count == 0 and sub.created_date < cutoff:
            unused.append(sub)
    return unused


def detect_price_increases(
    subscriptions: Iterable[Subscription],
    price_changes: Iterable[PriceChange],
    now: datetime,
    within_days: int = 30,
) -> list[Subscription]:
    """Active subscriptions whose latest recorded price change is recent."""

    latest: dict[str, datetime] = {}
    for change in price_changes:
        previous = latest.get(change.subscription_id)
        if previous is None or change.change_date > previous:
            latest[change.subscription_id] = change.change_date

    cutoff = now - timedelta(days=within_days)
    return [
        sub
        for sub in subscriptions
        if sub.is_active and sub.id in latest and latest[sub.id] >= cutoff
    ]


def detect_trials_ending_soon(
    subscriptions: Iterable[Subscription],
    now: datetime,
    within_days: int = 7,
) -> list[Subscription]:
    horizon = now + timedelta(days=within_days)
    return [
        sub
        for sub in subscriptions
        if sub.is_active
        and sub.is_free_trial
        and sub.trial_end_date is not None
        and now <= sub.trial_end_date <= horizon
    ]


def suggest_annual_conversions(subscriptions: Iterable[Subscription]) -> list[AnnualSuggestion]:
    """Monthly plans that would save money on a 10-months-for-12 annual plan."""

    suggestions = [
        AnnualSuggestion(
            subscription=sub,
            current_monthly_cost=sub.price,
            annual_cost=sub.price * ANNUAL_PLAN_MONTHS,
        )
        for sub in subscriptions
        if sub.is_active
        and sub.billing_cycle is BillingCycle.MONTHLY
        and sub.price >= MIN_ANNUAL_CONVERSION_PRICE
    ]
    suggestions = [row for row in suggestions if row.annual_savings > MIN_ANNUAL_SAVINGS]
    suggestions.sort(key=lambda row: row.annual_savings, reverse=True)
    return suggestions


def generate_savings_opportunities(
    subscriptions: Sequence[Subscription],
    price_changes: Iterable[PriceChange],
    now: datetime,
    *,
    trial_days: int = 7,
    price_increase_days: int = 30,
) -> list[SavingsSuggestion]:
    """Aggregate every savings signal, largest potential saving first."""

    suggestions: list[SavingsSuggestion] = []

    for sub in detect_unused_subscriptions(subscriptions, now, UnusedThreshold.SAVINGS):
        annual_savings = annual_cost(sub)
        suggestions.append(
            SavingsSuggestion(
                type=SuggestionType.UNUSED,
                subscription=sub,
                potential_savings=annual_savings,
                description=describe_unused(int(UnusedThreshold.SAVINGS), annual_savings),
                priority=SuggestionPriority.HIGH if annual_savings > _UNUSED_HIGH_PRIORITY else SuggestionPriority.MEDIUM,
            )
        )

    for opportunity in suggest_annual_conversions(subscriptions):
        suggestions.append(
            SavingsSuggestion(
                type=SuggestionType.ANNUAL_CONVERSION,
                subscription=opportunity.subscription,
                potential_savings=opportunity.annual_savings,
                description=describe_annual_conversion(opportunity.annual_savings, opportunity.monthly_savings),
                priority=(
                    SuggestionPriority.HIGH
                    if opportunity.annual_savings > _ANNUAL_HIGH_PRIORITY
                    else SuggestionPriority.MEDIUM
                ),
            )
        )

    for sub in detect_price_increases(subscriptions, price_changes, now, price_increase_days):
        suggestions.append(
            SavingsSuggestion(
                type=SuggestionType.PRICE_INCREASE,
                subscription=sub,
                potential_savings=0.0,
                description=describe_price_increase(),
                priority=SuggestionPriority.MEDIUM,
            )
        )

    for sub in detect_trials_ending_soon(subscriptions, now, trial_days):
        cost = sub.price_after_trial if sub.price_after_trial is not None else sub.price
        suggestions.append(
            SavingsSuggestion(
                type=SuggestionType.TRIAL_ENDING,
                subscription=sub,
                potential_savings=cost * 12,
                description=describe_trial_ending(sub.trial_end_date),
                priority=SuggestionPriority.URGENT,
            )
        )

    suggestions.sort(key=lambda row: row.potential_savings, reverse=True)
    return suggestions


def suggest_cancellations(subscriptions: Sequence[Subscription], now: datetime) -> list[Subscription]:
    """Long-unused subscriptions plus trials about to bill, in store order."""

    candidates = {sub.id for sub in detect_unused_subscriptions(subscriptions, now, UnusedThreshold.CANCELLATION)}
    candidates.update(sub.id for sub in detect_trials_ending_soon(subscriptions, now, CANCELLATION_TRIAL_DAYS))
    return [sub for sub in subscriptions if sub.id in candidates]
