"""Synthetic subscription ledger generator for development and testing.

Produces a seeded set of subscriptions (mixed billing cycles, free trials,
cancelled and long-unused services), their price-change history, and a
ledger of one-off and recurring transactions spanning a number of months.
"""

from __future__ import annotations

import calendar
import itertools
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, TypeVar

import numpy as np
import pandas as pd

from core.billing import advance_billing_date
from core.models import (
    BillingCycle,
    PriceChange,
    Subscription,
    SubscriptionCategory,
    Transaction,
    TransactionCategory,
)
from core.store import InMemoryStore

T = TypeVar("T")

__all__ = [
    "ServiceProfile",
    "SyntheticDataset",
    "generate_dataset",
    "generate_subscriptions",
    "generate_transactions",
    "generate_price_changes",
    "write_dataset_csv",
]


@dataclass(frozen=True)
class ServiceProfile:
    """Metadata describing a subscription service used in synthetic data."""

    name: str
    category: SubscriptionCategory
    billing_cycle: BillingCycle
    price: float


SERVICES: Sequence[ServiceProfile] = (
    ServiceProfile("Netflix", SubscriptionCategory.ENTERTAINMENT, BillingCycle.MONTHLY, 15.49),
    ServiceProfile("Spotify", SubscriptionCategory.MUSIC, BillingCycle.MONTHLY, 10.99),
    ServiceProfile("iCloud+", SubscriptionCategory.CLOUD, BillingCycle.MONTHLY, 2.99),
    ServiceProfile("Notion", SubscriptionCategory.PRODUCTIVITY, BillingCycle.ANNUAL, 96.0),
    ServiceProfile("GitHub Copilot", SubscriptionCategory.DEVELOPMENT, BillingCycle.MONTHLY, 10.0),
    ServiceProfile("Figma", SubscriptionCategory.DESIGN, BillingCycle.ANNUAL, 144.0),
    ServiceProfile("PureGym", SubscriptionCategory.FITNESS, BillingCycle.MONTHLY, 24.99),
    ServiceProfile("Headspace", SubscriptionCategory.HEALTH, BillingCycle.ANNUAL, 69.99),
    ServiceProfile("Duolingo", SubscriptionCategory.EDUCATION, BillingCycle.QUARTERLY, 29.99),
    ServiceProfile("The Guardian", SubscriptionCategory.NEWS, BillingCycle.WEEKLY, 2.5),
    ServiceProfile("Xbox Game Pass", SubscriptionCategory.GAMING, BillingCycle.MONTHLY, 12.99),
    ServiceProfile("YNAB", SubscriptionCategory.FINANCE, BillingCycle.SEMIANNUAL, 49.0),
    ServiceProfile("1Password", SubscriptionCategory.UTILITIES, BillingCycle.BIWEEKLY, 1.5),
    ServiceProfile("Affinity Suite", SubscriptionCategory.DESIGN, BillingCycle.LIFETIME, 164.99),
)

SPENDING_PROFILES: Sequence[Tuple[TransactionCategory, float, float]] = (
    (TransactionCategory.GROCERIES, 62.0, 18.0),
    (TransactionCategory.DINING, 28.0, 9.0),
    (TransactionCategory.TRANSPORTATION, 12.0, 6.0),
    (TransactionCategory.SHOPPING, 45.0, 20.0),
    (TransactionCategory.ENTERTAINMENT, 35.0, 15.0),
)


@dataclass
class SyntheticDataset:
    subscriptions: List[Subscription] = field(default_factory=list)
    transactions: List[Transaction] = field(default_factory=list)
    price_changes: List[PriceChange] = field(default_factory=list)

    def to_store(self) -> InMemoryStore:
        return InMemoryStore(self.subscriptions, self.transactions, self.price_changes)


def generate_subscriptions(
    now: datetime,
    count: Optional[int] = None,
    *,
    trial_fraction: float = 0.2,
    cancelled_fraction: float = 0.1,
    unused_fraction: float = 0.2,
    seed: Optional[int] = None,
) -> List[Subscription]:
    """Generate ``count`` subscriptions drawn from :data:`SERVICES`.

    Creation dates fall within the past year and every next billing date is
    at or after ``now``. A share of the records are free trials ending within
    two weeks, cancelled, or without usage for over three months.
    """

    rng = np.random.default_rng(seed)
    total = len(SERVICES) if count is None else count
    if total <= 0:
        raise ValueError("count must be a positive integer")

    subscriptions: List[Subscription] = []
    for index in range(total):
        profile = SERVICES[index % len(SERVICES)]
        created = now - timedelta(days=int(rng.integers(30, 365)))
        drift = 1 + rng.normal(0, 0.03)
        price = round(max(0.99, profile.price * drift), 2)
        sub = Subscription(
            id=f"sub_{index + 1:04d}",
            name=profile.name if index < len(SERVICES) else f"{profile.name} {index // len(SERVICES) + 1}",
            price=price,
            billing_cycle=profile.billing_cycle,
            next_billing_date=_next_billing_after(created, profile.billing_cycle, now),
            category=profile.category,
            usage_count=int(rng.integers(1, 60)),
            last_used_date=now - timedelta(days=int(rng.integers(0, 20))),
            created_date=created,
        )

        roll = rng.random()
        if profile.billing_cycle.renews and roll < trial_fraction:
            trial_start = now - timedelta(days=int(rng.integers(1, 14)))
            sub.is_free_trial = True
            sub.trial_start_date = trial_start
            sub.trial_end_date = now + timedelta(days=int(rng.integers(1, 15)))
            sub.price_after_trial = price
            sub.will_convert_to_paid = bool(rng.random() < 0.7)
            sub.next_billing_date = sub.trial_end_date
            sub.created_date = trial_start
        elif roll < trial_fraction + cancelled_fraction:
            sub.is_active = False
            sub.cancellation_date = now - timedelta(days=int(rng.integers(1, 90)))
        elif roll < trial_fraction + cancelled_fraction + unused_fraction:
            sub.last_used_date = now - timedelta(days=int(rng.integers(95, 200)))
            sub.usage_count = int(rng.integers(1, 5))

        subscriptions.append(sub)
    return subscriptions


def generate_price_changes(
    subscriptions: Sequence[Subscription],
    now: datetime,
    *,
    probability: float = 0.3,
    seed: Optional[int] = None,
) -> List[PriceChange]:
    """Give a share of paid subscriptions one historical price rise.

    Each change ends at the subscription's current price, so the history
    reconstructs to the stored record.
    """

    rng = np.random.default_rng(seed)
    changes: List[PriceChange] = []
    for sub in subscriptions:
        if sub.is_free_trial or rng.random() >= probability:
            continue
        age_days = max(1, (now - sub.created_date).days)
        change_date = now - timedelta(days=int(rng.integers(0, age_days)))
        old_price = round(sub.price / (1 + rng.uniform(0.05, 0.25)), 2)
        changes.append(
            PriceChange(
                subscription_id=sub.id,
                old_price=old_price,
                new_price=sub.price,
                change_date=change_date,
                detected_automatically=bool(rng.random() < 0.5),
            )
        )
    changes.sort(key=lambda change: change.change_date)
    return changes


def generate_transactions(
    now: datetime,
    months: int = 6,
    *,
    subscriptions: Sequence[Subscription] = (),
    seed: Optional[int] = None,
) -> List[Transaction]:
    """Generate a ledger of negative spend amounts over the last ``months``.

    Day-to-day spending comes from :data:`SPENDING_PROFILES`. When
    ``subscriptions`` are given, each billing charge of an active paid
    subscription is added as a recurring ``bills`` transaction.
    """

    if months <= 0:
        raise ValueError("months must be a positive integer")

    rng = np.random.default_rng(seed)
    period_start = _add_months(now, -months)
    counter = itertools.count(1)
    transactions: List[Transaction] = []

    def append(
        when: datetime,
        amount: float,
        category: TransactionCategory,
        *,
        recurring: bool = False,
        tags: Tuple[str, ...] = (),
    ) -> None:
        if when < period_start or when > now:
            return
        transactions.append(
            Transaction(
                id=f"txn_{next(counter):06d}",
                amount=-max(0.01, round(abs(amount), 2)),
                date=when,
                category=category,
                is_recurring=recurring,
                tags=tags,
            )
        )

    for offset in range(months + 1):
        anchor = _add_months(period_start, offset)
        month_days = _month_date_range(anchor.year, anchor.month)
        for category, mean, spread in SPENDING_PROFILES:
            for _ in range(int(rng.integers(3, 9))):
                day = _rng_choice(month_days, rng)
                append(day, rng.normal(mean, spread), category)

    for sub in subscriptions:
        if not sub.is_active or sub.is_free_trial or not sub.billing_cycle.renews:
            continue
        charge_date = max(sub.created_date, period_start)
        while charge_date <= now:
            append(charge_date, sub.price, TransactionCategory.BILLS, recurring=True, tags=(sub.name,))
            following = advance_billing_date(charge_date, sub.billing_cycle)
            if following is None or following <= charge_date:
                break
            charge_date = following

    transactions.sort(key=lambda txn: txn.date)
    return transactions


def generate_dataset(
    now: datetime,
    months: int = 6,
    *,
    count: Optional[int] = None,
    seed: Optional[int] = None,
) -> SyntheticDataset:
    """Generate a coherent set of subscriptions, price history and transactions."""

    rng = np.random.default_rng(seed)
    sub_seed, price_seed, txn_seed = (int(value) for value in rng.integers(0, 2**31 - 1, size=3))
    subscriptions = generate_subscriptions(now, count, seed=sub_seed)
    return SyntheticDataset(
        subscriptions=subscriptions,
        transactions=generate_transactions(now, months, subscriptions=subscriptions, seed=txn_seed),
        price_changes=generate_price_changes(subscriptions, now, seed=price_seed),
    )


def write_dataset_csv(
    directory: str | Path,
    now: datetime,
    *,
    seed: Optional[int] = None,
    **kwargs,
) -> SyntheticDataset:
    """Generate synthetic data and persist it as three CSV files.

    Writes ``subscriptions.csv``, ``transactions.csv`` and
    ``price_changes.csv`` in the column layout :mod:`core.data_loader`
    reads. Additional keyword arguments are forwarded to
    :func:`generate_dataset`.
    """

    target = Path(directory)
    target.mkdir(parents=True, exist_ok=True)
    dataset = generate_dataset(now, seed=seed, **kwargs)

    subs = pd.DataFrame.from_records(
        [
            {
                "id": sub.id,
                "name": sub.name,
                "price": sub.price,
                "billing_cycle": sub.billing_cycle.value,
                "next_billing_date": sub.next_billing_date.isoformat(),
                "category": sub.category.value,
                "is_active": sub.is_active,
                "cancellation_date": sub.cancellation_date.isoformat() if sub.cancellation_date else None,
                "is_free_trial": sub.is_free_trial,
                "trial_start_date": sub.trial_start_date.isoformat() if sub.trial_start_date else None,
                "trial_end_date": sub.trial_end_date.isoformat() if sub.trial_end_date else None,
                "price_after_trial": sub.price_after_trial,
                "will_convert_to_paid": sub.will_convert_to_paid,
                "usage_count": sub.usage_count,
                "last_used_date": sub.last_used_date.isoformat() if sub.last_used_date else None,
                "created_date": sub.created_date.isoformat(),
            }
            for sub in dataset.subscriptions
        ]
    )
    txns = pd.DataFrame.from_records(
        [
            {
                "id": txn.id,
                "date": txn.date.isoformat(),
                "amount": txn.amount,
                "category": txn.category.value,
                "is_recurring": txn.is_recurring,
                "tags": ";".join(txn.tags),
            }
            for txn in dataset.transactions
        ],
        columns=["id", "date", "amount", "category", "is_recurring", "tags"],
    )
    changes = pd.DataFrame.from_records(
        [
            {
                "subscription_id": change.subscription_id,
                "old_price": change.old_price,
                "new_price": change.new_price,
                "change_date": change.change_date.isoformat(),
                "detected_automatically": change.detected_automatically,
            }
            for change in dataset.price_changes
        ],
        columns=["subscription_id", "old_price", "new_price", "change_date", "detected_automatically"],
    )

    subs.to_csv(target / "subscriptions.csv", index=False)
    txns.to_csv(target / "transactions.csv", index=False)
    changes.to_csv(target / "price_changes.csv", index=False)
    return dataset


def _next_billing_after(created: datetime, cycle: BillingCycle, now: datetime) -> datetime:
    if not cycle.renews:
        return created
    moment = created
    while moment < now:
        following = advance_billing_date(moment, cycle)
        if following is None or following <= moment:
            break
        moment = following
    return moment


def _add_months(anchor: datetime, months: int) -> datetime:
    month = anchor.month - 1 + months
    year = anchor.year + month // 12
    month = month % 12 + 1
    day = min(anchor.day, calendar.monthrange(year, month)[1])
    return anchor.replace(year=year, month=month, day=day)


def _month_date_range(year: int, month: int) -> List[datetime]:
    start = datetime(year, month, 1, 12)
    end = _add_months(start, 1) - timedelta(days=1)
    return [d.to_pydatetime() for d in pd.date_range(start=start, end=end, freq="D")]


def _rng_choice(options: Sequence[T], rng: np.random.Generator) -> T:
    if not options:
        raise ValueError("Cannot choose from an empty sequence")
    idx = int(rng.integers(0, len(options)))
    return options[idx]
