"""Shared fixtures for the subscription analytics test-suite."""

from __future__ import annotations

import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from config import Settings
from core.models import (
    BillingCycle,
    Subscription,
    SubscriptionCategory,
    Transaction,
    TransactionCategory,
)
from core.store import InMemoryStore

NOW = datetime(2024, 6, 15, 12, 0)


class RecordingNotifier:
    """Collects emitted events as ``(name, subscription_id, *args)`` tuples."""

    def __init__(self) -> None:
        self.events: list[tuple] = []

    def on_renewed(self, subscription, next_billing_date):
        self.events.append(("renewed", subscription.id, next_billing_date))

    def on_price_increased(self, subscription, old_price, new_price):
        self.events.append(("price_increased", subscription.id, old_price, new_price))

    def on_trial_converted(self, subscription):
        self.events.append(("trial_converted", subscription.id))

    def on_reminder_settings_changed(self, subscription):
        self.events.append(("reminder_settings_changed", subscription.id))

    def names(self) -> list[str]:
        return [event[0] for event in self.events]


def make_subscription(
    sub_id: str = "sub-1",
    *,
    price: float = 10.0,
    billing_cycle: BillingCycle = BillingCycle.MONTHLY,
    next_billing_date: datetime = NOW + timedelta(days=10),
    **overrides,
) -> Subscription:
    overrides.setdefault("name", sub_id.replace("-", " ").title())
    overrides.setdefault("created_date", NOW - timedelta(days=200))
    return Subscription(
        id=sub_id,
        price=price,
        billing_cycle=billing_cycle,
        next_billing_date=next_billing_date,
        **overrides,
    )


def make_transaction(
    txn_id: str,
    amount: float,
    when: datetime,
    category: TransactionCategory = TransactionCategory.OTHER,
) -> Transaction:
    return Transaction(id=txn_id, amount=amount, date=when, category=category)


@pytest.fixture()
def now() -> datetime:
    return NOW


@pytest.fixture()
def clock(now):
    return lambda: now


@pytest.fixture()
def settings() -> Settings:
    return Settings()


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def sample_subscriptions() -> list[Subscription]:
    return [
        make_subscription("netflix", price=15.0, category=SubscriptionCategory.ENTERTAINMENT, usage_count=40),
        make_subscription(
            "icloud",
            price=120.0,
            billing_cycle=BillingCycle.ANNUAL,
            category=SubscriptionCategory.CLOUD,
            usage_count=5,
            created_date=NOW - timedelta(days=20),
        ),
        make_subscription(
            "gym",
            price=20.0,
            category=SubscriptionCategory.FITNESS,
            last_used_date=NOW - timedelta(days=100),
            usage_count=2,
        ),
        make_subscription(
            "old-news",
            price=8.0,
            category=SubscriptionCategory.NEWS,
            is_active=False,
            cancellation_date=NOW - timedelta(days=40),
        ),
    ]


@pytest.fixture()
def sample_transactions() -> list[Transaction]:
    return [
        make_transaction("t1", -50.0, NOW - timedelta(days=3), TransactionCategory.GROCERIES),
        make_transaction("t2", -20.0, NOW - timedelta(days=1), TransactionCategory.DINING),
        make_transaction("t3", -400.0, datetime(2023, 8, 1), TransactionCategory.TRAVEL),
    ]


@pytest.fixture()
def store(sample_subscriptions, sample_transactions) -> InMemoryStore:
    return InMemoryStore(sample_subscriptions, sample_transactions)
