"""Tests for CSV import into model records and stores."""

from __future__ import annotations

import logging
from datetime import datetime

import pandas as pd
import pytest

from core.data_loader import load_price_changes, load_store, load_subscriptions, load_transactions
from core.models import BillingCycle, SubscriptionCategory, TransactionCategory


@pytest.fixture()
def subscriptions_csv(tmp_path):
    frame = pd.DataFrame(
        [
            {
                "id": "netflix",
                "name": "Netflix",
                "price": 15.49,
                "billing_cycle": "Monthly",
                "next_billing_date": "2024-07-01",
                "category": "entertainment",
                "is_active": True,
                "is_free_trial": False,
                "usage_count": 12,
                "last_used_date": "2024-06-10",
                "created_date": "2023-01-05",
            },
            {
                "id": "trial",
                "name": "Design Tool",
                "price": 1.0,
                "billing_cycle": "annual",
                "next_billing_date": "2024-06-20",
                "category": "not-a-category",
                "is_active": True,
                "is_free_trial": True,
                "trial_start_date": "2024-06-06",
                "trial_end_date": "2024-06-20",
                "price_after_trial": 120.0,
                "created_date": "2024-06-06",
            },
            {
                "id": "weird",
                "name": "Weird",
                "price": 3.0,
                "billing_cycle": "fortnightly-ish",
                "next_billing_date": "2024-07-01",
            },
            {
                "id": "free",
                "name": "Free",
                "price": 0.0,
                "billing_cycle": "monthly",
                "next_billing_date": "2024-07-01",
            },
        ]
    )
    path = tmp_path / "subscriptions.csv"
    frame.to_csv(path, index=False)
    return path


@pytest.fixture()
def transactions_csv(tmp_path):
    path = tmp_path / "transactions.csv"
    pd.DataFrame(
        [
            {"id": "t1", "date": "2024-06-01", "amount": -42.5, "category": "Groceries", "tags": "weekly;food"},
            {"id": "t2", "date": "2024-06-03", "amount": -9.99, "category": "mystery", "is_recurring": True},
            {"id": "t3", "date": None, "amount": -1.0},
        ]
    ).to_csv(path, index=False)
    return path


@pytest.fixture()
def price_changes_csv(tmp_path):
    path = tmp_path / "price_changes.csv"
    pd.DataFrame(
        [
            {"subscription_id": "netflix", "old_price": 13.99, "new_price": 15.49, "change_date": "2024-05-01"},
            {"subscription_id": "free", "old_price": 1.0, "new_price": 0.0, "change_date": "2024-05-01"},
        ]
    ).to_csv(path, index=False)
    return path


def test_load_subscriptions_parses_fields(subscriptions_csv, caplog):
    with caplog.at_level(logging.WARNING):
        subscriptions = load_subscriptions(subscriptions_csv)

    by_id = {sub.id: sub for sub in subscriptions}
    assert set(by_id) == {"netflix", "trial", "free"}
    assert "fortnightly-ish" in caplog.text

    netflix = by_id["netflix"]
    assert netflix.billing_cycle is BillingCycle.MONTHLY
    assert netflix.category is SubscriptionCategory.ENTERTAINMENT
    assert netflix.next_billing_date == datetime(2024, 7, 1)
    assert netflix.usage_count == 12
    assert netflix.last_used_date == datetime(2024, 6, 10)
    assert netflix.trial_end_date is None

    trial = by_id["trial"]
    assert trial.is_free_trial is True
    assert trial.category is SubscriptionCategory.OTHER
    assert trial.price_after_trial == pytest.approx(120.0)
    assert trial.trial_end_date == datetime(2024, 6, 20)


def test_load_transactions_drops_incomplete_rows(transactions_csv):
    transactions = load_transactions(transactions_csv)

    assert [txn.id for txn in transactions] == ["t1", "t2"]
    assert transactions[0].category is TransactionCategory.GROCERIES
    assert transactions[0].tags == ("weekly", "food")
    assert transactions[1].category is TransactionCategory.OTHER
    assert transactions[1].is_recurring is True
    assert transactions[0].date == datetime(2024, 6, 1)


def test_load_store_skips_invalid_subscriptions(subscriptions_csv, transactions_csv, price_changes_csv, caplog):
    with caplog.at_level(logging.WARNING):
        store = load_store(subscriptions_csv, transactions_csv, price_changes_csv)

    assert {sub.id for sub in store.list_subscriptions()} == {"netflix", "trial"}
    assert len(store.list_transactions()) == 2
    assert [change.subscription_id for change in store.list_price_changes()] == ["netflix"]
    assert "Skipping subscription free" in caplog.text


def test_load_price_changes(price_changes_csv):
    changes = load_price_changes(price_changes_csv)

    assert changes[0].change_percentage == pytest.approx((15.49 - 13.99) / 13.99 * 100)
    assert changes[0].detected_automatically is False


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_transactions(tmp_path / "missing.csv")
