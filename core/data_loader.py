"""CSV import of subscriptions and transactions for seeding a store."""

from __future__ import annotations

import logging
from datetime import datetime
from functools import lru_cache
from pathlib import Path
from typing import Final, Optional

import pandas as pd

from core.errors import SubscriptionValidationError
from core.models import (
    BillingCycle,
    PriceChange,
    Subscription,
    SubscriptionCategory,
    Transaction,
    TransactionCategory,
)
from core.renewal_service import validate_subscription
from core.store import InMemoryStore

__all__ = [
    "read_transactions_frame",
    "read_subscriptions_frame",
    "load_transactions",
    "load_subscriptions",
    "load_price_changes",
    "load_store",
]

logger = logging.getLogger(__name__)

_CACHE_SIZE: Final[int] = 8

TRANSACTION_DATE_COLUMNS: Final[tuple[str, ...]] = ("date",)
SUBSCRIPTION_DATE_COLUMNS: Final[tuple[str, ...]] = (
    "next_billing_date",
    "cancellation_date",
    "trial_start_date",
    "trial_end_date",
    "last_used_date",
    "created_date",
)


def _require(path: Path) -> Path:
    if not path.exists():
        raise FileNotFoundError(f"CSV file not found: {path}")
    return path


def _read_csv(path: Path, date_columns: tuple[str, ...]) -> pd.DataFrame:
    df = pd.read_csv(path)
    for column in date_columns:
        if column in df.columns:
            df[column] = pd.to_datetime(df[column], errors="coerce")
    return df


@lru_cache(maxsize=_CACHE_SIZE)
def read_transactions_frame(csv_path: str | Path) -> pd.DataFrame:
    """Return a parsed transactions dataframe for the given CSV path.

    Expected columns are ``id``, ``date`` and ``amount``; ``category``,
    ``is_recurring`` and a ``;``-separated ``tags`` column are optional.
    Results are cached per path, so callers must not mutate the frame.
    """

    df = _read_csv(_require(Path(csv_path)), TRANSACTION_DATE_COLUMNS)
    df = df.dropna(subset=["id", "date", "amount"]).copy()
    if "category" not in df.columns:
        df["category"] = TransactionCategory.OTHER.value
    df["category"] = df["category"].fillna(TransactionCategory.OTHER.value).str.lower()
    if "is_recurring" not in df.columns:
        df["is_recurring"] = False
    df["is_recurring"] = df["is_recurring"].fillna(False).astype(bool)
    if "tags" not in df.columns:
        df["tags"] = ""
    df["tags"] = df["tags"].fillna("")
    return df


@lru_cache(maxsize=_CACHE_SIZE)
def read_subscriptions_frame(csv_path: str | Path) -> pd.DataFrame:
    """Return a parsed subscriptions dataframe for the given CSV path."""

    df = _read_csv(_require(Path(csv_path)), SUBSCRIPTION_DATE_COLUMNS)
    df = df.dropna(subset=["id", "name", "price", "billing_cycle", "next_billing_date"]).copy()
    df["billing_cycle"] = df["billing_cycle"].str.lower()
    if "category" not in df.columns:
        df["category"] = SubscriptionCategory.OTHER.value
    df["category"] = df["category"].fillna(SubscriptionCategory.OTHER.value).str.lower()
    return df


def _optional_datetime(value: object) -> Optional[datetime]:
    if value is None or pd.isna(value):
        return None
    return pd.Timestamp(value).to_pydatetime()


def _optional_float(value: object) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    return float(value)


def _flag(row: pd.Series, column: str, default: bool) -> bool:
    value = row.get(column)
    if value is None or pd.isna(value):
        return default
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "y"}
    return bool(value)


def _transaction_category(raw: str) -> TransactionCategory:
    try:
        return TransactionCategory(raw)
    except ValueError:
        return TransactionCategory.OTHER


def _subscription_category(raw: str) -> SubscriptionCategory:
    try:
        return SubscriptionCategory(raw)
    except ValueError:
        return SubscriptionCategory.OTHER


def load_transactions(csv_path: str | Path) -> list[Transaction]:
    df = read_transactions_frame(csv_path)
    return [
        Transaction(
            id=str(row["id"]),
            amount=float(row["amount"]),
            date=pd.Timestamp(row["date"]).to_pydatetime(),
            category=_transaction_category(row["category"]),
            is_recurring=bool(row["is_recurring"]),
            tags=tuple(tag.strip() for tag in str(row["tags"]).split(";") if tag.strip()),
        )
        for _, row in df.iterrows()
    ]


def load_subscriptions(csv_path: str | Path) -> list[Subscription]:
    """Build :class:`Subscription` records, skipping rows that fail to parse.

    Rows with an unknown billing cycle are dropped with a warning; unknown
    categories fall back to ``other``.
    """

    df = read_subscriptions_frame(csv_path)
    subscriptions: list[Subscription] = []
    for index, row in df.iterrows():
        try:
            cycle = BillingCycle(row["billing_cycle"])
        except ValueError:
            logger.warning("Skipping row %s: unknown billing cycle %r", index, row["billing_cycle"])
            continue

        created = _optional_datetime(row.get("created_date"))
        usage = row.get("usage_count")
        subscriptions.append(
            Subscription(
                id=str(row["id"]),
                name=str(row["name"]),
                price=float(row["price"]),
                billing_cycle=cycle,
                next_billing_date=pd.Timestamp(row["next_billing_date"]).to_pydatetime(),
                category=_subscription_category(row["category"]),
                is_active=_flag(row, "is_active", True),
                cancellation_date=_optional_datetime(row.get("cancellation_date")),
                is_free_trial=_flag(row, "is_free_trial", False),
                trial_start_date=_optional_datetime(row.get("trial_start_date")),
                trial_end_date=_optional_datetime(row.get("trial_end_date")),
                price_after_trial=_optional_float(row.get("price_after_trial")),
                will_convert_to_paid=_flag(row, "will_convert_to_paid", True),
                usage_count=0 if usage is None or pd.isna(usage) else int(usage),
                last_used_date=_optional_datetime(row.get("last_used_date")),
                created_date=created if created is not None else datetime.now(),
            )
        )
    return subscriptions


def load_price_changes(csv_path: str | Path) -> list[PriceChange]:
    path = _require(Path(csv_path))
    df = pd.read_csv(path, parse_dates=["change_date"])
    df = df.dropna(subset=["subscription_id", "old_price", "new_price", "change_date"]).copy()
    return [
        PriceChange(
            subscription_id=str(row["subscription_id"]),
            old_price=float(row["old_price"]),
            new_price=float(row["new_price"]),
            change_date=pd.Timestamp(row["change_date"]).to_pydatetime(),
            detected_automatically=_flag(row, "detected_automatically", False),
        )
        for _, row in df.iterrows()
    ]


def load_store(
    subscriptions_csv: str | Path,
    transactions_csv: Optional[str | Path] = None,
    price_changes_csv: Optional[str | Path] = None,
) -> InMemoryStore:
    """Seed an :class:`InMemoryStore` from CSV exports.

    Subscriptions that fail validation are logged and left out.
    """

    valid: list[Subscription] = []
    for subscription in load_subscriptions(subscriptions_csv):
        try:
            validate_subscription(subscription)
        except SubscriptionValidationError as exc:
            logger.warning("Skipping subscription %s: %s", subscription.id, exc)
            continue
        valid.append(subscription)

    transactions = load_transactions(transactions_csv) if transactions_csv is not None else []
    price_changes = load_price_changes(price_changes_csv) if price_changes_csv is not None else []
    known = {sub.id for sub in valid}
    return InMemoryStore(
        valid,
        transactions,
        [change for change in price_changes if change.subscription_id in known],
    )
