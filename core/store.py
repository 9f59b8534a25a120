"""Storage collaborator contract and a reference in-memory implementation."""

from __future__ import annotations

import copy
from datetime import datetime
from typing import Iterable, Optional, Protocol, runtime_checkable

from core.errors import StoreError
from core.models import PriceChange, Subscription, Transaction

__all__ = ["SubscriptionStore", "InMemoryStore"]


@runtime_checkable
class SubscriptionStore(Protocol):
    """Read/write interface the engine needs from persistence.

    Writes return ``None`` on success and raise :class:`StoreError` on failure.
    """

    def list_subscriptions(self) -> list[Subscription]: ...

    def list_transactions(self) -> list[Transaction]: ...

    def update_subscription(self, subscription: Subscription) -> None: ...

    def append_price_change(self, change: PriceChange) -> None: ...

    def list_price_changes(
        self,
        subscription_id: Optional[str] = None,
        since: Optional[datetime] = None,
    ) -> list[PriceChange]: ...


class InMemoryStore:
    """Dictionary-backed store used by tests, fixtures and demos.

    Records are copied on the way in and out so callers cannot mutate the
    stored state without going through :meth:`update_subscription`.
    """

    def __init__(
        self,
        subscriptions: Iterable[Subscription] = (),
        transactions: Iterable[Transaction] = (),
        price_changes: Iterable[PriceChange] = (),
    ) -> None:
        self._subscriptions: dict[str, Subscription] = {}
        for subscription in subscriptions:
            self._subscriptions[subscription.id] = copy.deepcopy(subscription)
        self._transactions: list[Transaction] = list(transactions)
        self._price_changes: list[PriceChange] = list(price_changes)

    def list_subscriptions(self) -> list[Subscription]:
        return [copy.deepcopy(sub) for sub in self._subscriptions.values()]

    def list_transactions(self) -> list[Transaction]:
        return list(self._transactions)

    def get_subscription(self, subscription_id: str) -> Subscription:
        try:
            return copy.deepcopy(self._subscriptions[subscription_id])
        except KeyError as exc:
            raise StoreError(f"Unknown subscription: {subscription_id}") from exc

    def add_subscription(self, subscription: Subscription) -> None:
        if subscription.id in self._subscriptions:
            raise StoreError(f"Subscription already exists: {subscription.id}")
        self._subscriptions[subscription.id] = copy.deepcopy(subscription)

    def add_transaction(self, transaction: Transaction) -> None:
        self._transactions.append(transaction)

    def update_subscription(self, subscription: Subscription) -> None:
        if subscription.id not in self._subscriptions:
            raise StoreError(f"Unknown subscription: {subscription.id}")
        self._subscriptions[subscription.id] = copy.deepcopy(subscription)

    def append_price_change(self, change: PriceChange) -> None:
        if change.subscription_id not in self._subscriptions:
            raise StoreError(f"Unknown subscription: {change.subscription_id}")
        self._price_changes.append(change)

    def list_price_changes(
        self,
        subscription_id: Optional[str] = None,
        since: Optional[datetime] = None,
    ) -> list[PriceChange]:
        changes = [
            change
            for change in self._price_changes
            if (subscription_id is None or change.subscription_id == subscription_id)
            and (since is None or change.change_date >= since)
        ]
        changes.sort(key=lambda change: change.change_date)
        return changes
