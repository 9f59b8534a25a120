"""Core domain package for the subscription analytics engine."""

from .errors import StoreError, SubscriptionValidationError
from .models import (
    BillingCycle,
    DateRange,
    PriceChange,
    Subscription,
    SubscriptionCategory,
    SubscriptionStatus,
    Transaction,
    TransactionCategory,
)
from .store import InMemoryStore, SubscriptionStore

__all__ = [
    "BillingCycle",
    "DateRange",
    "InMemoryStore",
    "PriceChange",
    "StoreError",
    "Subscription",
    "SubscriptionCategory",
    "SubscriptionStatus",
    "SubscriptionStore",
    "SubscriptionValidationError",
    "Transaction",
    "TransactionCategory",
]
