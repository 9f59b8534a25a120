"""Exception types raised by the billing-cycle and analytics core."""

from __future__ import annotations

__all__ = ["SubscriptionValidationError", "StoreError"]


class SubscriptionValidationError(ValueError):
    """Raised when a subscription edit is rejected before any mutation."""


class StoreError(RuntimeError):
    """Raised by storage collaborators when a read or write fails."""
