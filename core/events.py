"""Notification collaborator contract for billing-cycle events."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Protocol, runtime_checkable

from core.models import Subscription

__all__ = ["RenewalNotifier", "NullNotifier", "SafeNotifier"]

logger = logging.getLogger(__name__)


@runtime_checkable
class RenewalNotifier(Protocol):
    """Fire-and-forget sink for events that affect reminders and alerts."""

    def on_renewed(self, subscription: Subscription, next_billing_date: datetime) -> None: ...

    def on_price_increased(self, subscription: Subscription, old_price: float, new_price: float) -> None: ...

    def on_trial_converted(self, subscription: Subscription) -> None: ...

    def on_reminder_settings_changed(self, subscription: Subscription) -> None: ...


class NullNotifier:
    """Notifier that discards every event."""

    def on_renewed(self, subscription: Subscription, next_billing_date: datetime) -> None:
        return None

    def on_price_increased(self, subscription: Subscription, old_price: float, new_price: float) -> None:
        return None

    def on_trial_converted(self, subscription: Subscription) -> None:
        return None

    def on_reminder_settings_changed(self, subscription: Subscription) -> None:
        return None


class SafeNotifier:
    """Wrap a notifier so collaborator failures never abort a transition."""

    def __init__(self, inner: RenewalNotifier) -> None:
        self._inner = inner

    def on_renewed(self, subscription: Subscription, next_billing_date: datetime) -> None:
        self._dispatch("on_renewed", subscription, next_billing_date)

    def on_price_increased(self, subscription: Subscription, old_price: float, new_price: float) -> None:
        self._dispatch("on_price_increased", subscription, old_price, new_price)

    def on_trial_converted(self, subscription: Subscription) -> None:
        self._dispatch("on_trial_converted", subscription)

    def on_reminder_settings_changed(self, subscription: Subscription) -> None:
        self._dispatch("on_reminder_settings_changed", subscription)

    def _dispatch(self, event: str, subscription: Subscription, *args: object) -> None:
        try:
            getattr(self._inner, event)(subscription, *args)
        except Exception:
            logger.exception("Notifier failed handling %s for subscription %s", event, subscription.id)
