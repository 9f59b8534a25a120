"""Billing-cycle state machine: renewals, pause/resume/cancel and trials."""

from __future__ import annotations

import logging
import math
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Callable, Optional

from config import Settings, get_settings
from core.billing import advance_billing_date, is_due_soon, is_overdue, is_trial_expired, renews_within
from core.errors import StoreError, SubscriptionValidationError
from core.events import NullNotifier, RenewalNotifier, SafeNotifier
from core.models import PriceChange, Subscription, SubscriptionStatus
from core.store import SubscriptionStore

__all__ = ["RenewalService", "validate_subscription"]

logger = logging.getLogger(__name__)


def validate_subscription(subscription: Subscription) -> None:
    """Raise :class:`SubscriptionValidationError` for records that must not be stored."""

    if not subscription.id or not str(subscription.id).strip():
        raise SubscriptionValidationError("Subscription id is required")
    if not subscription.name or not subscription.name.strip():
        raise SubscriptionValidationError("Subscription name is required")
    if not math.isfinite(subscription.price) or subscription.price <= 0:
        raise SubscriptionValidationError(f"Price must be positive, got {subscription.price!r}")
    if subscription.price_after_trial is not None and subscription.price_after_trial <= 0:
        raise SubscriptionValidationError("Price after trial must be positive when provided")
    if (
        subscription.trial_start_date is not None
        and subscription.trial_end_date is not None
        and subscription.trial_end_date < subscription.trial_start_date
    ):
        raise SubscriptionValidationError("Trial end date precedes trial start date")
    if subscription.is_active and subscription.cancellation_date is not None:
        raise SubscriptionValidationError("Active subscriptions cannot carry a cancellation date")


class RenewalService:
    """Advance subscriptions through their billing lifecycle.

    The service is the only writer of billing dates, status and trial fields.
    Every mutation works on a copy and is persisted through ``store`` before
    the copy is returned, so a failed write never leaves a half-applied
    transition behind. Notifier failures are logged and ignored.
    """

    def __init__(
        self,
        store: SubscriptionStore,
        notifier: Optional[RenewalNotifier] = None,
        *,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._store = store
        self._notifier = SafeNotifier(notifier or NullNotifier())
        self._settings = settings or get_settings()
        self._clock = clock

    # -- renewals -----------------------------------------------------------

    def is_overdue(self, subscription: Subscription) -> bool:
        return is_overdue(subscription, self._clock())

    def process_overdue_renewals(self) -> list[Subscription]:
        """Renew every overdue subscription until its billing date is current.

        Subscriptions whose store write fails are logged and skipped; the
        rest of the batch still runs.
        """

        subscriptions = self._list_subscriptions()
        now = self._clock()
        renewed: list[Subscription] = []
        for subscription in subscriptions:
            if not is_overdue(subscription, now):
                continue
            try:
                renewed.append(self._renew(subscription, now))
            except StoreError:
                logger.exception("Failed to persist renewal for subscription %s", subscription.id)

        if renewed:
            logger.info("Processed %d overdue subscription renewal(s)", len(renewed))
        return renewed

    def renew(self, subscription: Subscription) -> Subscription:
        """Renew a single subscription; a no-op for lifetime or current records."""

        now = self._clock()
        if not is_overdue(subscription, now):
            return subscription
        return self._renew(subscription, now)

    def _renew(self, subscription: Subscription, now: datetime) -> Subscription:
        next_date = subscription.next_billing_date
        steps = 0
        while next_date < now:
            if steps >= self._settings.max_renewal_steps:
                logger.warning(
                    "Subscription %s still overdue after %d renewal steps", subscription.id, steps
                )
                break
            advanced = advance_billing_date(next_date, subscription.billing_cycle)
            if advanced is None:
                return subscription
            if advanced <= next_date:
                # Calendar arithmetic failed; fall back to the current date.
                next_date = now
                break
            next_date = advanced
            steps += 1

        updated = replace(subscription, next_billing_date=next_date)
        self._store.update_subscription(updated)
        logger.info("Renewed subscription %s, next billing %s", subscription.id, next_date.isoformat())
        self._notifier.on_renewed(updated, next_date)
        return updated

    # -- status transitions -------------------------------------------------

    def pause(self, subscription: Subscription) -> Subscription:
        if subscription.status is SubscriptionStatus.CANCELLED:
            raise SubscriptionValidationError("Cancelled subscriptions cannot be paused")
        updated = replace(subscription, is_active=False)
        self._store.update_subscription(updated)
        logger.info("Paused subscription %s", subscription.id)
        self._notifier.on_reminder_settings_changed(updated)
        return updated

    def resume(self, subscription: Subscription) -> Subscription:
        """Reactivate a paused or cancelled subscription.

        A billing date that slipped into the past while inactive is
        recomputed one cycle from now.
        """

        now = self._clock()
        next_date = subscription.next_billing_date
        if next_date < now and subscription.billing_cycle.renews:
            next_date = advance_billing_date(now, subscription.billing_cycle) or now

        updated = replace(
            subscription,
            is_active=True,
            cancellation_date=None,
            next_billing_date=next_date,
        )
        self._store.update_subscription(updated)
        logger.info("Resumed subscription %s", subscription.id)
        self._notifier.on_reminder_settings_changed(updated)
        return updated

    def cancel(self, subscription: Subscription) -> Subscription:
        updated = replace(subscription, is_active=False, cancellation_date=self._clock())
        self._store.update_subscription(updated)
        logger.info("Cancelled subscription %s", subscription.id)
        self._notifier.on_reminder_settings_changed(updated)
        return updated

    # -- trials -------------------------------------------------------------

    def process_trial_expirations(self) -> list[Subscription]:
        """Convert or cancel every expired trial that has not been cancelled yet."""

        now = self._clock()
        processed: list[Subscription] = []
        for subscription in self._list_subscriptions():
            if not subscription.is_free_trial or subscription.cancellation_date is not None:
                continue
            if not is_trial_expired(subscription, now):
                continue
            try:
                if subscription.will_convert_to_paid:
                    processed.append(self.convert_trial_to_paid(subscription))
                else:
                    processed.append(self.cancel(subscription))
            except StoreError:
                logger.exception("Failed to process trial expiry for subscription %s", subscription.id)

        if processed:
            logger.info("Processed %d expired trial(s)", len(processed))
        return processed

    def convert_trial_to_paid(self, subscription: Subscription) -> Subscription:
        now = self._clock()
        price = subscription.price
        if subscription.price_after_trial is not None:
            price = subscription.price_after_trial

        next_date = advance_billing_date(now, subscription.billing_cycle) or subscription.next_billing_date
        updated = replace(
            subscription,
            price=price,
            price_after_trial=None,
            is_free_trial=False,
            trial_start_date=None,
            trial_end_date=None,
            is_active=True,
            next_billing_date=next_date,
        )
        self._store.update_subscription(updated)
        if price != subscription.price:
            self._record_price_change(
                subscription,
                PriceChange(
                    subscription_id=subscription.id,
                    old_price=subscription.price,
                    new_price=price,
                    change_date=now,
                    detected_automatically=True,
                ),
            )
        logger.info("Converted trial to paid: %s", subscription.id)
        self._notifier.on_trial_converted(updated)
        return updated

    def trials_ending_soon(self, within_days: Optional[int] = None) -> list[Subscription]:
        days = self._settings.trial_ending_days if within_days is None else within_days
        now = self._clock()
        ending = [
            sub
            for sub in self._list_subscriptions()
            if sub.is_free_trial
            and sub.trial_end_date is not None
            and now <= sub.trial_end_date <= now + timedelta(days=days)
        ]
        ending.sort(key=lambda sub: sub.trial_end_date)
        return ending

    def active_trials_count(self) -> int:
        now = self._clock()
        return sum(
            1 for sub in self._list_subscriptions() if sub.is_free_trial and not is_trial_expired(sub, now)
        )

    # -- edits --------------------------------------------------------------

    def apply_update(self, updated: Subscription) -> Subscription:
        """Persist an edited subscription, recording price history.

        The edit is validated first; nothing is written if it is rejected.
        """

        validate_subscription(updated)
        current = self._find(updated.id)
        self._store.update_subscription(updated)

        if updated.price != current.price:
            change = PriceChange(
                subscription_id=updated.id,
                old_price=current.price,
                new_price=updated.price,
                change_date=self._clock(),
            )
            self._record_price_change(current, change)
            logger.info(
                "Recorded price change for %s: %.2f -> %.2f", updated.id, current.price, updated.price
            )
            if change.is_increase:
                self._notifier.on_price_increased(updated, current.price, updated.price)

        if (
            updated.billing_cycle != current.billing_cycle
            or updated.next_billing_date != current.next_billing_date
            or updated.is_active != current.is_active
        ):
            self._notifier.on_reminder_settings_changed(updated)
        return updated

    # -- queries ------------------------------------------------------------

    def upcoming_renewals(self, within_days: Optional[int] = None) -> list[Subscription]:
        days = self._settings.upcoming_renewal_days if within_days is None else within_days
        now = self._clock()
        upcoming = [sub for sub in self._list_subscriptions() if renews_within(sub, now, days)]
        upcoming.sort(key=lambda sub: sub.next_billing_date)
        return upcoming

    def today_renewals(self) -> list[Subscription]:
        today = self._clock().date()
        return [
            sub
            for sub in self._list_subscriptions()
            if sub.is_active and sub.billing_cycle.renews and sub.next_billing_date.date() == today
        ]

    def week_renewals(self) -> list[Subscription]:
        return self.upcoming_renewals(7)

    def due_soon(self) -> list[Subscription]:
        """Active subscriptions billing within the configured due-soon window."""

        now = self._clock()
        days = self._settings.due_soon_days
        return [sub for sub in self._list_subscriptions() if is_due_soon(sub, now, days)]

    def schedule_all_reminders(self) -> int:
        active = [sub for sub in self._list_subscriptions() if sub.is_active and sub.billing_cycle.renews]
        for subscription in active:
            self._notifier.on_reminder_settings_changed(subscription)
        logger.info("Scheduled renewal reminders for %d subscription(s)", len(active))
        return len(active)

    def _find(self, subscription_id: str) -> Subscription:
        for subscription in self._store.list_subscriptions():
            if subscription.id == subscription_id:
                return subscription
        raise StoreError(f"Unknown subscription: {subscription_id}")

    def _record_price_change(self, previous: Subscription, change: PriceChange) -> None:
        """Append ``change``; on failure restore ``previous`` and re-raise."""

        try:
            self._store.append_price_change(change)
        except StoreError:
            logger.error("Price history write failed for %s, restoring previous record", previous.id)
            self._store.update_subscription(previous)
            raise

    def _list_subscriptions(self) -> list[Subscription]:
        try:
            return self._store.list_subscriptions()
        except StoreError:
            logger.exception("Failed to list subscriptions")
            return []
