"""Store-backed, cached entry point for subscription analytics."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from analytics.forecasting import forecast_spending
from analytics.recommendations import (
    UnusedThreshold,
    detect_price_increases,
    detect_trials_ending_soon,
    detect_unused_subscriptions,
    generate_savings_opportunities,
    suggest_annual_conversions,
    suggest_cancellations,
)
from analytics.trends import (
    active_subscriptions,
    aggregate_by_billing_cycle,
    aggregate_by_category,
    aggregate_by_month,
    analyze_linear_trend,
    average_cost_per_subscription,
    build_category_breakdown,
    build_price_history,
    build_spending_trend,
    compute_year_over_year,
    least_used,
    most_expensive,
    recently_added,
    total_monthly_cost,
    trend_values,
)
from config import Settings, get_settings
from core.billing import annual_cost, renews_within
from core.cache import AnalyticsCache, CacheKind
from core.errors import StoreError
from core.models import (
    AnnualSuggestion,
    BillingCycleTotal,
    CategorySpending,
    CategoryTotal,
    DateRange,
    DateValue,
    ForecastValue,
    MonthlyTotal,
    PriceChange,
    PricePoint,
    SavingsSuggestion,
    SpendingDataPoint,
    SpendingStatistics,
    SpendingTrend,
    Subscription,
    SubscriptionStatistics,
    SubscriptionStatisticsData,
    Transaction,
    TrendAnalysis,
    YearOverYearComparison,
)
from core.store import SubscriptionStore

__all__ = ["AnalyticsService"]

logger = logging.getLogger(__name__)

_RANKING_LIMIT = 5
_STABLE_TREND_PCT = 5.0


@dataclass(frozen=True)
class _StatisticsSnapshot:
    subscriptions: list[Subscription]
    active: list[Subscription]
    total_monthly: float
    total_annual: float
    average_cost: float
    trials_ending: list[Subscription]


class AnalyticsService:
    """Spending trends, forecasts and savings suggestions over a store.

    Trend series, the category breakdown, the monthly average and the most
    recent forecast are memoised in an :class:`AnalyticsCache`. Callers that
    mutate the store must call :meth:`clear_cache`. Store read failures are
    logged and the affected query runs over an empty collection.
    """

    def __init__(
        self,
        store: SubscriptionStore,
        *,
        settings: Optional[Settings] = None,
        cache: Optional[AnalyticsCache] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._store = store
        self._settings = settings or get_settings()
        self._clock = clock
        self._cache = cache or AnalyticsCache(self._settings.cache_ttl, clock=clock)

    @property
    def cache(self) -> AnalyticsCache:
        return self._cache

    def clear_cache(self) -> None:
        self._cache.clear()

    # -- store access -------------------------------------------------------

    def _subscriptions(self) -> list[Subscription]:
        try:
            return self._store.list_subscriptions()
        except StoreError:
            logger.exception("Failed to list subscriptions; using an empty set")
            return []

    def _transactions(self) -> list[Transaction]:
        try:
            return self._store.list_transactions()
        except StoreError:
            logger.exception("Failed to list transactions; using an empty set")
            return []

    def _price_changes(self, subscription_id: Optional[str] = None) -> list[PriceChange]:
        try:
            return self._store.list_price_changes(subscription_id)
        except StoreError:
            logger.exception("Failed to list price changes; using an empty set")
            return []

    # -- trends -------------------------------------------------------------

    def spending_trend(self, date_range: DateRange) -> list[SpendingDataPoint]:
        return self._cache.get_or_compute(
            CacheKind.SPENDING_TREND,
            date_range,
            lambda: build_spending_trend(
                self._subscriptions(), self._transactions(), date_range, self._clock()
            ),
        )

    def spending_trend_values(self, date_range: DateRange) -> list[DateValue]:
        return trend_values(self.spending_trend(date_range))

    def linear_trend_analysis(self, date_range: DateRange) -> TrendAnalysis:
        return analyze_linear_trend(self.spending_trend(date_range))

    def category_breakdown(self) -> list[CategorySpending]:
        return self._cache.get_or_compute(
            CacheKind.CATEGORY_BREAKDOWN,
            None,
            lambda: build_category_breakdown(self._subscriptions()),
        )

    def top_categories(self, limit: int) -> list[CategorySpending]:
        return self.category_breakdown()[:limit]

    def total_monthly_cost(self) -> float:
        return total_monthly_cost(self._subscriptions())

    def total_annual_cost(self) -> float:
        return sum(annual_cost(sub) for sub in active_subscriptions(self._subscriptions()))

    def monthly_average(self) -> float:
        return self._cache.get_or_compute(CacheKind.MONTHLY_AVERAGE, None, self.total_monthly_cost)

    def average_cost_per_subscription(self) -> float:
        return average_cost_per_subscription(self._subscriptions())

    def most_expensive(self, limit: int) -> list[Subscription]:
        return most_expensive(self._subscriptions(), limit)

    def year_over_year(self, *, ytd_aligned: bool = False) -> YearOverYearComparison:
        return compute_year_over_year(
            self._subscriptions(), self._transactions(), self._clock(), ytd_aligned=ytd_aligned
        )

    def year_over_year_change(self) -> float:
        return self.year_over_year().percentage_change

    def monthly_totals(self) -> list[MonthlyTotal]:
        return aggregate_by_month(self._transactions())

    def category_totals(self) -> list[CategoryTotal]:
        return aggregate_by_category(self._transactions())

    def billing_cycle_totals(self) -> list[BillingCycleTotal]:
        return aggregate_by_billing_cycle(self._subscriptions())

    def price_history(self, subscription: Subscription) -> list[PricePoint]:
        return build_price_history(subscription, self._price_changes(subscription.id))

    # -- forecasting --------------------------------------------------------

    def forecast(self, months: Optional[int] = None) -> list[ForecastValue]:
        horizon = self._settings.forecast_months if months is None else months
        return self._cache.get_or_compute(
            CacheKind.FORECAST,
            horizon,
            lambda: forecast_spending(
                self.spending_trend(DateRange.year()),
                horizon,
                self._clock(),
                self.total_monthly_cost(),
            ),
        )

    def predict_next_month(self) -> float:
        forecast = self.forecast(1)
        if forecast:
            return forecast[0].predicted_amount
        return self.total_monthly_cost()

    # -- detection & recommendations ----------------------------------------

    def detect_unused_subscriptions(self, threshold_days: int = UnusedThreshold.DETECTION) -> list[Subscription]:
        return detect_unused_subscriptions(self._subscriptions(), self._clock(), threshold_days)

    def detect_price_increases(self, within_days: Optional[int] = None) -> list[Subscription]:
        days = self._settings.price_increase_days if within_days is None else within_days
        return detect_price_increases(self._subscriptions(), self._price_changes(), self._clock(), days)

    def detect_trials_ending_soon(self, within_days: Optional[int] = None) -> list[Subscription]:
        days = self._settings.trial_ending_days if within_days is None else within_days
        return detect_trials_ending_soon(self._subscriptions(), self._clock(), days)

    def suggest_annual_conversions(self) -> list[AnnualSuggestion]:
        return suggest_annual_conversions(self._subscriptions())

    def savings_opportunities(self) -> list[SavingsSuggestion]:
        return generate_savings_opportunities(
            self._subscriptions(),
            self._price_changes(),
            self._clock(),
            trial_days=self._settings.trial_ending_days,
            price_increase_days=self._settings.price_increase_days,
        )

    def suggest_cancellations(self) -> list[Subscription]:
        return suggest_cancellations(self._subscriptions(), self._clock())

    # -- statistics ---------------------------------------------------------

    def _statistics_snapshot(self) -> _StatisticsSnapshot:
        subscriptions = self._subscriptions()
        active = [sub for sub in subscriptions if sub.is_active]
        trials_ending = detect_trials_ending_soon(subscriptions, self._clock(), self._settings.trial_ending_days)
        trials_ending.sort(key=lambda sub: sub.trial_end_date)
        return _StatisticsSnapshot(
            subscriptions=subscriptions,
            active=active,
            total_monthly=total_monthly_cost(active),
            total_annual=sum(annual_cost(sub) for sub in active),
            average_cost=average_cost_per_subscription(active),
            trials_ending=trials_ending,
        )

    def subscription_statistics(self) -> SubscriptionStatistics:
        snapshot = self._statistics_snapshot()
        now = self._clock()
        breakdown = self.category_breakdown()
        return SubscriptionStatistics(
            total_active=len(snapshot.active),
            total_inactive=len(snapshot.subscriptions) - len(snapshot.active),
            total_monthly_cost=snapshot.total_monthly,
            total_annual_cost=snapshot.total_annual,
            most_expensive_category=breakdown[0].category if breakdown else None,
            average_cost_per_subscription=snapshot.average_cost,
            upcoming_renewals_7_days=sum(1 for sub in snapshot.active if renews_within(sub, now, 7)),
            upcoming_renewals_30_days=sum(1 for sub in snapshot.active if renews_within(sub, now, 30)),
            free_trials=sum(1 for sub in snapshot.active if sub.is_free_trial),
            trials_ending_soon=len(snapshot.trials_ending),
        )

    def statistics_rankings(self, limit: int = _RANKING_LIMIT) -> SubscriptionStatisticsData:
        snapshot = self._statistics_snapshot()
        return SubscriptionStatisticsData(
            total_active=len(snapshot.active),
            total_monthly=snapshot.total_monthly,
            total_yearly=snapshot.total_annual,
            average_cost=snapshot.average_cost,
            most_expensive=most_expensive(snapshot.active, limit),
            least_used=least_used(snapshot.active, limit),
            recently_added=recently_added(snapshot.active, limit),
            trials_ending=snapshot.trials_ending,
        )

    def spending_statistics(self) -> SpendingStatistics:
        """Month-over-month spend from the trailing monthly trend series."""

        series = self.spending_trend(DateRange.year())
        current = series[-1].amount if series else self.total_monthly_cost()
        previous = series[-2].amount if len(series) >= 2 else current
        average = sum(point.amount for point in series) / len(series) if series else current

        change = (current - previous) / previous * 100 if previous > 0 else 0.0
        if abs(change) < _STABLE_TREND_PCT:
            trend = SpendingTrend.STABLE
        elif change > 0:
            trend = SpendingTrend.INCREASING
        else:
            trend = SpendingTrend.DECREASING

        return SpendingStatistics(
            current_month=current,
            last_month=previous,
            monthly_average=average,
            yearly_total=current * 12,
            percentage_change=change,
            trend=trend,
        )

    def upcoming_renewals(self, within_days: Optional[int] = None) -> list[Subscription]:
        days = self._settings.upcoming_renewal_days if within_days is None else within_days
        now = self._clock()
        upcoming = [sub for sub in self._subscriptions() if renews_within(sub, now, days)]
        upcoming.sort(key=lambda sub: sub.next_billing_date)
        return upcoming
