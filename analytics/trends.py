"""Spending trend, category and year-over-year aggregation helpers."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Sequence

import pandas as pd

from analytics.bucketing import BucketUnit, plan_buckets, snap_series
from analytics.regression import fit_linear_trend
from core.models import (
    BillingCycle,
    BillingCycleTotal,
    CategoryGrowth,
    CategorySpending,
    CategoryTotal,
    DateRange,
    DateValue,
    MonthlyTotal,
    PriceChange,
    PricePoint,
    SpendingDataPoint,
    Subscription,
    Transaction,
    TransactionCategory,
    TrendAnalysis,
    YearOverYearComparison,
)

__all__ = [
    "SIGNIFICANCE_FACTOR",
    "transactions_frame",
    "active_subscriptions",
    "total_monthly_cost",
    "average_cost_per_subscription",
    "build_spending_trend",
    "trend_values",
    "build_category_breakdown",
    "compute_year_over_year",
    "compute_category_growth",
    "analyze_linear_trend",
    "aggregate_by_month",
    "aggregate_by_category",
    "aggregate_by_billing_cycle",
    "build_price_history",
    "most_expensive",
    "least_used",
    "recently_added",
]

SIGNIFICANCE_FACTOR = 1.5
_GROWTH_THRESHOLD_PCT = 5.0
_GROWTH_LIMIT = 5

_TRANSACTION_COLUMNS = ["id", "date", "amount", "spend", "category"]


def transactions_frame(transactions: Iterable[Transaction]) -> pd.DataFrame:
    """Return transactions as a frame with an absolute ``spend`` column."""

    records = [
        {
            "id": txn.id,
            "date": txn.date,
            "amount": float(txn.amount),
            "spend": abs(float(txn.amount)),
            "category": txn.category,
        }
        for txn in transactions
    ]
    if not records:
        frame = pd.DataFrame(columns=_TRANSACTION_COLUMNS)
        frame["date"] = pd.to_datetime(frame["date"])
        frame["spend"] = frame["spend"].astype(float)
        frame["amount"] = frame["amount"].astype(float)
        return frame
    frame = pd.DataFrame.from_records(records, columns=_TRANSACTION_COLUMNS)
    frame["date"] = pd.to_datetime(frame["date"])
    return frame


def _window(frame: pd.DataFrame, start: datetime, end: datetime, *, inclusive_end: bool = True) -> pd.DataFrame:
    upper = frame["date"] <= pd.Timestamp(end) if inclusive_end else frame["date"] < pd.Timestamp(end)
    return frame[(frame["date"] >= pd.Timestamp(start)) & upper]


def active_subscriptions(subscriptions: Iterable[Subscription]) -> list[Subscription]:
    return [sub for sub in subscriptions if sub.is_active]


def total_monthly_cost(subscriptions: Iterable[Subscription]) -> float:
    """Sum of monthly equivalents across active subscriptions."""

    return float(sum(sub.monthly_equivalent for sub in active_subscriptions(subscriptions)))


def average_cost_per_subscription(subscriptions: Sequence[Subscription]) -> float:
    active = active_subscriptions(subscriptions)
    if not active:
        return 0.0
    return total_monthly_cost(active) / len(active)


def build_spending_trend(
    subscriptions: Iterable[Subscription],
    transactions: Iterable[Transaction],
    date_range: DateRange,
    now: datetime,
) -> list[SpendingDataPoint]:
    """Bucket subscription and transaction spend over ``date_range``.

    Every bucket is credited with the present monthly rate of the currently
    active subscriptions; historical membership is not reconstructed.
    Transaction amounts count by absolute value in the bucket they fall in.
    A bucket is significant when its total exceeds 1.5x the series mean.
    """

    plan = plan_buckets(date_range, now)
    index = plan.bucket_starts()
    subscription_total = total_monthly_cost(subscriptions)

    frame = _window(transactions_frame(transactions), plan.start, plan.end)
    if frame.empty:
        transaction_totals = pd.Series(0.0, index=index)
    else:
        buckets = snap_series(frame["date"], plan.unit)
        transaction_totals = (
            frame.groupby(buckets)["spend"].sum().reindex(index, fill_value=0.0).astype(float)
        )

    totals = transaction_totals + subscription_total
    threshold = float(totals.mean()) * SIGNIFICANCE_FACTOR if len(totals) else 0.0

    points: list[SpendingDataPoint] = []
    for bucket_start, txn_amount in transaction_totals.items():
        total = subscription_total + float(txn_amount)
        significant = total > threshold
        points.append(
            SpendingDataPoint(
                date=pd.Timestamp(bucket_start).to_pydatetime(),
                amount=total,
                subscriptions_amount=subscription_total,
                transactions_amount=float(txn_amount),
                is_significant=significant,
                annotation="High spending" if significant else None,
            )
        )
    return points


def trend_values(points: Iterable[SpendingDataPoint]) -> list[DateValue]:
    """Project trend points onto plain ``(date, amount)`` pairs for charts."""

    return [DateValue(date=point.date, amount=point.amount) for point in points]


def build_category_breakdown(subscriptions: Iterable[Subscription]) -> list[CategorySpending]:
    """Group active subscriptions by category, largest monthly total first."""

    active = active_subscriptions(subscriptions)
    if not active:
        return []

    frame = pd.DataFrame(
        {
            "category": [sub.category for sub in active],
            "monthly": [sub.monthly_equivalent for sub in active],
        }
    )
    grouped = frame.groupby("category", sort=False)["monthly"].agg(["sum", "count"])
    grouped = grouped.sort_values("sum", ascending=False, kind="mergesort")
    grand_total = float(frame["monthly"].sum())

    return [
        CategorySpending(
            category=category,
            total_amount=float(row["sum"]),
            percentage=float(row["sum"]) / grand_total * 100 if grand_total > 0 else 0.0,
            count=int(row["count"]),
        )
        for category, row in grouped.iterrows()
    ]


def compute_year_over_year(
    subscriptions: Sequence[Subscription],
    transactions: Iterable[Transaction],
    now: datetime,
    *,
    ytd_aligned: bool = False,
) -> YearOverYearComparison:
    """Compare this year's transaction spend to the previous year.

    This year runs from 1 January to ``now``. The comparison window is the
    whole previous calendar year, or with ``ytd_aligned`` the same elapsed
    span starting on 1 January of the previous year.
    """

    this_start = datetime(now.year, 1, 1, tzinfo=now.tzinfo)
    last_start = datetime(now.year - 1, 1, 1, tzinfo=now.tzinfo)

    frame = transactions_frame(transactions)
    this_year = _window(frame, this_start, now)
    if ytd_aligned:
        last_year = _window(frame, last_start, last_start + (now - this_start))
    else:
        last_year = _window(frame, last_start, this_start, inclusive_end=False)

    this_total = float(this_year["spend"].sum())
    last_total = float(last_year["spend"].sum())
    percentage_change = (this_total - last_total) / last_total * 100 if last_total > 0 else 0.0

    months_passed = max(now.month - 1, 1)
    last_year_months = months_passed if ytd_aligned else 12

    growing, declining = compute_category_growth(this_year, last_year)

    return YearOverYearComparison(
        this_year_total=this_total,
        last_year_total=last_total,
        percentage_change=percentage_change,
        this_year_monthly_average=this_total / months_passed,
        last_year_monthly_average=last_total / last_year_months,
        this_year_subscription_count=sum(1 for sub in subscriptions if sub.created_date >= this_start),
        last_year_subscription_count=sum(
            1 for sub in subscriptions if last_start <= sub.created_date < this_start
        ),
        growing_categories=growing,
        declining_categories=declining,
    )


def compute_category_growth(
    this_year: pd.DataFrame,
    last_year: pd.DataFrame,
) -> tuple[list[CategoryGrowth], list[CategoryGrowth]]:
    """Split per-category growth into the top risers and the steepest decliners."""

    this_totals = this_year.groupby("category")["spend"].sum()
    last_totals = last_year.groupby("category")["spend"].sum()
    categories = this_totals.index.union(last_totals.index)

    growth: list[CategoryGrowth] = []
    for category in categories:
        current = float(this_totals.get(category, 0.0))
        previous = float(last_totals.get(category, 0.0))
        change = (current - previous) / previous * 100 if previous > 0 else 0.0
        growth.append(
            CategoryGrowth(
                category=TransactionCategory(category),
                this_year=current,
                last_year=previous,
                percentage_change=change,
            )
        )

    growth.sort(key=lambda row: row.percentage_change, reverse=True)
    growing = [row for row in growth if row.percentage_change > _GROWTH_THRESHOLD_PCT][:_GROWTH_LIMIT]
    declining = [row for row in growth if row.percentage_change < -_GROWTH_THRESHOLD_PCT][-_GROWTH_LIMIT:]
    return growing, declining


def analyze_linear_trend(points: Sequence[SpendingDataPoint]) -> TrendAnalysis:
    """Fit a line through a bucketed series and predict the next bucket."""

    if len(points) < 2:
        return TrendAnalysis(slope=0.0, percentage_change=0.0, is_increasing=False, prediction=0.0)

    fit = fit_linear_trend(point.amount for point in points)
    first, last = points[0].amount, points[-1].amount
    percentage_change = (last - first) / first * 100 if first > 0 else 0.0
    return TrendAnalysis(
        slope=fit.slope,
        percentage_change=percentage_change,
        is_increasing=fit.slope > 0,
        prediction=fit.predict(len(points)),
    )


def aggregate_by_month(transactions: Iterable[Transaction]) -> list[MonthlyTotal]:
    frame = transactions_frame(transactions)
    if frame.empty:
        return []
    months = snap_series(frame["date"], BucketUnit.MONTH)
    grouped = frame.groupby(months)["spend"].agg(["sum", "count"]).sort_index()
    return [
        MonthlyTotal(month=pd.Timestamp(month).to_pydatetime(), total=float(row["sum"]), transaction_count=int(row["count"]))
        for month, row in grouped.iterrows()
    ]


def aggregate_by_category(transactions: Iterable[Transaction]) -> list[CategoryTotal]:
    frame = transactions_frame(transactions)
    if frame.empty:
        return []
    grouped = frame.groupby("category")["spend"].agg(["sum", "count"])
    grouped = grouped.sort_values("sum", ascending=False, kind="mergesort")
    return [
        CategoryTotal(category=TransactionCategory(category), total=float(row["sum"]), transaction_count=int(row["count"]))
        for category, row in grouped.iterrows()
    ]


def aggregate_by_billing_cycle(subscriptions: Iterable[Subscription]) -> list[BillingCycleTotal]:
    totals: dict[BillingCycle, tuple[int, float]] = {}
    for sub in active_subscriptions(subscriptions):
        count, monthly = totals.get(sub.billing_cycle, (0, 0.0))
        totals[sub.billing_cycle] = (count + 1, monthly + sub.monthly_equivalent)
    rows = [
        BillingCycleTotal(billing_cycle=cycle, count=count, total_monthly_equivalent=monthly)
        for cycle, (count, monthly) in totals.items()
    ]
    rows.sort(key=lambda row: row.total_monthly_equivalent, reverse=True)
    return rows


def build_price_history(subscription: Subscription, price_changes: Iterable[PriceChange]) -> list[PricePoint]:
    """Chronological price points for one subscription."""

    changes = sorted(
        (change for change in price_changes if change.subscription_id == subscription.id),
        key=lambda change: change.change_date,
    )
    initial_price = changes[0].old_price if changes else subscription.price
    points = [PricePoint(date=subscription.created_date, price=initial_price, note="Initial price")]
    for change in changes:
        note = "Price increase" if change.is_increase else "Price decrease"
        points.append(PricePoint(date=change.change_date, price=change.new_price, note=note))
    return points


def most_expensive(subscriptions: Iterable[Subscription], limit: int) -> list[Subscription]:
    ranked = sorted(active_subscriptions(subscriptions), key=lambda sub: sub.monthly_equivalent, reverse=True)
    return ranked[:limit]


def least_used(subscriptions: Iterable[Subscription], limit: int) -> list[Subscription]:
    ranked = sorted(active_subscriptions(subscriptions), key=lambda sub: sub.usage_count)
    return ranked[:limit]


def recently_added(subscriptions: Iterable[Subscription], limit: int) -> list[Subscription]:
    ranked = sorted(active_subscriptions(subscriptions), key=lambda sub: sub.created_date, reverse=True)
    return ranked[:limit]
