"""Tests for spending trends, breakdowns and year-over-year comparison."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from conftest import NOW, make_subscription, make_transaction
from analytics.trends import (
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
    trend_values,
)
from core.models import (
    BillingCycle,
    DateRange,
    PriceChange,
    SpendingDataPoint,
    SubscriptionCategory,
    TransactionCategory,
)


def _points(*amounts: float) -> list[SpendingDataPoint]:
    return [
        SpendingDataPoint(
            date=datetime(2024, 1, 1) + timedelta(days=index),
            amount=amount,
            subscriptions_amount=0.0,
            transactions_amount=amount,
        )
        for index, amount in enumerate(amounts)
    ]


def test_spending_trend_combines_subscription_rate_and_transactions():
    subscriptions = [make_subscription("sub", price=30.0)]
    transactions = [
        make_transaction("a", -50.0, datetime(2024, 6, 1, 9, 0)),
        make_transaction("b", -20.0, datetime(2024, 6, 10, 18, 0)),
        make_transaction("outside", -999.0, datetime(2024, 4, 1)),
    ]

    points = build_spending_trend(subscriptions, transactions, DateRange.month(), NOW)

    assert len(points) == 32
    assert points[0].date == datetime(2024, 5, 15)
    assert points[-1].date == datetime(2024, 6, 15)
    assert all(point.subscriptions_amount == pytest.approx(30.0) for point in points)
    assert sum(point.transactions_amount for point in points) == pytest.approx(70.0)

    by_day = {point.date: point for point in points}
    assert by_day[datetime(2024, 6, 1)].amount == pytest.approx(80.0)
    assert by_day[datetime(2024, 6, 1)].is_significant
    assert by_day[datetime(2024, 6, 1)].annotation == "High spending"
    assert not by_day[datetime(2024, 6, 2)].is_significant
    assert by_day[datetime(2024, 6, 2)].annotation is None


def test_spending_trend_with_no_data_is_a_flat_zero_series():
    points = build_spending_trend([], [], DateRange.year(), NOW)

    assert len(points) == 13
    assert all(point.amount == 0.0 and not point.is_significant for point in points)
    assert [value.amount for value in trend_values(points)] == [0.0] * 13


def test_category_breakdown_sorts_by_monthly_total(sample_subscriptions):
    breakdown = build_category_breakdown(
        sample_subscriptions
        + [make_subscription("disney", price=6.0, category=SubscriptionCategory.ENTERTAINMENT)]
    )

    assert [row.category for row in breakdown] == [
        SubscriptionCategory.ENTERTAINMENT,
        SubscriptionCategory.FITNESS,
        SubscriptionCategory.CLOUD,
    ]
    assert breakdown[0].total_amount == pytest.approx(21.0)
    assert breakdown[0].count == 2
    assert sum(row.percentage for row in breakdown) == pytest.approx(100.0)
    assert build_category_breakdown([]) == []


def test_category_breakdown_example_totals_twenty():
    breakdown = build_category_breakdown(
        [
            make_subscription("monthly", price=10.0),
            make_subscription("annual", price=120.0, billing_cycle=BillingCycle.ANNUAL),
            make_subscription("lifetime", price=0.0, billing_cycle=BillingCycle.LIFETIME),
        ]
    )

    assert sum(row.total_amount for row in breakdown) == pytest.approx(20.0)
    assert breakdown[0].count == 3


def test_year_over_year_percentage_change():
    transactions = [
        make_transaction("last-1", -600.0, datetime(2023, 3, 1), TransactionCategory.GROCERIES),
        make_transaction("last-2", -400.0, datetime(2023, 11, 20), TransactionCategory.TRAVEL),
        make_transaction("this-1", -900.0, datetime(2024, 2, 1), TransactionCategory.GROCERIES),
        make_transaction("this-2", -300.0, datetime(2024, 5, 5), TransactionCategory.TRAVEL),
    ]
    subscriptions = [
        make_subscription("new", created_date=datetime(2024, 2, 1)),
        make_subscription("older", created_date=datetime(2023, 5, 1)),
    ]

    result = compute_year_over_year(subscriptions, transactions, NOW)

    assert result.this_year_total == pytest.approx(1200.0)
    assert result.last_year_total == pytest.approx(1000.0)
    assert result.percentage_change == pytest.approx(20.0)
    assert result.this_year_monthly_average == pytest.approx(1200.0 / 5)
    assert result.last_year_monthly_average == pytest.approx(1000.0 / 12)
    assert result.this_year_subscription_count == 1
    assert result.last_year_subscription_count == 1
    assert [row.category for row in result.growing_categories] == [TransactionCategory.GROCERIES]
    assert result.growing_categories[0].percentage_change == pytest.approx(50.0)
    assert [row.category for row in result.declining_categories] == [TransactionCategory.TRAVEL]


def test_year_over_year_aligned_window_excludes_late_prior_year_spend():
    transactions = [
        make_transaction("last-early", -500.0, datetime(2023, 2, 1)),
        make_transaction("last-late", -500.0, datetime(2023, 11, 1)),
        make_transaction("this", -750.0, datetime(2024, 3, 1)),
    ]

    result = compute_year_over_year([], transactions, NOW, ytd_aligned=True)

    assert result.last_year_total == pytest.approx(500.0)
    assert result.percentage_change == pytest.approx(50.0)
    assert result.last_year_monthly_average == pytest.approx(100.0)


def test_year_over_year_without_prior_spend_reports_zero_change():
    result = compute_year_over_year([], [make_transaction("only", -10.0, datetime(2024, 1, 2))], NOW)

    assert result.percentage_change == 0.0
    assert result.growing_categories == []


def test_linear_trend_analysis():
    analysis = analyze_linear_trend(_points(10.0, 20.0, 30.0))

    assert analysis.slope == pytest.approx(10.0)
    assert analysis.percentage_change == pytest.approx(200.0)
    assert analysis.is_increasing
    assert analysis.prediction == pytest.approx(40.0)


def test_linear_trend_analysis_needs_two_points():
    analysis = analyze_linear_trend(_points(50.0))

    assert (analysis.slope, analysis.percentage_change, analysis.is_increasing, analysis.prediction) == (
        0.0,
        0.0,
        False,
        0.0,
    )


def test_transaction_aggregations(sample_transactions):
    monthly = aggregate_by_month(sample_transactions)
    assert [(row.month, row.total, row.transaction_count) for row in monthly] == [
        (datetime(2023, 8, 1), 400.0, 1),
        (datetime(2024, 6, 1), 70.0, 2),
    ]

    categories = aggregate_by_category(sample_transactions)
    assert [row.category for row in categories] == [
        TransactionCategory.TRAVEL,
        TransactionCategory.GROCERIES,
        TransactionCategory.DINING,
    ]
    assert categories[0].average_amount == pytest.approx(400.0)
    assert aggregate_by_month([]) == []


def test_billing_cycle_aggregation_and_rankings(sample_subscriptions):
    cycles = aggregate_by_billing_cycle(sample_subscriptions)
    assert [(row.billing_cycle, row.count) for row in cycles] == [
        (BillingCycle.MONTHLY, 2),
        (BillingCycle.ANNUAL, 1),
    ]
    assert cycles[0].total_monthly_equivalent == pytest.approx(35.0)

    assert [sub.id for sub in most_expensive(sample_subscriptions, 2)] == ["gym", "netflix"]
    assert [sub.id for sub in least_used(sample_subscriptions, 1)] == ["gym"]
    assert [sub.id for sub in recently_added(sample_subscriptions, 1)] == ["icloud"]
    assert average_cost_per_subscription(sample_subscriptions) == pytest.approx(45.0 / 3)


def test_price_history_is_chronological():
    sub = make_subscription("stream", price=14.0, created_date=datetime(2023, 1, 1))
    changes = [
        PriceChange("stream", 12.0, 14.0, datetime(2024, 3, 1)),
        PriceChange("stream", 10.0, 12.0, datetime(2023, 6, 1)),
        PriceChange("other", 1.0, 2.0, datetime(2023, 7, 1)),
    ]

    history = build_price_history(sub, changes)

    assert [(point.date, point.price) for point in history] == [
        (datetime(2023, 1, 1), 10.0),
        (datetime(2023, 6, 1), 12.0),
        (datetime(2024, 3, 1), 14.0),
    ]
    assert history[1].note == "Price increase"
