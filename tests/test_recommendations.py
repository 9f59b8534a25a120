"""Tests for unused, price-increase and trial detection and savings suggestions."""

from __future__ import annotations

from datetime import timedelta

import pytest

from conftest import NOW, make_subscription
from analytics.recommendations import (
    UnusedThreshold,
    detect_price_increases,
    detect_trials_ending_soon,
    detect_unused_subscriptions,
    generate_savings_opportunities,
    suggest_annual_conversions,
    suggest_cancellations,
)
from core.models import BillingCycle, PriceChange, SuggestionPriority, SuggestionType


@pytest.fixture()
def never_used():
    return make_subscription("idle", price=20.0, usage_count=0, created_date=NOW - timedelta(days=100))


def test_never_used_subscription_is_unused_after_threshold(never_used):
    fresh = make_subscription("fresh", usage_count=0, created_date=NOW - timedelta(days=10))
    subscriptions = [never_used, fresh]

    assert detect_unused_subscriptions(subscriptions, NOW, 60) == [never_used]
    assert detect_unused_subscriptions(subscriptions, NOW, UnusedThreshold.CANCELLATION) == [never_used]
    assert detect_unused_subscriptions(subscriptions, NOW, 120) == []


def test_unused_detection_uses_last_used_date_and_skips_inactive():
    stale = make_subscription("stale", usage_count=5, last_used_date=NOW - timedelta(days=45))
    recent = make_subscription("recent", usage_count=5, last_used_date=NOW - timedelta(days=2))
    paused = make_subscription("paused", is_active=False, last_used_date=NOW - timedelta(days=400))

    assert detect_unused_subscriptions([stale, recent, paused], NOW) == [stale]


def test_unused_subscription_is_suggested_for_cancellation(never_used):
    active = make_subscription("active", usage_count=10, last_used_date=NOW)

    assert suggest_cancellations([active, never_used], NOW) == [never_used]


def test_cancellation_candidates_include_trials_billing_within_three_days():
    trial = make_subscription(
        "trial",
        is_free_trial=True,
        trial_start_date=NOW - timedelta(days=10),
        trial_end_date=NOW + timedelta(days=2),
        usage_count=3,
        last_used_date=NOW,
    )
    later_trial = make_subscription(
        "later",
        is_free_trial=True,
        trial_start_date=NOW - timedelta(days=10),
        trial_end_date=NOW + timedelta(days=5),
        usage_count=3,
        last_used_date=NOW,
    )

    assert [sub.id for sub in suggest_cancellations([trial, later_trial], NOW)] == ["trial"]
    assert [sub.id for sub in detect_trials_ending_soon([trial, later_trial], NOW)] == ["trial", "later"]


def test_price_increase_detection_uses_latest_change_in_window():
    recent = make_subscription("recent")
    stale = make_subscription("stale")
    cancelled = make_subscription("cancelled", is_active=False, cancellation_date=NOW)
    changes = [
        PriceChange("recent", 8.0, 10.0, NOW - timedelta(days=5)),
        PriceChange("stale", 8.0, 10.0, NOW - timedelta(days=45)),
        PriceChange("cancelled", 8.0, 10.0, NOW - timedelta(days=1)),
    ]

    assert detect_price_increases([recent, stale, cancelled], changes, NOW) == [recent]
    assert detect_price_increases([recent, stale], changes, NOW, within_days=60) == [recent, stale]


def test_annual_conversion_suggestions():
    cheap = make_subscription("cheap", price=4.99)
    pricey = make_subscription("pricey", price=20.0)
    mid = make_subscription("mid", price=6.0)
    annual = make_subscription("annual", price=100.0, billing_cycle=BillingCycle.ANNUAL)

    suggestions = suggest_annual_conversions([cheap, mid, pricey, annual])

    assert [row.subscription.id for row in suggestions] == ["pricey", "mid"]
    top = suggestions[0]
    assert top.annual_cost == pytest.approx(200.0)
    assert top.annual_savings == pytest.approx(40.0)
    assert top.monthly_savings == pytest.approx(40.0 / 12)
    assert top.break_even_months == 10


def test_annual_conversion_requires_savings_above_ten():
    assert suggest_annual_conversions([make_subscription("five", price=5.0)]) == []


def test_savings_opportunities_are_sorted_and_prioritised(never_used):
    trial = make_subscription(
        "trial",
        price=1.0,
        is_free_trial=True,
        trial_start_date=NOW - timedelta(days=10),
        trial_end_date=NOW + timedelta(days=4),
        price_after_trial=15.0,
        usage_count=1,
        last_used_date=NOW,
    )
    raised = make_subscription("raised", price=4.0, usage_count=9, last_used_date=NOW)
    changes = [PriceChange("raised", 3.0, 4.0, NOW - timedelta(days=3))]

    suggestions = generate_savings_opportunities([never_used, trial, raised], changes, NOW)

    assert [(row.type, row.subscription.id) for row in suggestions] == [
        (SuggestionType.UNUSED, "idle"),
        (SuggestionType.TRIAL_ENDING, "trial"),
        (SuggestionType.ANNUAL_CONVERSION, "idle"),
        (SuggestionType.PRICE_INCREASE, "raised"),
    ]
    unused, trial_row, annual_row, price_row = suggestions
    assert unused.potential_savings == pytest.approx(240.0)
    assert unused.priority is SuggestionPriority.HIGH
    assert "60 days" in unused.description
    assert trial_row.potential_savings == pytest.approx(180.0)
    assert trial_row.priority is SuggestionPriority.URGENT
    assert "2024-06-19" in trial_row.description
    assert annual_row.potential_savings == pytest.approx(40.0)
    assert annual_row.priority is SuggestionPriority.MEDIUM
    assert price_row.potential_savings == 0.0
    assert price_row.priority is SuggestionPriority.MEDIUM


def test_low_value_unused_subscription_is_medium_priority():
    idle = make_subscription("idle", price=5.0, usage_count=0, created_date=NOW - timedelta(days=100))

    (suggestion,) = [
        row
        for row in generate_savings_opportunities([idle], [], NOW)
        if row.type is SuggestionType.UNUSED
    ]

    assert suggestion.potential_savings == pytest.approx(60.0)
    assert suggestion.priority is SuggestionPriority.MEDIUM
