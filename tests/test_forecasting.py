"""Tests for monthly spend forecasting."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from conftest import NOW
from analytics.forecasting import flat_forecast, forecast_spending, horizon_confidence
from core.models import SpendingDataPoint


def _history(*amounts: float) -> list[SpendingDataPoint]:
    return [
        SpendingDataPoint(
            date=datetime(2024, 1, 1) + timedelta(days=31 * index),
            amount=amount,
            subscriptions_amount=amount,
            transactions_amount=0.0,
        )
        for index, amount in enumerate(amounts)
    ]


def test_short_history_produces_flat_forecast():
    forecast = forecast_spending(_history(100.0, 500.0), 3, NOW, current_monthly_total=20.0)

    assert [value.predicted_amount for value in forecast] == [20.0, 20.0, 20.0]
    assert all(value.confidence == 0.5 for value in forecast)
    assert forecast[0].lower_bound == pytest.approx(18.0)
    assert forecast[0].upper_bound == pytest.approx(22.0)
    assert [value.date for value in forecast] == [
        datetime(2024, 7, 15, 12, 0),
        datetime(2024, 8, 15, 12, 0),
        datetime(2024, 9, 15, 12, 0),
    ]


def test_non_positive_horizon_is_empty():
    assert forecast_spending(_history(1.0, 2.0, 3.0), 0, NOW, 10.0) == []
    assert forecast_spending([], -2, NOW, 10.0) == []


def test_linear_forecast_extends_history_trend():
    forecast = forecast_spending(_history(100.0, 110.0, 120.0), 2, NOW, current_monthly_total=0.0)

    first, second = forecast
    assert first.predicted_amount == pytest.approx(140.0)
    assert first.confidence == pytest.approx(0.92)
    assert first.lower_bound == pytest.approx(140.0 - 140.0 * 0.2 * 0.08)
    assert first.upper_bound == pytest.approx(140.0 + 140.0 * 0.2 * 0.08)
    assert second.predicted_amount == pytest.approx(150.0)
    assert second.confidence == pytest.approx(0.84)


def test_declining_history_never_forecasts_negative_spend():
    forecast = forecast_spending(_history(300.0, 200.0, 100.0), 6, NOW, 50.0)

    assert all(value.predicted_amount >= 0.0 for value in forecast)
    assert all(value.lower_bound >= 0.0 for value in forecast)
    assert all(value.lower_bound <= value.predicted_amount <= value.upper_bound for value in forecast)


def test_horizon_confidence_decays_to_floor():
    values = [horizon_confidence(month) for month in range(1, 13)]

    assert values == sorted(values, reverse=True)
    assert values[0] == pytest.approx(0.92)
    assert values[-1] == pytest.approx(0.3)
    assert min(values) == pytest.approx(0.3)


def test_flat_forecast_clamps_negative_amounts():
    assert flat_forecast(1, 0.0, NOW)[0].lower_bound == 0.0
