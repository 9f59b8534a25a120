"""Monthly spend forecasting over bucketed trend history."""

from __future__ import annotations

from datetime import datetime
from typing import Sequence

import pandas as pd

from analytics.regression import fit_linear_trend
from core.models import ForecastValue, SpendingDataPoint

__all__ = [
    "MIN_HISTORY_POINTS",
    "forecast_spending",
    "flat_forecast",
    "horizon_confidence",
]

MIN_HISTORY_POINTS = 3
_FLAT_CONFIDENCE = 0.5
_FLAT_BAND = 0.1
_CONFIDENCE_FLOOR = 0.3
_CONFIDENCE_DECAY = 0.08
_BAND_WIDTH = 0.2


def horizon_confidence(month: int) -> float:
    """Confidence for a forecast ``month`` steps ahead, never below 0.3."""

    return max(_CONFIDENCE_FLOOR, 1.0 - _CONFIDENCE_DECAY * month)


def _future_month(now: datetime, month: int) -> datetime:
    return (pd.Timestamp(now) + pd.DateOffset(months=month)).to_pydatetime()


def flat_forecast(months: int, amount: float, now: datetime) -> list[ForecastValue]:
    """Repeat ``amount`` for each month with a fixed +/-10% band."""

    return [
        ForecastValue(
            date=_future_month(now, month),
            predicted_amount=amount,
            confidence=_FLAT_CONFIDENCE,
            lower_bound=max(0.0, amount * (1 - _FLAT_BAND)),
            upper_bound=amount * (1 + _FLAT_BAND),
        )
        for month in range(1, months + 1)
    ]


def forecast_spending(
    history: Sequence[SpendingDataPoint],
    months: int,
    now: datetime,
    current_monthly_total: float,
) -> list[ForecastValue]:
    """Project spend ``months`` ahead from a bucketed history.

    With fewer than three history points the forecast is flat at
    ``current_monthly_total``. Otherwise a least-squares line is evaluated at
    ``len(history) + m`` for each future month ``m``; the band around each
    prediction widens as confidence decays with the horizon.
    """

    if months < 1:
        return []
    if len(history) < MIN_HISTORY_POINTS:
        return flat_forecast(months, current_monthly_total, now)

    fit = fit_linear_trend(point.amount for point in history)
    forecasts: list[ForecastValue] = []
    for month in range(1, months + 1):
        predicted = fit.predict(len(history) + month)
        confidence = horizon_confidence(month)
        half_width = predicted * _BAND_WIDTH * (1.0 - confidence)
        forecasts.append(
            ForecastValue(
                date=_future_month(now, month),
                predicted_amount=predicted,
                confidence=confidence,
                lower_bound=max(0.0, predicted - half_width),
                upper_bound=predicted + half_width,
            )
        )
    return forecasts
