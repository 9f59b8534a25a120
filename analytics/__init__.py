"""Analytics engines shared across the subscription analytics services."""

from analytics.bucketing import BucketPlan, BucketUnit, bucket_unit_for, plan_buckets, snap_series, snap_to_bucket
from analytics.forecasting import MIN_HISTORY_POINTS, flat_forecast, forecast_spending, horizon_confidence
from analytics.recommendations import (
    UnusedThreshold,
    detect_price_increases,
    detect_trials_ending_soon,
    detect_unused_subscriptions,
    generate_savings_opportunities,
    suggest_annual_conversions,
    suggest_cancellations,
)
from analytics.regression import LinearFit, fit_linear_trend
from analytics.trends import (
    aggregate_by_billing_cycle,
    aggregate_by_category,
    aggregate_by_month,
    analyze_linear_trend,
    build_category_breakdown,
    build_price_history,
    build_spending_trend,
    compute_category_growth,
    compute_year_over_year,
    total_monthly_cost,
    trend_values,
)

__all__ = [
    "BucketPlan",
    "BucketUnit",
    "bucket_unit_for",
    "plan_buckets",
    "snap_series",
    "snap_to_bucket",
    "MIN_HISTORY_POINTS",
    "flat_forecast",
    "forecast_spending",
    "horizon_confidence",
    "UnusedThreshold",
    "detect_price_increases",
    "detect_trials_ending_soon",
    "detect_unused_subscriptions",
    "generate_savings_opportunities",
    "suggest_annual_conversions",
    "suggest_cancellations",
    "LinearFit",
    "fit_linear_trend",
    "aggregate_by_billing_cycle",
    "aggregate_by_category",
    "aggregate_by_month",
    "analyze_linear_trend",
    "build_category_breakdown",
    "build_price_history",
    "build_spending_trend",
    "compute_category_growth",
    "compute_year_over_year",
    "total_monthly_cost",
    "trend_values",
]
