"""Formatting helpers for savings suggestion text."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

__all__ = [
    "format_amount",
    "describe_unused",
    "describe_annual_conversion",
    "describe_price_increase",
    "describe_trial_ending",
]


def format_amount(amount: float) -> str:
    return f"{amount:,.2f}"


def describe_unused(threshold_days: int, annual_savings: float) -> str:
    return (
        f"You haven't used this subscription in {threshold_days} days. "
        f"Consider cancelling to save {format_amount(annual_savings)}/year."
    )


def describe_annual_conversion(annual_savings: float, monthly_savings: float) -> str:
    return (
        f"Switch to annual billing and save {format_amount(annual_savings)}/year "
        f"({format_amount(monthly_savings)}/month)."
    )


def describe_price_increase() -> str:
    return "Price recently increased. Review if you still need this subscription."


def describe_trial_ending(trial_end: Optional[datetime]) -> str:
    deadline = trial_end.strftime("%Y-%m-%d") if trial_end else "the trial ends"
    return f"Trial ends soon. Cancel before {deadline} to avoid charges."
