"""Shared data model definitions for the subscription analytics engine."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

import pandas as pd


class BillingCycle(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    SEMIANNUAL = "semiannual"
    ANNUAL = "annual"
    LIFETIME = "lifetime"

    @property
    def renews(self) -> bool:
        return self is not BillingCycle.LIFETIME


# (multiplier, divisor) pairs so that e.g. annual stays exactly ``price / 12``.
_MONTHLY_FACTORS: dict[BillingCycle, tuple[float, float]] = {
    BillingCycle.DAILY: (30.0, 1.0),
    BillingCycle.WEEKLY: (4.33, 1.0),
    BillingCycle.BIWEEKLY: (2.17, 1.0),
    BillingCycle.MONTHLY: (1.0, 1.0),
    BillingCycle.QUARTERLY: (1.0, 3.0),
    BillingCycle.SEMIANNUAL: (1.0, 6.0),
    BillingCycle.ANNUAL: (1.0, 12.0),
    BillingCycle.LIFETIME: (0.0, 1.0),
}


def monthly_equivalent(price: float, cycle: BillingCycle) -> float:
    """Normalise ``price`` billed every ``cycle`` to an approximate monthly cost."""

    multiplier, divisor = _MONTHLY_FACTORS[cycle]
    if multiplier == 0:
        return 0.0
    return price * multiplier / divisor


class SubscriptionCategory(str, Enum):
    ENTERTAINMENT = "entertainment"
    PRODUCTIVITY = "productivity"
    FITNESS = "fitness"
    HEALTH = "health"
    EDUCATION = "education"
    NEWS = "news"
    MUSIC = "music"
    CLOUD = "cloud"
    GAMING = "gaming"
    DESIGN = "design"
    DEVELOPMENT = "development"
    FINANCE = "finance"
    UTILITIES = "utilities"
    OTHER = "other"


class TransactionCategory(str, Enum):
    FOOD = "food"
    DINING = "dining"
    GROCERIES = "groceries"
    TRANSPORTATION = "transportation"
    TRAVEL = "travel"
    SHOPPING = "shopping"
    ENTERTAINMENT = "entertainment"
    BILLS = "bills"
    UTILITIES = "utilities"
    HEALTHCARE = "healthcare"
    INCOME = "income"
    TRANSFER = "transfer"
    INVESTMENT = "investment"
    OTHER = "other"


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    TRIALING = "trialing"
    PAUSED = "paused"
    CANCELLED = "cancelled"


@dataclass
class Subscription:
    """A recurring charge owned by the storage collaborator."""

    id: str
    name: str
    price: float
    billing_cycle: BillingCycle
    next_billing_date: datetime
    category: SubscriptionCategory = SubscriptionCategory.OTHER
    is_active: bool = True
    cancellation_date: Optional[datetime] = None
    is_free_trial: bool = False
    trial_start_date: Optional[datetime] = None
    trial_end_date: Optional[datetime] = None
    price_after_trial: Optional[float] = None
    will_convert_to_paid: bool = True
    usage_count: int = 0
    last_used_date: Optional[datetime] = None
    created_date: datetime = field(default_factory=datetime.now)

    @property
    def monthly_equivalent(self) -> float:
        return monthly_equivalent(self.price, self.billing_cycle)

    @property
    def status(self) -> SubscriptionStatus:
        if self.is_active:
            return SubscriptionStatus.TRIALING if self.is_free_trial else SubscriptionStatus.ACTIVE
        if self.cancellation_date is not None:
            return SubscriptionStatus.CANCELLED
        return SubscriptionStatus.PAUSED


@dataclass(frozen=True)
class Transaction:
    """A signed ledger entry; negative amounts are expenses."""

    id: str
    amount: float
    date: datetime
    category: TransactionCategory = TransactionCategory.OTHER
    is_recurring: bool = False
    tags: tuple[str, ...] = ()


@dataclass(frozen=True)
class PriceChange:
    """Append-only record of a subscription price edit."""

    subscription_id: str
    old_price: float
    new_price: float
    change_date: datetime
    detected_automatically: bool = False

    @property
    def is_increase(self) -> bool:
        return self.new_price > self.old_price

    @property
    def change_percentage(self) -> float:
        if self.old_price <= 0:
            return 0.0
        return (self.new_price - self.old_price) / self.old_price * 100


class RangeKind(str, Enum):
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"
    CUSTOM = "custom"


_RELATIVE_OFFSETS = {
    RangeKind.WEEK: pd.DateOffset(days=7),
    RangeKind.MONTH: pd.DateOffset(months=1),
    RangeKind.QUARTER: pd.DateOffset(months=3),
    RangeKind.YEAR: pd.DateOffset(years=1),
}


@dataclass(frozen=True)
class DateRange:
    """A reporting window; relative kinds resolve against the caller's clock.

    Relative ranges hash by kind only so they can key cached series across
    calls made at slightly different instants.
    """

    kind: RangeKind
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    @classmethod
    def week(cls) -> "DateRange":
        return cls(RangeKind.WEEK)

    @classmethod
    def month(cls) -> "DateRange":
        return cls(RangeKind.MONTH)

    @classmethod
    def quarter(cls) -> "DateRange":
        return cls(RangeKind.QUARTER)

    @classmethod
    def year(cls) -> "DateRange":
        return cls(RangeKind.YEAR)

    @classmethod
    def custom(cls, start: datetime, end: datetime) -> "DateRange":
        if start > end:
            raise ValueError("custom range start must not be after its end")
        return cls(RangeKind.CUSTOM, start, end)

    def bounds(self, now: datetime) -> tuple[datetime, datetime]:
        """Return the concrete ``(start, end)`` for this range."""

        if self.kind is RangeKind.CUSTOM:
            if self.start is None or self.end is None:
                raise ValueError("custom range requires both start and end")
            return self.start, self.end
        start = (pd.Timestamp(now) - _RELATIVE_OFFSETS[self.kind]).to_pydatetime()
        return start, now


@dataclass(frozen=True)
class DateValue:
    date: datetime
    amount: float


@dataclass(frozen=True)
class SpendingDataPoint:
    date: datetime
    amount: float
    subscriptions_amount: float
    transactions_amount: float
    is_significant: bool = False
    annotation: Optional[str] = None


@dataclass(frozen=True)
class CategorySpending:
    category: SubscriptionCategory
    total_amount: float
    percentage: float
    count: int


@dataclass(frozen=True)
class ForecastValue:
    date: datetime
    predicted_amount: float
    confidence: float
    lower_bound: float
    upper_bound: float


@dataclass(frozen=True)
class CategoryGrowth:
    category: TransactionCategory
    this_year: float
    last_year: float
    percentage_change: float


@dataclass(frozen=True)
class YearOverYearComparison:
    this_year_total: float
    last_year_total: float
    percentage_change: float
    this_year_monthly_average: float
    last_year_monthly_average: float
    this_year_subscription_count: int
    last_year_subscription_count: int
    growing_categories: list[CategoryGrowth] = field(default_factory=list)
    declining_categories: list[CategoryGrowth] = field(default_factory=list)


@dataclass(frozen=True)
class TrendAnalysis:
    slope: float
    percentage_change: float
    is_increasing: bool
    prediction: float


class SuggestionType(str, Enum):
    UNUSED = "unused"
    ANNUAL_CONVERSION = "annual_conversion"
    PRICE_INCREASE = "price_increase"
    TRIAL_ENDING = "trial_ending"


class SuggestionPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


@dataclass(frozen=True)
class SavingsSuggestion:
    type: SuggestionType
    subscription: Subscription
    potential_savings: float
    description: str
    priority: SuggestionPriority


@dataclass(frozen=True)
class AnnualSuggestion:
    """Savings from switching a monthly plan to an annual one."""

    subscription: Subscription
    current_monthly_cost: float
    annual_cost: float

    @property
    def annual_savings(self) -> float:
        return self.current_monthly_cost * 12 - self.annual_cost

    @property
    def monthly_savings(self) -> float:
        return self.annual_savings / 12

    @property
    def break_even_months(self) -> int:
        if self.current_monthly_cost <= 0:
            return 0
        return int(math.ceil(self.annual_cost / self.current_monthly_cost))


@dataclass(frozen=True)
class SubscriptionStatistics:
    total_active: int
    total_inactive: int
    total_monthly_cost: float
    total_annual_cost: float
    most_expensive_category: Optional[SubscriptionCategory]
    average_cost_per_subscription: float
    upcoming_renewals_7_days: int
    upcoming_renewals_30_days: int
    free_trials: int
    trials_ending_soon: int


@dataclass(frozen=True)
class SubscriptionStatisticsData:
    total_active: int
    total_monthly: float
    total_yearly: float
    average_cost: float
    most_expensive: list[Subscription]
    least_used: list[Subscription]
    recently_added: list[Subscription]
    trials_ending: list[Subscription]


class SpendingTrend(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


@dataclass(frozen=True)
class SpendingStatistics:
    current_month: float
    last_month: float
    monthly_average: float
    yearly_total: float
    percentage_change: float
    trend: SpendingTrend


@dataclass(frozen=True)
class MonthlyTotal:
    month: datetime
    total: float
    transaction_count: int


@dataclass(frozen=True)
class CategoryTotal:
    category: TransactionCategory
    total: float
    transaction_count: int

    @property
    def average_amount(self) -> float:
        return self.total / self.transaction_count if self.transaction_count else 0.0


@dataclass(frozen=True)
class BillingCycleTotal:
    billing_cycle: BillingCycle
    count: int
    total_monthly_equivalent: float


@dataclass(frozen=True)
class PricePoint:
    date: datetime
    price: float
    note: str


__all__ = [
    "BillingCycle",
    "SubscriptionCategory",
    "TransactionCategory",
    "SubscriptionStatus",
    "Subscription",
    "monthly_equivalent",
    "Transaction",
    "PriceChange",
    "RangeKind",
    "DateRange",
    "DateValue",
    "SpendingDataPoint",
    "CategorySpending",
    "ForecastValue",
    "CategoryGrowth",
    "YearOverYearComparison",
    "TrendAnalysis",
    "SuggestionType",
    "SuggestionPriority",
    "SavingsSuggestion",
    "AnnualSuggestion",
    "SubscriptionStatistics",
    "SubscriptionStatisticsData",
    "SpendingTrend",
    "SpendingStatistics",
    "MonthlyTotal",
    "CategoryTotal",
    "BillingCycleTotal",
    "PricePoint",
]
