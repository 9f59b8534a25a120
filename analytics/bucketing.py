"""Time-bucketing policy for trend series."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

import pandas as pd

from core.models import DateRange, RangeKind

__all__ = [
    "BucketUnit",
    "BucketPlan",
    "bucket_unit_for",
    "plan_buckets",
    "snap_to_bucket",
    "snap_series",
]

logger = logging.getLogger(__name__)


class BucketUnit(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"

    @property
    def freq(self) -> str:
        return _FREQUENCIES[self]


# Weeks start on Monday.
_FREQUENCIES = {
    BucketUnit.DAY: "D",
    BucketUnit.WEEK: "W-MON",
    BucketUnit.MONTH: "MS",
}

_FIXED_UNITS = {
    RangeKind.WEEK: BucketUnit.DAY,
    RangeKind.MONTH: BucketUnit.DAY,
    RangeKind.QUARTER: BucketUnit.WEEK,
    RangeKind.YEAR: BucketUnit.MONTH,
}


def bucket_unit_for(kind: RangeKind, start: datetime, end: datetime) -> BucketUnit:
    """Return the bucket granularity used for a range.

    Custom ranges bucket by day up to 30 days, by week up to 90 days and by
    month beyond that.
    """

    if kind in _FIXED_UNITS:
        return _FIXED_UNITS[kind]
    span_days = (pd.Timestamp(end) - pd.Timestamp(start)).days
    if span_days <= 30:
        return BucketUnit.DAY
    if span_days <= 90:
        return BucketUnit.WEEK
    return BucketUnit.MONTH


def snap_to_bucket(moment: datetime, unit: BucketUnit) -> pd.Timestamp:
    """Return the start of the bucket containing ``moment``."""

    stamp = pd.Timestamp(moment).normalize()
    if unit is BucketUnit.WEEK:
        return stamp - pd.Timedelta(days=stamp.weekday())
    if unit is BucketUnit.MONTH:
        return stamp - pd.Timedelta(days=stamp.day - 1)
    return stamp


def snap_series(dates: pd.Series, unit: BucketUnit) -> pd.Series:
    """Vectorised :func:`snap_to_bucket` for a datetime series."""

    normalized = dates.dt.normalize()
    if unit is BucketUnit.WEEK:
        return normalized - pd.to_timedelta(normalized.dt.weekday, unit="D")
    if unit is BucketUnit.MONTH:
        return normalized - pd.to_timedelta(normalized.dt.day - 1, unit="D")
    return normalized


@dataclass(frozen=True)
class BucketPlan:
    """Concrete bucket layout for one resolved date range."""

    unit: BucketUnit
    start: pd.Timestamp
    end: pd.Timestamp

    def snap(self, moment: datetime) -> pd.Timestamp:
        try:
            return snap_to_bucket(moment, self.unit)
        except (ValueError, OverflowError):
            logger.warning("Could not bucket %r; using range end", moment, exc_info=True)
            return snap_to_bucket(self.end, self.unit)

    def bucket_starts(self) -> pd.DatetimeIndex:
        """Every bucket start from the bucket holding ``start`` to the one holding ``end``."""

        first = snap_to_bucket(self.start, self.unit)
        last = snap_to_bucket(self.end, self.unit)
        return pd.date_range(first, last, freq=self.unit.freq)

    def contains(self, moment: datetime) -> bool:
        return self.start <= pd.Timestamp(moment) <= self.end


def plan_buckets(date_range: DateRange, now: datetime) -> BucketPlan:
    """Resolve ``date_range`` against ``now`` and choose its bucket unit."""

    start, end = date_range.bounds(now)
    unit = bucket_unit_for(date_range.kind, start, end)
    return BucketPlan(unit=unit, start=pd.Timestamp(start), end=pd.Timestamp(end))
