from __future__ import annotations

from datetime import timedelta
from enum import Enum


class TimePeriod(str, Enum):
    SECOND = "second"
    MINUTE = "minute"
    HOUR = "hour"
    DAY = "day"

    @property
    def stride(self) -> timedelta:
        return _STRIDES[self]


_STRIDES = {
    TimePeriod.SECOND: timedelta(seconds=1),
    TimePeriod.MINUTE: timedelta(minutes=1),
    TimePeriod.HOUR: timedelta(hours=1),
    TimePeriod.DAY: timedelta(days=1),
}


class PriceField(str, Enum):
    ESTIMATE = "estimate"
    OBSERVED = "observed"


class Unresolved(str, Enum):
    INSUFFICIENT_DATA = "insufficient_data"
    LAG_TOO_LARGE = "lag_too_large"
    ZERO_VARIANCE = "zero_variance"
