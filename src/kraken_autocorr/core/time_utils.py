from __future__ import annotations

from collections.abc import Iterator
from datetime import UTC, datetime

from kraken_autocorr.core.enums import TimePeriod


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


def to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def from_epoch_seconds(value: float | int | str) -> datetime:
    return datetime.fromtimestamp(float(value), tz=UTC)


def floor_to_period(value: datetime, period: TimePeriod | str) -> datetime:
    """Truncate ``value`` to the start of its enclosing period, in UTC."""
    period = TimePeriod(period)
    value_utc = to_utc(value)
    if period is TimePeriod.SECOND:
        return value_utc.replace(microsecond=0)
    if period is TimePeriod.MINUTE:
        return value_utc.replace(second=0, microsecond=0)
    if period is TimePeriod.HOUR:
        return value_utc.replace(minute=0, second=0, microsecond=0)
    return value_utc.replace(hour=0, minute=0, second=0, microsecond=0)


def iter_buckets_backward(now: datetime, period: TimePeriod | str, count: int) -> Iterator[datetime]:
    period = TimePeriod(period)
    cursor = to_utc(now)
    for _ in range(count):
        yield floor_to_period(cursor, period)
        cursor -= period.stride
