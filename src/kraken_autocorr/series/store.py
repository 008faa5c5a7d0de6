from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from kraken_autocorr.core.config import MAX_PERIODS, MIN_PERIODS, ConfigError
from kraken_autocorr.core.enums import PriceField, TimePeriod
from kraken_autocorr.core.time_utils import floor_to_period, iter_buckets_backward
from kraken_autocorr.series.locks import ReadWriteLock

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PriceSample:
    """Two independently written price fields for one bucket.

    ``estimate`` is produced internally, ``observed`` comes from the exchange.
    Each setter touches only its own field.
    """

    estimate: float | None = None
    observed: float | None = None

    def set_estimate(self, value: float | None) -> None:
        self.estimate = value

    def set_observed(self, value: float | None) -> None:
        self.observed = value

    def write(self, field: PriceField, value: float | None) -> None:
        if field is PriceField.ESTIMATE:
            self.set_estimate(value)
        else:
            self.set_observed(value)

    @property
    def price(self) -> float | None:
        return _preferred_price(self.estimate, self.observed)

    def point(self, bucket: datetime) -> SeriesPoint:
        return SeriesPoint(bucket=bucket, estimate=self.estimate, observed=self.observed)


@dataclass(frozen=True, slots=True)
class SeriesPoint:
    bucket: datetime
    estimate: float | None
    observed: float | None

    @property
    def price(self) -> float | None:
        return _preferred_price(self.estimate, self.observed)


def _preferred_price(estimate: float | None, observed: float | None) -> float | None:
    return observed if observed is not None else estimate


def is_usable_price(value: float | None) -> bool:
    """True for finite prices strictly above zero."""
    return value is not None and math.isfinite(value) and value > 0


class RollingSeries:
    def __init__(self, capacity: int, period: TimePeriod | str) -> None:
        self._capacity = _validate_capacity(capacity)
        self._period = _validate_period(period)
        self._buckets: dict[datetime, PriceSample] = {}
        self._lock = ReadWriteLock()

    @classmethod
    def initialize(cls, capacity: int, period: TimePeriod | str, now: datetime) -> RollingSeries:
        series = cls(capacity, period)
        for bucket in iter_buckets_backward(now, series.period, series.capacity):
            series._buckets[bucket] = PriceSample()
        logger.debug(
            "initialized rolling series",
            extra={"capacity": series.capacity, "period": series.period.value},
        )
        return series

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def period(self) -> TimePeriod:
        return self._period

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._buckets)

    def merge(
        self,
        samples: Iterable[tuple[datetime, float]],
        field: PriceField = PriceField.OBSERVED,
    ) -> int:
        with self._lock.write():
            return self._merge_locked(samples, field)

    def trim(self) -> int:
        with self._lock.write():
            return self._trim_locked()

    def merge_and_trim(
        self,
        samples: Iterable[tuple[datetime, float]],
        field: PriceField = PriceField.OBSERVED,
    ) -> tuple[int, int]:
        with self._lock.write():
            written = self._merge_locked(samples, field)
            evicted = self._trim_locked()
        return written, evicted

    def snapshot(self) -> tuple[SeriesPoint, ...]:
        with self._lock.read():
            return tuple(sample.point(bucket) for bucket, sample in sorted(self._buckets.items()))

    def prices(self) -> list[float | None]:
        return [point.price for point in self.snapshot()]

    def latest(self) -> SeriesPoint | None:
        with self._lock.read():
            if not self._buckets:
                return None
            bucket = max(self._buckets)
            return self._buckets[bucket].point(bucket)

    def _merge_locked(self, samples: Iterable[tuple[datetime, float]], field: PriceField) -> int:
        written = 0
        skipped = 0
        for timestamp, price in samples:
            if not is_usable_price(price):
                skipped += 1
                continue
            bucket = floor_to_period(timestamp, self._period)
            sample = self._buckets.get(bucket)
            if sample is None:
                sample = PriceSample()
                self._buckets[bucket] = sample
            sample.write(field, price)
            written += 1
        logger.debug(
            "merged samples",
            extra={"written": written, "skipped": skipped, "size": len(self._buckets)},
        )
        return written

    def _trim_locked(self) -> int:
        excess = len(self._buckets) - self._capacity
        if excess <= 0:
            return 0
        for bucket in sorted(self._buckets)[:excess]:
            del self._buckets[bucket]
        logger.debug("trimmed series", extra={"evicted": excess, "size": len(self._buckets)})
        return excess


def _validate_capacity(capacity: int) -> int:
    if capacity < MIN_PERIODS or capacity > MAX_PERIODS:
        raise ConfigError(
            f"capacity must be greater than 0 and less than {MAX_PERIODS + 1}, got {capacity}"
        )
    return capacity


def _validate_period(period: TimePeriod | str) -> TimePeriod:
    try:
        return TimePeriod(period)
    except ValueError as exc:
        supported = ", ".join(item.value for item in TimePeriod)
        raise ConfigError(f"Unsupported time period '{period}'. Supported: {supported}") from exc
