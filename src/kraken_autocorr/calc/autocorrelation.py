"""Lag-k autocorrelation of simple returns.

Empty buckets are dropped before returns are taken, so a return spans the
two nearest known prices rather than two adjacent calendar buckets.
Summation runs left to right over the ascending sequence, which keeps the
result reproducible bit for bit.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from kraken_autocorr.core.enums import Unresolved

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AutocorrelationResult:
    value: float | None
    reason: Unresolved | None = None

    @property
    def resolved(self) -> bool:
        return self.value is not None

    @classmethod
    def unresolved(cls, reason: Unresolved) -> AutocorrelationResult:
        return cls(value=None, reason=reason)


def simple_returns(prices: Sequence[float]) -> list[float]:
    return [(current - previous) / previous for previous, current in zip(prices, prices[1:])]


def compute_autocorrelation(prices: Sequence[float | None], lag: int) -> AutocorrelationResult:
    if lag < 0:
        raise ValueError(f"lag must be non-negative, got {lag}")

    present = [price for price in prices if price is not None]
    if len(present) < 2:
        return AutocorrelationResult.unresolved(Unresolved.INSUFFICIENT_DATA)

    returns = simple_returns(present)
    count = len(returns)
    if lag >= count:
        return AutocorrelationResult.unresolved(Unresolved.LAG_TOO_LARGE)

    mean = _left_sum(returns) / count
    autocovariance = _left_sum(
        (returns[i] - mean) * (returns[i + lag] - mean) for i in range(count - lag)
    ) / count
    variance = _left_sum((value - mean) ** 2 for value in returns) / count

    logger.debug(
        "autocorrelation inputs",
        extra={"returns": count, "mean": mean, "autocovariance": autocovariance, "variance": variance},
    )

    if variance == 0.0:
        return AutocorrelationResult.unresolved(Unresolved.ZERO_VARIANCE)
    return AutocorrelationResult(value=autocovariance / variance)


def autocorrelation(prices: Sequence[float | None], lag: int) -> float | None:
    return compute_autocorrelation(prices, lag).value


def _left_sum(values: Iterable[float]) -> float:
    # fixed left-to-right order; builtin sum() compensates on 3.12+
    total = 0.0
    for value in values:
        total += value
    return total
