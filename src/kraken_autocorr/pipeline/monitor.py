from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from kraken_autocorr.calc.autocorrelation import AutocorrelationResult, compute_autocorrelation
from kraken_autocorr.core.enums import PriceField, TimePeriod
from kraken_autocorr.render.status import StatusLineRenderer, format_status
from kraken_autocorr.series.store import RollingSeries
from kraken_autocorr.sources.kraken import FetchError

logger = logging.getLogger(__name__)


class PriceFetcher(Protocol):
    def fetch_prices(self, period: TimePeriod | str) -> list[tuple[datetime, float]]: ...


@dataclass(slots=True)
class RunningExtremes:
    """Highest and lowest values seen since start. Both bounds only widen."""

    highest: float | None = None
    lowest: float | None = None

    def observe(self, value: float) -> None:
        if self.highest is None or value > self.highest:
            self.highest = value
        if self.lowest is None or value < self.lowest:
            self.lowest = value


@dataclass(frozen=True, slots=True)
class CycleSummary:
    fetched: int
    fetch_failed: bool
    series_size: int
    latest_bucket: datetime | None
    latest_price: float | None
    result: AutocorrelationResult | None
    highest: float | None
    lowest: float | None
    status_line: str | None = None


class AutocorrelationMonitor:
    def __init__(
        self,
        series: RollingSeries,
        fetcher: PriceFetcher,
        lag: int,
        renderer: StatusLineRenderer | None = None,
        field: PriceField = PriceField.OBSERVED,
    ) -> None:
        self._series = series
        self._fetcher = fetcher
        self._lag = lag
        self._renderer = renderer
        self._field = field
        self._extremes = RunningExtremes()

    @property
    def extremes(self) -> RunningExtremes:
        return self._extremes

    def run_cycle(self) -> CycleSummary:
        try:
            samples = self._fetcher.fetch_prices(self._series.period)
        except FetchError as exc:
            logger.warning("price fetch failed, skipping cycle", extra={"error": str(exc)})
            return CycleSummary(
                fetched=0,
                fetch_failed=True,
                series_size=len(self._series),
                latest_bucket=None,
                latest_price=None,
                result=None,
                highest=self._extremes.highest,
                lowest=self._extremes.lowest,
            )

        written, evicted = self._series.merge_and_trim(samples, self._field)
        logger.debug("merge+trim complete", extra={"written": written, "evicted": evicted})

        snapshot = self._series.snapshot()
        result = compute_autocorrelation([point.price for point in snapshot], self._lag)
        if result.value is not None:
            self._extremes.observe(result.value)

        latest = snapshot[-1] if snapshot else None
        line = format_status(latest, result, self._extremes.highest, self._extremes.lowest)
        if self._renderer is not None:
            self._renderer.render(line)

        return CycleSummary(
            fetched=len(samples),
            fetch_failed=False,
            series_size=len(snapshot),
            latest_bucket=latest.bucket if latest else None,
            latest_price=latest.price if latest else None,
            result=result,
            highest=self._extremes.highest,
            lowest=self._extremes.lowest,
            status_line=line,
        )

    def run_daemon(
        self,
        poll_seconds: float,
        max_cycles: int | None = None,
        stop_event: threading.Event | None = None,
    ) -> int:
        stop = stop_event or threading.Event()
        cycles = 0
        logger.info(
            "starting autocorrelation loop",
            extra={"poll_seconds": poll_seconds, "lag": self._lag, "period": self._series.period.value},
        )
        while not stop.is_set():
            if stop.wait(poll_seconds):
                break
            self.run_cycle()
            cycles += 1
            if max_cycles is not None and cycles >= max_cycles:
                break
        logger.info("autocorrelation loop stopped", extra={"cycles": cycles})
        return cycles
