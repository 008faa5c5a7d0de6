from __future__ import annotations

from rich.console import Console

from kraken_autocorr.calc.autocorrelation import AutocorrelationResult
from kraken_autocorr.core.enums import Unresolved
from kraken_autocorr.series.store import SeriesPoint

EMPTY_SERIES_MESSAGE = "The rolling series is empty. No prices available."
NO_LATEST_PRICE_MESSAGE = "No valid price available for most recent timestamp."

_REASON_TEXT = {
    Unresolved.INSUFFICIENT_DATA: "insufficient data",
    Unresolved.LAG_TOO_LARGE: "lag too large",
    Unresolved.ZERO_VARIANCE: "zero variance",
}


def format_status(
    latest: SeriesPoint | None,
    result: AutocorrelationResult,
    highest: float | None,
    lowest: float | None,
) -> str:
    if latest is None:
        return EMPTY_SERIES_MESSAGE
    if result.value is None:
        reason = _REASON_TEXT[result.reason]
        return f"Not enough data to compute autocorrelation ({reason})."
    if latest.price is None:
        return NO_LATEST_PRICE_MESSAGE
    return (
        f"Last price: {latest.price}, "
        f"Autocorrelation: {result.value:.6f}, "
        f"Highest: {_fmt(highest)}, "
        f"Lowest: {_fmt(lowest)}"
    )


def _fmt(value: float | None) -> str:
    return "n/a" if value is None else f"{value:.6f}"


class StatusLineRenderer:
    """Rewrites a single console line in place on every cycle."""

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console(highlight=False)
        self._last_width = 0

    @property
    def console(self) -> Console:
        return self._console

    def render(self, line: str) -> None:
        # pad over leftovers from a longer previous line
        padded = line.ljust(self._last_width)
        self._last_width = len(line)
        self._console.file.write("\r")
        self._console.print(padded, end="", markup=False, highlight=False, soft_wrap=True)
        self._console.file.flush()
