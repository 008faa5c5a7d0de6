from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table

from kraken_autocorr.core.config import ConfigError, Settings, load_settings
from kraken_autocorr.core.logging import configure_logging
from kraken_autocorr.core.time_utils import utc_now
from kraken_autocorr.pipeline.monitor import AutocorrelationMonitor
from kraken_autocorr.render.status import StatusLineRenderer
from kraken_autocorr.series.store import RollingSeries
from kraken_autocorr.sources.kraken import KrakenRESTClient

app = typer.Typer(help="Rolling lag-k autocorrelation monitor for Kraken prices")
console = Console(highlight=False)


def _load_settings_or_exit() -> Settings:
    try:
        settings = load_settings()
    except ConfigError as exc:
        console.print(f"[bold red]Configuration error:[/bold red] {exc}")
        raise typer.Exit(code=1) from exc
    configure_logging(settings.log_level)
    return settings


def _build_client(settings: Settings) -> KrakenRESTClient:
    return KrakenRESTClient(
        base_url=settings.kraken_base_url,
        pair=settings.kraken_pair,
        timeout_seconds=settings.request_timeout_seconds,
        retries=settings.fetch_retries,
    )


@app.command("show-config")
def show_config() -> None:
    settings = _load_settings_or_exit()
    for name, value in settings.model_dump(mode="json").items():
        console.print(f"{name.upper()} = [bold]{value}[/bold]")


@app.command("run")
def run(
    poll_seconds: float | None = typer.Option(
        default=None,
        min=0.1,
        help="Seconds to sleep before each cycle (default: POLL_SECONDS)",
    ),
    max_cycles: int | None = typer.Option(
        default=None,
        min=1,
        help="Stop after this many cycles instead of running until interrupted",
    ),
) -> None:
    settings = _load_settings_or_exit()
    series = RollingSeries.initialize(settings.no_of_periods, settings.time_period, utc_now())

    client = _build_client(settings)
    monitor = AutocorrelationMonitor(
        series=series,
        fetcher=client,
        lag=settings.autoc_lag,
        renderer=StatusLineRenderer(console),
    )
    try:
        monitor.run_daemon(
            poll_seconds=poll_seconds if poll_seconds is not None else settings.poll_seconds,
            max_cycles=max_cycles,
        )
    except KeyboardInterrupt:
        console.print()
    finally:
        client.close()


@app.command("run-once")
def run_once(
    tail: int = typer.Option(default=10, min=0, help="Number of most recent buckets to list"),
) -> None:
    settings = _load_settings_or_exit()
    series = RollingSeries.initialize(settings.no_of_periods, settings.time_period, utc_now())

    client = _build_client(settings)
    monitor = AutocorrelationMonitor(series=series, fetcher=client, lag=settings.autoc_lag)
    try:
        summary = monitor.run_cycle()
    finally:
        client.close()

    if summary.fetch_failed:
        console.print("[bold red]Fetch failed[/bold red]; the rolling series was not updated.")
        raise typer.Exit(code=1)

    console.print(summary.status_line, markup=False)
    if summary.result is not None and summary.result.reason is not None:
        console.print(f"Unresolved: [bold]{summary.result.reason.value}[/bold]")

    if tail:
        table = Table(title=f"{settings.kraken_pair} per {settings.time_period.value} (last {tail})")
        table.add_column("bucket (UTC)")
        table.add_column("observed", justify="right")
        table.add_column("estimate", justify="right")
        for point in series.snapshot()[-tail:]:
            table.add_row(
                point.bucket.isoformat(),
                "" if point.observed is None else str(point.observed),
                "" if point.estimate is None else str(point.estimate),
            )
        console.print(table)


if __name__ == "__main__":
    app()
