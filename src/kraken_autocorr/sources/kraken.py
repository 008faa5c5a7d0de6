from __future__ import annotations

import logging
import math
import time
from datetime import datetime
from typing import Any, Final

import httpx

from kraken_autocorr.core.enums import TimePeriod
from kraken_autocorr.core.time_utils import from_epoch_seconds

logger = logging.getLogger(__name__)

# Kraken has no 1-second candles; seconds are sampled from the public trade feed.
_OHLC_INTERVAL_MINUTES: Final[dict[TimePeriod, int]] = {
    TimePeriod.MINUTE: 1,
    TimePeriod.HOUR: 60,
    TimePeriod.DAY: 1440,
}

_RETRYABLE_STATUS: Final[set[int]] = {429, 500, 502, 503, 504}


class FetchError(RuntimeError):
    """Raised when prices cannot be fetched or parsed."""


class KrakenRESTClient:
    def __init__(
        self,
        base_url: str = "https://api.kraken.com",
        pair: str = "XBTUSD",
        timeout_seconds: float = 20.0,
        retries: int = 2,
        backoff_seconds: float = 0.5,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._pair = pair.upper()
        self._retries = retries
        self._backoff_seconds = backoff_seconds
        self._client = httpx.Client(base_url=self._base_url, timeout=timeout_seconds, transport=transport)

    @property
    def pair(self) -> str:
        return self._pair

    def close(self) -> None:
        self._client.close()

    def fetch_prices(self, period: TimePeriod | str) -> list[tuple[datetime, float]]:
        period = TimePeriod(period)
        if period is TimePeriod.SECOND:
            path = "/0/public/Trades"
            rows = self._result_rows(path, {"pair": self._pair})
            time_index, price_index = 2, 0
        else:
            path = "/0/public/OHLC"
            rows = self._result_rows(path, {"pair": self._pair, "interval": _OHLC_INTERVAL_MINUTES[period]})
            time_index, price_index = 0, 4

        try:
            samples = [(from_epoch_seconds(row[time_index]), float(row[price_index])) for row in rows]
        except (IndexError, TypeError, ValueError, OverflowError) as exc:
            raise FetchError(f"Malformed row in Kraken response for {path}") from exc

        usable = [(timestamp, price) for timestamp, price in samples if math.isfinite(price) and price > 0]
        if len(usable) != len(samples):
            logger.debug(
                "dropped unusable kraken prices",
                extra={"pair": self._pair, "dropped": len(samples) - len(usable)},
            )
        logger.debug("fetched kraken prices", extra={"pair": self._pair, "count": len(usable)})
        return usable

    def _result_rows(self, path: str, params: dict[str, Any]) -> list[list[Any]]:
        payload = self._get_json(path, params)
        errors = payload.get("error") or []
        if errors:
            raise FetchError(f"Kraken returned errors for {path}: {', '.join(map(str, errors))}")
        result = payload.get("result")
        if not isinstance(result, dict):
            raise FetchError(f"Kraken response for {path} has no result object")
        for key, rows in result.items():
            if key != "last":
                if not isinstance(rows, list):
                    raise FetchError(f"Kraken result '{key}' for {path} is not a list")
                return rows
        raise FetchError(f"Kraken result for {path} contains no series")

    def _get_json(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        attempt = 0
        while True:
            try:
                response = self._client.get(path, params=params)
            except httpx.TransportError as exc:
                if attempt >= self._retries:
                    raise FetchError(f"Transport error calling {path}: {exc}") from exc
                self._sleep_before_retry(attempt, None)
                attempt += 1
                continue

            if response.status_code in _RETRYABLE_STATUS and attempt < self._retries:
                self._sleep_before_retry(attempt, response.headers.get("Retry-After"))
                attempt += 1
                continue

            try:
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                raise FetchError(f"Kraken responded {response.status_code} for {path}") from exc

            try:
                payload = response.json()
            except ValueError as exc:
                raise FetchError(f"Kraken response for {path} is not valid JSON") from exc
            if not isinstance(payload, dict):
                raise FetchError(f"Kraken response for {path} is not a JSON object")
            return payload

    def _sleep_before_retry(self, attempt: int, retry_after: str | None) -> None:
        delay = self._backoff_seconds * (2**attempt)
        if retry_after is not None:
            try:
                delay = float(retry_after)
            except ValueError:
                pass
        logger.info("retrying kraken request", extra={"attempt": attempt + 1, "delay": delay})
        if delay > 0:
            time.sleep(delay)
