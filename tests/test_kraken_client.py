from datetime import UTC, datetime

import httpx
import pytest

from kraken_autocorr.sources.kraken import FetchError, KrakenRESTClient

OHLC_PAYLOAD = {
    "error": [],
    "result": {
        "XXBTZUSD": [
            [1768467600, "96000.0", "96500.0", "95800.0", "96210.5", "96100.0", "12.5", 300],
            [1768471200, "96210.5", "96600.0", "96100.0", "96400.1", "96350.0", "8.1", 210],
        ],
        "last": 1768471200,
    },
}


def _client(handler, retries: int = 2) -> KrakenRESTClient:
    return KrakenRESTClient(
        base_url="https://api.kraken.com",
        pair="xbtusd",
        retries=retries,
        backoff_seconds=0.0,
        transport=httpx.MockTransport(handler),
    )


def test_fetch_hourly_prices_uses_ohlc_close() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(status_code=200, request=request, json=OHLC_PAYLOAD)

    client = _client(handler)
    try:
        prices = client.fetch_prices("hour")
    finally:
        client.close()

    assert seen[0].url.path == "/0/public/OHLC"
    assert seen[0].url.params["pair"] == "XBTUSD"
    assert seen[0].url.params["interval"] == "60"
    assert prices == [
        (datetime(2026, 1, 15, 9, 0, tzinfo=UTC), 96210.5),
        (datetime(2026, 1, 15, 10, 0, tzinfo=UTC), 96400.1),
    ]


def test_fetch_second_prices_uses_trades() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/0/public/Trades"
        return httpx.Response(
            status_code=200,
            request=request,
            json={
                "error": [],
                "result": {
                    "last": "1768471200500000000",
                    "XXBTZUSD": [["96400.10000", "0.01", 1768471200.25, "b", "m", "", 1]],
                },
            },
        )

    client = _client(handler)
    try:
        prices = client.fetch_prices("second")
    finally:
        client.close()

    assert prices == [(datetime(2026, 1, 15, 10, 0, 0, 250000, tzinfo=UTC), 96400.1)]


def test_retries_on_429_then_succeeds() -> None:
    call_count = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal call_count
        call_count += 1
        if call_count < 3:
            return httpx.Response(status_code=429, request=request, headers={"Retry-After": "0"})
        return httpx.Response(status_code=200, request=request, json=OHLC_PAYLOAD)

    client = _client(handler, retries=3)
    try:
        prices = client.fetch_prices("minute")
    finally:
        client.close()

    assert call_count == 3
    assert len(prices) == 2


def test_does_not_retry_on_400() -> None:
    call_count = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal call_count
        call_count += 1
        return httpx.Response(status_code=400, request=request, json={"error": ["EGeneral:Invalid arguments"]})

    client = _client(handler, retries=5)
    try:
        with pytest.raises(FetchError) as excinfo:
            client.fetch_prices("day")
    finally:
        client.close()

    assert call_count == 1
    assert isinstance(excinfo.value.__cause__, httpx.HTTPStatusError)


def test_gives_up_after_retries_on_server_error() -> None:
    call_count = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal call_count
        call_count += 1
        return httpx.Response(status_code=503, request=request)

    client = _client(handler, retries=2)
    try:
        with pytest.raises(FetchError):
            client.fetch_prices("hour")
    finally:
        client.close()

    assert call_count == 3


def test_transport_errors_become_fetch_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = _client(handler, retries=1)
    try:
        with pytest.raises(FetchError) as excinfo:
            client.fetch_prices("hour")
    finally:
        client.close()

    assert isinstance(excinfo.value.__cause__, httpx.ConnectError)


@pytest.mark.parametrize(
    "payload",
    [
        {"error": ["EQuery:Unknown asset pair"], "result": {}},
        {"error": []},
        {"error": [], "result": {"last": 1}},
        {"error": [], "result": {"XXBTZUSD": [[1768471200, "1.0"]]}},
        ["not", "an", "object"],
    ],
)
def test_malformed_payloads_raise_fetch_error(payload: object) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code=200, request=request, json=payload)

    client = _client(handler)
    try:
        with pytest.raises(FetchError):
            client.fetch_prices("hour")
    finally:
        client.close()


def test_zero_and_non_finite_prices_are_dropped() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            status_code=200,
            request=request,
            json={
                "error": [],
                "result": {
                    "XXBTZUSD": [
                        [1768464000, "0", "0", "0", "0.0", "0", "0", 0],
                        [1768467600, "1", "1", "1", "NaN", "1", "1", 1],
                        [1768471200, "96210.5", "96600.0", "96100.0", "96400.1", "96350.0", "8.1", 210],
                    ],
                    "last": 1768471200,
                },
            },
        )

    client = _client(handler)
    try:
        prices = client.fetch_prices("hour")
    finally:
        client.close()

    assert prices == [(datetime(2026, 1, 15, 10, 0, tzinfo=UTC), 96400.1)]
