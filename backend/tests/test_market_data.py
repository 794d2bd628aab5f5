"""
Tests for the Finnhub market data client.
Uses httpx.MockTransport so no network calls are made.
"""
import pytest
from datetime import datetime, timezone

import httpx

from services.market_data import (
    FinnhubClient,
    MarketDataError,
    MarketDataNotConfiguredError,
    RetryPolicy,
    SymbolNotFoundError,
    get_market_data_client,
    reset_market_data_client,
)
from config.settings import reset_settings

QUOTE = {"c": 190.5, "d": 2.5, "dp": 1.33, "h": 191.0, "l": 187.2, "o": 188.0, "pc": 188.0}


def make_client(handler, api_key="test-key", max_retries=2):
    """Build a client whose requests go to handler; sleeps are recorded, not performed."""
    sleeps = []
    client = FinnhubClient(
        api_key=api_key,
        retry_policy=RetryPolicy(max_retries=max_retries, initial_delay_ms=10, jitter_ms=0),
        http_client=httpx.Client(transport=httpx.MockTransport(handler)),
        sleep=sleeps.append,
    )
    return client, sleeps


def test_unconfigured_client_rejects_requests():
    """Test requests fail fast without an API key."""
    client, _ = make_client(lambda request: httpx.Response(200, json=QUOTE), api_key="  ")
    assert client.configured is False
    with pytest.raises(MarketDataNotConfiguredError):
        client.get_quote("AAPL")


def test_get_quote_maps_fields_and_sends_token():
    """Test quote payload reshaping."""
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json=QUOTE)

    client, _ = make_client(handler)
    quote = client.get_quote("AAPL")
    assert quote == {
        "symbol": "AAPL",
        "price": 190.5,
        "change": 2.5,
        "change_percent": 1.33,
        "high": 191.0,
        "low": 187.2,
        "open": 188.0,
        "previous_close": 188.0,
    }
    assert seen[0].url.path.endswith("/quote")
    assert seen[0].url.params["token"] == "test-key"
    assert seen[0].url.params["symbol"] == "AAPL"


def test_zero_price_means_unknown_symbol():
    """Test Finnhub's empty quote is reported as not found."""
    client, _ = make_client(lambda request: httpx.Response(200, json={"c": 0, "d": None}))
    with pytest.raises(SymbolNotFoundError) as exc_info:
        client.get_quote("ZZZZ")
    assert exc_info.value.status_code == 404


def test_retries_transient_status_then_succeeds():
    """Test 503 responses are retried with backoff."""
    responses = iter([httpx.Response(503), httpx.Response(200, json=QUOTE)])
    client, sleeps = make_client(lambda request: next(responses))
    assert client.get_quote("AAPL")["price"] == 190.5
    assert sleeps == [0.01]


def test_gives_up_after_max_retries():
    """Test persistent 500s raise once retries are exhausted."""
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(500)

    client, sleeps = make_client(handler, max_retries=2)
    with pytest.raises(MarketDataError) as exc_info:
        client.get_quote("AAPL")
    assert exc_info.value.status_code == 500
    assert exc_info.value.retryable is True
    assert len(calls) == 3
    assert sleeps == [0.01, 0.02]


def test_client_errors_are_not_retried():
    """Test 4xx other than 429 fail immediately."""
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(403)

    client, sleeps = make_client(handler)
    with pytest.raises(MarketDataError) as exc_info:
        client.get_quote("AAPL")
    assert exc_info.value.status_code == 403
    assert exc_info.value.retryable is False
    assert len(calls) == 1
    assert sleeps == []


def test_transport_errors_are_retried():
    """Test connection failures are retried then surfaced."""
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client, sleeps = make_client(handler, max_retries=1)
    with pytest.raises(MarketDataError) as exc_info:
        client.get_quote("AAPL")
    assert exc_info.value.retryable is True
    assert len(sleeps) == 1


def test_retry_policy_delay():
    """Test exponential backoff with jitter and cap."""
    policy = RetryPolicy(initial_delay_ms=500, max_delay_ms=3000, backoff_factor=2.0, jitter_ms=200)
    assert policy.delay_seconds(0, rng=lambda: 0.0) == 0.5
    assert policy.delay_seconds(2, rng=lambda: 0.5) == pytest.approx(2.1)
    assert policy.delay_seconds(5, rng=lambda: 0.0) == 3.0


def test_snapshots_skip_failing_symbols():
    """Test snapshot batches drop symbols the provider cannot price."""
    def handler(request):
        symbol = request.url.params["symbol"]
        if request.url.path.endswith("/quote"):
            return httpx.Response(200, json=QUOTE if symbol == "AAPL" else {"c": 0})
        return httpx.Response(200, json={"name": "Apple Inc", "marketCapitalization": 3000000,
                                         "shareOutstanding": 15500})

    client, _ = make_client(handler)
    snapshots = client.get_stock_snapshots(["AAPL", "ZZZZ"])
    assert len(snapshots) == 1
    assert snapshots[0]["symbol"] == "AAPL"
    assert snapshots[0]["name"] == "Apple Inc"
    assert snapshots[0]["market_cap"] == 3000000


def test_snapshots_limit_symbol_count():
    """Test the 50 symbol cap."""
    client, _ = make_client(lambda request: httpx.Response(200, json=QUOTE))
    with pytest.raises(ValueError):
        client.get_stock_snapshots([f"S{i}" for i in range(51)])


def test_fundamentals_combine_profile_quote_metrics_and_peers():
    """Test the fundamentals bundle."""
    def handler(request):
        path = request.url.path
        if path.endswith("/quote"):
            return httpx.Response(200, json=QUOTE)
        if path.endswith("/stock/profile2"):
            return httpx.Response(200, json={"name": "Apple Inc", "finnhubIndustry": "Technology"})
        if path.endswith("/stock/metric"):
            assert request.url.params["metric"] == "all"
            return httpx.Response(200, json={"metric": {"peTTM": 30.1}})
        return httpx.Response(200, json=["AAPL", "MSFT", "GOOGL", 5])

    client, _ = make_client(handler)
    result = client.get_fundamentals("AAPL")
    assert result["name"] == "Apple Inc"
    assert result["industry"] == "Technology"
    assert result["price"] == 190.5
    assert result["metrics"] == {"peTTM": 30.1}
    assert result["peers"] == ["MSFT", "GOOGL"]


def test_candles_are_parsed_oldest_first():
    """Test candle payload conversion."""
    payload = {
        "s": "ok",
        "t": [1767225600, 1767312000],
        "o": [100.0, 101.0],
        "h": [102.0, 103.0],
        "l": [99.0, 100.5],
        "c": [101.0, 102.5],
        "v": [1000, 1200],
    }
    client, _ = make_client(lambda request: httpx.Response(200, json=payload))
    candles = client.get_candles(
        "AAPL",
        start=datetime(2025, 12, 1, tzinfo=timezone.utc),
        end=datetime(2026, 1, 3, tzinfo=timezone.utc),
    )
    assert [c["date"] for c in candles] == ["2026-01-01", "2026-01-02"]
    assert candles[1]["close"] == 102.5
    assert candles[1]["volume"] == 1200


def test_candles_no_data_and_validation():
    """Test empty candle responses and argument checks."""
    client, _ = make_client(lambda request: httpx.Response(200, json={"s": "no_data"}))
    assert client.get_candles("AAPL") == []
    with pytest.raises(ValueError):
        client.get_candles("AAPL", resolution="2H")
    with pytest.raises(ValueError):
        client.get_candles(
            "AAPL",
            start=datetime(2026, 2, 1, tzinfo=timezone.utc),
            end=datetime(2026, 1, 1, tzinfo=timezone.utc),
        )


def test_shared_client_follows_settings(monkeypatch):
    """Test the shared client is built from settings and rebuilt after a reset."""
    monkeypatch.setenv("FINNHUB_API_KEY", "from-env")
    monkeypatch.setenv("STOCKMANAGER_RETRY_MAX_RETRIES", "1")
    reset_settings()
    reset_market_data_client()
    try:
        client = get_market_data_client()
        assert client.configured is True
        assert client.retry_policy.max_retries == 1
        assert get_market_data_client() is client

        reset_market_data_client()
        assert get_market_data_client() is not client
    finally:
        reset_market_data_client()
        reset_settings()
