"""
Market Data Service.

Thin Finnhub REST client used for quotes, company profiles, fundamentals and
daily candles. Responses are reshaped into the snake_case payloads the API
returns. Transient failures (HTTP 429/5xx and transport errors) are retried
with exponential backoff.
"""

import logging
import random
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

import httpx

from config.settings import get_settings

logger = logging.getLogger(__name__)

MAX_SNAPSHOT_SYMBOLS = 50
RETRYABLE_STATUSES = frozenset({429, 500, 502, 503, 504})
CANDLE_RESOLUTIONS = {"1", "5", "15", "30", "60", "D", "W", "M"}


class MarketDataError(Exception):
    """Raised when the market data provider returns an error."""

    def __init__(self, message: str, status_code: Optional[int] = None, retryable: bool = False):
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


class MarketDataNotConfiguredError(MarketDataError):
    """Raised when no provider API key is configured."""


class SymbolNotFoundError(MarketDataError):
    """Raised when the provider has no data for a symbol."""


@dataclass
class RetryPolicy:
    """Exponential backoff: min(initial * factor^attempt + jitter, max) milliseconds."""
    max_retries: int = 3
    initial_delay_ms: int = 500
    max_delay_ms: int = 10000
    backoff_factor: float = 2.0
    jitter_ms: int = 200

    def delay_seconds(self, attempt: int, rng: Callable[[], float] = random.random) -> float:
        delay_ms = min(
            self.initial_delay_ms * (self.backoff_factor ** attempt) + rng() * self.jitter_ms,
            self.max_delay_ms,
        )
        return delay_ms / 1000.0

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        settings = get_settings()
        return cls(
            max_retries=max(0, settings.retry_max_retries),
            initial_delay_ms=max(0, settings.retry_initial_delay_ms),
            max_delay_ms=max(0, settings.retry_max_delay_ms),
            backoff_factor=max(1.0, settings.retry_backoff_factor),
        )


class FinnhubClient:
    """
    Finnhub REST client.

    Args:
        api_key: Finnhub token (sent as the ``token`` query parameter)
        base_url: API root
        timeout: Per-request timeout in seconds
        retry_policy: Backoff settings for transient failures
        http_client: Pre-built httpx.Client (tests pass one with a MockTransport)
        sleep: Sleep function used between retries
    """

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = "https://finnhub.io/api/v1",
        timeout: float = 10.0,
        retry_policy: Optional[RetryPolicy] = None,
        http_client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.api_key = (api_key or "").strip()
        self.base_url = base_url.rstrip("/")
        self.retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep
        self._client = http_client or httpx.Client(timeout=timeout)
        if not self.api_key:
            logger.warning("FINNHUB_API_KEY not set; market data requests will be rejected")

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def close(self) -> None:
        self._client.close()

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        if not self.configured:
            raise MarketDataNotConfiguredError("Market data provider is not configured (FINNHUB_API_KEY)")

        query = dict(params or {})
        query["token"] = self.api_key
        url = f"{self.base_url}{path}"
        policy = self.retry_policy
        attempt = 0
        while True:
            try:
                response = self._client.get(url, params=query)
            except httpx.TransportError as exc:
                if attempt < policy.max_retries:
                    delay = policy.delay_seconds(attempt)
                    logger.warning("Finnhub %s transport error (%s), retrying in %.0fms", path, exc, delay * 1000)
                    self._sleep(delay)
                    attempt += 1
                    continue
                raise MarketDataError(f"Market data request failed: {exc}", retryable=True) from exc

            if response.status_code in RETRYABLE_STATUSES and attempt < policy.max_retries:
                delay = policy.delay_seconds(attempt)
                logger.warning(
                    "Finnhub %s attempt %d failed (status %d), retrying in %.0fms",
                    path, attempt + 1, response.status_code, delay * 1000,
                )
                self._sleep(delay)
                attempt += 1
                continue

            if response.status_code >= 400:
                raise MarketDataError(
                    f"Market data provider returned {response.status_code} for {path}",
                    status_code=response.status_code,
                    retryable=response.status_code in RETRYABLE_STATUSES,
                )
            try:
                return response.json()
            except ValueError as exc:
                raise MarketDataError(f"Invalid JSON from market data provider for {path}") from exc

    def get_quote(self, symbol: str) -> Dict[str, Any]:
        """
        Current quote for a symbol.

        Raises:
            SymbolNotFoundError: If the provider reports a zero price
        """
        data = self._get("/quote", {"symbol": symbol})
        if not isinstance(data, dict) or not data.get("c"):
            raise SymbolNotFoundError(f"No quote available for {symbol}", status_code=404)
        return {
            "symbol": symbol,
            "price": data.get("c"),
            "change": data.get("d"),
            "change_percent": data.get("dp"),
            "high": data.get("h"),
            "low": data.get("l"),
            "open": data.get("o"),
            "previous_close": data.get("pc"),
        }

    def get_profile(self, symbol: str) -> Dict[str, Any]:
        data = self._get("/stock/profile2", {"symbol": symbol})
        data = data if isinstance(data, dict) else {}
        return {
            "symbol": symbol,
            "name": data.get("name") or symbol,
            "industry": data.get("finnhubIndustry"),
            "market_cap": data.get("marketCapitalization"),
            "shares_outstanding": data.get("shareOutstanding"),
            "exchange": data.get("exchange"),
            "currency": data.get("currency"),
        }

    def get_stock_snapshots(self, symbols: List[str]) -> List[Dict[str, Any]]:
        """
        Quote plus profile for up to 50 symbols.

        Symbols that fail are dropped and logged. Configuration errors still raise.
        """
        if len(symbols) > MAX_SNAPSHOT_SYMBOLS:
            raise ValueError(f"Maximum {MAX_SNAPSHOT_SYMBOLS} symbols allowed")
        snapshots = []
        for symbol in symbols:
            try:
                quote = self.get_quote(symbol)
                profile = self.get_profile(symbol)
            except MarketDataNotConfiguredError:
                raise
            except MarketDataError as exc:
                logger.warning("Skipping %s in snapshot: %s", symbol, exc)
                continue
            snapshots.append({
                **quote,
                "name": profile["name"],
                "market_cap": profile["market_cap"],
                "shares_outstanding": profile["shares_outstanding"],
            })
        logger.info("Fetched %d of %d stock snapshots", len(snapshots), len(symbols))
        return snapshots

    def get_fundamentals(self, symbol: str) -> Dict[str, Any]:
        """Profile, quote, the provider's ``metric=all`` block and peer symbols."""
        profile = self.get_profile(symbol)
        quote = self.get_quote(symbol)
        metrics = self._get("/stock/metric", {"symbol": symbol, "metric": "all"})
        peers = self._get("/stock/peers", {"symbol": symbol})
        return {
            "symbol": symbol,
            "name": profile["name"],
            "industry": profile["industry"],
            "market_cap": profile["market_cap"],
            "price": quote["price"],
            "change": quote["change"],
            "change_percent": quote["change_percent"],
            "metrics": (metrics.get("metric") or {}) if isinstance(metrics, dict) else {},
            "peers": [p for p in (peers or []) if isinstance(p, str) and p != symbol],
        }

    def get_candles(
        self,
        symbol: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        resolution: str = "D",
    ) -> List[Dict[str, Any]]:
        """
        Historical OHLCV candles, oldest first. Defaults to the last 365 days.
        """
        if resolution not in CANDLE_RESOLUTIONS:
            raise ValueError(f"Unsupported candle resolution: {resolution}")
        end = end or datetime.now(timezone.utc)
        start = start or end - timedelta(days=365)
        if start >= end:
            raise ValueError("Candle start must be before end")

        data = self._get("/stock/candle", {
            "symbol": symbol,
            "resolution": resolution,
            "from": int(start.timestamp()),
            "to": int(end.timestamp()),
        })
        if not isinstance(data, dict) or data.get("s") != "ok":
            return []

        candles = []
        for ts, o, h, l, c, v in zip(data["t"], data["o"], data["h"], data["l"], data["c"], data["v"]):
            stamp = datetime.fromtimestamp(ts, tz=timezone.utc)
            candles.append({
                "date": stamp.date().isoformat(),
                "timestamp": ts,
                "open": o,
                "high": h,
                "low": l,
                "close": c,
                "volume": v,
            })
        return candles


_client: Optional[FinnhubClient] = None
_client_lock = threading.Lock()


def get_market_data_client() -> FinnhubClient:
    """Get the shared Finnhub client built from settings."""
    global _client
    with _client_lock:
        if _client is None:
            settings = get_settings()
            _client = FinnhubClient(
                api_key=settings.finnhub_api_key,
                base_url=settings.finnhub_base_url,
                timeout=settings.market_data_timeout_seconds,
                retry_policy=RetryPolicy.from_settings(),
            )
        return _client


def reset_market_data_client() -> None:
    global _client
    with _client_lock:
        if _client is not None:
            _client.close()
        _client = None
