"""
Tests for API routes: calculators, alerts, journal, trade logs, watchlist,
settings, signals and audit logs with database persistence.
"""

import pytest
from types import SimpleNamespace
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app import app
from api import routes as api_routes
from api.middleware import limiter
from services import alert_monitor
from services.market_data import MarketDataError, MarketDataNotConfiguredError, SymbolNotFoundError
from storage.database import Base, get_db

# Create test database
SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    """Override database dependency for testing."""
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()


client = TestClient(app)


@pytest.fixture(autouse=True)
def setup_database():
    """Create and drop test database for each test."""
    app.dependency_overrides[get_db] = override_get_db
    Base.metadata.create_all(bind=engine)
    limiter.reset()
    yield
    Base.metadata.drop_all(bind=engine)
    app.dependency_overrides.pop(get_db, None)


class FakeMarketClient:
    """Stands in for the Finnhub client."""

    def __init__(self, quotes=None, error=None):
        self.quotes = quotes or {}
        self.error = error

    def get_quote(self, symbol):
        if self.error:
            raise self.error
        if symbol not in self.quotes:
            raise SymbolNotFoundError(f"No quote available for {symbol}", status_code=404)
        return {"symbol": symbol, **self.quotes[symbol]}

    def get_stock_snapshots(self, symbols):
        if self.error:
            raise self.error
        return [{"symbol": s, "name": s, **self.quotes[s]} for s in symbols if s in self.quotes]

    def get_candles(self, symbol, start=None, end=None, resolution="D"):
        if resolution not in {"D", "W"}:
            raise ValueError(f"Unsupported candle resolution: {resolution}")
        return [{"date": "2026-01-02", "close": 101.0}]

    def get_fundamentals(self, symbol):
        if self.error:
            raise self.error
        return {"symbol": symbol, "name": "Apple Inc", "metrics": {}, "peers": ["MSFT"]}


def _create_alert(**overrides):
    payload = {"symbol": "aapl", "alert_type": "price", "condition": "above", "target_value": 200}
    payload.update(overrides)
    return client.post("/alerts", json=payload)


# ============================================================================
# Calculator Tests
# ============================================================================

def test_expected_move():
    """Test expected move endpoint."""
    response = client.post("/options/expected-move", json={"price": 100, "iv_percent": 30, "days": 365})
    assert response.status_code == 200
    assert response.json()["upper_bound"] == 130.0


def test_expected_move_validation():
    """Test request validation rejects a zero price."""
    response = client.post("/options/expected-move", json={"price": 0, "iv_percent": 30, "days": 30})
    assert response.status_code == 422


def test_option_quote_bad_symbol_is_400():
    """Test service-level validation maps to 400."""
    response = client.post("/options/quote", json={"symbol": "BAD$", "price": 100, "strike": 100, "days": 30})
    assert response.status_code == 400
    assert "symbol" in response.json()["detail"].lower()


def test_option_quote():
    """Test Black-Scholes quote endpoint."""
    response = client.post(
        "/options/quote",
        json={"symbol": "spy", "price": 500, "strike": 510, "days": 30, "option_type": "put"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["symbol"] == "SPY"
    assert data["option_type"] == "put"
    assert data["greeks"]["delta"] < 0


def test_covered_call_requires_full_lot():
    """Test covered call share minimum."""
    response = client.post(
        "/options/covered-call",
        json={"stock_price": 50, "strike": 55, "premium": 1.5, "days": 30, "shares": 50},
    )
    assert response.status_code == 422


def test_pmcc_strikes_from_target_delta():
    """Test PMCC strikes are derived from deltas when omitted."""
    response = client.post(
        "/options/pmcc",
        json={
            "stock_price": 200, "leaps_delta": 0.75, "leaps_premium": 30, "leaps_dte": 365,
            "short_delta": 0.25, "short_premium": 3, "short_dte": 30,
        },
    )
    assert response.status_code == 200
    data = response.json()
    assert data["leaps_strike"] == 180
    assert data["short_strike"] == 215
    assert data["spread_width"] == 35


def test_pmcc_explicit_strike_wins_over_delta():
    """Test a given strike is used as-is."""
    response = client.post(
        "/options/pmcc",
        json={
            "stock_price": 200, "leaps_strike": 150, "leaps_delta": 0.75, "leaps_premium": 55,
            "leaps_dte": 365, "short_strike": 210, "short_premium": 3, "short_dte": 30,
        },
    )
    assert response.status_code == 200
    assert response.json()["leaps_strike"] == 150


def test_pmcc_requires_strike_or_delta():
    """Test a missing strike and delta is a validation error."""
    response = client.post(
        "/options/pmcc",
        json={"stock_price": 200, "leaps_premium": 30, "leaps_dte": 365, "short_strike": 215,
              "short_premium": 3, "short_dte": 30},
    )
    assert response.status_code == 422


def test_covered_call_strike_from_target_delta():
    """Test covered-call strike snaps to $2.50 from the target delta."""
    response = client.post(
        "/options/covered-call",
        json={"stock_price": 150, "target_delta": 0.20, "premium": 2, "days": 30},
    )
    assert response.status_code == 200
    assert response.json()["strike"] == 157.5
    assert response.json()["is_otm"] is True


def test_retirement_tax():
    """Test federal tax endpoint."""
    response = client.post("/retirement/tax", json={"income": 50000, "filing_status": "single"})
    assert response.status_code == 200
    assert response.json()["tax"] == 6053.0


def test_retirement_tax_unknown_status():
    """Test unknown filing status is rejected."""
    response = client.post("/retirement/tax", json={"income": 50000, "filing_status": "widowed"})
    assert response.status_code == 400


def test_retirement_fire():
    """Test FIRE targets endpoint."""
    response = client.post(
        "/retirement/fire",
        json={"current_age": 30, "current_savings": 800000, "annual_expenses": 40000, "monthly_contribution": 2000},
    )
    assert response.status_code == 200
    assert response.json()["next_milestone"] == "regular"


def test_paycheck_calculate():
    """Test paycheck endpoint."""
    response = client.post(
        "/paycheck/calculate",
        json={"gross_pay": 5000, "zip_code": "10001", "pay_frequency": "monthly"},
    )
    assert response.status_code == 200
    assert response.json()["net_pay"] == pytest.approx(3932.83, abs=0.01)


def test_paycheck_bad_zip():
    """Test invalid ZIP code."""
    response = client.post("/paycheck/calculate", json={"gross_pay": 5000, "zip_code": "123"})
    assert response.status_code == 400


def test_paycheck_with_deductions():
    """Test typed pre- and post-tax deductions reach the calculator."""
    response = client.post("/paycheck/calculate", json={
        "gross_pay": 5000, "zip_code": "10001", "pay_frequency": "monthly", "allowances": 2,
        "pre_tax_deductions": [{"name": "401k", "type": "percentage", "value": 10}],
        "post_tax_deductions": [{"name": "Union dues", "type": "fixed", "value": 50}],
    })
    assert response.status_code == 200
    data = response.json()
    assert data["allowances"] == 2
    assert data["pre_tax_deductions"] == 500
    assert data["taxable_income"] == 4500
    assert data["post_tax_deductions"] == 50


@pytest.mark.parametrize("overrides", [
    {"allowances": 25},
    {"allowances": 1.5},
    {"pre_tax_deductions": [{"name": "HSA", "type": "weekly", "value": 10}]},
    {"post_tax_deductions": [{"name": "Gym", "type": "fixed", "value": -5}]},
    {"pre_tax_deductions": [{"name": "<b>", "type": "fixed", "value": 5}]},
])
def test_paycheck_rejects_malformed_inputs(overrides):
    """Test allowances and deductions are validated before calculation."""
    payload = {"gross_pay": 5000, "zip_code": "10001", **overrides}
    response = client.post("/paycheck/calculate", json=payload)
    assert response.status_code == 422


def test_debt_payoff():
    """Test debt payoff comparison endpoint."""
    response = client.post("/debt/payoff", json={
        "debts": [
            {"name": "Car", "balance": 1000, "interest_rate": 5, "min_payment": 50, "type": "car_loan"},
            {"name": "Visa", "balance": 5000, "interest_rate": 20, "min_payment": 100},
        ],
        "extra_payment": 200,
    })
    assert response.status_code == 200
    data = response.json()
    assert data["recommended"] == "avalanche"
    assert data["avalanche"]["order"] == ["Visa", "Car"]


def test_debt_payoff_rejects_duplicate_names():
    """Test two debts sharing a name fail validation instead of merging results."""
    response = client.post("/debt/payoff", json={
        "debts": [
            {"name": "Card", "balance": 500, "interest_rate": 20, "min_payment": 50},
            {"name": "Card", "balance": 3000, "interest_rate": 15, "min_payment": 60},
        ],
    })
    assert response.status_code == 422
    assert "Duplicate debt name" in str(response.json()["detail"])


def test_car_loan_with_lease_comparison():
    """Test car loan endpoint adds depreciation and lease comparison."""
    response = client.post("/loans/car", json={
        "price": 30000, "down_payment": 5000, "trade_in": 2000, "annual_rate": 0,
        "term_months": 60, "sales_tax_percent": 10,
        "lease_monthly": 300, "lease_term": 36, "lease_down": 2000,
    })
    assert response.status_code == 200
    data = response.json()
    assert data["amount_financed"] == 25800
    assert data["monthly_payment"] == 430
    assert len(data["depreciation"]) == 11
    year_five = next(row for row in data["depreciation"] if row["year"] == 5)
    assert data["lease_vs_buy"]["comparison"][-1]["buy_equity"] == year_five["value"]
    assert data["lease_vs_buy"]["lease_total"] == 12800


def test_car_loan_without_lease_terms():
    """Test lease comparison is omitted without lease terms."""
    response = client.post("/loans/car", json={"price": 20000, "down_payment": 2000})
    assert response.status_code == 200
    assert "lease_vs_buy" not in response.json()


def test_car_loan_fully_covered_price():
    """Test down payment covering the full price is rejected."""
    response = client.post("/loans/car", json={"price": 10000, "down_payment": 8000, "trade_in": 3000})
    assert response.status_code == 400


def test_monte_carlo_profiles():
    """Test Monte Carlo endpoint compares every profile."""
    response = client.post(
        "/simulations/monte-carlo",
        json={"initial": 10000, "months": 12, "simulations": 50, "seed": 1},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["simulations"] == 50
    assert [r["profile"] for r in data["results"]] == ["conservative", "moderate", "aggressive"]


def test_monte_carlo_portfolios():
    """Test Monte Carlo endpoint with explicit portfolios."""
    response = client.post(
        "/simulations/monte-carlo",
        json={
            "portfolios": [{"name": "Growth", "initial": 5000, "months": 24, "profile": "aggressive"}],
            "simulations": 20,
            "seed": 3,
        },
    )
    assert response.status_code == 200
    results = response.json()["results"]
    assert len(results) == 1
    assert results[0]["name"] == "Growth"
    assert len(results[0]["series"]) == 25


def test_monte_carlo_requires_inputs():
    """Test Monte Carlo without portfolios or capital."""
    response = client.post("/simulations/monte-carlo", json={"simulations": 10})
    assert response.status_code == 400


def test_dividend_calculators():
    """Test yield-on-cost and reverse dividend endpoints."""
    yoc = client.post("/dividends/yield-on-cost", json={
        "holdings": [{"symbol": "KO", "cost_basis": 10000, "shares": 100, "annual_dividend": 4}],
        "growth_rate": 0,
    })
    assert yoc.status_code == 200
    assert yoc.json()["current_yoc"] == 4.0

    reverse = client.post("/dividends/reverse", json={"target_income": 1000, "frequency": "monthly", "custom_yield": 6})
    assert reverse.status_code == 200
    assert reverse.json()["custom"]["required_investment"] == 200000

    bad = client.post("/dividends/reverse", json={"target_income": 1000, "frequency": "weekly"})
    assert bad.status_code == 400


def test_fundamentals_ratios():
    """Test ratio ratings endpoint."""
    response = client.post("/fundamentals/ratios", json={"ratios": {"roe": 0.2}, "sector": "utility"})
    assert response.status_code == 200
    data = response.json()
    assert data["sector"] == "utility"
    assert data["summary"]["good"] == 1


# ============================================================================
# Market Data Tests
# ============================================================================

def test_market_quotes(monkeypatch):
    """Test quotes endpoint dedupes and normalizes symbols."""
    fake = FakeMarketClient({"AAPL": {"price": 190.0}, "MSFT": {"price": 410.0}})
    monkeypatch.setattr(api_routes, "get_market_data_client", lambda: fake)
    response = client.get("/market/quotes", params={"symbols": "aapl, msft,AAPL,ZZZZ"})
    assert response.status_code == 200
    data = response.json()
    assert data["requested"] == 3
    assert data["returned"] == 2


def test_market_quotes_invalid_symbol():
    """Test malformed symbols are rejected before any provider call."""
    response = client.get("/market/quotes", params={"symbols": "AAPL,BAD$"})
    assert response.status_code == 400


def test_market_quotes_not_configured(monkeypatch):
    """Test missing provider key maps to 503."""
    fake = FakeMarketClient(error=MarketDataNotConfiguredError("not configured"))
    monkeypatch.setattr(api_routes, "get_market_data_client", lambda: fake)
    response = client.get("/market/quotes", params={"symbols": "AAPL"})
    assert response.status_code == 503


def test_market_fundamentals_errors(monkeypatch):
    """Test provider errors map to 404 and 502."""
    monkeypatch.setattr(
        api_routes, "get_market_data_client",
        lambda: FakeMarketClient(error=SymbolNotFoundError("missing", status_code=404)),
    )
    assert client.get("/market/fundamentals/ZZZZ").status_code == 404

    monkeypatch.setattr(
        api_routes, "get_market_data_client",
        lambda: FakeMarketClient(error=MarketDataError("boom", status_code=500)),
    )
    assert client.get("/market/fundamentals/AAPL").status_code == 502


def test_market_candles(monkeypatch):
    """Test candles endpoint."""
    monkeypatch.setattr(api_routes, "get_market_data_client", lambda: FakeMarketClient())
    response = client.get("/market/candles/aapl")
    assert response.status_code == 200
    assert response.json()["symbol"] == "AAPL"
    assert client.get("/market/candles/AAPL", params={"resolution": "2H"}).status_code == 400


# ============================================================================
# Alert Tests
# ============================================================================

def test_create_and_get_alert():
    """Test creating and fetching an alert."""
    response = _create_alert(note="breakout")
    assert response.status_code == 200
    alert = response.json()
    assert alert["symbol"] == "AAPL"
    assert alert["is_active"] is True
    assert alert["triggered_at"] is None

    fetched = client.get(f"/alerts/{alert['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["note"] == "breakout"


def test_create_alert_validation():
    """Test alert validation errors."""
    assert _create_alert(condition="up").status_code == 400
    assert _create_alert(target_value=0).status_code == 422
    assert _create_alert(symbol="BAD$").status_code == 422


def test_update_rearm_and_delete_alert():
    """Test alert lifecycle endpoints."""
    alert_id = _create_alert().json()["id"]

    updated = client.put(f"/alerts/{alert_id}", json={"target_value": 210, "note": "raised"})
    assert updated.status_code == 200
    assert updated.json()["target_value"] == 210

    bad = client.put(f"/alerts/{alert_id}", json={"condition": "down"})
    assert bad.status_code == 400

    rearmed = client.post(f"/alerts/{alert_id}/rearm")
    assert rearmed.status_code == 200
    assert rearmed.json()["is_active"] is True

    deleted = client.delete(f"/alerts/{alert_id}")
    assert deleted.status_code == 200
    assert client.get(f"/alerts/{alert_id}").status_code == 404
    assert client.delete(f"/alerts/{alert_id}").status_code == 404


def test_check_alerts_triggers_and_history(monkeypatch):
    """Test a manual monitor cycle and the triggered history."""
    _create_alert(symbol="AAPL", target_value=180)
    _create_alert(symbol="MSFT", alert_type="percent_change", condition="down", target_value=5)
    fake = FakeMarketClient({
        "AAPL": {"price": 190.0, "change_percent": 1.0},
        "MSFT": {"price": 410.0, "change_percent": -1.0},
    })
    monkeypatch.setattr(alert_monitor, "get_market_data_client", lambda: fake)

    response = client.post("/alerts/check")
    assert response.status_code == 200
    data = response.json()
    assert data["checked"] == 2
    assert [t["symbol"] for t in data["triggered"]] == ["AAPL"]

    active = client.get("/alerts", params={"active_only": True}).json()
    assert [a["symbol"] for a in active["alerts"]] == ["MSFT"]

    history = client.get("/alerts/history").json()
    assert history["total_count"] == 1
    assert history["alerts"][0]["triggered_price"] == 190.0

    assert client.get("/alerts/history", params={"alert_type": "percent_change"}).json()["total_count"] == 0
    assert client.get("/alerts/history", params={"sort": "sideways"}).status_code == 422


def test_check_alerts_without_provider(monkeypatch):
    """Test the manual cycle reports an unconfigured provider."""
    _create_alert()
    fake = FakeMarketClient(error=MarketDataNotConfiguredError("not configured"))
    monkeypatch.setattr(alert_monitor, "get_market_data_client", lambda: fake)
    response = client.post("/alerts/check")
    assert response.status_code == 503


# ============================================================================
# Journal Tests
# ============================================================================

def test_journal_crud_and_summary():
    """Test journal entry lifecycle and summary."""
    first = client.post("/journal", json={
        "symbol": "aapl",
        "entry_date": "2026-03-01T14:30:00",
        "strategy": "Breakout",
        "tags": ["momentum"],
        "profit_loss": 300,
    })
    assert first.status_code == 200
    entry = first.json()
    assert entry["symbol"] == "AAPL"
    assert entry["tags"] == ["momentum"]

    client.post("/journal", json={
        "symbol": "MSFT", "entry_date": "2026-03-02T14:30:00", "strategy": "Breakout", "profit_loss": -100,
    })

    listing = client.get("/journal")
    assert [e["symbol"] for e in listing.json()] == ["MSFT", "AAPL"]

    updated = client.put(f"/journal/{entry['id']}", json={"lessons_learned": "Wait for volume", "tags": None})
    assert updated.status_code == 200
    assert updated.json()["tags"] == []

    summary = client.get("/journal/summary").json()
    assert summary["total_pnl"] == 200
    assert summary["win_rate"] == 50.0
    assert summary["profit_factor"] == 3.0

    assert client.delete(f"/journal/{entry['id']}").status_code == 200
    assert client.get(f"/journal/{entry['id']}").status_code == 404


def test_journal_rejects_markup():
    """Test free text with markup is rejected."""
    response = client.post("/journal", json={
        "symbol": "AAPL", "entry_date": "2026-03-01T14:30:00", "notes": "<script>alert(1)</script>",
    })
    assert response.status_code == 422


def test_journal_tag_length_limit():
    """Test the combined tag length cap."""
    response = client.post("/journal", json={
        "symbol": "AAPL", "entry_date": "2026-03-01T14:30:00", "tags": ["x" * 150, "y" * 60],
    })
    assert response.status_code == 422


# ============================================================================
# Trade Log Tests
# ============================================================================

def test_stock_trade_lifecycle():
    """Test recording, closing and summarizing stock trades."""
    created = client.post("/trades/stocks", json={
        "symbol": "AAPL", "entry_price": 100, "quantity": 10, "entry_date": "2026-01-02T15:00:00",
    })
    assert created.status_code == 200
    trade = created.json()
    assert trade["is_open"] is True
    assert trade["pnl"] is None

    half_closed = client.put(f"/trades/stocks/{trade['id']}", json={"exit_price": 120})
    assert half_closed.status_code == 400

    closed = client.put(f"/trades/stocks/{trade['id']}", json={
        "exit_price": 120, "exit_date": "2026-02-02T15:00:00",
    })
    assert closed.status_code == 200
    assert closed.json()["pnl"] == 200
    assert closed.json()["return_percent"] == 20.0

    summary = client.get("/trades/stocks/summary").json()
    assert summary["closed_trades"] == 1
    assert summary["realized_pnl"] == 200

    assert client.delete(f"/trades/stocks/{trade['id']}").status_code == 200
    assert client.get(f"/trades/stocks/{trade['id']}").status_code == 404


def test_option_trade_lifecycle():
    """Test option trade endpoints."""
    created = client.post("/trades/options", json={
        "symbol": "spy", "option_type": "call", "action": "sell", "strike": 500,
        "expiration": "2026-06-19", "premium": 3.25, "contracts": 2,
        "trade_date": "2026-05-01T15:00:00", "strategy": "Covered Call",
    })
    assert created.status_code == 200
    trade = created.json()
    assert trade["symbol"] == "SPY"
    assert trade["total_value"] == 650.0

    updated = client.put(f"/trades/options/{trade['id']}", json={"action": "buy", "contracts": 1})
    assert updated.status_code == 200
    assert updated.json()["action"] == "buy"
    assert updated.json()["total_value"] == 325.0

    assert len(client.get("/trades/options", params={"symbol": "SPY"}).json()) == 1
    assert client.delete(f"/trades/options/{trade['id']}").status_code == 200


# ============================================================================
# Watchlist Tests
# ============================================================================

def test_watchlist_without_quotes(monkeypatch):
    """Test watchlist add, duplicate and remove without market data."""
    monkeypatch.setattr(api_routes, "has_market_data_credentials", lambda: False)
    assert client.post("/watchlist", json={"symbol": "aapl", "note": "core"}).status_code == 200
    assert client.post("/watchlist", json={"symbol": "AAPL"}).status_code == 409

    data = client.get("/watchlist").json()
    assert data["quotes_available"] is False
    assert data["items"][0]["symbol"] == "AAPL"
    assert data["items"][0]["quote"] is None

    assert client.delete("/watchlist/aapl").status_code == 200
    assert client.delete("/watchlist/AAPL").status_code == 404


def test_watchlist_with_quotes(monkeypatch):
    """Test live quotes are attached when the provider is configured."""
    monkeypatch.setattr(api_routes, "has_market_data_credentials", lambda: True)
    monkeypatch.setattr(api_routes, "get_market_data_client",
                        lambda: FakeMarketClient({"AAPL": {"price": 190.0}}))
    client.post("/watchlist", json={"symbol": "AAPL"})
    client.post("/watchlist", json={"symbol": "MSFT"})

    data = client.get("/watchlist").json()
    assert data["quotes_available"] is True
    quotes = {item["symbol"]: item["quote"] for item in data["items"]}
    assert quotes["AAPL"]["price"] == 190.0
    assert quotes["MSFT"] is None


def test_watchlist_quote_failure_still_lists(monkeypatch):
    """Test provider failures do not hide the watchlist."""
    monkeypatch.setattr(api_routes, "has_market_data_credentials", lambda: True)
    monkeypatch.setattr(api_routes, "get_market_data_client",
                        lambda: FakeMarketClient(error=MarketDataError("boom", status_code=502)))
    client.post("/watchlist", json={"symbol": "AAPL"})
    data = client.get("/watchlist").json()
    assert data["quotes_available"] is False
    assert len(data["items"]) == 1


# ============================================================================
# Settings Tests
# ============================================================================

def test_risk_settings_flow():
    """Test risk limits, P&L recording and manual halt."""
    defaults = client.get("/settings/risk").json()
    assert defaults["is_trading_halted"] is False

    updated = client.put("/settings/risk", json={"max_daily_loss": 500})
    assert updated.status_code == 200
    assert updated.json()["max_daily_loss"] == 500

    pnl = client.post("/settings/risk/pnl", json={"amount": -600}).json()
    assert pnl["is_trading_halted"] is True
    assert pnl["halt_reason"] == "Daily loss limit reached"

    resumed = client.post("/settings/risk/halt", json={"halted": False}).json()
    assert resumed["is_trading_halted"] is False
    assert resumed["halt_reason"] is None


def test_risk_settings_validation():
    """Test invalid risk limits."""
    assert client.put("/settings/risk", json={"max_daily_loss": -5}).status_code == 422


def test_report_settings():
    """Test report settings validation and clearing."""
    response = client.put("/settings/report", json={
        "daily_report": True, "email_address": "me@example.com", "webhook_url": "https://hooks.example.com/x",
    })
    assert response.status_code == 200
    assert response.json()["email_address"] == "me@example.com"

    cleared = client.put("/settings/report", json={"email_address": "  "})
    assert cleared.json()["email_address"] is None
    assert cleared.json()["webhook_url"] == "https://hooks.example.com/x"

    assert client.put("/settings/report", json={"email_address": "nope"}).status_code == 422
    assert client.put("/settings/report", json={"webhook_url": "ftp://x"}).status_code == 422


# ============================================================================
# Signal Tests
# ============================================================================

def test_tradingview_signal_without_secret(monkeypatch):
    """Test signals are stored with defaults when no secret is configured."""
    monkeypatch.setattr(api_routes, "get_settings", lambda: SimpleNamespace(signal_webhook_secret=None))
    response = client.post("/signals/tradingview", json={"symbol": "aapl", "action": "BUY", "price": 190.5})
    assert response.status_code == 200
    signal = response.json()
    assert signal["symbol"] == "AAPL"
    assert signal["action"] == "buy"
    assert signal["strategy"] == "TradingView Alert"
    assert signal["quantity"] == 1
    assert signal["timeframe"] == "1D"
    assert signal["source"] == "tradingview_webhook"

    listing = client.get("/signals").json()
    assert len(listing) == 1


def test_tradingview_signal_secret(monkeypatch):
    """Test the webhook secret is enforced from body or header."""
    monkeypatch.setattr(api_routes, "get_settings", lambda: SimpleNamespace(signal_webhook_secret="s3cret"))
    payload = {"symbol": "AAPL", "action": "sell"}

    assert client.post("/signals/tradingview", json=payload).status_code == 401
    assert client.post("/signals/tradingview", json={**payload, "webhook_secret": "wrong"}).status_code == 401
    assert client.post("/signals/tradingview", json={**payload, "webhook_secret": "s3cret"}).status_code == 200
    header_auth = client.post("/signals/tradingview", json=payload, headers={"X-Webhook-Secret": "s3cret"})
    assert header_auth.status_code == 200


def test_tradingview_signal_rejects_unknown_action():
    """Test only buy and sell are accepted."""
    response = client.post("/signals/tradingview", json={"symbol": "AAPL", "action": "hold"})
    assert response.status_code == 422


@pytest.mark.parametrize("field", ["strategy", "timeframe", "entry_condition", "exit_condition"])
def test_tradingview_signal_rejects_markup(field):
    """Test signal text fields reject angle brackets."""
    payload = {"symbol": "AAPL", "action": "buy", field: "<script>x</script>"}
    response = client.post("/signals/tradingview", json=payload)
    assert response.status_code == 422


# ============================================================================
# Audit Log Tests
# ============================================================================

def test_audit_logs_record_mutations():
    """Test mutations leave an audit trail."""
    alert_id = _create_alert().json()["id"]
    client.delete(f"/alerts/{alert_id}")

    response = client.get("/audit/logs")
    assert response.status_code == 200
    data = response.json()
    assert data["total_count"] == 2
    assert {log["event_type"] for log in data["logs"]} == {"alert_deleted", "alert_created"}

    created = client.get("/audit/logs", params={"event_type": "alert_created"}).json()
    assert created["total_count"] == 1
    assert created["logs"][0]["entity_id"] == alert_id


def test_audit_logs_invalid_event_type():
    """Test unknown event type filter."""
    response = client.get("/audit/logs", params={"event_type": "bogus"})
    assert response.status_code == 400
