"""
Tests for storage layer - CRUD operations.
Tests database models, repositories, and storage service.
"""
import re
from pathlib import Path

import pytest
from datetime import date, datetime, timedelta, timezone
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from storage.database import Base
from storage.models import (
    AlertTypeEnum, AlertConditionEnum, OptionTypeEnum, TradeActionEnum, AuditEventTypeEnum
)
from storage.repositories import AlertRepository, ConfigRepository, WatchlistRepository
from storage.service import StorageService


# Test fixtures

@pytest.fixture
def db_session():
    """Create an in-memory SQLite database for testing."""
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def alert_repo(db_session):
    """Create an alert repository."""
    return AlertRepository(db_session)


@pytest.fixture
def config_repo(db_session):
    """Create a config repository."""
    return ConfigRepository(db_session)


@pytest.fixture
def storage_service(db_session):
    """Create a storage service."""
    return StorageService(db_session)


# Alert Tests

def test_create_alert(alert_repo):
    """Test creating an alert."""
    alert = alert_repo.create("AAPL", AlertTypeEnum.PRICE, AlertConditionEnum.ABOVE, 200.0, "breakout")
    assert alert.id is not None
    assert alert.symbol == "AAPL"
    assert alert.is_active is True
    assert alert.triggered_at is None
    assert alert.created_at is not None


def test_create_alert_rejects_mismatched_condition(storage_service):
    """Test that percent conditions cannot be used on price alerts."""
    with pytest.raises(ValueError):
        storage_service.create_alert("AAPL", "price", "up", 5.0)
    with pytest.raises(ValueError):
        storage_service.create_alert("AAPL", "percent_change", "above", 5.0)


def test_list_alerts_filters(storage_service):
    """Test active-only and symbol filters."""
    first = storage_service.create_alert("AAPL", "price", "above", 200.0)
    storage_service.create_alert("MSFT", "percent_change", "down", 3.0)
    storage_service.mark_alert_triggered(first, 201.0)

    assert len(storage_service.list_alerts()) == 2
    active = storage_service.list_alerts(active_only=True)
    assert [a.symbol for a in active] == ["MSFT"]
    assert [a.symbol for a in storage_service.list_alerts(symbol="AAPL")] == ["AAPL"]


def test_mark_triggered_and_rearm(storage_service):
    """Test an alert fires once and can be re-armed."""
    alert = storage_service.create_alert("TSLA", "price", "below", 150.0)
    fired = storage_service.mark_alert_triggered(alert, 149.5)
    assert fired.is_active is False
    assert fired.triggered_price == 149.5
    assert fired.triggered_at is not None
    assert storage_service.get_active_alerts() == []

    rearmed = storage_service.rearm_alert(fired)
    assert rearmed.is_active is True
    assert rearmed.triggered_at is None
    assert rearmed.triggered_price is None


def test_alert_history_ordering_and_filters(storage_service):
    """Test triggered alert history sort order and type filter."""
    base = datetime(2026, 1, 5, 15, 0, tzinfo=timezone.utc)
    older = storage_service.create_alert("AAPL", "price", "above", 100.0)
    newer = storage_service.create_alert("MSFT", "percent_change", "up", 2.0)
    storage_service.create_alert("NVDA", "price", "above", 900.0)
    storage_service.mark_alert_triggered(older, 101.0, base)
    storage_service.mark_alert_triggered(newer, 410.0, base + timedelta(hours=1))

    history = storage_service.get_alert_history()
    assert [a.symbol for a in history] == ["MSFT", "AAPL"]
    oldest_first = storage_service.get_alert_history(newest_first=False)
    assert [a.symbol for a in oldest_first] == ["AAPL", "MSFT"]
    price_only = storage_service.get_alert_history(alert_type="price")
    assert [a.symbol for a in price_only] == ["AAPL"]
    # Stored as naive UTC
    assert history[0].triggered_at == datetime(2026, 1, 5, 16, 0)


def test_update_alert_validates_pair(storage_service):
    """Test updating an alert keeps type and condition consistent."""
    alert = storage_service.create_alert("AMD", "price", "above", 120.0)
    updated = storage_service.update_alert(alert, target_value=125.0, note="raised")
    assert updated.target_value == 125.0
    assert updated.note == "raised"

    switched = storage_service.update_alert(alert, alert_type="percent_change", condition="down")
    assert switched.alert_type == AlertTypeEnum.PERCENT_CHANGE
    assert switched.condition == AlertConditionEnum.DOWN

    with pytest.raises(ValueError):
        storage_service.update_alert(alert, condition="above")


def test_delete_alert(storage_service):
    """Test deleting an alert."""
    alert = storage_service.create_alert("AAPL", "price", "above", 200.0)
    assert storage_service.delete_alert(alert.id) is True
    assert storage_service.get_alert(alert.id) is None
    assert storage_service.delete_alert(alert.id) is False


# Journal Tests

def test_journal_entry_crud(storage_service):
    """Test creating, listing, updating and deleting journal entries."""
    first = storage_service.create_journal_entry(
        symbol="AAPL",
        entry_date=datetime(2026, 3, 1, 14, 30),
        strategy="Breakout",
        tags=["momentum", "earnings"],
        profit_loss=250.0,
    )
    storage_service.create_journal_entry(symbol="MSFT", entry_date=datetime(2026, 3, 2, 14, 30))

    assert first.tags == ["momentum", "earnings"]
    entries = storage_service.list_journal_entries()
    assert [e.symbol for e in entries] == ["MSFT", "AAPL"]
    assert storage_service.list_journal_entries(symbol="AAPL")[0].id == first.id

    updated = storage_service.update_journal_entry(first, tags=["review"], lessons_learned="Wait for volume")
    assert updated.tags == ["review"]
    assert updated.lessons_learned == "Wait for volume"

    assert storage_service.delete_journal_entry(first.id) is True
    assert storage_service.get_journal_entry(first.id) is None


def test_journal_pagination(storage_service):
    """Test offset and limit on journal listing."""
    for day in range(1, 6):
        storage_service.create_journal_entry(symbol="SPY", entry_date=datetime(2026, 4, day))
    page = storage_service.list_journal_entries(limit=2, offset=1)
    assert [e.entry_date.day for e in page] == [4, 3]


# Trade Tests

def test_stock_trade_requires_exit_pair(storage_service):
    """Test exit price and date must be provided together."""
    with pytest.raises(ValueError):
        storage_service.create_stock_trade("AAPL", 150.0, 10, datetime(2026, 1, 2), exit_price=160.0)

    trade = storage_service.create_stock_trade("AAPL", 150.0, 10, datetime(2026, 1, 2))
    with pytest.raises(ValueError):
        storage_service.update_stock_trade(trade, exit_date=datetime(2026, 2, 2))

    closed = storage_service.update_stock_trade(trade, exit_price=165.0, exit_date=datetime(2026, 2, 2))
    assert closed.exit_price == 165.0


def test_list_open_stock_trades(storage_service):
    """Test open-only filter."""
    storage_service.create_stock_trade("AAPL", 150.0, 10, datetime(2026, 1, 2))
    storage_service.create_stock_trade(
        "MSFT", 300.0, 5, datetime(2026, 1, 3),
        exit_price=310.0, exit_date=datetime(2026, 1, 10),
    )
    assert len(storage_service.list_stock_trades()) == 2
    assert [t.symbol for t in storage_service.list_stock_trades(open_only=True)] == ["AAPL"]


def test_option_trade_crud(storage_service):
    """Test option trades convert type and action to enums."""
    trade = storage_service.create_option_trade(
        symbol="SPY", option_type="call", action="sell", strike=500.0,
        expiration=date(2026, 6, 19), premium=3.25, contracts=2,
        trade_date=datetime(2026, 5, 1), strategy="Covered Call",
    )
    assert trade.option_type == OptionTypeEnum.CALL
    assert trade.action == TradeActionEnum.SELL
    assert trade.expiration == date(2026, 6, 19)

    updated = storage_service.update_option_trade(trade, action="buy", contracts=1)
    assert updated.action == TradeActionEnum.BUY
    assert updated.contracts == 1

    assert storage_service.delete_option_trade(trade.id) is True
    assert storage_service.list_option_trades() == []


# Watchlist Tests

def test_watchlist_add_and_remove(storage_service):
    """Test watchlist ordering, duplicates and removal."""
    storage_service.add_to_watchlist("AAPL", "core")
    storage_service.add_to_watchlist("MSFT")
    assert [w.symbol for w in storage_service.get_watchlist()] == ["AAPL", "MSFT"]

    with pytest.raises(ValueError):
        storage_service.add_to_watchlist("AAPL")

    assert storage_service.remove_from_watchlist("AAPL") is True
    assert storage_service.remove_from_watchlist("AAPL") is False
    assert [w.symbol for w in storage_service.get_watchlist()] == ["MSFT"]


def test_watchlist_repository_lookup(db_session):
    """Test symbol lookup on the repository."""
    repo = WatchlistRepository(db_session)
    repo.add("NVDA")
    assert repo.get_by_symbol("NVDA") is not None
    assert repo.get_by_symbol("AMD") is None


# Signal Tests

def test_record_and_list_signals(storage_service):
    """Test inbound signals are stored and listed newest first."""
    storage_service.record_signal("AAPL", "buy", "TradingView Alert", 1, "1D", "tradingview_webhook", price=190.5)
    storage_service.record_signal("MSFT", "sell", "TradingView Alert", 2, "4H", "tradingview_webhook")

    signals = storage_service.get_recent_signals()
    assert [s.symbol for s in signals] == ["MSFT", "AAPL"]
    assert signals[1].action == TradeActionEnum.BUY
    assert signals[1].price == 190.5
    assert len(storage_service.get_recent_signals(symbol="AAPL")) == 1


# Config Tests

def test_config_upsert(config_repo):
    """Test upserting a config value."""
    config = config_repo.upsert("theme", "dark", "string")
    assert config.value == "dark"
    updated = config_repo.upsert("theme", "light", "string")
    assert updated.id == config.id
    assert updated.value == "light"


def test_json_config_round_trip(storage_service):
    """Test JSON config storage and corrupt values."""
    assert storage_service.get_json_config("risk_settings") == {}
    storage_service.set_json_config("risk_settings", {"max_daily_loss": 500.0})
    assert storage_service.get_json_config("risk_settings") == {"max_daily_loss": 500.0}

    storage_service.set_config_value("broken", "{not json", "json")
    assert storage_service.get_json_config("broken") == {}
    storage_service.set_config_value("listy", "[1, 2]", "json")
    assert storage_service.get_json_config("listy") == {}


# Audit Log Tests

def test_audit_log_filters_and_count(storage_service):
    """Test audit log filtering and pagination."""
    storage_service.create_audit_log("alert_created", "Alert created", {"symbol": "AAPL"}, "alert", 1)
    storage_service.create_audit_log("alert_deleted", "Alert deleted", entity_type="alert", entity_id=1)
    storage_service.create_audit_log("watchlist_added", "Watchlist add", entity_type="watchlist")

    assert storage_service.count_audit_logs() == 3
    assert storage_service.count_audit_logs(entity_type="alert") == 2
    created = storage_service.get_audit_logs(event_type="alert_created")
    assert len(created) == 1
    assert created[0].event_type == AuditEventTypeEnum.ALERT_CREATED
    assert created[0].details == {"symbol": "AAPL"}
    assert len(storage_service.get_audit_logs(limit=2)) == 2
    assert len(storage_service.get_audit_logs(limit=2, offset=2)) == 1


def test_audit_log_rejects_unknown_event(storage_service):
    """Test unknown event types raise."""
    with pytest.raises(ValueError):
        storage_service.create_audit_log("not_an_event", "nope")


def test_audit_event_types_match_initial_migration():
    """Test the migration's audit event enum lists exactly the model's members."""
    versions = Path(__file__).resolve().parents[1] / "alembic" / "versions"
    source = "\n".join(path.read_text(encoding="utf-8") for path in versions.glob("*.py"))
    match = re.search(r"sa\.Enum\(([^)]*?)name='auditeventtypeenum'", source, re.S)
    assert match is not None
    migrated = set(re.findall(r"'([A-Z_]+)'", match.group(1)))
    assert migrated == {member.name for member in AuditEventTypeEnum}
    assert "ERROR" not in migrated
