"""
Tests for the alert monitor: evaluation rules, trigger bookkeeping and
notification fan-out.
"""
import pytest
from datetime import datetime, timezone
from types import SimpleNamespace
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from services.account_settings import update_report_settings
from services.alert_monitor import AlertMonitor, evaluate_alert, run_alert_monitor_cycle
from services.market_data import FinnhubClient, MarketDataError, MarketDataNotConfiguredError
from services.notification_delivery import NotificationChannel
from storage.database import Base
from storage.service import StorageService

NOW = datetime(2026, 3, 2, 15, 30, tzinfo=timezone.utc)


class FakeClient:
    """Serves canned quotes; symbols mapped to an exception raise it."""

    def __init__(self, quotes):
        self.quotes = quotes
        self.requested = []

    def get_quote(self, symbol):
        self.requested.append(symbol)
        value = self.quotes[symbol]
        if isinstance(value, Exception):
            raise value
        return {"symbol": symbol, **value}


class FakeNotifier:
    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    def send(self, channel, recipient, subject, body, payload=None):
        if self.fail:
            raise RuntimeError("SMTP host is not configured")
        self.sent.append((channel, recipient, subject, payload))
        return f"sent to {recipient}"


@pytest.fixture
def session_factory():
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)


@pytest.fixture
def storage(session_factory):
    session = session_factory()
    yield StorageService(session)
    session.close()


def _alert(alert_type, condition, target):
    return SimpleNamespace(alert_type=alert_type, condition=condition, target_value=target, symbol="AAPL")


@pytest.mark.parametrize("alert,quote,expected", [
    (_alert("price", "above", 200), {"price": 200}, True),
    (_alert("price", "above", 200), {"price": 199.99}, False),
    (_alert("price", "below", 150), {"price": 149}, True),
    (_alert("price", "below", 150), {"price": None}, False),
    (_alert("percent_change", "up", 3), {"change_percent": 3.5}, True),
    (_alert("percent_change", "up", 3), {"change_percent": -4}, False),
    (_alert("percent_change", "down", 3), {"change_percent": -3}, True),
    (_alert("percent_change", "down", 3), {"change_percent": 2.9}, False),
])
def test_evaluate_alert(alert, quote, expected):
    assert evaluate_alert(alert, quote) is expected


def test_idle_cycle_without_alerts(storage):
    client = FakeClient({})
    result = AlertMonitor(storage, client=client, notifier=FakeNotifier()).run_cycle(NOW)
    assert result["status"] == "idle"
    assert client.requested == []


def test_cycle_triggers_and_deactivates(storage):
    hit = storage.create_alert("AAPL", "price", "above", 190)
    miss = storage.create_alert("MSFT", "percent_change", "down", 2)
    client = FakeClient({
        "AAPL": {"price": 191.2, "change_percent": 0.4},
        "MSFT": {"price": 410.0, "change_percent": -1.0},
    })

    result = AlertMonitor(storage, client=client, notifier=FakeNotifier()).run_cycle(NOW)

    assert result["status"] == "ok"
    assert result["checked"] == 2
    assert [t["alert_id"] for t in result["triggered"]] == [hit.id]
    assert result["triggered"][0]["notifications"] == []
    assert client.requested == ["AAPL", "MSFT"]

    fired = storage.get_alert(hit.id)
    assert fired.is_active is False
    assert fired.triggered_price == 191.2
    assert fired.triggered_at == datetime(2026, 3, 2, 15, 30)
    assert storage.get_alert(miss.id).is_active is True

    logs = storage.get_audit_logs(event_type="alert_triggered")
    assert len(logs) == 1
    assert logs[0].entity_id == hit.id


def test_triggered_alert_does_not_fire_twice(storage):
    storage.create_alert("AAPL", "price", "above", 190)
    monitor = AlertMonitor(storage, client=FakeClient({"AAPL": {"price": 195}}), notifier=FakeNotifier())
    assert len(monitor.run_cycle(NOW)["triggered"]) == 1
    assert monitor.run_cycle(NOW)["status"] == "idle"


def test_notifications_go_to_report_targets(storage):
    update_report_settings(storage, {
        "email_address": "me@example.com",
        "webhook_url": "https://hooks.example.com/alerts",
    })
    storage.create_alert("AAPL", "price", "below", 200)
    notifier = FakeNotifier()

    result = AlertMonitor(storage, client=FakeClient({"AAPL": {"price": 180}}), notifier=notifier).run_cycle(NOW)

    channels = [sent[0] for sent in notifier.sent]
    assert channels == [NotificationChannel.EMAIL, NotificationChannel.WEBHOOK]
    assert notifier.sent[0][1] == "me@example.com"
    assert notifier.sent[1][3]["event"] == "alert_triggered"
    assert all(n["success"] for n in result["triggered"][0]["notifications"])


def test_notification_failures_are_reported_not_raised(storage):
    update_report_settings(storage, {"email_address": "me@example.com"})
    storage.create_alert("AAPL", "price", "below", 200)

    result = AlertMonitor(
        storage, client=FakeClient({"AAPL": {"price": 180}}), notifier=FakeNotifier(fail=True),
    ).run_cycle(NOW)

    notification = result["triggered"][0]["notifications"][0]
    assert notification["success"] is False
    assert "SMTP" in notification["message"]
    assert storage.get_active_alerts() == []


def test_quote_failures_are_skipped(storage):
    storage.create_alert("AAPL", "price", "above", 100)
    storage.create_alert("ZZZZ", "price", "above", 1)
    client = FakeClient({"AAPL": {"price": 150}, "ZZZZ": MarketDataError("boom", status_code=502)})

    result = AlertMonitor(storage, client=client, notifier=FakeNotifier()).run_cycle(NOW)

    assert result["failed_symbols"] == ["ZZZZ"]
    assert [t["symbol"] for t in result["triggered"]] == ["AAPL"]


def test_unconfigured_provider_raises_from_cycle(storage):
    storage.create_alert("AAPL", "price", "above", 100)
    client = FakeClient({"AAPL": MarketDataNotConfiguredError("no key")})
    with pytest.raises(MarketDataNotConfiguredError):
        AlertMonitor(storage, client=client, notifier=FakeNotifier()).run_cycle(NOW)


def test_background_cycle_reports_disabled(session_factory):
    setup = session_factory()
    StorageService(setup).create_alert("AAPL", "price", "above", 100)
    setup.close()

    result = run_alert_monitor_cycle(session_factory=session_factory, client=FinnhubClient(api_key=None))
    assert result["status"] == "disabled"
