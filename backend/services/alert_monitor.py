"""
Alert Monitor Service.

Evaluates active price and percent-change alerts against live quotes, marks
triggered alerts, writes audit rows and notifies the configured report
targets. A background thread runs one cycle per poll interval.
"""

import logging
import os
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from config.settings import get_settings
from services.account_settings import get_report_settings
from services.market_data import (
    FinnhubClient,
    MarketDataError,
    MarketDataNotConfiguredError,
    get_market_data_client,
)
from services.notification_delivery import NotificationChannel, NotificationDeliveryService
from storage.database import SessionLocal
from storage.models import Alert, AlertConditionEnum, AlertTypeEnum
from storage.service import StorageService

logger = logging.getLogger(__name__)

MIN_POLL_SECONDS = 15


def evaluate_alert(alert: Alert, quote: Dict[str, Any]) -> bool:
    """
    Check one alert against a quote.

    Price alerts compare the last price to the target; percent-change alerts
    compare the day's change percent to +target (up) or -target (down).
    """
    condition = AlertConditionEnum(alert.condition)
    if AlertTypeEnum(alert.alert_type) == AlertTypeEnum.PRICE:
        price = quote.get("price")
        if price is None:
            return False
        if condition == AlertConditionEnum.ABOVE:
            return price >= alert.target_value
        return price <= alert.target_value

    change = quote.get("change_percent")
    if change is None:
        return False
    if condition == AlertConditionEnum.UP:
        return change >= alert.target_value
    return change <= -alert.target_value


def describe_trigger(alert: Alert, quote: Dict[str, Any]) -> str:
    if AlertTypeEnum(alert.alert_type) == AlertTypeEnum.PRICE:
        return (
            f"{alert.symbol} price {quote.get('price')} is {AlertConditionEnum(alert.condition).value} "
            f"target {alert.target_value}"
        )
    return (
        f"{alert.symbol} moved {quote.get('change_percent')}% today "
        f"({AlertConditionEnum(alert.condition).value} {alert.target_value}% target)"
    )


class AlertMonitor:
    """
    Runs alert evaluation cycles.

    Args:
        storage: Storage service bound to an open session
        client: Market data client (defaults to the shared Finnhub client)
        notifier: Notification service (defaults to a new delivery service)
    """

    def __init__(
        self,
        storage: StorageService,
        client: Optional[FinnhubClient] = None,
        notifier: Optional[NotificationDeliveryService] = None,
    ):
        self.storage = storage
        self.client = client or get_market_data_client()
        self.notifier = notifier or NotificationDeliveryService()

    def run_cycle(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Evaluate every active alert once.

        Returns:
            Dict with counts of checked and triggered alerts, symbols whose quote
            failed, and per-alert notification results
        """
        now = now or datetime.now(timezone.utc)
        alerts = self.storage.get_active_alerts()
        if not alerts:
            return {"status": "idle", "checked": 0, "triggered": [], "failed_symbols": []}

        quotes: Dict[str, Dict[str, Any]] = {}
        failed: List[str] = []
        for symbol in sorted({a.symbol for a in alerts}):
            try:
                quotes[symbol] = self.client.get_quote(symbol)
            except MarketDataNotConfiguredError:
                raise
            except MarketDataError as exc:
                logger.warning("Alert monitor could not quote %s: %s", symbol, exc)
                failed.append(symbol)

        report = get_report_settings(self.storage)
        triggered = []
        for alert in alerts:
            quote = quotes.get(alert.symbol)
            if quote is None or not evaluate_alert(alert, quote):
                continue
            message = describe_trigger(alert, quote)
            self.storage.mark_alert_triggered(alert, price=quote["price"], triggered_at=now)
            self.storage.create_audit_log(
                event_type="alert_triggered",
                description=message,
                details={"alert_id": alert.id, "quote": quote},
                entity_type="alert",
                entity_id=alert.id,
            )
            logger.info("Alert %s triggered: %s", alert.id, message)
            triggered.append({
                "alert_id": alert.id,
                "symbol": alert.symbol,
                "message": message,
                "notifications": self._notify(alert, message, quote, report),
            })

        return {
            "status": "ok",
            "checked": len(alerts),
            "triggered": triggered,
            "failed_symbols": failed,
        }

    def _notify(self, alert: Alert, message: str, quote: Dict[str, Any],
                report: Dict[str, Any]) -> List[Dict[str, Any]]:
        targets = []
        if report.get("email_address"):
            targets.append((NotificationChannel.EMAIL, report["email_address"]))
        if report.get("webhook_url"):
            targets.append((NotificationChannel.WEBHOOK, report["webhook_url"]))

        results = []
        for channel, recipient in targets:
            try:
                detail = self.notifier.send(
                    channel=channel,
                    recipient=recipient,
                    subject=f"StockManager alert: {alert.symbol}",
                    body=message,
                    payload={"event": "alert_triggered", "alert_id": alert.id, "symbol": alert.symbol, "quote": quote},
                )
                results.append({"channel": channel.value, "success": True, "message": detail})
            except RuntimeError as exc:
                logger.warning("Alert %s %s notification failed: %s", alert.id, channel.value, exc)
                results.append({"channel": channel.value, "success": False, "message": str(exc)})
        return results


def run_alert_monitor_cycle(
    session_factory: Callable = SessionLocal,
    client: Optional[FinnhubClient] = None,
) -> Dict[str, Any]:
    """
    Execute one monitor cycle using an internal DB session.
    Safe to call from background threads.
    """
    db = session_factory()
    try:
        monitor = AlertMonitor(StorageService(db), client=client)
        return monitor.run_cycle()
    except MarketDataNotConfiguredError as exc:
        return {"status": "disabled", "message": str(exc)}
    except (SQLAlchemyError, MarketDataError, ValueError) as exc:
        logger.exception("Alert monitor cycle failed")
        return {"status": "error", "message": str(exc)}
    finally:
        db.close()


_monitor_thread: Optional[threading.Thread] = None
_monitor_stop_event = threading.Event()
_monitor_lock = threading.Lock()


def _alert_monitor_loop() -> None:
    poll_seconds = max(MIN_POLL_SECONDS, int(get_settings().alert_monitor_poll_seconds))
    logger.info("Alert monitor started (poll=%ss)", poll_seconds)
    while not _monitor_stop_event.is_set():
        result = run_alert_monitor_cycle()
        if result.get("status") == "error":
            logger.error("Alert monitor cycle error: %s", result.get("message", "unknown"))
        _monitor_stop_event.wait(timeout=poll_seconds)
    logger.info("Alert monitor stopped")


def start_alert_monitor() -> bool:
    """Start the alert monitor thread (idempotent)."""
    global _monitor_thread
    if not get_settings().alert_monitor_enabled:
        return False
    if "PYTEST_CURRENT_TEST" in os.environ:
        return False
    with _monitor_lock:
        if _monitor_thread and _monitor_thread.is_alive():
            return False
        _monitor_stop_event.clear()
        _monitor_thread = threading.Thread(
            target=_alert_monitor_loop,
            daemon=True,
            name="stockmanager-alert-monitor",
        )
        _monitor_thread.start()
        return True


def stop_alert_monitor() -> bool:
    """Stop the alert monitor thread (idempotent)."""
    global _monitor_thread
    with _monitor_lock:
        thread = _monitor_thread
        if thread is None or not thread.is_alive():
            return False
        _monitor_stop_event.set()
        thread.join(timeout=5.0)
        _monitor_thread = None
        return True


def is_alert_monitor_running() -> bool:
    thread = _monitor_thread
    return thread is not None and thread.is_alive()
