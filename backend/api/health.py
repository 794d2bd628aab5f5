"""
Health check payload for GET /status.

Reports subsystem status instead of a static response:
- Database connectivity
- Market data provider configuration
- Alert monitor thread
"""
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from config.settings import get_settings, has_market_data_credentials
from services.alert_monitor import is_alert_monitor_running
from storage.database import SessionLocal

logger = logging.getLogger(__name__)

_startup_time: float = time.monotonic()
_startup_utc: str = datetime.now(timezone.utc).isoformat()

APP_VERSION = "0.1.0"


def mark_startup() -> None:
    """Call once at startup to record the process start time."""
    global _startup_time, _startup_utc
    _startup_time = time.monotonic()
    _startup_utc = datetime.now(timezone.utc).isoformat()


def build_health_response() -> Dict[str, Any]:
    """
    Build the health payload.

    status is "unhealthy" when the database is down and "degraded" when
    market data is not configured or an enabled alert monitor is not running.
    """
    checks: Dict[str, Dict[str, Any]] = {}
    healthy = True
    degraded = False

    # ── Database ─────────────────────────────────────────────────────────
    db_error = ""
    try:
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
        finally:
            db.close()
    except SQLAlchemyError as exc:
        db_error = str(exc)[:200]
        healthy = False
    checks["database"] = {"status": "down" if db_error else "up", "error": db_error or None}

    # ── Market Data ──────────────────────────────────────────────────────
    configured = has_market_data_credentials()
    if not configured:
        degraded = True
    checks["market_data"] = {
        "status": "configured" if configured else "not_configured",
        "provider": "finnhub",
    }

    # ── Alert Monitor ────────────────────────────────────────────────────
    enabled = get_settings().alert_monitor_enabled
    running = is_alert_monitor_running()
    if enabled and configured and not running:
        degraded = True
    checks["alert_monitor"] = {
        "status": "running" if running else ("stopped" if enabled else "disabled"),
    }

    if not healthy:
        status = "unhealthy"
    elif degraded:
        status = "degraded"
    else:
        status = "healthy"

    return {
        "status": status,
        "service": "StockManager Backend",
        "version": APP_VERSION,
        "uptime_seconds": round(time.monotonic() - _startup_time, 1),
        "started_at": _startup_utc,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": checks,
    }
