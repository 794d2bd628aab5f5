"""
Risk and report settings persisted as JSON documents in the config table.

Risk settings track loss limits plus rolling daily/weekly realized P&L; a loss
limit breach halts trading until it is resumed manually. Report settings hold
the notification targets used by the alert monitor.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from storage.service import StorageService

logger = logging.getLogger(__name__)

RISK_SETTINGS_KEY = "risk_settings"
REPORT_SETTINGS_KEY = "report_settings"

DEFAULT_RISK_SETTINGS: Dict[str, Any] = {
    "max_position_size": 10000.0,
    "max_position_percent": 5.0,
    "max_daily_loss": 1000.0,
    "max_weekly_loss": 5000.0,
    "max_open_positions": 10,
    "stop_loss_percent": 2.0,
    "take_profit_percent": 5.0,
    "trailing_stop_enabled": False,
    "trailing_stop_percent": 1.0,
    "current_daily_pnl": 0.0,
    "current_weekly_pnl": 0.0,
    "is_trading_halted": False,
    "halt_reason": None,
    "pnl_date": None,
    "pnl_week": None,
}

# Fields a user may edit directly; P&L counters and halt state move through
# record_pnl and set_trading_halt.
EDITABLE_RISK_FIELDS = (
    "max_position_size", "max_position_percent", "max_daily_loss", "max_weekly_loss",
    "max_open_positions", "stop_loss_percent", "take_profit_percent",
    "trailing_stop_enabled", "trailing_stop_percent",
)

DEFAULT_REPORT_SETTINGS: Dict[str, Any] = {
    "daily_report": False,
    "weekly_report": True,
    "monthly_report": False,
    "email_address": None,
    "webhook_url": None,
}

MANUAL_HALT_REASON = "Manually halted by user"


def _usage_percent(pnl: float, limit: float) -> float:
    if limit <= 0:
        return 0.0
    return round(min(100.0, abs(pnl) / limit * 100.0), 1)


def _with_usage(settings: Dict[str, Any]) -> Dict[str, Any]:
    result = dict(settings)
    result["daily_loss_usage_percent"] = _usage_percent(settings["current_daily_pnl"], settings["max_daily_loss"])
    result["weekly_loss_usage_percent"] = _usage_percent(settings["current_weekly_pnl"], settings["max_weekly_loss"])
    return result


def _load_risk(storage: StorageService) -> Dict[str, Any]:
    stored = storage.get_json_config(RISK_SETTINGS_KEY)
    return {**DEFAULT_RISK_SETTINGS, **{k: v for k, v in stored.items() if k in DEFAULT_RISK_SETTINGS}}


def _iso_week(now: datetime) -> str:
    year, week, _ = now.isocalendar()
    return f"{year}-W{week:02d}"


def _roll_periods(settings: Dict[str, Any], now: datetime) -> bool:
    """Reset counters that belong to a previous day or ISO week. Returns True if anything changed."""
    changed = False
    today = now.date().isoformat()
    week = _iso_week(now)
    if settings.get("pnl_date") != today:
        settings["current_daily_pnl"] = 0.0
        settings["pnl_date"] = today
        changed = True
    if settings.get("pnl_week") != week:
        settings["current_weekly_pnl"] = 0.0
        settings["pnl_week"] = week
        changed = True
    return changed


def get_risk_settings(storage: StorageService, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Current risk settings with loss-limit usage percentages."""
    settings = _load_risk(storage)
    if settings["pnl_date"] is not None:
        _roll_periods(settings, now or datetime.now(timezone.utc))
    return _with_usage(settings)


def update_risk_settings(storage: StorageService, updates: Dict[str, Any]) -> Dict[str, Any]:
    """
    Apply user edits to the risk limits.

    Raises:
        ValueError: If a field is not editable
    """
    unknown = set(updates) - set(EDITABLE_RISK_FIELDS)
    if unknown:
        raise ValueError(f"Unknown risk settings: {', '.join(sorted(unknown))}")
    settings = _load_risk(storage)
    settings.update(updates)
    storage.set_json_config(RISK_SETTINGS_KEY, settings, "Risk management limits and P&L state")
    storage.create_audit_log(
        event_type="settings_updated",
        description="Risk settings updated",
        details={"section": "risk", "fields": sorted(updates)},
        entity_type="settings",
    )
    return _with_usage(settings)


def record_pnl(storage: StorageService, amount: float, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Add realized P&L to the daily and weekly counters.

    Trading halts when either counter reaches its loss limit.
    """
    now = now or datetime.now(timezone.utc)
    settings = _load_risk(storage)
    _roll_periods(settings, now)
    settings["current_daily_pnl"] = round(settings["current_daily_pnl"] + amount, 2)
    settings["current_weekly_pnl"] = round(settings["current_weekly_pnl"] + amount, 2)

    reason = None
    if settings["current_daily_pnl"] <= -settings["max_daily_loss"]:
        reason = "Daily loss limit reached"
    elif settings["current_weekly_pnl"] <= -settings["max_weekly_loss"]:
        reason = "Weekly loss limit reached"

    if reason and not settings["is_trading_halted"]:
        settings["is_trading_halted"] = True
        settings["halt_reason"] = reason
        logger.warning("Trading halted: %s (daily=%.2f weekly=%.2f)",
                       reason, settings["current_daily_pnl"], settings["current_weekly_pnl"])
        storage.create_audit_log(
            event_type="settings_updated",
            description=f"Trading halted: {reason}",
            details={
                "section": "risk",
                "current_daily_pnl": settings["current_daily_pnl"],
                "current_weekly_pnl": settings["current_weekly_pnl"],
            },
            entity_type="settings",
        )

    storage.set_json_config(RISK_SETTINGS_KEY, settings, "Risk management limits and P&L state")
    return _with_usage(settings)


def set_trading_halt(storage: StorageService, halted: bool, reason: Optional[str] = None) -> Dict[str, Any]:
    """Manually halt or resume trading."""
    settings = _load_risk(storage)
    settings["is_trading_halted"] = bool(halted)
    settings["halt_reason"] = (reason or MANUAL_HALT_REASON) if halted else None
    storage.set_json_config(RISK_SETTINGS_KEY, settings, "Risk management limits and P&L state")
    storage.create_audit_log(
        event_type="settings_updated",
        description="Trading halted" if halted else "Trading resumed",
        details={"section": "risk", "halt_reason": settings["halt_reason"]},
        entity_type="settings",
    )
    return _with_usage(settings)


def get_report_settings(storage: StorageService) -> Dict[str, Any]:
    stored = storage.get_json_config(REPORT_SETTINGS_KEY)
    return {**DEFAULT_REPORT_SETTINGS, **{k: v for k, v in stored.items() if k in DEFAULT_REPORT_SETTINGS}}


def update_report_settings(storage: StorageService, updates: Dict[str, Any]) -> Dict[str, Any]:
    """Apply edits to report/notification settings."""
    unknown = set(updates) - set(DEFAULT_REPORT_SETTINGS)
    if unknown:
        raise ValueError(f"Unknown report settings: {', '.join(sorted(unknown))}")
    webhook = updates.get("webhook_url")
    if webhook and not str(webhook).startswith(("http://", "https://")):
        raise ValueError("webhook_url must be an http(s) URL")
    settings = get_report_settings(storage)
    settings.update(updates)
    storage.set_json_config(REPORT_SETTINGS_KEY, settings, "Report and notification preferences")
    storage.create_audit_log(
        event_type="settings_updated",
        description="Report settings updated",
        details={"section": "report", "fields": sorted(updates)},
        entity_type="settings",
    )
    return settings
