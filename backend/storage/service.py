"""
Storage service - High-level interface for storage operations.
Provides business logic on top of repositories.
"""
import json
import logging
from typing import List, Optional, Dict, Any
from datetime import datetime, date
from sqlalchemy.orm import Session

from storage.repositories import (
    AlertRepository, JournalRepository, StockTradeRepository, OptionTradeRepository,
    WatchlistRepository, TradeSignalRepository, ConfigRepository, AuditLogRepository
)
from storage.models import (
    Alert, JournalEntry, StockTrade, OptionTrade, WatchlistItem, TradeSignal, Config, AuditLog,
    AlertTypeEnum, AlertConditionEnum, OptionTypeEnum, TradeActionEnum, AuditEventTypeEnum,
    ALERT_CONDITIONS
)
from storage.database import Base

logger = logging.getLogger(__name__)


class StorageService:
    """
    Main storage service coordinating all repository operations.
    This is the primary interface for routes and background services.
    """

    def __init__(self, db: Session):
        """Initialize storage service with database session."""
        self.db = db
        # Schema must exist for whichever engine the session is bound to.
        Base.metadata.create_all(bind=self.db.get_bind())
        self.alerts = AlertRepository(db)
        self.journal = JournalRepository(db)
        self.stock_trades = StockTradeRepository(db)
        self.option_trades = OptionTradeRepository(db)
        self.watchlist = WatchlistRepository(db)
        self.signals = TradeSignalRepository(db)
        self.config = ConfigRepository(db)
        self.audit_logs = AuditLogRepository(db)

    # Alert operations

    def create_alert(self, symbol: str, alert_type: str, condition: str,
                     target_value: float, note: Optional[str] = None) -> Alert:
        """
        Create an alert after checking the condition matches the alert type.

        Raises:
            ValueError: If the condition is not valid for the type
        """
        type_enum = AlertTypeEnum(alert_type)
        condition_enum = AlertConditionEnum(condition)
        if condition_enum not in ALERT_CONDITIONS[type_enum]:
            raise ValueError(f"Condition '{condition}' is not valid for {alert_type} alerts")
        return self.alerts.create(symbol, type_enum, condition_enum, target_value, note)

    def get_alert(self, alert_id: int) -> Optional[Alert]:
        return self.alerts.get_by_id(alert_id)

    def list_alerts(self, active_only: bool = False, symbol: Optional[str] = None) -> List[Alert]:
        return self.alerts.get_all(active_only=active_only, symbol=symbol)

    def get_active_alerts(self) -> List[Alert]:
        return self.alerts.get_active()

    def update_alert(self, alert: Alert, **updates: Any) -> Alert:
        """Update an alert; the resulting type/condition pair must still be valid."""
        type_enum = AlertTypeEnum(updates.get("alert_type", alert.alert_type))
        condition_enum = AlertConditionEnum(updates.get("condition", alert.condition))
        if condition_enum not in ALERT_CONDITIONS[type_enum]:
            raise ValueError(f"Condition '{condition_enum.value}' is not valid for {type_enum.value} alerts")
        if "alert_type" in updates:
            updates["alert_type"] = type_enum
        if "condition" in updates:
            updates["condition"] = condition_enum
        return self.alerts.update(alert, **updates)

    def mark_alert_triggered(self, alert: Alert, price: float,
                             triggered_at: Optional[datetime] = None) -> Alert:
        return self.alerts.mark_triggered(alert, price, triggered_at)

    def rearm_alert(self, alert: Alert) -> Alert:
        return self.alerts.rearm(alert)

    def delete_alert(self, alert_id: int) -> bool:
        return self.alerts.delete(alert_id)

    def get_alert_history(self, alert_type: Optional[str] = None, symbol: Optional[str] = None,
                          newest_first: bool = True, limit: int = 500) -> List[Alert]:
        """Get triggered alerts with optional type and symbol filters."""
        type_enum = AlertTypeEnum(alert_type) if alert_type else None
        return self.alerts.get_triggered(type_enum, symbol, newest_first, limit)

    # Journal operations

    def create_journal_entry(self, **fields: Any) -> JournalEntry:
        return self.journal.create(**fields)

    def get_journal_entry(self, entry_id: int) -> Optional[JournalEntry]:
        return self.journal.get_by_id(entry_id)

    def list_journal_entries(self, symbol: Optional[str] = None, limit: int = 500,
                             offset: int = 0) -> List[JournalEntry]:
        return self.journal.get_all(symbol=symbol, limit=limit, offset=offset)

    def update_journal_entry(self, entry: JournalEntry, **updates: Any) -> JournalEntry:
        return self.journal.update(entry, **updates)

    def delete_journal_entry(self, entry_id: int) -> bool:
        return self.journal.delete(entry_id)

    # Trade operations

    def create_stock_trade(self, symbol: str, entry_price: float, quantity: float,
                           entry_date: datetime, exit_price: Optional[float] = None,
                           exit_date: Optional[datetime] = None,
                           notes: Optional[str] = None) -> StockTrade:
        """Record a stock trade; exit price and date must be given together."""
        if (exit_price is None) != (exit_date is None):
            raise ValueError("exit_price and exit_date must be provided together")
        return self.stock_trades.create(symbol, entry_price, quantity, entry_date,
                                        exit_price, exit_date, notes)

    def get_stock_trade(self, trade_id: int) -> Optional[StockTrade]:
        return self.stock_trades.get_by_id(trade_id)

    def list_stock_trades(self, symbol: Optional[str] = None, open_only: bool = False) -> List[StockTrade]:
        return self.stock_trades.get_all(symbol=symbol, open_only=open_only)

    def update_stock_trade(self, trade: StockTrade, **updates: Any) -> StockTrade:
        exit_price = updates.get("exit_price", trade.exit_price)
        exit_date = updates.get("exit_date", trade.exit_date)
        if (exit_price is None) != (exit_date is None):
            raise ValueError("exit_price and exit_date must be provided together")
        return self.stock_trades.update(trade, **updates)

    def delete_stock_trade(self, trade_id: int) -> bool:
        return self.stock_trades.delete(trade_id)

    def create_option_trade(self, symbol: str, option_type: str, action: str, strike: float,
                            expiration: date, premium: float, contracts: int,
                            trade_date: datetime, strategy: Optional[str] = None,
                            notes: Optional[str] = None) -> OptionTrade:
        return self.option_trades.create(
            symbol=symbol,
            option_type=OptionTypeEnum(option_type),
            action=TradeActionEnum(action),
            strike=strike,
            expiration=expiration,
            premium=premium,
            contracts=contracts,
            trade_date=trade_date,
            strategy=strategy,
            notes=notes,
        )

    def get_option_trade(self, trade_id: int) -> Optional[OptionTrade]:
        return self.option_trades.get_by_id(trade_id)

    def list_option_trades(self, symbol: Optional[str] = None) -> List[OptionTrade]:
        return self.option_trades.get_all(symbol=symbol)

    def update_option_trade(self, trade: OptionTrade, **updates: Any) -> OptionTrade:
        if "option_type" in updates:
            updates["option_type"] = OptionTypeEnum(updates["option_type"])
        if "action" in updates:
            updates["action"] = TradeActionEnum(updates["action"])
        return self.option_trades.update(trade, **updates)

    def delete_option_trade(self, trade_id: int) -> bool:
        return self.option_trades.delete(trade_id)

    # Watchlist operations

    def add_to_watchlist(self, symbol: str, note: Optional[str] = None) -> WatchlistItem:
        """
        Add a symbol to the watchlist.

        Raises:
            ValueError: If the symbol is already watched
        """
        if self.watchlist.get_by_symbol(symbol):
            raise ValueError(f"{symbol} is already on the watchlist")
        return self.watchlist.add(symbol, note)

    def get_watchlist(self) -> List[WatchlistItem]:
        return self.watchlist.get_all()

    def remove_from_watchlist(self, symbol: str) -> bool:
        return self.watchlist.remove(symbol)

    # Signal operations

    def record_signal(self, symbol: str, action: str, strategy: str, quantity: float,
                      timeframe: str, source: str, price: Optional[float] = None,
                      entry_condition: Optional[str] = None,
                      exit_condition: Optional[str] = None) -> TradeSignal:
        return self.signals.create(
            symbol=symbol,
            action=TradeActionEnum(action),
            strategy=strategy,
            quantity=quantity,
            timeframe=timeframe,
            source=source,
            price=price,
            entry_condition=entry_condition,
            exit_condition=exit_condition,
        )

    def get_recent_signals(self, symbol: Optional[str] = None, limit: int = 100) -> List[TradeSignal]:
        return self.signals.get_recent(symbol=symbol, limit=limit)

    # Config operations

    def get_config_value(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Get config value by key."""
        config = self.config.get_by_key(key)
        return config.value if config else default

    def set_config_value(self, key: str, value: str, value_type: str = "string",
                         description: Optional[str] = None) -> Config:
        """Set config value (create or update)."""
        return self.config.upsert(key, value, value_type, description)

    def get_json_config(self, key: str) -> Dict[str, Any]:
        """Load a JSON object stored under key; missing or corrupt values read as {}."""
        raw = self.get_config_value(key)
        if not raw:
            return {}
        try:
            value = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Config key %s holds invalid JSON; ignoring stored value", key)
            return {}
        return value if isinstance(value, dict) else {}

    def set_json_config(self, key: str, value: Dict[str, Any],
                        description: Optional[str] = None) -> Config:
        return self.set_config_value(key, json.dumps(value, default=str), "json", description)

    # Audit log operations

    def create_audit_log(
        self,
        event_type: str,
        description: str,
        details: Optional[Dict[str, Any]] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[int] = None,
    ) -> AuditLog:
        """Create a new audit log entry."""
        return self.audit_logs.create(
            event_type=AuditEventTypeEnum(event_type),
            description=description,
            details=details,
            entity_type=entity_type,
            entity_id=entity_id,
        )

    def get_audit_logs(
        self,
        limit: int = 100,
        offset: int = 0,
        event_type: Optional[str] = None,
        entity_type: Optional[str] = None,
    ) -> List[AuditLog]:
        """Get audit logs with filtering and pagination."""
        event_type_enum = AuditEventTypeEnum(event_type) if event_type else None
        return self.audit_logs.get_all(
            limit=limit,
            offset=offset,
            event_type=event_type_enum,
            entity_type=entity_type,
        )

    def count_audit_logs(self, event_type: Optional[str] = None,
                         entity_type: Optional[str] = None) -> int:
        """Count audit logs with optional filtering."""
        event_type_enum = AuditEventTypeEnum(event_type) if event_type else None
        return self.audit_logs.count(event_type=event_type_enum, entity_type=entity_type)
