"""
Repository classes for database CRUD operations.
Provides abstraction layer between services and database models.
"""
from typing import List, Optional, Dict, Any
from datetime import datetime, date, timezone
from sqlalchemy.orm import Session

from storage.models import (
    Alert, JournalEntry, StockTrade, OptionTrade, WatchlistItem, TradeSignal, Config, AuditLog,
    AlertTypeEnum, AlertConditionEnum, OptionTypeEnum, TradeActionEnum, AuditEventTypeEnum
)


def _to_db_datetime(value: datetime) -> datetime:
    """Normalize datetime for DB comparisons/storage (naive UTC)."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _apply_updates(row: Any, updates: Dict[str, Any]) -> None:
    for key, value in updates.items():
        if isinstance(value, datetime):
            value = _to_db_datetime(value)
        setattr(row, key, value)


class AlertRepository:
    """Repository for Alert CRUD operations."""

    def __init__(self, db: Session):
        self.db = db

    def create(self, symbol: str, alert_type: AlertTypeEnum, condition: AlertConditionEnum,
               target_value: float, note: Optional[str] = None) -> Alert:
        """Create a new active alert."""
        alert = Alert(
            symbol=symbol,
            alert_type=alert_type,
            condition=condition,
            target_value=target_value,
            note=note,
            is_active=True,
        )
        self.db.add(alert)
        self.db.commit()
        self.db.refresh(alert)
        return alert

    def get_by_id(self, alert_id: int) -> Optional[Alert]:
        """Get alert by ID."""
        return self.db.query(Alert).filter(Alert.id == alert_id).first()

    def get_all(self, active_only: bool = False, symbol: Optional[str] = None) -> List[Alert]:
        """Get alerts, newest first."""
        query = self.db.query(Alert)
        if active_only:
            query = query.filter(Alert.is_active.is_(True))
        if symbol:
            query = query.filter(Alert.symbol == symbol)
        return query.order_by(Alert.created_at.desc(), Alert.id.desc()).all()

    def get_active(self) -> List[Alert]:
        """Get alerts the monitor should evaluate."""
        return self.db.query(Alert).filter(Alert.is_active.is_(True)).order_by(Alert.id.asc()).all()

    def get_triggered(
        self,
        alert_type: Optional[AlertTypeEnum] = None,
        symbol: Optional[str] = None,
        newest_first: bool = True,
        limit: int = 500,
    ) -> List[Alert]:
        """Get alerts that have fired, optionally filtered."""
        query = self.db.query(Alert).filter(Alert.triggered_at.isnot(None))
        if alert_type:
            query = query.filter(Alert.alert_type == alert_type)
        if symbol:
            query = query.filter(Alert.symbol == symbol)
        order = Alert.triggered_at.desc() if newest_first else Alert.triggered_at.asc()
        return query.order_by(order, Alert.id.asc()).limit(limit).all()

    def update(self, alert: Alert, **updates: Any) -> Alert:
        """Apply field updates to an alert."""
        _apply_updates(alert, updates)
        alert.updated_at = datetime.now()
        self.db.commit()
        self.db.refresh(alert)
        return alert

    def mark_triggered(self, alert: Alert, price: float, triggered_at: Optional[datetime] = None) -> Alert:
        """Deactivate an alert and record when and where it fired."""
        alert.is_active = False
        alert.triggered_price = price
        alert.triggered_at = _to_db_datetime(triggered_at or datetime.now(timezone.utc))
        alert.updated_at = datetime.now()
        self.db.commit()
        self.db.refresh(alert)
        return alert

    def rearm(self, alert: Alert) -> Alert:
        """Reactivate an alert and clear its trigger state."""
        alert.is_active = True
        alert.triggered_at = None
        alert.triggered_price = None
        alert.updated_at = datetime.now()
        self.db.commit()
        self.db.refresh(alert)
        return alert

    def delete(self, alert_id: int) -> bool:
        """Delete an alert."""
        alert = self.get_by_id(alert_id)
        if alert:
            self.db.delete(alert)
            self.db.commit()
            return True
        return False


class JournalRepository:
    """Repository for JournalEntry CRUD operations."""

    def __init__(self, db: Session):
        self.db = db

    def create(self, symbol: str, entry_date: datetime, exit_date: Optional[datetime] = None,
               strategy: Optional[str] = None, notes: Optional[str] = None,
               emotions: Optional[str] = None, lessons_learned: Optional[str] = None,
               tags: Optional[List[str]] = None, profit_loss: Optional[float] = None) -> JournalEntry:
        """Create a new journal entry."""
        entry = JournalEntry(
            symbol=symbol,
            entry_date=_to_db_datetime(entry_date),
            exit_date=_to_db_datetime(exit_date) if exit_date else None,
            strategy=strategy,
            notes=notes,
            emotions=emotions,
            lessons_learned=lessons_learned,
            tags=list(tags or []),
            profit_loss=profit_loss,
        )
        self.db.add(entry)
        self.db.commit()
        self.db.refresh(entry)
        return entry

    def get_by_id(self, entry_id: int) -> Optional[JournalEntry]:
        """Get journal entry by ID."""
        return self.db.query(JournalEntry).filter(JournalEntry.id == entry_id).first()

    def get_all(self, symbol: Optional[str] = None, limit: int = 500, offset: int = 0) -> List[JournalEntry]:
        """Get journal entries, most recent entry date first."""
        query = self.db.query(JournalEntry)
        if symbol:
            query = query.filter(JournalEntry.symbol == symbol)
        query = query.order_by(JournalEntry.entry_date.desc(), JournalEntry.id.desc())
        return query.offset(offset).limit(limit).all()

    def update(self, entry: JournalEntry, **updates: Any) -> JournalEntry:
        """Apply field updates to a journal entry."""
        if "tags" in updates and updates["tags"] is not None:
            updates["tags"] = list(updates["tags"])
        _apply_updates(entry, updates)
        entry.updated_at = datetime.now()
        self.db.commit()
        self.db.refresh(entry)
        return entry

    def delete(self, entry_id: int) -> bool:
        """Delete a journal entry."""
        entry = self.get_by_id(entry_id)
        if entry:
            self.db.delete(entry)
            self.db.commit()
            return True
        return False


class StockTradeRepository:
    """Repository for StockTrade CRUD operations."""

    def __init__(self, db: Session):
        self.db = db

    def create(self, symbol: str, entry_price: float, quantity: float, entry_date: datetime,
               exit_price: Optional[float] = None, exit_date: Optional[datetime] = None,
               notes: Optional[str] = None) -> StockTrade:
        """Create a new stock trade."""
        trade = StockTrade(
            symbol=symbol,
            entry_price=entry_price,
            quantity=quantity,
            entry_date=_to_db_datetime(entry_date),
            exit_price=exit_price,
            exit_date=_to_db_datetime(exit_date) if exit_date else None,
            notes=notes,
        )
        self.db.add(trade)
        self.db.commit()
        self.db.refresh(trade)
        return trade

    def get_by_id(self, trade_id: int) -> Optional[StockTrade]:
        """Get stock trade by ID."""
        return self.db.query(StockTrade).filter(StockTrade.id == trade_id).first()

    def get_all(self, symbol: Optional[str] = None, open_only: bool = False, limit: int = 1000) -> List[StockTrade]:
        """Get stock trades, newest entry first."""
        query = self.db.query(StockTrade)
        if symbol:
            query = query.filter(StockTrade.symbol == symbol)
        if open_only:
            query = query.filter(StockTrade.exit_price.is_(None))
        return query.order_by(StockTrade.entry_date.desc(), StockTrade.id.desc()).limit(limit).all()

    def update(self, trade: StockTrade, **updates: Any) -> StockTrade:
        """Apply field updates to a stock trade."""
        _apply_updates(trade, updates)
        trade.updated_at = datetime.now()
        self.db.commit()
        self.db.refresh(trade)
        return trade

    def delete(self, trade_id: int) -> bool:
        """Delete a stock trade."""
        trade = self.get_by_id(trade_id)
        if trade:
            self.db.delete(trade)
            self.db.commit()
            return True
        return False


class OptionTradeRepository:
    """Repository for OptionTrade CRUD operations."""

    def __init__(self, db: Session):
        self.db = db

    def create(self, symbol: str, option_type: OptionTypeEnum, action: TradeActionEnum,
               strike: float, expiration: date, premium: float, contracts: int,
               trade_date: datetime, strategy: Optional[str] = None,
               notes: Optional[str] = None) -> OptionTrade:
        """Create a new option trade."""
        trade = OptionTrade(
            symbol=symbol,
            option_type=option_type,
            action=action,
            strike=strike,
            expiration=expiration,
            premium=premium,
            contracts=contracts,
            trade_date=_to_db_datetime(trade_date),
            strategy=strategy,
            notes=notes,
        )
        self.db.add(trade)
        self.db.commit()
        self.db.refresh(trade)
        return trade

    def get_by_id(self, trade_id: int) -> Optional[OptionTrade]:
        """Get option trade by ID."""
        return self.db.query(OptionTrade).filter(OptionTrade.id == trade_id).first()

    def get_all(self, symbol: Optional[str] = None, limit: int = 1000) -> List[OptionTrade]:
        """Get option trades, newest trade date first."""
        query = self.db.query(OptionTrade)
        if symbol:
            query = query.filter(OptionTrade.symbol == symbol)
        return query.order_by(OptionTrade.trade_date.desc(), OptionTrade.id.desc()).limit(limit).all()

    def update(self, trade: OptionTrade, **updates: Any) -> OptionTrade:
        """Apply field updates to an option trade."""
        _apply_updates(trade, updates)
        trade.updated_at = datetime.now()
        self.db.commit()
        self.db.refresh(trade)
        return trade

    def delete(self, trade_id: int) -> bool:
        """Delete an option trade."""
        trade = self.get_by_id(trade_id)
        if trade:
            self.db.delete(trade)
            self.db.commit()
            return True
        return False


class WatchlistRepository:
    """Repository for WatchlistItem operations."""

    def __init__(self, db: Session):
        self.db = db

    def add(self, symbol: str, note: Optional[str] = None) -> WatchlistItem:
        """Add a symbol. Raises IntegrityError on duplicates."""
        item = WatchlistItem(symbol=symbol, note=note)
        self.db.add(item)
        self.db.commit()
        self.db.refresh(item)
        return item

    def get_by_symbol(self, symbol: str) -> Optional[WatchlistItem]:
        """Get watchlist row by symbol."""
        return self.db.query(WatchlistItem).filter(WatchlistItem.symbol == symbol).first()

    def get_all(self) -> List[WatchlistItem]:
        """Get all watched symbols in the order they were added."""
        return self.db.query(WatchlistItem).order_by(WatchlistItem.created_at.asc(), WatchlistItem.id.asc()).all()

    def remove(self, symbol: str) -> bool:
        """Remove a symbol from the watchlist."""
        item = self.get_by_symbol(symbol)
        if item:
            self.db.delete(item)
            self.db.commit()
            return True
        return False


class TradeSignalRepository:
    """Repository for inbound TradeSignal rows."""

    def __init__(self, db: Session):
        self.db = db

    def create(self, symbol: str, action: TradeActionEnum, strategy: str, quantity: float,
               timeframe: str, source: str, price: Optional[float] = None,
               entry_condition: Optional[str] = None,
               exit_condition: Optional[str] = None) -> TradeSignal:
        """Store a received signal."""
        signal = TradeSignal(
            symbol=symbol,
            action=action,
            price=price,
            strategy=strategy,
            quantity=quantity,
            timeframe=timeframe,
            entry_condition=entry_condition,
            exit_condition=exit_condition,
            source=source,
            received_at=_to_db_datetime(datetime.now(timezone.utc)),
        )
        self.db.add(signal)
        self.db.commit()
        self.db.refresh(signal)
        return signal

    def get_recent(self, symbol: Optional[str] = None, limit: int = 100) -> List[TradeSignal]:
        """Get signals, newest first."""
        query = self.db.query(TradeSignal)
        if symbol:
            query = query.filter(TradeSignal.symbol == symbol)
        return query.order_by(TradeSignal.received_at.desc(), TradeSignal.id.desc()).limit(limit).all()


class ConfigRepository:
    """Repository for Config CRUD operations."""

    def __init__(self, db: Session):
        self.db = db

    def create(self, key: str, value: str, value_type: str,
               description: Optional[str] = None) -> Config:
        """Create a new config entry."""
        config = Config(
            key=key,
            value=value,
            value_type=value_type,
            description=description
        )
        self.db.add(config)
        self.db.commit()
        self.db.refresh(config)
        return config

    def get_by_key(self, key: str) -> Optional[Config]:
        """Get config by key."""
        return self.db.query(Config).filter(Config.key == key).first()

    def update(self, config: Config, value: str) -> Config:
        """Update config value."""
        config.value = value
        config.updated_at = datetime.now()
        self.db.commit()
        self.db.refresh(config)
        return config

    def upsert(self, key: str, value: str, value_type: str,
               description: Optional[str] = None) -> Config:
        """Create or update config entry."""
        config = self.get_by_key(key)
        if config:
            return self.update(config, value)
        return self.create(key, value, value_type, description)


class AuditLogRepository:
    """Repository for AuditLog CRUD operations."""

    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        event_type: AuditEventTypeEnum,
        description: str,
        details: Optional[Dict[str, Any]] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[int] = None,
    ) -> AuditLog:
        """Create a new audit log entry."""
        audit_log = AuditLog(
            event_type=event_type,
            description=description,
            details=details,
            entity_type=entity_type,
            entity_id=entity_id,
        )
        self.db.add(audit_log)
        self.db.commit()
        self.db.refresh(audit_log)
        return audit_log

    def get_all(
        self,
        limit: int = 100,
        offset: int = 0,
        event_type: Optional[AuditEventTypeEnum] = None,
        entity_type: Optional[str] = None,
    ) -> List[AuditLog]:
        """Get audit logs with filtering and pagination."""
        query = self.db.query(AuditLog)
        if event_type:
            query = query.filter(AuditLog.event_type == event_type)
        if entity_type:
            query = query.filter(AuditLog.entity_type == entity_type)
        query = query.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
        return query.offset(offset).limit(limit).all()

    def count(
        self,
        event_type: Optional[AuditEventTypeEnum] = None,
        entity_type: Optional[str] = None,
    ) -> int:
        """Count audit logs with optional filtering."""
        query = self.db.query(AuditLog)
        if event_type:
            query = query.filter(AuditLog.event_type == event_type)
        if entity_type:
            query = query.filter(AuditLog.entity_type == entity_type)
        return query.count()
