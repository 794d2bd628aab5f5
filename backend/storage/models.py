"""
Database models for StockManager.
Defines the schema for alerts, journal entries, trades, watchlist, inbound
signals, config and audit logs.
"""
from sqlalchemy import (
    Column, Integer, String, Float, DateTime, Date, Boolean, Enum as SQLEnum, Text, JSON
)
from sqlalchemy.sql import func
import enum

from storage.database import Base


# Enums for type safety
class AlertTypeEnum(str, enum.Enum):
    """Alert type enumeration."""
    PRICE = "price"
    PERCENT_CHANGE = "percent_change"


class AlertConditionEnum(str, enum.Enum):
    """Alert condition; above/below for price alerts, up/down for percent alerts."""
    ABOVE = "above"
    BELOW = "below"
    UP = "up"
    DOWN = "down"


ALERT_CONDITIONS = {
    AlertTypeEnum.PRICE: {AlertConditionEnum.ABOVE, AlertConditionEnum.BELOW},
    AlertTypeEnum.PERCENT_CHANGE: {AlertConditionEnum.UP, AlertConditionEnum.DOWN},
}


class OptionTypeEnum(str, enum.Enum):
    CALL = "call"
    PUT = "put"


class TradeActionEnum(str, enum.Enum):
    """Side of an option trade or inbound signal."""
    BUY = "buy"
    SELL = "sell"


class AuditEventTypeEnum(str, enum.Enum):
    """Audit event type enumeration."""
    ALERT_CREATED = "alert_created"
    ALERT_UPDATED = "alert_updated"
    ALERT_DELETED = "alert_deleted"
    ALERT_TRIGGERED = "alert_triggered"
    JOURNAL_ENTRY_CREATED = "journal_entry_created"
    JOURNAL_ENTRY_UPDATED = "journal_entry_updated"
    JOURNAL_ENTRY_DELETED = "journal_entry_deleted"
    TRADE_CREATED = "trade_created"
    TRADE_UPDATED = "trade_updated"
    TRADE_DELETED = "trade_deleted"
    WATCHLIST_ADDED = "watchlist_added"
    WATCHLIST_REMOVED = "watchlist_removed"
    SETTINGS_UPDATED = "settings_updated"
    SIGNAL_RECEIVED = "signal_received"


# Database Models

class Alert(Base):
    """
    Alert model - price and percent-change alerts watched by the alert monitor.
    """
    __tablename__ = "alerts"

    id = Column(Integer, primary_key=True, index=True)
    symbol = Column(String(20), nullable=False, index=True)
    alert_type = Column(SQLEnum(AlertTypeEnum), nullable=False)
    condition = Column(SQLEnum(AlertConditionEnum), nullable=False)
    target_value = Column(Float, nullable=False)
    note = Column(String(500), nullable=True)

    # Trigger state
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    triggered_at = Column(DateTime, nullable=True, index=True)
    triggered_price = Column(Float, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)


class JournalEntry(Base):
    """
    JournalEntry model - trade journal with emotions and lessons learned.
    """
    __tablename__ = "trade_journal"

    id = Column(Integer, primary_key=True, index=True)
    symbol = Column(String(20), nullable=False, index=True)
    entry_date = Column(DateTime, nullable=False, index=True)
    exit_date = Column(DateTime, nullable=True)
    strategy = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    emotions = Column(String(500), nullable=True)
    lessons_learned = Column(Text, nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    profit_loss = Column(Float, nullable=True)

    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)


class StockTrade(Base):
    """
    StockTrade model - a share position; open until exit price and date are set.
    """
    __tablename__ = "stock_trades"

    id = Column(Integer, primary_key=True, index=True)
    symbol = Column(String(20), nullable=False, index=True)
    entry_price = Column(Float, nullable=False)
    exit_price = Column(Float, nullable=True)
    quantity = Column(Float, nullable=False)
    entry_date = Column(DateTime, nullable=False, index=True)
    exit_date = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)


class OptionTrade(Base):
    """
    OptionTrade model - a single options transaction.
    """
    __tablename__ = "option_trades"

    id = Column(Integer, primary_key=True, index=True)
    symbol = Column(String(20), nullable=False, index=True)
    option_type = Column(SQLEnum(OptionTypeEnum), nullable=False)
    action = Column(SQLEnum(TradeActionEnum), nullable=False)
    strike = Column(Float, nullable=False)
    expiration = Column(Date, nullable=False)
    premium = Column(Float, nullable=False)
    contracts = Column(Integer, nullable=False, default=1)
    trade_date = Column(DateTime, nullable=False, index=True)
    strategy = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)


class WatchlistItem(Base):
    """
    WatchlistItem model - one row per watched symbol.
    """
    __tablename__ = "watchlist"

    id = Column(Integer, primary_key=True, index=True)
    symbol = Column(String(20), nullable=False, unique=True, index=True)
    note = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=func.now(), nullable=False)


class TradeSignal(Base):
    """
    TradeSignal model - inbound strategy signals (TradingView webhooks).
    """
    __tablename__ = "trade_signals"

    id = Column(Integer, primary_key=True, index=True)
    symbol = Column(String(20), nullable=False, index=True)
    action = Column(SQLEnum(TradeActionEnum), nullable=False)
    price = Column(Float, nullable=True)
    strategy = Column(String(100), nullable=False)
    quantity = Column(Float, nullable=False, default=1)
    timeframe = Column(String(20), nullable=False)
    entry_condition = Column(String(500), nullable=True)
    exit_condition = Column(String(500), nullable=True)
    source = Column(String(50), nullable=False)
    received_at = Column(DateTime, default=func.now(), nullable=False, index=True)


class Config(Base):
    """
    Config model - application configuration settings.
    Key-value store for system settings.
    """
    __tablename__ = "config"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String(100), nullable=False, unique=True, index=True)
    value = Column(Text, nullable=False)
    value_type = Column(String(20), nullable=False)  # "string", "int", "float", "bool", "json"
    description = Column(Text, nullable=True)

    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)


class AuditLog(Base):
    """
    AuditLog model - tracks all user-visible mutations and monitor events.
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    event_type = Column(SQLEnum(AuditEventTypeEnum), nullable=False, index=True)
    description = Column(Text, nullable=False)
    details = Column(JSON, nullable=True)

    # Optional references
    entity_type = Column(String(50), nullable=True, index=True)
    entity_id = Column(Integer, nullable=True, index=True)

    timestamp = Column(DateTime, default=func.now(), nullable=False, index=True)
    created_at = Column(DateTime, default=func.now(), nullable=False)
