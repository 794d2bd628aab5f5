"""
Storage module - Database persistence layer.
Provides models, repositories, and services for data storage.
"""
from storage.database import Base, get_db, init_db, SessionLocal
from storage.models import (
    Alert, JournalEntry, StockTrade, OptionTrade, WatchlistItem, TradeSignal, Config, AuditLog,
    AlertTypeEnum, AlertConditionEnum, OptionTypeEnum, TradeActionEnum, AuditEventTypeEnum
)
from storage.repositories import (
    AlertRepository, JournalRepository, StockTradeRepository, OptionTradeRepository,
    WatchlistRepository, TradeSignalRepository, ConfigRepository, AuditLogRepository
)
from storage.service import StorageService

__all__ = [
    # Database
    "Base",
    "get_db",
    "init_db",
    "SessionLocal",
    # Models
    "Alert",
    "JournalEntry",
    "StockTrade",
    "OptionTrade",
    "WatchlistItem",
    "TradeSignal",
    "Config",
    "AuditLog",
    # Enums
    "AlertTypeEnum",
    "AlertConditionEnum",
    "OptionTypeEnum",
    "TradeActionEnum",
    "AuditEventTypeEnum",
    # Repositories
    "AlertRepository",
    "JournalRepository",
    "StockTradeRepository",
    "OptionTradeRepository",
    "WatchlistRepository",
    "TradeSignalRepository",
    "ConfigRepository",
    "AuditLogRepository",
    # Service
    "StorageService",
]
