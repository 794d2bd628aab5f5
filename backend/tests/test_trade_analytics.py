"""
Tests for journal and stock trade summaries.
"""
from types import SimpleNamespace

import pytest

from services.trade_analytics import (
    journal_summary,
    option_trade_total_value,
    stock_trade_pnl,
    stock_trade_return_percent,
    stock_trade_summary,
)


def _entry(id, symbol, profit_loss, strategy=None, tags=None):
    return SimpleNamespace(id=id, symbol=symbol, profit_loss=profit_loss, strategy=strategy, tags=tags)


def _trade(entry_price, quantity, exit_price=None):
    return SimpleNamespace(entry_price=entry_price, quantity=quantity, exit_price=exit_price)


def test_stock_trade_pnl_and_return():
    closed = _trade(100, 10, 110)
    assert stock_trade_pnl(closed) == 100
    assert stock_trade_return_percent(closed) == pytest.approx(10.0)
    assert stock_trade_pnl(_trade(100, 10)) is None
    assert stock_trade_return_percent(_trade(100, 10)) is None


def test_option_total_value_uses_contract_multiplier():
    assert option_trade_total_value(SimpleNamespace(premium=2.5, contracts=3)) == 750


def test_journal_summary():
    entries = [
        _entry(1, "AAPL", 300, "Breakout", ["momentum"]),
        _entry(2, "MSFT", -100, "Breakout", ["momentum", "earnings"]),
        _entry(3, "TSLA", 0, "Swing"),
        _entry(4, "NVDA", None, None, ["watch"]),
    ]
    summary = journal_summary(entries)
    assert summary["total_entries"] == 4
    assert summary["scored_entries"] == 3
    assert summary["total_pnl"] == 200
    assert summary["wins"] == 1
    assert summary["losses"] == 1
    assert summary["win_rate"] == 50.0
    assert summary["average_win"] == 300
    assert summary["average_loss"] == -100
    assert summary["profit_factor"] == 3.0
    assert summary["best_entry"] == {"id": 1, "symbol": "AAPL", "profit_loss": 300}
    assert summary["worst_entry"]["id"] == 2
    assert summary["by_strategy"][0] == {"strategy": "Breakout", "count": 2, "total_pnl": 200, "win_rate": 50.0}
    assert summary["tags"] == {"momentum": 2, "earnings": 1, "watch": 1}


def test_journal_summary_empty():
    summary = journal_summary([])
    assert summary["total_entries"] == 0
    assert summary["win_rate"] == 0.0
    assert summary["profit_factor"] is None
    assert summary["best_entry"] is None


def test_stock_trade_summary():
    summary = stock_trade_summary([
        _trade(100, 10, 120),
        _trade(50, 20, 45),
        _trade(30, 5),
    ])
    assert summary["total_trades"] == 3
    assert summary["open_trades"] == 1
    assert summary["closed_trades"] == 2
    assert summary["realized_pnl"] == 100
    assert summary["win_rate"] == 50.0
    assert summary["open_cost_basis"] == 150
    assert summary["profit_factor"] == 2.0
