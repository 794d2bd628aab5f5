"""
Trade Analytics Service.
Summary statistics for the trade journal and stock trade log.
"""

from collections import Counter, defaultdict
from typing import Any, Dict, Iterable, List, Optional


def stock_trade_pnl(trade: Any) -> Optional[float]:
    """Realized P&L for a closed trade, None while the position is open."""
    if trade.exit_price is None:
        return None
    return (trade.exit_price - trade.entry_price) * trade.quantity


def stock_trade_return_percent(trade: Any) -> Optional[float]:
    if trade.exit_price is None or not trade.entry_price:
        return None
    return (trade.exit_price - trade.entry_price) / trade.entry_price * 100.0


def option_trade_total_value(trade: Any) -> float:
    """Premium times contracts times the 100-share multiplier."""
    return trade.premium * trade.contracts * 100


def _profit_factor(gross_profit: float, gross_loss: float) -> Optional[float]:
    if gross_loss == 0:
        return None
    return round(gross_profit / gross_loss, 2)


def journal_summary(entries: Iterable[Any]) -> Dict[str, Any]:
    """
    Aggregate journal performance.

    Entries without a profit/loss value count toward ``total_entries`` only.
    A zero P&L is neither a win nor a loss.
    """
    entries = list(entries)
    scored = [e for e in entries if e.profit_loss is not None]
    wins = [e.profit_loss for e in scored if e.profit_loss > 0]
    losses = [e.profit_loss for e in scored if e.profit_loss < 0]
    decided = len(wins) + len(losses)
    gross_profit = sum(wins)
    gross_loss = abs(sum(losses))

    by_strategy: Dict[str, Dict[str, Any]] = defaultdict(lambda: {"count": 0, "total_pnl": 0.0, "wins": 0})
    tag_counts: Counter = Counter()
    for entry in entries:
        for tag in entry.tags or []:
            tag_counts[tag] += 1
        if entry.profit_loss is None:
            continue
        bucket = by_strategy[entry.strategy or "Unspecified"]
        bucket["count"] += 1
        bucket["total_pnl"] += entry.profit_loss
        if entry.profit_loss > 0:
            bucket["wins"] += 1

    strategies: List[Dict[str, Any]] = [
        {
            "strategy": name,
            "count": data["count"],
            "total_pnl": round(data["total_pnl"], 2),
            "win_rate": round(data["wins"] / data["count"] * 100, 1) if data["count"] else 0.0,
        }
        for name, data in by_strategy.items()
    ]
    strategies.sort(key=lambda row: row["total_pnl"], reverse=True)

    best = max(scored, key=lambda e: e.profit_loss, default=None)
    worst = min(scored, key=lambda e: e.profit_loss, default=None)

    return {
        "total_entries": len(entries),
        "scored_entries": len(scored),
        "total_pnl": round(sum(e.profit_loss for e in scored), 2),
        "wins": len(wins),
        "losses": len(losses),
        "win_rate": round(len(wins) / decided * 100, 1) if decided else 0.0,
        "average_win": round(gross_profit / len(wins), 2) if wins else 0.0,
        "average_loss": round(-gross_loss / len(losses), 2) if losses else 0.0,
        "profit_factor": _profit_factor(gross_profit, gross_loss),
        "best_entry": {"id": best.id, "symbol": best.symbol, "profit_loss": best.profit_loss} if best else None,
        "worst_entry": {"id": worst.id, "symbol": worst.symbol, "profit_loss": worst.profit_loss} if worst else None,
        "by_strategy": strategies,
        "tags": dict(tag_counts.most_common()),
    }


def stock_trade_summary(trades: Iterable[Any]) -> Dict[str, Any]:
    """Open/closed counts, realized P&L and win rate over closed trades."""
    trades = list(trades)
    closed = [t for t in trades if t.exit_price is not None]
    pnls = [stock_trade_pnl(t) for t in closed]
    winners = [p for p in pnls if p > 0]
    losers = [p for p in pnls if p < 0]
    return {
        "total_trades": len(trades),
        "open_trades": len(trades) - len(closed),
        "closed_trades": len(closed),
        "realized_pnl": round(sum(pnls), 2),
        "winning_trades": len(winners),
        "losing_trades": len(losers),
        "win_rate": round(len(winners) / len(closed) * 100, 1) if closed else 0.0,
        "open_cost_basis": round(sum(t.entry_price * t.quantity for t in trades if t.exit_price is None), 2),
        "profit_factor": _profit_factor(sum(winners), abs(sum(losers))),
    }
