"""Read-only projections of the ledger for reporting."""
from __future__ import annotations

import sqlite3
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from polytracker.db.alerts_repo import AlertsRepo
from polytracker.db.positions_repo import PositionsRepo
from polytracker.db.trades_repo import TradesRepo
from polytracker.db.traders_repo import TradersRepo
from polytracker.models import Position
from polytracker.shared.time_utils import to_iso


def positions_by_trader(
    conn: sqlite3.Connection,
    address: str,
    status: Optional[str] = None,
) -> List[Position]:
    return PositionsRepo(conn).by_trader(address, status)


def top_traders(
    conn: sqlite3.Connection,
    limit: int = 20,
    min_settled_markets: int = 3,
) -> List[Dict[str, Any]]:
    return TradersRepo(conn).top(limit, min_settled_markets)


def recent_alerts(conn: sqlite3.Connection, limit: int = 50) -> List[Dict[str, Any]]:
    return AlertsRepo(conn).recent(limit)


def large_bets(
    conn: sqlite3.Connection,
    min_amount: float = 10_000.0,
    category: Optional[str] = None,
    limit: int = 50,
) -> List[Dict[str, Any]]:
    return TradesRepo(conn).large_bets(min_amount, category, limit)


def trader_detail(conn: sqlite3.Connection, address: str) -> Optional[Dict[str, Any]]:
    """Trader aggregate with recent trades and open positions, or None if unknown."""
    stat = TradersRepo(conn).get(address)
    if stat is None:
        return None
    return {
        "trader": stat.model_dump() | {"win_rate": stat.win_rate},
        "recent_trades": TradesRepo(conn).recent_for_trader(address),
        "open_positions": [p.model_dump() for p in positions_by_trader(conn, address, "open")],
    }


def market_stats(
    conn: sqlite3.Connection,
    hours: int = 24,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    now = now or datetime.now(timezone.utc)
    return TradesRepo(conn).market_stats(to_iso(now - timedelta(hours=hours)))
