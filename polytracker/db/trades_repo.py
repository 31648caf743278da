"""CRUD operations for the trades table (append-only trade facts)."""
from __future__ import annotations

import sqlite3

from polytracker.models import Trade
from polytracker.shared.time_utils import to_iso


class TradesRepo:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def insert(self, trade: Trade, ingested_at: str) -> bool:
        """Insert a trade fact (ignore duplicates by id).

        Returns:
            True if the row is new, False if the id was already stored.
        """
        cursor = self.conn.execute(
            """INSERT OR IGNORE INTO trades
               (id, market_id, trader_address, outcome, notional, price,
                shares, occurred_at, below_alert_floor, title, ingested_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (trade.id, trade.market_id, trade.trader_address, trade.outcome,
             trade.notional, trade.price, trade.shares, to_iso(trade.occurred_at),
             int(trade.below_alert_floor), trade.title, ingested_at),
        )
        return cursor.rowcount == 1

    def set_position(self, trade_id: str, position_id: int) -> None:
        self.conn.execute(
            "UPDATE trades SET position_id = ? WHERE id = ?",
            (position_id, trade_id),
        )

    def get(self, trade_id: str) -> sqlite3.Row | None:
        return self.conn.execute(
            "SELECT * FROM trades WHERE id = ?", (trade_id,)
        ).fetchone()

    def recent_for_trader(self, address: str, limit: int = 20) -> list[dict]:
        rows = self.conn.execute(
            """SELECT t.*, m.question, m.category
               FROM trades t
               LEFT JOIN markets m ON t.market_id = m.id
               WHERE t.trader_address = ?
               ORDER BY t.occurred_at DESC
               LIMIT ?""",
            (address, limit),
        ).fetchall()
        return [dict(r) for r in rows]

    def large_bets(
        self,
        min_amount: float = 10_000.0,
        category: str | None = None,
        limit: int = 50,
    ) -> list[dict]:
        """Trades at or above `min_amount`, newest first.

        A category other than None/"all" restricts to catalogued markets in
        that category.
        """
        query = """
            SELECT t.*, m.question, m.category
            FROM trades t
            LEFT JOIN markets m ON t.market_id = m.id
            WHERE t.notional >= ?
        """
        params: list = [min_amount]
        if category and category != "all":
            query += " AND m.category = ?"
            params.append(category)
        query += " ORDER BY t.occurred_at DESC LIMIT ?"
        params.append(limit)
        return [dict(r) for r in self.conn.execute(query, params).fetchall()]

    def market_stats(self, since: str) -> dict:
        """Activity summary for trades that occurred at or after `since`."""
        row = self.conn.execute(
            """SELECT
                   COUNT(DISTINCT market_id) AS active_markets,
                   COUNT(*) AS total_trades,
                   COALESCE(SUM(notional), 0) AS total_volume,
                   COUNT(DISTINCT trader_address) AS unique_traders
               FROM trades
               WHERE occurred_at >= ?""",
            (since,),
        ).fetchone()
        return dict(row)
