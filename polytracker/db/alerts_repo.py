"""CRUD operations for the alerts table."""
from __future__ import annotations

import sqlite3


class AlertsRepo:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def insert_if_absent(
        self,
        alert_type: str,
        trader_address: str,
        market_id: str,
        amount: float,
        trade_id: str,
        message: str,
        created_at: str,
    ) -> bool:
        """Insert an alert (ignore duplicates by trade_id)."""
        cursor = self.conn.execute(
            """INSERT OR IGNORE INTO alerts
               (type, trader_address, market_id, amount, trade_id, message, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (alert_type, trader_address, market_id, amount, trade_id, message, created_at),
        )
        return cursor.rowcount == 1

    def type_for_trade(self, trade_id: str) -> str | None:
        row = self.conn.execute(
            "SELECT type FROM alerts WHERE trade_id = ?", (trade_id,)
        ).fetchone()
        return row[0] if row else None

    def recent(self, limit: int = 50) -> list[dict]:
        """Alert feed, newest first."""
        rows = self.conn.execute(
            """SELECT a.*, m.question
               FROM alerts a
               LEFT JOIN markets m ON a.market_id = m.id
               ORDER BY a.created_at DESC, a.id DESC
               LIMIT ?""",
            (limit,),
        ).fetchall()
        return [dict(r) for r in rows]
