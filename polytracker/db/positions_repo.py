"""CRUD operations for the positions table.

Writes to an existing row are conditional on its `version`; a False return
means another writer got there first.
"""
from __future__ import annotations

import sqlite3

from polytracker.models import Position


class PositionsRepo:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def get(self, position_id: int) -> Position | None:
        row = self.conn.execute(
            "SELECT * FROM positions WHERE id = ?", (position_id,)
        ).fetchone()
        return Position(**dict(row)) if row else None

    def get_open(self, trader_address: str, market_id: str, outcome: str) -> Position | None:
        row = self.conn.execute(
            """SELECT * FROM positions
               WHERE trader_address = ? AND market_id = ? AND outcome = ?
                 AND status = 'open'""",
            (trader_address, market_id, outcome),
        ).fetchone()
        return Position(**dict(row)) if row else None

    def create(
        self,
        trader_address: str,
        market_id: str,
        outcome: str,
        shares: float,
        avg_price: float,
        now: str,
    ) -> int:
        """Open a new position.

        Raises:
            sqlite3.IntegrityError: an open position for the key already exists.
        """
        cursor = self.conn.execute(
            """INSERT INTO positions
               (trader_address, market_id, outcome, shares, avg_price,
                status, opened_at, updated_at)
               VALUES (?, ?, ?, ?, ?, 'open', ?, ?)""",
            (trader_address, market_id, outcome, shares, avg_price, now, now),
        )
        return cursor.lastrowid

    def update_open(
        self,
        position_id: int,
        expected_version: int,
        shares: float,
        avg_price: float,
        now: str,
    ) -> bool:
        cursor = self.conn.execute(
            """UPDATE positions
               SET shares = ?, avg_price = ?, version = version + 1, updated_at = ?
               WHERE id = ? AND version = ? AND status = 'open'""",
            (shares, avg_price, now, position_id, expected_version),
        )
        return cursor.rowcount == 1

    def settle(
        self,
        position_id: int,
        expected_version: int,
        realized_pl: float,
        won: bool,
        now: str,
    ) -> bool:
        cursor = self.conn.execute(
            """UPDATE positions
               SET status = 'settled', realized_pl = ?, won = ?,
                   version = version + 1, settled_at = ?, updated_at = ?
               WHERE id = ? AND version = ? AND status = 'open'""",
            (realized_pl, int(won), now, now, position_id, expected_version),
        )
        return cursor.rowcount == 1

    def open_for_market(self, market_id: str) -> list[Position]:
        rows = self.conn.execute(
            "SELECT * FROM positions WHERE market_id = ? AND status = 'open' ORDER BY id",
            (market_id,),
        ).fetchall()
        return [Position(**dict(r)) for r in rows]

    def by_trader(self, trader_address: str, status: str | None = None) -> list[Position]:
        query = "SELECT * FROM positions WHERE trader_address = ?"
        params: list = [trader_address]
        if status:
            query += " AND status = ?"
            params.append(status)
        query += " ORDER BY updated_at DESC, id DESC"
        return [Position(**dict(r)) for r in self.conn.execute(query, params).fetchall()]

    def settled_summary(self, trader_address: str) -> sqlite3.Row:
        """Wins, losses, P/L and distinct markets over all settled positions."""
        return self.conn.execute(
            """SELECT
                   COALESCE(SUM(CASE WHEN won = 1 THEN 1 ELSE 0 END), 0) AS wins,
                   COALESCE(SUM(CASE WHEN won = 0 THEN 1 ELSE 0 END), 0) AS losses,
                   COALESCE(SUM(realized_pl), 0) AS profit_loss,
                   COUNT(DISTINCT market_id) AS settled_markets
               FROM positions
               WHERE trader_address = ? AND status = 'settled'""",
            (trader_address,),
        ).fetchone()
