"""CRUD operations for the traders table (per-trader aggregates)."""
from __future__ import annotations

import sqlite3

from polytracker.models import TraderStat


class TradersRepo:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def record_trade(self, address: str, notional: float, occurred_at: str, now: str) -> None:
        """Fold one newly ingested trade into volume, bet count and last activity.

        A single upsert statement, so concurrent writers never lose an increment.
        """
        self.conn.execute(
            """INSERT INTO traders (address, total_volume, total_bets, last_activity, updated_at)
               VALUES (?, ?, 1, ?, ?)
               ON CONFLICT(address) DO UPDATE SET
                   total_volume = total_volume + excluded.total_volume,
                   total_bets = total_bets + 1,
                   last_activity = CASE
                       WHEN last_activity IS NULL OR excluded.last_activity > last_activity
                       THEN excluded.last_activity ELSE last_activity END,
                   updated_at = excluded.updated_at""",
            (address, notional, occurred_at, now),
        )

    def set_settlement_stats(
        self,
        address: str,
        wins: int,
        losses: int,
        profit_loss: float,
        settled_markets: int,
        now: str,
    ) -> None:
        self.conn.execute(
            """INSERT INTO traders (address, wins, losses, profit_loss, settled_markets, updated_at)
               VALUES (?, ?, ?, ?, ?, ?)
               ON CONFLICT(address) DO UPDATE SET
                   wins = excluded.wins,
                   losses = excluded.losses,
                   profit_loss = excluded.profit_loss,
                   settled_markets = excluded.settled_markets,
                   updated_at = excluded.updated_at""",
            (address, wins, losses, profit_loss, settled_markets, now),
        )

    def get(self, address: str) -> TraderStat | None:
        row = self.conn.execute(
            "SELECT * FROM traders WHERE address = ?", (address,)
        ).fetchone()
        return TraderStat(**dict(row)) if row else None

    def addresses(self) -> list[str]:
        return [r[0] for r in self.conn.execute("SELECT address FROM traders ORDER BY address")]

    def top(self, limit: int = 20, min_settled_markets: int = 3) -> list[dict]:
        """Leaderboard: traders ordered by realized profit.

        Traders with fewer than `min_settled_markets` settled markets are
        filtered out here, at read time; their rows are still maintained.
        """
        rows = self.conn.execute(
            """SELECT address, total_volume, total_bets, wins, losses,
                      profit_loss, settled_markets, last_activity,
                      CASE WHEN (wins + losses) > 0
                           THEN CAST(wins AS REAL) / (wins + losses)
                           ELSE 0 END AS win_rate
               FROM traders
               WHERE settled_markets >= ?
               ORDER BY profit_loss DESC, address
               LIMIT ?""",
            (min_settled_markets, limit),
        ).fetchall()
        return [dict(r) for r in rows]
