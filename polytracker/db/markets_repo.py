"""CRUD operations for the markets table (catalog + resolution facts)."""
from __future__ import annotations

import json
import sqlite3

from polytracker.models import Market, MarketListing


class MarketsRepo:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def upsert_listing(self, listing: MarketListing, now: str) -> None:
        """Insert or refresh a market listing.

        Resolution columns are left alone; they are owned by mark_resolved.
        """
        self.conn.execute(
            """INSERT INTO markets
               (id, question, category, slug, closed, outcomes, outcome_prices, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)
               ON CONFLICT(id) DO UPDATE SET
                   question = excluded.question,
                   category = COALESCE(excluded.category, category),
                   slug = COALESCE(excluded.slug, slug),
                   closed = excluded.closed,
                   outcomes = CASE WHEN excluded.outcomes != '[]'
                                   THEN excluded.outcomes ELSE outcomes END,
                   outcome_prices = CASE WHEN excluded.outcome_prices != '[]'
                                         THEN excluded.outcome_prices ELSE outcome_prices END,
                   updated_at = excluded.updated_at""",
            (listing.id, listing.question, listing.category, listing.slug,
             int(listing.closed), json.dumps(listing.outcomes),
             json.dumps(listing.outcome_prices), now),
        )

    def mark_resolved(self, market_id: str, winning_outcome: str | None, now: str) -> None:
        """Record a resolution. A stored winner is never cleared by a later no-winner fact."""
        self.conn.execute(
            """INSERT INTO markets (id, closed, resolved, winning_outcome, updated_at)
               VALUES (?, 1, 1, ?, ?)
               ON CONFLICT(id) DO UPDATE SET
                   closed = 1,
                   resolved = 1,
                   winning_outcome = COALESCE(excluded.winning_outcome, winning_outcome),
                   updated_at = excluded.updated_at""",
            (market_id, winning_outcome, now),
        )

    def get(self, market_id: str) -> Market | None:
        row = self.conn.execute(
            "SELECT * FROM markets WHERE id = ?", (market_id,)
        ).fetchone()
        return Market(**dict(row)) if row else None

    def unresolved(self, limit: int = 200) -> list[str]:
        """Ids of markets that still need a resolution lookup.

        Covers catalogued markets and markets only known through trades.
        """
        rows = self.conn.execute(
            """SELECT id FROM (
                   SELECT id FROM markets WHERE resolved = 0
                   UNION
                   SELECT DISTINCT p.market_id FROM positions p
                   LEFT JOIN markets m ON p.market_id = m.id
                   WHERE p.status = 'open' AND m.id IS NULL
               )
               ORDER BY id
               LIMIT ?""",
            (limit,),
        ).fetchall()
        return [r[0] for r in rows]

    def pending_settlement(self) -> list[tuple[str, str]]:
        """Resolved markets with a winner that still have open positions.

        These are positions opened after resolution was recorded, or markets
        whose settlement failed.
        """
        rows = self.conn.execute(
            """SELECT DISTINCT m.id, m.winning_outcome
               FROM markets m
               JOIN positions p ON p.market_id = m.id AND p.status = 'open'
               WHERE m.resolved = 1 AND m.winning_outcome IS NOT NULL
               ORDER BY m.id"""
        ).fetchall()
        return [(r[0], r[1]) for r in rows]
