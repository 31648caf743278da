"""Trader aggregate recomputation from settled positions.

wins/losses/profit_loss/settled_markets are always rebuilt from the full set
of a trader's settled positions, never adjusted incrementally, so a retried
or repeated settlement cannot double count.
"""
from __future__ import annotations

import logging
import sqlite3

from polytracker.db.connection import transaction
from polytracker.db.positions_repo import PositionsRepo
from polytracker.db.traders_repo import TradersRepo
from polytracker.shared.time_utils import now_utc

log = logging.getLogger(__name__)


def recompute_trader(conn: sqlite3.Connection, address: str, now: str | None = None) -> None:
    """Rebuild one trader's settlement aggregates. Runs inside the caller's transaction."""
    summary = PositionsRepo(conn).settled_summary(address)
    TradersRepo(conn).set_settlement_stats(
        address,
        wins=summary["wins"],
        losses=summary["losses"],
        profit_loss=summary["profit_loss"],
        settled_markets=summary["settled_markets"],
        now=now or now_utc(),
    )


def recompute_all(conn: sqlite3.Connection) -> int:
    """Rebuild settlement aggregates for every known trader.

    Maintenance pass; each trader is its own transaction.

    Returns:
        Number of traders recomputed.
    """
    addresses = TradersRepo(conn).addresses()
    for address in addresses:
        with transaction(conn):
            recompute_trader(conn, address)
    log.info("Recomputed settlement stats for %d trader(s)", len(addresses))
    return len(addresses)
