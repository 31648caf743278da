"""Shared test fixtures: in-memory DB, ledger, settler, trade builder."""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from polytracker.config import LedgerConfig
from polytracker.db.connection import get_connection
from polytracker.ledger.positions import PositionLedger
from polytracker.ledger.settlement import ResolutionSettler
from polytracker.models import Trade

# No backoff sleeps in tests.
FAST_LEDGER = LedgerConfig(backoff_min=0, backoff_max=0)


@pytest.fixture
def mem_conn():
    """In-memory SQLite connection with schema applied."""
    conn = get_connection(":memory:")
    yield conn
    conn.close()


@pytest.fixture
def ledger(mem_conn):
    return PositionLedger(mem_conn, FAST_LEDGER)


@pytest.fixture
def settler(mem_conn):
    return ResolutionSettler(mem_conn, FAST_LEDGER)


def _make_trade(
    trade_id: str = "t1",
    notional: float = 5000.0,
    price: float = 0.40,
    trader: str = "0xaaa",
    market: str = "m1",
    outcome: str = "Yes",
    occurred_at: datetime | None = None,
    below_alert_floor: bool = False,
) -> Trade:
    return Trade(
        id=trade_id,
        market_id=market,
        trader_address=trader,
        outcome=outcome,
        notional=notional,
        price=price,
        occurred_at=occurred_at or datetime(2026, 2, 1, 12, 0, tzinfo=timezone.utc),
        below_alert_floor=below_alert_floor,
        title="Will it happen?",
    )


@pytest.fixture
def make_trade():
    return _make_trade
