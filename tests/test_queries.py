"""Tests for the read-only reporting projections."""
from datetime import datetime, timezone

import pytest

from polytracker import queries


def test_positions_by_trader(ledger, settler, make_trade):
    ledger.apply_trade(make_trade("t1", market="m1"))
    ledger.apply_trade(make_trade("t2", market="m2"))
    settler.settle_market("m1", "No")

    assert len(queries.positions_by_trader(ledger.conn, "0xaaa")) == 2
    [open_pos] = queries.positions_by_trader(ledger.conn, "0xaaa", "open")
    assert open_pos.market_id == "m2"
    assert queries.positions_by_trader(ledger.conn, "0xnobody") == []


def test_top_traders_applies_market_floor(ledger, settler, make_trade):
    for i, market in enumerate(["m1", "m2", "m3"]):
        ledger.apply_trade(make_trade(f"a{i}", trader="0xa", market=market, notional=100, price=0.5))
    ledger.apply_trade(make_trade("b1", trader="0xb", market="m1", notional=1000, price=0.1))
    for market in ["m1", "m2", "m3"]:
        settler.settle_market(market, "Yes")

    top = queries.top_traders(ledger.conn)
    assert [t["address"] for t in top] == ["0xa"]
    assert top[0]["win_rate"] == 1.0
    assert top[0]["profit_loss"] == pytest.approx(300.0)

    everyone = queries.top_traders(ledger.conn, min_settled_markets=1)
    assert [t["address"] for t in everyone] == ["0xb", "0xa"]


def test_trader_detail(ledger, make_trade):
    ledger.apply_trade(make_trade("t1", notional=12000))
    detail = queries.trader_detail(ledger.conn, "0xaaa")

    assert detail["trader"]["total_bets"] == 1
    assert detail["trader"]["win_rate"] == 0.0
    assert [t["id"] for t in detail["recent_trades"]] == ["t1"]
    assert len(detail["open_positions"]) == 1
    assert queries.trader_detail(ledger.conn, "0xnobody") is None


def test_recent_alerts_and_large_bets(ledger, make_trade):
    ledger.apply_trade(make_trade("small", notional=500))
    ledger.apply_trade(make_trade("whale", notional=15000))

    assert [a["trade_id"] for a in queries.recent_alerts(ledger.conn)] == ["whale"]
    assert [b["id"] for b in queries.large_bets(ledger.conn)] == ["whale"]
    assert len(queries.large_bets(ledger.conn, min_amount=100)) == 2


def test_market_stats_window(ledger, make_trade):
    ledger.apply_trade(make_trade("t1", market="m1", occurred_at=datetime(2026, 2, 1, 12, tzinfo=timezone.utc)))
    ledger.apply_trade(make_trade("t2", market="m2", trader="0xbbb",
                                  occurred_at=datetime(2026, 2, 1, 20, tzinfo=timezone.utc)))
    ledger.apply_trade(make_trade("t3", market="m3", occurred_at=datetime(2026, 1, 1, tzinfo=timezone.utc)))

    stats = queries.market_stats(ledger.conn, hours=24, now=datetime(2026, 2, 2, tzinfo=timezone.utc))
    assert stats == {
        "active_markets": 2,
        "total_trades": 2,
        "total_volume": pytest.approx(10000.0),
        "unique_traders": 2,
    }
