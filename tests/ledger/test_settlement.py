"""Tests for market settlement and trader aggregate recomputation."""
import json

import pytest

from polytracker.db.markets_repo import MarketsRepo
from polytracker.errors import ResolutionInconsistent
from polytracker.ledger.settlement import realized_pl
from polytracker.ledger.stats import recompute_all
from polytracker.models import MarketListing, MarketResolution


def _build_scenario(ledger, make_trade):
    ledger.apply_trade(make_trade("t1", notional=5000, price=0.40))
    ledger.apply_trade(make_trade("t2", notional=3000, price=0.60))


def _catalog(conn, market_id, outcomes):
    listing = MarketListing(id=market_id, question="Q?", closed=True, outcomes=outcomes)
    MarketsRepo(conn).upsert_listing(listing, "2026-02-01T00:00:00Z")


@pytest.mark.parametrize("shares,avg,won,expected", [
    (17500.0, 8000 / 17500, True, 9500.0),
    (17500.0, 8000 / 17500, False, -8000.0),
    (100.0, 1.0, True, 0.0),
    (100.0, 0.25, False, -25.0),
])
def test_realized_pl(shares, avg, won, expected):
    assert realized_pl(shares, avg, won) == pytest.approx(expected)


class TestSettleMarket:
    def test_winning_scenario(self, ledger, settler, make_trade):
        _build_scenario(ledger, make_trade)
        result = settler.settle_market("m1", "Yes")

        assert result.settled == 1
        assert result.traders == ["0xaaa"]
        [pos] = ledger.positions.by_trader("0xaaa")
        assert pos.status == "settled"
        assert pos.won is True
        assert pos.realized_pl == pytest.approx(9500.0)

        stat = ledger.traders.get("0xaaa")
        assert (stat.wins, stat.losses, stat.settled_markets) == (1, 0, 1)
        assert stat.profit_loss == pytest.approx(9500.0)
        assert stat.total_bets == 2

    def test_losing_scenario_capped_at_stake(self, ledger, settler, make_trade):
        _build_scenario(ledger, make_trade)
        settler.settle_market("m1", "No")

        [pos] = ledger.positions.by_trader("0xaaa")
        assert pos.won is False
        assert pos.realized_pl == pytest.approx(-8000.0)
        stat = ledger.traders.get("0xaaa")
        assert (stat.wins, stat.losses) == (0, 1)
        assert stat.profit_loss == pytest.approx(-8000.0)

    def test_no_winner_leaves_positions_open(self, ledger, settler, mem_conn, make_trade):
        _build_scenario(ledger, make_trade)
        result = settler.settle_market("m1", None)

        assert result.settled == 0
        [pos] = ledger.positions.by_trader("0xaaa")
        assert pos.status == "open"
        assert pos.realized_pl is None
        market = MarketsRepo(mem_conn).get("m1")
        assert market.resolved is True
        assert market.winning_outcome is None

    def test_resettlement_changes_nothing(self, ledger, settler, mem_conn, make_trade):
        _build_scenario(ledger, make_trade)
        settler.settle_market("m1", "Yes")
        positions = [tuple(r) for r in mem_conn.execute("SELECT * FROM positions")]
        traders = [tuple(r) for r in mem_conn.execute("SELECT * FROM traders")]

        again = settler.settle_market("m1", "Yes")
        assert again.settled == 0
        assert [tuple(r) for r in mem_conn.execute("SELECT * FROM positions")] == positions
        assert [tuple(r) for r in mem_conn.execute("SELECT * FROM traders")] == traders

    def test_only_target_market_settled(self, ledger, settler, make_trade):
        ledger.apply_trade(make_trade("t1", market="m1"))
        ledger.apply_trade(make_trade("t2", market="m2"))
        settler.settle_market("m1", "Yes")

        statuses = {p.market_id: p.status for p in ledger.positions.by_trader("0xaaa")}
        assert statuses == {"m1": "settled", "m2": "open"}

    def test_mixed_traders_and_outcomes(self, ledger, settler, make_trade):
        ledger.apply_trade(make_trade("a1", trader="0xa", outcome="Over", notional=1000, price=0.5))
        ledger.apply_trade(make_trade("b1", trader="0xb", outcome="Under", notional=600, price=0.6))
        result = settler.settle_market("m1", "Over")

        assert result.traders == ["0xa", "0xb"]
        assert ledger.traders.get("0xa").profit_loss == pytest.approx(1000.0)
        assert ledger.traders.get("0xb").profit_loss == pytest.approx(-600.0)

    def test_unknown_winner_refused(self, ledger, settler, mem_conn, make_trade):
        _build_scenario(ledger, make_trade)
        _catalog(mem_conn, "m1", ["Yes", "No"])

        with pytest.raises(ResolutionInconsistent):
            settler.settle_market("m1", "Maybe")

        [pos] = ledger.positions.by_trader("0xaaa")
        assert pos.status == "open"
        assert MarketsRepo(mem_conn).get("m1").resolved is False

    def test_catalogued_winner_accepted(self, ledger, settler, mem_conn, make_trade):
        _build_scenario(ledger, make_trade)
        _catalog(mem_conn, "m1", ["Yes", "No"])
        assert settler.settle_market("m1", "No").settled == 1


class TestStatsRecompute:
    def test_aggregates_span_markets(self, ledger, settler, make_trade):
        for i, market in enumerate(["m1", "m2", "m3"]):
            ledger.apply_trade(make_trade(f"t{i}", market=market, notional=100, price=0.5))
        settler.settle_market("m1", "Yes")
        settler.settle_market("m2", "No")
        settler.settle_market("m3", "Yes")

        stat = ledger.traders.get("0xaaa")
        assert (stat.wins, stat.losses, stat.settled_markets) == (2, 1, 3)
        assert stat.profit_loss == pytest.approx(100 + (-100) + 100)
        assert stat.win_rate == pytest.approx(2 / 3)

    def test_recompute_repairs_drift(self, ledger, settler, mem_conn, make_trade):
        _build_scenario(ledger, make_trade)
        settler.settle_market("m1", "Yes")
        mem_conn.execute("UPDATE traders SET wins = 7, profit_loss = 1")

        assert recompute_all(mem_conn) == 1
        stat = ledger.traders.get("0xaaa")
        assert stat.wins == 1
        assert stat.profit_loss == pytest.approx(9500.0)


def test_batch_isolates_failures(ledger, settler, mem_conn, make_trade):
    ledger.apply_trade(make_trade("t1", market="bad"))
    ledger.apply_trade(make_trade("t2", market="good"))
    _catalog(mem_conn, "bad", ["Yes", "No"])

    results = settler.settle_resolutions([
        MarketResolution("bad", True, "Unknown"),
        MarketResolution("open-still", False, None),
        MarketResolution("good", True, "Yes"),
    ])

    assert [r.market_id for r in results] == ["good"]
    statuses = {p.market_id: p.status for p in ledger.positions.by_trader("0xaaa")}
    assert statuses == {"bad": "open", "good": "settled"}


def test_market_outcomes_stored_as_json(mem_conn):
    _catalog(mem_conn, "m1", ["Over", "Under"])
    raw = mem_conn.execute("SELECT outcomes FROM markets WHERE id = 'm1'").fetchone()[0]
    assert json.loads(raw) == ["Over", "Under"]
    assert MarketsRepo(mem_conn).get("m1").outcomes == ["Over", "Under"]
