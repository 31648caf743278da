"""Tests for the command-line entry points that work offline."""
import json

from click.testing import CliRunner

from polytracker.cli import cli
from polytracker.config import LedgerConfig
from polytracker.db.connection import get_connection
from polytracker.ledger.positions import PositionLedger


def _seed(db_path, make_trade):
    conn = get_connection(db_path)
    try:
        ledger = PositionLedger(conn, LedgerConfig())
        ledger.apply_trade(make_trade("t1", notional=5000, price=0.40))
        ledger.apply_trade(make_trade("t2", notional=60000, price=0.60))
    finally:
        conn.close()


def _run(db_path, *args):
    return CliRunner().invoke(cli, ["--db", str(db_path), *args])


def test_settle_and_report(tmp_path, make_trade):
    db = tmp_path / "ledger.db"
    _seed(db, make_trade)

    result = _run(db, "settle", "m1", "--winner", "Yes")
    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout) == {"market_id": "m1", "settled": 1, "traders": ["0xaaa"]}

    result = _run(db, "top-traders", "--min-markets", "1")
    [row] = json.loads(result.stdout)
    assert row["address"] == "0xaaa"
    assert row["wins"] == 1

    result = _run(db, "alerts")
    assert [a["type"] for a in json.loads(result.stdout)] == ["mega_whale"]


def test_trader_not_found(tmp_path):
    result = _run(tmp_path / "ledger.db", "trader", "0xnobody")
    assert result.exit_code != 0
    assert "Trader not found" in result.output


def test_recompute(tmp_path, make_trade):
    db = tmp_path / "ledger.db"
    _seed(db, make_trade)
    result = _run(db, "recompute")
    assert json.loads(result.stdout) == {"traders": 1}


def test_invalid_thresholds_reported(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("DUST_THRESHOLD", "20000")
    monkeypatch.delenv("WHALE_THRESHOLD", raising=False)
    result = _run(tmp_path / "ledger.db", "alerts")
    assert result.exit_code != 0
    assert "Invalid configuration" in result.output
