"""Command-line entry points.

Usage:
    polytracker ingest --limit 100
    polytracker sync-markets
    polytracker sync-resolutions
    polytracker settle <market_id> --winner Yes
    polytracker top-traders --limit 20
    polytracker alerts
"""
from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click

from polytracker.clients.data_api import DataAPIClient
from polytracker.clients.gamma import GammaClient
from polytracker.config import AppConfig, load_config
from polytracker.db.connection import get_connection
from polytracker.errors import LedgerError
from polytracker.ledger import stats
from polytracker.ledger.positions import PositionLedger
from polytracker.ledger.settlement import ResolutionSettler
from polytracker import pipeline, queries

logger = logging.getLogger(__name__)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )


def _echo_json(data) -> None:
    click.echo(json.dumps(data, indent=2, default=str))


@click.group()
@click.version_option(version="0.1.0")
@click.option("--env-file", type=click.Path(path_type=Path), default=None, help="Path to .env file")
@click.option("--db", "db_path", type=click.Path(path_type=Path), default=None, help="SQLite database path")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging (DEBUG level)")
@click.pass_context
def cli(ctx: click.Context, env_file: Optional[Path], db_path: Optional[Path], verbose: bool):
    """Prediction-market trade ledger: positions, P/L and whale alerts."""
    _setup_logging(verbose)
    try:
        config = load_config(env_file)
    except ValueError as exc:
        raise click.ClickException(f"Invalid configuration: {exc}")
    if db_path is not None:
        config.db_path = db_path
    ctx.obj = config


@cli.command()
@click.option("--limit", type=int, default=None, help="Number of recent trades to fetch")
@click.option("--workers", type=int, default=None, help="Parallel ingestion workers")
@click.pass_obj
def ingest(config: AppConfig, limit: Optional[int], workers: Optional[int]):
    """Fetch recent trades and apply them to the ledger."""
    if workers is not None:
        config.workers = workers

    opened = []

    def ledger_factory() -> PositionLedger:
        conn = get_connection(config.db_path, thread_safe=True)
        opened.append(conn)
        return PositionLedger(conn, config.ledger)

    try:
        with DataAPIClient(config.data_api) as data_api:
            report = pipeline.run_ingest(data_api, ledger_factory, config, limit)
    finally:
        for conn in opened:
            conn.close()
    _echo_json(report.as_dict())
    if report.fetch_failed:
        sys.exit(1)


@cli.command("sync-markets")
@click.option("--pages", type=int, default=1, help="Event pages to fetch")
@click.pass_obj
def sync_markets(config: AppConfig, pages: int):
    """Refresh the market catalog from active events."""
    conn = get_connection(config.db_path)
    try:
        with GammaClient(config.gamma) as gamma:
            stored = pipeline.sync_markets(gamma, conn, max_pages=pages)
    finally:
        conn.close()
    _echo_json({"markets_stored": stored})


@cli.command("sync-resolutions")
@click.pass_obj
def sync_resolutions(config: AppConfig):
    """Look up closed markets and settle their positions."""
    conn = get_connection(config.db_path)
    try:
        with GammaClient(config.gamma) as gamma:
            results = pipeline.sync_resolutions(gamma, conn, config)
    finally:
        conn.close()
    _echo_json({
        "markets": len(results),
        "positions_settled": sum(r.settled for r in results),
        "traders_updated": len({t for r in results for t in r.traders}),
    })


@cli.command()
@click.argument("market_id")
@click.option("--winner", type=str, default=None, help="Winning outcome label; omit for no winner")
@click.pass_obj
def settle(config: AppConfig, market_id: str, winner: Optional[str]):
    """Settle one market against a known winning outcome."""
    conn = get_connection(config.db_path)
    try:
        result = ResolutionSettler(conn, config.ledger).settle_market(market_id, winner)
    except LedgerError as exc:
        raise click.ClickException(str(exc))
    finally:
        conn.close()
    _echo_json({"market_id": result.market_id, "settled": result.settled, "traders": result.traders})


@cli.command()
@click.pass_obj
def recompute(config: AppConfig):
    """Rebuild every trader's win/loss/P&L from settled positions."""
    conn = get_connection(config.db_path)
    try:
        count = stats.recompute_all(conn)
    finally:
        conn.close()
    _echo_json({"traders": count})


@cli.command("top-traders")
@click.option("--limit", type=int, default=20)
@click.option("--min-markets", type=int, default=None, help="Minimum settled markets")
@click.pass_obj
def top_traders(config: AppConfig, limit: int, min_markets: Optional[int]):
    """Leaderboard by realized profit."""
    if min_markets is None:
        min_markets = config.ledger.min_settled_markets
    conn = get_connection(config.db_path)
    try:
        _echo_json(queries.top_traders(conn, limit, min_markets))
    finally:
        conn.close()


@cli.command()
@click.option("--limit", type=int, default=50)
@click.pass_obj
def alerts(config: AppConfig, limit: int):
    """Whale alerts, newest first."""
    conn = get_connection(config.db_path)
    try:
        _echo_json(queries.recent_alerts(conn, limit))
    finally:
        conn.close()


@cli.command("large-bets")
@click.option("--min-amount", type=float, default=10_000.0)
@click.option("--category", type=str, default=None)
@click.option("--limit", type=int, default=50)
@click.pass_obj
def large_bets(config: AppConfig, min_amount: float, category: Optional[str], limit: int):
    """Trades at or above a notional amount."""
    conn = get_connection(config.db_path)
    try:
        _echo_json(queries.large_bets(conn, min_amount, category, limit))
    finally:
        conn.close()


@cli.command()
@click.argument("address")
@click.pass_obj
def trader(config: AppConfig, address: str):
    """One trader's stats, recent trades and open positions."""
    conn = get_connection(config.db_path)
    try:
        detail = queries.trader_detail(conn, address)
    finally:
        conn.close()
    if detail is None:
        raise click.ClickException(f"Trader not found: {address}")
    _echo_json(detail)


@cli.command("market-stats")
@click.option("--hours", type=int, default=24)
@click.pass_obj
def market_stats(config: AppConfig, hours: int):
    """Trade activity over the last N hours."""
    conn = get_connection(config.db_path)
    try:
        _echo_json(queries.market_stats(conn, hours))
    finally:
        conn.close()


if __name__ == "__main__":
    cli()
