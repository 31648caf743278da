"""Single-pass jobs: trade ingestion, market catalog sync, resolution sync.

Each function runs one pass and returns a summary; periodic triggering is
left to the caller (cron, systemd timer, a loop). Failures are isolated per
record and per market.
"""
from __future__ import annotations

import logging
import sqlite3
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping

import httpx

from polytracker.clients.data_api import DataAPIClient
from polytracker.clients.gamma import GammaClient
from polytracker.config import AppConfig
from polytracker.db.connection import transaction
from polytracker.db.markets_repo import MarketsRepo
from polytracker.errors import LedgerError
from polytracker.ledger.normalizer import normalize_batch
from polytracker.ledger.positions import PositionLedger
from polytracker.ledger.settlement import ResolutionSettler
from polytracker.models import LedgerResult, MarketResolution, SettlementResult, Trade
from polytracker.resolution import resolution_from_listing
from polytracker.shared.time_utils import now_utc

log = logging.getLogger(__name__)

LedgerFactory = Callable[[], PositionLedger]

# Pause between resolution lookups, every N markets.
_LOOKUP_PAUSE_EVERY = 20


@dataclass
class IngestReport:
    fetched: int = 0
    rejected: int = 0
    applied: int = 0
    duplicates: int = 0
    failed: int = 0
    alerts: int = 0
    below_floor: int = 0
    fetch_failed: bool = False

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _apply_all(
    trades: List[Trade],
    ledger_factory: LedgerFactory,
    workers: int,
) -> List[LedgerResult | LedgerError]:
    """Apply trades, one ledger per worker thread.

    Distinct keys proceed in parallel; same-key writes are serialized by the
    ledger's optimistic retries.
    """
    local = threading.local()

    def apply_one(trade: Trade) -> LedgerResult | LedgerError:
        ledger = getattr(local, "ledger", None)
        if ledger is None:
            ledger = local.ledger = ledger_factory()
        try:
            return ledger.apply_trade(trade)
        except LedgerError as exc:
            log.error("Trade %s not applied: %s", trade.id, exc)
            return exc

    if workers <= 1:
        return [apply_one(t) for t in trades]
    with ThreadPoolExecutor(max_workers=workers) as pool:
        return list(pool.map(apply_one, trades))


def ingest_records(
    records: Iterable[Mapping[str, Any]],
    ledger_factory: LedgerFactory,
    dust_threshold: float = 100.0,
    workers: int = 1,
) -> IngestReport:
    """Normalize and apply one batch of raw feed records."""
    records = list(records)
    report = IngestReport(fetched=len(records))

    trades, rejected = normalize_batch(records, dust_threshold)
    report.rejected = len(rejected)
    report.below_floor = sum(1 for t in trades if t.below_alert_floor)

    for outcome in _apply_all(trades, ledger_factory, workers):
        if isinstance(outcome, LedgerError):
            report.failed += 1
        elif outcome.is_duplicate:
            report.duplicates += 1
        else:
            report.applied += 1
            if outcome.alert_type:
                report.alerts += 1

    log.info(
        "Ingest: fetched=%d applied=%d duplicates=%d rejected=%d failed=%d alerts=%d",
        report.fetched, report.applied, report.duplicates,
        report.rejected, report.failed, report.alerts,
    )
    return report


def run_ingest(
    data_api: DataAPIClient,
    ledger_factory: LedgerFactory,
    config: AppConfig,
    limit: int | None = None,
) -> IngestReport:
    """Fetch the latest trades from the feed and ingest them."""
    try:
        records = data_api.get_recent_trades(limit)
    except httpx.HTTPError as exc:
        log.error("Trade fetch failed: %s", exc)
        return IngestReport(fetch_failed=True)
    return ingest_records(
        records,
        ledger_factory,
        dust_threshold=config.ledger.dust_threshold,
        workers=config.workers,
    )


def sync_markets(gamma: GammaClient, conn: sqlite3.Connection, max_pages: int = 1) -> int:
    """Upsert active market listings into the catalog. Returns markets stored."""
    try:
        listings = gamma.get_active_markets(max_pages=max_pages)
    except httpx.HTTPError as exc:
        log.error("Market listing fetch failed: %s", exc)
        return 0

    markets = MarketsRepo(conn)
    now = now_utc()
    with transaction(conn):
        for listing in listings:
            markets.upsert_listing(listing, now)
    log.info("Synced %d market(s)", len(listings))
    return len(listings)


def collect_resolutions(
    gamma: GammaClient,
    conn: sqlite3.Connection,
    config: AppConfig,
) -> List[MarketResolution]:
    """Look up resolution facts for unresolved markets and recently closed ones.

    Listings seen along the way refresh the catalog, so settlement can check
    the winner against the market's outcome labels. Resolved markets that
    still hold open positions are included again.
    """
    markets = MarketsRepo(conn)
    threshold = config.resolution.price_threshold
    facts: Dict[str, MarketResolution] = {}

    def record(listing) -> None:
        markets.upsert_listing(listing, now_utc())
        fact = resolution_from_listing(listing, threshold)
        if fact is not None:
            facts[fact.market_id] = fact

    for checked, market_id in enumerate(markets.unresolved(config.resolution.batch_limit), 1):
        try:
            listing = gamma.get_market(market_id)
        except httpx.HTTPError as exc:
            log.warning("Resolution lookup for %s failed: %s", market_id, exc)
            continue
        if listing is not None:
            record(listing)
        if checked % _LOOKUP_PAUSE_EVERY == 0:
            time.sleep(config.gamma.fetch_delay)

    try:
        for listing in gamma.get_recently_closed_markets(config.resolution.closed_events_limit):
            record(listing)
    except httpx.HTTPError as exc:
        log.warning("Closed events fetch failed: %s", exc)

    # A stored winner outranks a winnerless listing seen in this pass.
    for market_id, winner in markets.pending_settlement():
        seen = facts.get(market_id)
        if seen is None or seen.winning_outcome is None:
            facts[market_id] = MarketResolution(market_id, True, winner)

    log.info("Collected %d resolution fact(s)", len(facts))
    return list(facts.values())


def sync_resolutions(
    gamma: GammaClient,
    conn: sqlite3.Connection,
    config: AppConfig,
) -> List[SettlementResult]:
    facts = collect_resolutions(gamma, conn, config)
    return ResolutionSettler(conn, config.ledger).settle_resolutions(facts)
