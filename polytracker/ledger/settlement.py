"""Resolution settler: turns open positions into realized win/loss.

A winning share pays out 1, so a winner realizes shares * (1 - avg_price);
a loser forfeits the stake, shares * avg_price. Only open positions are
touched, which makes settling a market more than once harmless.
"""
from __future__ import annotations

import logging
import sqlite3
from typing import Iterable, List, Optional

from polytracker.config import LedgerConfig
from polytracker.db.connection import transaction
from polytracker.db.markets_repo import MarketsRepo
from polytracker.db.positions_repo import PositionsRepo
from polytracker.errors import ConflictRetry, LedgerError, ResolutionInconsistent
from polytracker.ledger.retry import run_with_retry
from polytracker.ledger.stats import recompute_trader
from polytracker.models import MarketResolution, SettlementResult
from polytracker.shared.time_utils import now_utc

log = logging.getLogger(__name__)


def realized_pl(shares: float, avg_price: float, won: bool) -> float:
    if won:
        return shares * (1.0 - avg_price)
    return -(shares * avg_price)


class ResolutionSettler:
    def __init__(self, conn: sqlite3.Connection, config: LedgerConfig | None = None):
        self.conn = conn
        self.config = config or LedgerConfig()
        self.markets = MarketsRepo(conn)
        self.positions = PositionsRepo(conn)

    def settle_market(self, market_id: str, winning_outcome: Optional[str]) -> SettlementResult:
        """Settle every open position in `market_id` against `winning_outcome`.

        With no winning outcome the market is recorded as resolved and its
        positions stay open.

        Raises:
            ResolutionInconsistent: the market's catalogued outcomes do not
                include `winning_outcome`; nothing is changed.
            LedgerUnavailable: write conflicts persisted past the retry budget.
        """
        return run_with_retry(
            lambda: self._settle_once(market_id, winning_outcome),
            self.config,
            f"settlement of {market_id}",
        )

    def _settle_once(self, market_id: str, winning_outcome: Optional[str]) -> SettlementResult:
        now = now_utc()
        result = SettlementResult(market_id=market_id, winning_outcome=winning_outcome)

        with transaction(self.conn):
            market = self.markets.get(market_id)
            if winning_outcome is not None and market and market.outcomes:
                if winning_outcome not in market.outcomes:
                    raise ResolutionInconsistent(market_id, winning_outcome, market.outcomes)

            already_recorded = (
                market is not None
                and market.resolved
                and market.winning_outcome == winning_outcome
            )
            if not already_recorded:
                self.markets.mark_resolved(market_id, winning_outcome, now)

            if winning_outcome is None:
                log.info("Market %s resolved without a winner; positions left open", market_id)
                return result

            traders: set[str] = set()
            for position in self.positions.open_for_market(market_id):
                won = position.outcome == winning_outcome
                pl = realized_pl(position.shares, position.avg_price, won)
                if not self.positions.settle(position.id, position.version, pl, won, now):
                    raise ConflictRetry(f"position {position.id} changed during settlement")
                traders.add(position.trader_address)
                result.settled += 1

            result.traders = sorted(traders)
            for address in result.traders:
                recompute_trader(self.conn, address, now)

        if result.settled:
            log.info("Settled %d position(s) in %s (winner=%s) for %d trader(s)",
                     result.settled, market_id, winning_outcome, len(result.traders))
        return result

    def settle_resolutions(self, facts: Iterable[MarketResolution]) -> List[SettlementResult]:
        """Apply a batch of resolution facts; one failing market never stops the rest."""
        results: List[SettlementResult] = []
        for fact in facts:
            if not fact.resolved:
                continue
            try:
                results.append(self.settle_market(fact.market_id, fact.winning_outcome))
            except ResolutionInconsistent as exc:
                log.error("Refusing settlement: %s", exc)
            except LedgerError as exc:
                log.error("Settlement of %s failed: %s", fact.market_id, exc)
        return results
