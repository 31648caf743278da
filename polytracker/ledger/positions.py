"""Position ledger: applies normalized trades to positions and trader stats.

Each trade is one unit of work: trade fact, position, trader aggregate and
alert land together or not at all. Positions use weighted-average-cost
accounting and only ever accumulate (the feed is treated as buys; sells and
partial realization are not modelled).
"""
from __future__ import annotations

import logging
import sqlite3

from polytracker.config import LedgerConfig
from polytracker.db.alerts_repo import AlertsRepo
from polytracker.db.connection import transaction
from polytracker.db.positions_repo import PositionsRepo
from polytracker.db.trades_repo import TradesRepo
from polytracker.db.traders_repo import TradersRepo
from polytracker.errors import ConflictRetry, LedgerUnavailable
from polytracker.ledger.alerts import classify, format_message
from polytracker.ledger.retry import run_with_retry
from polytracker.models import LedgerResult, Trade
from polytracker.shared.time_utils import now_utc, to_iso

log = logging.getLogger(__name__)


def accumulate(
    shares: float,
    avg_price: float,
    delta: float,
    price: float,
) -> tuple[float, float]:
    """Add `delta` shares bought at `price` to a (shares, avg_price) position.

    Returns:
        (new_shares, new_avg_price)
    """
    new_shares = shares + delta
    new_avg = (shares * avg_price + delta * price) / new_shares
    return new_shares, new_avg


class PositionLedger:
    """Applies trades to the ledger store over one connection.

    Use one instance per thread; SQLite connections are not shared.
    """

    def __init__(self, conn: sqlite3.Connection, config: LedgerConfig | None = None):
        self.conn = conn
        self.config = config or LedgerConfig()
        self.trades = TradesRepo(conn)
        self.positions = PositionsRepo(conn)
        self.traders = TradersRepo(conn)
        self.alerts = AlertsRepo(conn)

    def apply_trade(self, trade: Trade) -> LedgerResult:
        """Apply one trade idempotently.

        A trade id seen before is a no-op returning the earlier outcome with
        status "duplicate".

        Raises:
            LedgerUnavailable: write conflicts persisted past the retry budget,
                or the store rejected the write.
        """
        try:
            return run_with_retry(
                lambda: self._apply_once(trade), self.config, f"trade {trade.id}"
            )
        except sqlite3.Error as exc:
            log.error("Store rejected trade %s: %s", trade.id, exc)
            raise LedgerUnavailable(f"trade {trade.id}: {exc}") from exc

    def _apply_once(self, trade: Trade) -> LedgerResult:
        now = now_utc()
        with transaction(self.conn):
            if not self.trades.insert(trade, now):
                return self._prior_result(trade.id)

            position_id = self._update_position(trade, now)
            self.trades.set_position(trade.id, position_id)
            self.traders.record_trade(
                trade.trader_address, trade.notional, to_iso(trade.occurred_at), now
            )

            alert_type = classify(
                trade,
                whale_threshold=self.config.whale_threshold,
                mega_whale_threshold=self.config.mega_whale_threshold,
            )
            if alert_type is not None:
                self.alerts.insert_if_absent(
                    alert_type,
                    trade.trader_address,
                    trade.market_id,
                    trade.notional,
                    trade.id,
                    format_message(alert_type, trade),
                    now,
                )

        if alert_type is not None:
            log.info("%s alert: trader=%s market=%s amount=%.0f trade=%s",
                     alert_type, trade.trader_address, trade.market_id,
                     trade.notional, trade.id)
        return LedgerResult("applied", trade.id, position_id, alert_type)

    def _update_position(self, trade: Trade, now: str) -> int:
        delta = trade.shares
        existing = self.positions.get_open(trade.trader_address, trade.market_id, trade.outcome)

        if existing is None:
            try:
                return self.positions.create(
                    trade.trader_address, trade.market_id, trade.outcome,
                    delta, trade.price, now,
                )
            except sqlite3.IntegrityError as exc:
                raise ConflictRetry(
                    f"open position for {trade.trader_address}/{trade.market_id}/"
                    f"{trade.outcome} created concurrently"
                ) from exc

        shares, avg_price = accumulate(existing.shares, existing.avg_price, delta, trade.price)
        if not self.positions.update_open(existing.id, existing.version, shares, avg_price, now):
            raise ConflictRetry(f"position {existing.id} changed since read")
        return existing.id

    def _prior_result(self, trade_id: str) -> LedgerResult:
        row = self.trades.get(trade_id)
        log.debug("Duplicate trade %s ignored", trade_id)
        return LedgerResult(
            "duplicate",
            trade_id,
            row["position_id"] if row else None,
            self.alerts.type_for_trade(trade_id),
        )
