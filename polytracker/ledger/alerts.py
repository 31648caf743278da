"""Size-based alert classification for whale trades."""
from __future__ import annotations

from typing import Optional

from polytracker.models import AlertType, Trade

WHALE_THRESHOLD = 10_000.0
MEGA_WHALE_THRESHOLD = 50_000.0


def classify(
    trade: Trade,
    whale_threshold: float = WHALE_THRESHOLD,
    mega_whale_threshold: float = MEGA_WHALE_THRESHOLD,
) -> Optional[AlertType]:
    """Classify a trade by notional. Pure; safe to call any number of times."""
    if trade.below_alert_floor:
        return None
    amount = trade.notional
    if amount >= mega_whale_threshold:
        return "mega_whale"
    if amount >= whale_threshold:
        return "whale"
    return None


def format_message(alert_type: AlertType, trade: Trade) -> str:
    market = trade.title or trade.market_id
    if alert_type == "mega_whale":
        return (
            f"🐋 MEGA WHALE ALERT: {trade.trader_address} bet "
            f"${trade.notional:,.0f} on {trade.outcome} in {market}"
        )
    return (
        f"🐳 Whale Alert: {trade.trader_address} bet "
        f"${trade.notional:,.0f} on {trade.outcome} in {market}"
    )
