"""Market resolution source: derives winners from settlement price vectors.

A closed market's winner is the outcome whose final price is the highest and
above the threshold (0.9 by default). No outcome clearing the bar means the
market is resolved without a determinable winner.
"""
from __future__ import annotations

import logging
from typing import Optional, Sequence

from polytracker.models import MarketListing, MarketResolution

log = logging.getLogger(__name__)

DEFAULT_OUTCOMES = ["Yes", "No"]
WINNER_PRICE_THRESHOLD = 0.9


def winning_outcome(
    outcome_prices: Sequence[float],
    outcomes: Sequence[str] | None = None,
    threshold: float = WINNER_PRICE_THRESHOLD,
) -> Optional[str]:
    outcomes = list(outcomes) if outcomes else DEFAULT_OUTCOMES
    best_idx = None
    best_price = 0.0
    for i, price in enumerate(outcome_prices):
        if price > best_price:
            best_price = price
            best_idx = i
    if best_idx is None or best_price <= threshold:
        return None
    if best_idx >= len(outcomes):
        log.warning("Price vector longer than outcomes %s; no winner", outcomes)
        return None
    return outcomes[best_idx]


def resolution_from_listing(
    listing: MarketListing,
    threshold: float = WINNER_PRICE_THRESHOLD,
) -> Optional[MarketResolution]:
    """Resolution fact for a closed listing, or None while the market is open."""
    if not listing.closed:
        return None
    return MarketResolution(
        market_id=listing.id,
        resolved=True,
        winning_outcome=winning_outcome(listing.outcome_prices, listing.outcomes, threshold),
    )
