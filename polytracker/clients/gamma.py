"""Gamma API client for market listings and closed-market lookups."""
from __future__ import annotations

import logging
import time
from typing import Any, Iterable

import httpx
import pydantic

from polytracker.clients.base import BaseAPIClient
from polytracker.config import GammaConfig
from polytracker.models import MarketListing

log = logging.getLogger(__name__)


def parse_listings(markets: Iterable[Any], category: str | None = None) -> list[MarketListing]:
    """Validate raw market records, dropping the ones that don't parse."""
    listings: list[MarketListing] = []
    for raw in markets:
        if not isinstance(raw, dict):
            continue
        data = dict(raw)
        if category and not data.get("category"):
            data["category"] = category
        try:
            listings.append(MarketListing.model_validate(data))
        except (pydantic.ValidationError, ValueError) as e:
            log.debug("Skipping market record %s: %s", raw.get("id"), e)
    return listings


class GammaClient(BaseAPIClient):
    def __init__(
        self,
        config: GammaConfig | None = None,
        transport: httpx.BaseTransport | None = None,
        initial_wait: float = 1.0,
    ):
        self.config = config or GammaConfig()
        super().__init__(
            base_url=self.config.base_url,
            timeout=self.config.timeout,
            max_attempts=self.config.max_attempts,
            initial_wait=initial_wait,
            transport=transport,
        )

    def get_active_markets(self, max_pages: int = 1) -> list[MarketListing]:
        """Market listings from active, non-closed events.

        Event category is inherited by markets that don't carry their own.
        """
        listings: list[MarketListing] = []
        offset = 0
        for _ in range(max_pages):
            events = self.get(
                "/events",
                params={
                    "active": "true",
                    "closed": "false",
                    "limit": self.config.fetch_limit,
                    "offset": offset,
                },
            )
            if not events:
                break
            for event in events:
                listings.extend(parse_listings(event.get("markets") or [], event.get("category")))
            if len(events) < self.config.fetch_limit:
                break
            offset += self.config.fetch_limit
            time.sleep(self.config.fetch_delay)
        return listings

    def get_market(self, condition_id: str) -> MarketListing | None:
        """Look up one market by condition id."""
        markets = self.get("/markets", params={"condition_id": condition_id})
        if not isinstance(markets, list):
            return None
        listings = parse_listings(markets)
        return listings[0] if listings else None

    def get_recently_closed_markets(self, limit: int = 50) -> list[MarketListing]:
        """Closed markets from the most recently updated closed events."""
        events = self.get(
            "/events",
            params={"closed": "true", "limit": limit, "order": "updatedAt", "ascending": "false"},
        )
        listings: list[MarketListing] = []
        for event in events or []:
            closed = [m for m in event.get("markets") or [] if m.get("closed")]
            listings.extend(parse_listings(closed, event.get("category")))
        return listings
