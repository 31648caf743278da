"""Data API client: the executed-trade feed."""
from __future__ import annotations

import logging

import httpx

from polytracker.clients.base import BaseAPIClient
from polytracker.config import DataAPIConfig

log = logging.getLogger(__name__)


class DataAPIClient(BaseAPIClient):
    def __init__(
        self,
        config: DataAPIConfig | None = None,
        transport: httpx.BaseTransport | None = None,
        initial_wait: float = 1.0,
    ):
        self.config = config or DataAPIConfig()
        super().__init__(
            base_url=self.config.base_url,
            timeout=self.config.timeout,
            max_attempts=self.config.max_attempts,
            initial_wait=initial_wait,
            transport=transport,
        )

    def get_recent_trades(self, limit: int | None = None, offset: int = 0) -> list[dict]:
        """Fetch the most recent trades across all markets.

        Records are returned raw; duplicates across polls are expected.
        """
        result = self.get(
            "/trades",
            params={"limit": limit or self.config.trades_limit, "offset": offset},
        )
        if not isinstance(result, list):
            log.warning("Unexpected /trades payload type: %s", type(result).__name__)
            return []
        log.info("Fetched %d trade record(s)", len(result))
        return result
