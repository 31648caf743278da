"""Base HTTP client with timeout, retry and rate-limit handling.

Retries live here, at the feed boundary; the ledger never waits on the
network.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)


class RateLimitError(httpx.HTTPError):
    """Rate limit error from API."""


class ServerError(httpx.HTTPError):
    """5xx response from API."""


class BaseAPIClient:
    """Synchronous JSON client with exponential-backoff retries."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 15,
        max_attempts: int = 4,
        initial_wait: float = 1.0,
        max_wait: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.initial_wait = initial_wait
        self.max_wait = max_wait
        self._transport = transport
        self._client: httpx.Client | None = None

    @property
    def client(self) -> httpx.Client:
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                timeout=self.timeout,
                transport=self._transport,
                headers={
                    "User-Agent": "polytracker/0.1",
                    "Accept": "application/json",
                },
            )
        return self._client

    def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET a JSON document, retrying transport errors, 429s and 5xx."""
        retrying = Retrying(
            retry=retry_if_exception_type(
                (httpx.TransportError, RateLimitError, ServerError)
            ),
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.initial_wait, min=self.initial_wait, max=self.max_wait),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        return retrying(self._get_once, endpoint, params)

    def _get_once(self, endpoint: str, params: Optional[Dict[str, Any]]) -> Any:
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        response = self.client.get(url, params=params)

        if response.status_code == 429:
            raise RateLimitError(f"Rate limited by {url}")
        if 500 <= response.status_code < 600:
            raise ServerError(f"Server error {response.status_code} from {url}")

        response.raise_for_status()
        return response.json()

    def close(self) -> None:
        if self._client and not self._client.is_closed:
            self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
