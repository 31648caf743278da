"""Bounded retry of a ledger unit of work on optimistic write conflicts."""
from __future__ import annotations

import logging
from typing import Callable, TypeVar

from tenacity import (
    RetryError,
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from polytracker.config import LedgerConfig
from polytracker.errors import ConflictRetry, LedgerUnavailable

log = logging.getLogger(__name__)

T = TypeVar("T")


def run_with_retry(fn: Callable[[], T], config: LedgerConfig, what: str) -> T:
    """Run `fn`, retrying it from scratch while it raises ConflictRetry.

    Raises:
        LedgerUnavailable: all attempts conflicted.
    """
    retrying = Retrying(
        retry=retry_if_exception_type(ConflictRetry),
        stop=stop_after_attempt(max(1, config.conflict_retries)),
        wait=wait_exponential(
            multiplier=config.backoff_min,
            min=config.backoff_min,
            max=config.backoff_max,
        ),
        before_sleep=before_sleep_log(log, logging.WARNING),
    )
    try:
        return retrying(fn)
    except RetryError as exc:
        last = exc.last_attempt.exception()
        log.error("Giving up on %s after %d attempts: %s", what, config.conflict_retries, last)
        raise LedgerUnavailable(f"{what}: {last}") from last
