"""Ledger error taxonomy.

Nothing here is fatal to the process: batch helpers catch these per record
or per market and keep going.
"""
from __future__ import annotations


class LedgerError(Exception):
    """Base class for ledger errors."""


class ValidationError(LedgerError):
    """A raw feed record could not be turned into a Trade."""

    def __init__(self, reason: str, record_id: str | None = None):
        self.reason = reason
        self.record_id = record_id
        super().__init__(f"{reason} (record={record_id or '?'})")


class ConflictRetry(LedgerError):
    """Optimistic write conflict on a ledger key; the unit of work is retried."""


class LedgerUnavailable(LedgerError):
    """Conflict retries exhausted for one trade or one market.

    Resubmitting is safe: ingestion and settlement are idempotent.
    """


class ResolutionInconsistent(LedgerError):
    """A resolution names a winning outcome the market does not have."""

    def __init__(self, market_id: str, winning_outcome: str, known: list[str]):
        self.market_id = market_id
        self.winning_outcome = winning_outcome
        self.known = known
        super().__init__(
            f"market {market_id}: winning outcome {winning_outcome!r} "
            f"not in known outcomes {known}"
        )
