"""Trade normalizer: raw feed record -> canonical Trade.

Pure transform. One bad record raises ValidationError for that record only;
`normalize_batch` logs and skips it so the rest of the batch goes through.
"""
from __future__ import annotations

import logging
import math
from typing import Any, Iterable, Mapping

import pydantic

from polytracker.errors import ValidationError
from polytracker.models import FeedTrade, Trade
from polytracker.shared.time_utils import parse_timestamp

log = logging.getLogger(__name__)

DEFAULT_DUST_THRESHOLD = 100.0


def _finite(value: float | None, name: str, record_id: str | None) -> float:
    if value is None:
        raise ValidationError(f"missing {name}", record_id)
    if not math.isfinite(value):
        raise ValidationError(f"{name} is not finite: {value}", record_id)
    return value


def _required(value: str | None, name: str, record_id: str | None) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"missing {name}", record_id)
    return str(value).strip()


def normalize(
    record: Mapping[str, Any],
    dust_threshold: float = DEFAULT_DUST_THRESHOLD,
) -> Trade:
    """Convert one raw feed record to a Trade.

    Notional comes from an explicit notional/amount/usdcSize field when the
    feed provides one, otherwise from size * price.

    Raises:
        ValidationError: the record is malformed or out of range.
    """
    if not isinstance(record, Mapping):
        raise ValidationError(f"record is not a mapping: {type(record).__name__}")
    try:
        feed = FeedTrade.model_validate(dict(record))
    except pydantic.ValidationError as exc:
        record_id = record.get("id") or record.get("transactionHash")
        raise ValidationError(f"malformed record: {exc.errors()[0]['msg']}", record_id) from exc

    record_id = feed.id
    trade_id = _required(feed.id, "id", record_id)

    price = _finite(feed.price, "price", record_id)
    if not 0 < price <= 1:
        raise ValidationError(f"price out of range (0, 1]: {price}", record_id)

    if feed.notional is not None:
        notional = _finite(feed.notional, "notional", record_id)
    else:
        notional = _finite(feed.size, "size", record_id) * price
    if notional <= 0:
        raise ValidationError(f"notional must be positive: {notional}", record_id)
    if not math.isfinite(notional / price):
        raise ValidationError(
            f"shares overflow: notional {notional} at price {price}", record_id
        )

    try:
        occurred_at = parse_timestamp(feed.timestamp)
    except (ValueError, OverflowError, OSError) as exc:
        raise ValidationError(f"bad timestamp: {exc}", record_id) from exc

    return Trade(
        id=trade_id,
        market_id=_required(feed.market_id, "market id", record_id),
        trader_address=_required(feed.trader_address, "trader address", record_id),
        outcome=_required(feed.outcome, "outcome", record_id),
        notional=notional,
        price=price,
        occurred_at=occurred_at,
        below_alert_floor=notional < dust_threshold,
        title=feed.title,
    )


def normalize_batch(
    records: Iterable[Mapping[str, Any]],
    dust_threshold: float = DEFAULT_DUST_THRESHOLD,
) -> tuple[list[Trade], list[ValidationError]]:
    """Normalize a batch, skipping malformed records.

    Returns:
        (trades, rejections) in feed order.
    """
    trades: list[Trade] = []
    rejected: list[ValidationError] = []
    for record in records:
        try:
            trades.append(normalize(record, dust_threshold))
        except ValidationError as exc:
            log.warning("Skipping feed record: %s", exc)
            rejected.append(exc)
    return trades, rejected
