"""Data models for feed records and ledger entities."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator

AlertType = Literal["whale", "mega_whale"]
PositionStatus = Literal["open", "settled"]
IngestStatus = Literal["applied", "duplicate"]


# --- Feed records ---------------------------------------------------------

class FeedTrade(BaseModel):
    """Trade record as delivered by the feed.

    Accepts Data API records (transactionHash/conditionId/proxyWallet/size),
    subgraph records (id/market.id/trader.id/amount) and canonical records.
    Every field is optional here; the normalizer decides what is required.
    """
    id: Optional[str] = Field(
        None, validation_alias=AliasChoices("id", "transactionHash", "transaction_hash", "tx_hash")
    )
    market_id: Optional[str] = Field(
        None, validation_alias=AliasChoices("marketId", "market_id", "conditionId", "condition_id", "slug")
    )
    trader_address: Optional[str] = Field(
        None, validation_alias=AliasChoices("traderAddress", "trader_address", "proxyWallet", "proxy_wallet", "user")
    )
    outcome: Optional[str] = None
    notional: Optional[float] = Field(
        None, validation_alias=AliasChoices("notional", "amount", "usdcSize", "usdc_size")
    )
    size: Optional[float] = Field(None, validation_alias=AliasChoices("size", "shares"))
    price: Optional[float] = None
    timestamp: Optional[Any] = Field(
        None, validation_alias=AliasChoices("occurredAt", "occurred_at", "timestamp")
    )
    title: Optional[str] = Field(None, validation_alias=AliasChoices("title", "question"))

    class Config:
        extra = "ignore"
        coerce_numbers_to_str = True

    @model_validator(mode="before")
    @classmethod
    def _flatten_nested(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        market = data.pop("market", None)
        if isinstance(market, dict):
            data.setdefault("marketId", market.get("id"))
            if market.get("question"):
                data.setdefault("title", market["question"])
        elif market:
            data.setdefault("marketId", market)
        trader = data.pop("trader", None)
        if isinstance(trader, dict):
            data.setdefault("traderAddress", trader.get("id"))
        elif trader:
            data.setdefault("traderAddress", trader)
        return data


def _json_list(value: Any) -> Any:
    """Gamma encodes some vectors as JSON strings, e.g. '["Yes", "No"]'."""
    if isinstance(value, str):
        return json.loads(value) if value.strip() else []
    return value


class MarketListing(BaseModel):
    """Market listing record from the Gamma API."""
    id: str = Field(validation_alias=AliasChoices("conditionId", "condition_id", "id"))
    question: str = ""
    category: Optional[str] = None
    slug: Optional[str] = None
    closed: bool = False
    outcomes: List[str] = Field(default_factory=list)
    outcome_prices: List[float] = Field(
        default_factory=list, validation_alias=AliasChoices("outcomePrices", "outcome_prices")
    )

    class Config:
        extra = "ignore"
        coerce_numbers_to_str = True

    @field_validator("outcomes", "outcome_prices", mode="before")
    @classmethod
    def _parse_vectors(cls, v: Any) -> Any:
        return _json_list(v) if v is not None else []


# --- Ledger entities ------------------------------------------------------

class Trade(BaseModel):
    """Canonical, immutable trade fact. `id` is the idempotency key."""
    id: str
    market_id: str
    trader_address: str
    outcome: str
    notional: float
    price: float
    occurred_at: datetime
    below_alert_floor: bool = False
    title: Optional[str] = None

    class Config:
        frozen = True

    @property
    def shares(self) -> float:
        return self.notional / self.price


class Position(BaseModel):
    id: int
    trader_address: str
    market_id: str
    outcome: str
    shares: float
    avg_price: float
    status: PositionStatus = "open"
    realized_pl: Optional[float] = None
    won: Optional[bool] = None
    version: int = 0
    opened_at: str
    updated_at: str
    settled_at: Optional[str] = None


class TraderStat(BaseModel):
    address: str
    total_volume: float = 0.0
    total_bets: int = 0
    wins: int = 0
    losses: int = 0
    profit_loss: float = 0.0
    settled_markets: int = 0
    last_activity: Optional[str] = None

    @property
    def win_rate(self) -> float:
        decided = self.wins + self.losses
        return self.wins / decided if decided else 0.0


class Market(BaseModel):
    id: str
    question: str = ""
    category: Optional[str] = None
    slug: Optional[str] = None
    closed: bool = False
    outcomes: List[str] = Field(default_factory=list)
    outcome_prices: List[float] = Field(default_factory=list)
    resolved: bool = False
    winning_outcome: Optional[str] = None
    updated_at: Optional[str] = None

    @field_validator("outcomes", "outcome_prices", mode="before")
    @classmethod
    def _parse_vectors(cls, v: Any) -> Any:
        return _json_list(v) if v is not None else []


# --- Results --------------------------------------------------------------

@dataclass(frozen=True)
class MarketResolution:
    market_id: str
    resolved: bool
    winning_outcome: Optional[str] = None


@dataclass(frozen=True)
class LedgerResult:
    status: IngestStatus
    trade_id: str
    position_id: Optional[int] = None
    alert_type: Optional[AlertType] = None

    @property
    def is_duplicate(self) -> bool:
        return self.status == "duplicate"


@dataclass
class SettlementResult:
    market_id: str
    winning_outcome: Optional[str]
    settled: int = 0
    traders: List[str] = field(default_factory=list)
