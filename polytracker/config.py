"""Central configuration for the trade ledger.

Feed endpoints, ledger thresholds and the store location as frozen
dataclasses with environment variable overrides.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv


@dataclass(frozen=True)
class DataAPIConfig:
    base_url: str = "https://data-api.polymarket.com"
    trades_limit: int = 100
    timeout: int = 15
    max_attempts: int = 4


@dataclass(frozen=True)
class GammaConfig:
    base_url: str = "https://gamma-api.polymarket.com"
    fetch_limit: int = 50
    fetch_delay: float = 0.3
    timeout: int = 15
    max_attempts: int = 4


@dataclass(frozen=True)
class LedgerConfig:
    dust_threshold: float = 100.0
    whale_threshold: float = 10_000.0
    mega_whale_threshold: float = 50_000.0
    min_settled_markets: int = 3
    conflict_retries: int = 5
    backoff_min: float = 0.01
    backoff_max: float = 0.5


@dataclass(frozen=True)
class ResolutionConfig:
    price_threshold: float = 0.9
    batch_limit: int = 200
    closed_events_limit: int = 50


@dataclass
class AppConfig:
    data_api: DataAPIConfig = field(default_factory=DataAPIConfig)
    gamma: GammaConfig = field(default_factory=GammaConfig)
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    resolution: ResolutionConfig = field(default_factory=ResolutionConfig)
    db_path: Path = Path("data/polytracker.db")
    workers: int = 1


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    return float(raw) if raw else default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    return int(raw) if raw else default


def load_config(env_file: Path | None = None) -> AppConfig:
    """Load configuration from environment variables + defaults.

    Args:
        env_file: Path to .env file. If None, searches project root.

    Raises:
        ValueError: alert thresholds are inconsistent.
    """
    if env_file and env_file.exists():
        load_dotenv(env_file)
    else:
        for candidate in [Path(".env"), Path(__file__).parent.parent / ".env"]:
            if candidate.exists():
                load_dotenv(candidate)
                break

    defaults = LedgerConfig()
    ledger = LedgerConfig(
        dust_threshold=_env_float("DUST_THRESHOLD", defaults.dust_threshold),
        whale_threshold=_env_float("WHALE_THRESHOLD", defaults.whale_threshold),
        mega_whale_threshold=_env_float("MEGA_WHALE_THRESHOLD", defaults.mega_whale_threshold),
        min_settled_markets=_env_int("MIN_SETTLED_MARKETS", defaults.min_settled_markets),
    )
    # Dust trades never alert, so a floor at or above the whale line would
    # silence alerts.
    if ledger.dust_threshold >= ledger.whale_threshold:
        raise ValueError(
            f"DUST_THRESHOLD ({ledger.dust_threshold}) must be below "
            f"WHALE_THRESHOLD ({ledger.whale_threshold})"
        )
    if ledger.whale_threshold > ledger.mega_whale_threshold:
        raise ValueError(
            f"WHALE_THRESHOLD ({ledger.whale_threshold}) must not exceed "
            f"MEGA_WHALE_THRESHOLD ({ledger.mega_whale_threshold})"
        )

    return AppConfig(
        ledger=ledger,
        db_path=Path(os.environ.get("DB_PATH", "data/polytracker.db")),
        workers=_env_int("INGEST_WORKERS", 1),
    )
