"""
Configuration loader for paperwallet.

What it does:
- Reads static settings from `config/config.yaml` (defaults apply when the
  file is missing).
- Applies environment overrides named `PAPERWALLET_<SECTION>_<KEY>`, e.g.
  `PAPERWALLET_STORAGE_PATH=/tmp/wallet` or `PAPERWALLET_WALLET_DEFAULT_CASH=500`.
- Validates the resulting configuration using Pydantic models.

Where it is used:
- Called by `paperwallet.main` to build the ledger, journals, price feed and
  API app.
"""

import logging
import os
import pathlib
from decimal import Decimal
from typing import Any, Dict, Literal, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

ENV_PREFIX = "PAPERWALLET_"
DEFAULT_PATH = "config/config.yaml"


class WalletConfig(BaseModel):
    default_cash: Decimal = Field(default=Decimal(10_000), ge=0)
    quote_asset: str = "USDT"


class StorageConfig(BaseModel):
    backend: Literal["json", "sqlite", "memory"] = "json"
    path: str = "data"
    key_prefix: str = "paperwallet"


class HistoryConfig(BaseModel):
    trades_cap: int = Field(default=10, gt=0)
    transactions_cap: int = Field(default=50, gt=0)


class ExchangeConfig(BaseModel):
    """Public market-data source (ccxt exchange id)."""
    name: str = "binance"
    timeout_ms: int = Field(default=10_000, gt=0)
    symbols: list[str] = ["BTC/USDT", "ETH/USDT", "BNB/USDT", "SOL/USDT"]

    @field_validator("name")
    @classmethod
    def lower_name(cls, v: str):
        if not v:
            raise ValueError("exchange name required")
        return v.lower()


class EventsConfig(BaseModel):
    redis_url: Optional[str] = None
    stream: str = "paperwallet.events"


class MetricsConfig(BaseModel):
    port: int = 0  # 0 disables the exporter
    addr: str = "0.0.0.0"


class ApiConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = 8080


class Settings(BaseModel):
    """Runtime settings assembled from YAML + environment variables."""
    wallet: WalletConfig = WalletConfig()
    storage: StorageConfig = StorageConfig()
    history: HistoryConfig = HistoryConfig()
    exchange: ExchangeConfig = ExchangeConfig()
    events: EventsConfig = EventsConfig()
    metrics: MetricsConfig = MetricsConfig()
    api: ApiConfig = ApiConfig()


def _env_overrides(config: Dict[str, Any], environ: Dict[str, str]) -> Dict[str, Any]:
    sections = set(Settings.model_fields.keys())
    for name, value in environ.items():
        if not name.startswith(ENV_PREFIX):
            continue
        rest = name[len(ENV_PREFIX):].lower()
        section, _, key = rest.partition("_")
        if section not in sections or not key:
            continue
        if key == "symbols":
            value = [s.strip() for s in value.split(",") if s.strip()]
        config.setdefault(section, {})[key] = value
    return config


def load_settings(path: str = DEFAULT_PATH, environ: Optional[Dict[str, str]] = None) -> Settings:
    """Load YAML config, apply env overrides, and return Settings."""
    config: Dict[str, Any] = {}
    p = pathlib.Path(path)
    if p.exists():
        with open(p, "r") as f:
            config = yaml.safe_load(f) or {}
        if not isinstance(config, dict):
            raise ValueError(f"{path}: top-level YAML must be a mapping")
    else:
        logger.info(f"No config at {path}; using defaults")
    for section, value in list(config.items()):
        if value is None:
            config[section] = {}
    config = _env_overrides(config, dict(os.environ if environ is None else environ))
    return Settings(**config)
