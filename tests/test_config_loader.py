from decimal import Decimal

import pytest
from pydantic import ValidationError

from paperwallet.config.loader import load_settings


def test_defaults_when_file_missing(tmp_path):
    s = load_settings(str(tmp_path / "nope.yaml"), environ={})
    assert s.wallet.default_cash == Decimal(10_000)
    assert s.wallet.quote_asset == "USDT"
    assert s.storage.backend == "json"
    assert s.history.trades_cap == 10
    assert s.history.transactions_cap == 50
    assert s.exchange.name == "binance"
    assert s.events.redis_url is None


def test_yaml_values_and_env_overrides(tmp_path):
    cfg = tmp_path / "config.yaml"
    cfg.write_text(
        "wallet:\n  default_cash: 2500\n"
        "storage:\n  backend: sqlite\n  path: /tmp/x\n"
        "exchange:\n  name: Kraken\n"
    )
    env = {
        "PAPERWALLET_STORAGE_PATH": str(tmp_path / "data"),
        "PAPERWALLET_HISTORY_TRADES_CAP": "20",
        "PAPERWALLET_EXCHANGE_SYMBOLS": "BTC/USDT, ETH/USDT",
        "PAPERWALLET_UNKNOWN_THING": "ignored",
        "OTHER": "1",
    }
    s = load_settings(str(cfg), environ=env)
    assert s.wallet.default_cash == 2500
    assert s.storage.backend == "sqlite"
    assert s.storage.path == str(tmp_path / "data")
    assert s.history.trades_cap == 20
    assert s.exchange.name == "kraken"
    assert s.exchange.symbols == ["BTC/USDT", "ETH/USDT"]


def test_invalid_values_rejected(tmp_path):
    cfg = tmp_path / "config.yaml"
    cfg.write_text("wallet:\n  default_cash: -1\n")
    with pytest.raises(ValidationError):
        load_settings(str(cfg), environ={})
    with pytest.raises(ValidationError):
        load_settings(str(tmp_path / "missing.yaml"), environ={"PAPERWALLET_STORAGE_BACKEND": "s3"})


def test_non_mapping_yaml_rejected(tmp_path):
    cfg = tmp_path / "config.yaml"
    cfg.write_text("- a\n- b\n")
    with pytest.raises(ValueError):
        load_settings(str(cfg), environ={})
