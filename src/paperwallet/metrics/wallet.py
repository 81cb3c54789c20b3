from __future__ import annotations

from typing import Optional
import os
from prometheus_client import Counter, Gauge, REGISTRY

_trades_total: Optional[Counter] = None
_trades_rejected_total: Optional[Counter] = None
_cash_movements_total: Optional[Counter] = None
_cash_gauge: Optional[Gauge] = None
_equity_gauge: Optional[Gauge] = None


class _NoOp:
    def labels(self, *args, **kwargs):
        return self
    def inc(self, *args, **kwargs):
        return None
    def set(self, *args, **kwargs):
        return None


def _existing(name: str):
    coll = getattr(REGISTRY, "_names_to_collectors", {}).get(name)
    if coll is not None:
        return coll
    for coll in list(getattr(REGISTRY, "_collector_to_names", {}).keys()):  # type: ignore[attr-defined]
        if getattr(coll, "_name", None) == name:
            return coll
    return None


def _safe_counter(name: str, doc: str, labelnames):
    if os.getenv("DISABLE_PROMETHEUS", "0") == "1":
        return _NoOp()
    try:
        return Counter(name, doc, labelnames)
    except ValueError:
        # Already registered (module reloaded in tests)
        return _existing(name) or _existing(name + "_total") or _NoOp()


def _safe_gauge(name: str, doc: str):
    if os.getenv("DISABLE_PROMETHEUS", "0") == "1":
        return _NoOp()
    try:
        return Gauge(name, doc)
    except ValueError:
        return _existing(name) or _NoOp()


def get_trades_total():
    global _trades_total
    if _trades_total is None:
        _trades_total = _safe_counter("wallet_trades_total", "Paper trades executed", ["side", "symbol"])
    return _trades_total


def get_trades_rejected_total():
    global _trades_rejected_total
    if _trades_rejected_total is None:
        _trades_rejected_total = _safe_counter(
            "wallet_trades_rejected_total", "Paper trades rejected by the ledger", ["reason", "symbol"]
        )
    return _trades_rejected_total


def get_cash_movements_total():
    """Counter: deposits and withdrawals, labeled by type."""
    global _cash_movements_total
    if _cash_movements_total is None:
        _cash_movements_total = _safe_counter(
            "wallet_cash_movements_total", "Simulated deposits/withdrawals", ["type"]
        )
    return _cash_movements_total


def get_cash_gauge():
    global _cash_gauge
    if _cash_gauge is None:
        _cash_gauge = _safe_gauge("wallet_cash_usd", "Free cash in the quote currency")
    return _cash_gauge


def get_equity_gauge():
    global _equity_gauge
    if _equity_gauge is None:
        _equity_gauge = _safe_gauge("wallet_equity_usd", "Last computed wallet valuation")
    return _equity_gauge


def record_trade(side: str, symbol: str) -> None:
    try:
        get_trades_total().labels(side, symbol).inc()
    except Exception:
        pass


def record_rejection(reason: str, symbol: str) -> None:
    try:
        get_trades_rejected_total().labels(reason, symbol).inc()
    except Exception:
        pass


def record_cash_movement(type_: str) -> None:
    try:
        get_cash_movements_total().labels(type_).inc()
    except Exception:
        pass


def set_cash(value: float) -> None:
    try:
        get_cash_gauge().set(float(value))
    except Exception:
        pass


def set_equity(value: float) -> None:
    try:
        get_equity_gauge().set(float(value))
    except Exception:
        pass
