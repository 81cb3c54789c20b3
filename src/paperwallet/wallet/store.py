"""
Persistence backends for wallet records.

What it does:
- Defines the `WalletStore` seam: `load()` returns the whole stored record (or
  None when nothing usable is stored) and `save(record)` replaces it.
- Provides an in-memory store, a JSON file store (one document per key, the
  local-storage analogue) and a SQLite key/value store.
- Numbers are written as JSON numbers and read back as `Decimal`.

Where it is used:
- `WalletLedger` reads and writes the full wallet snapshot through a store.
- `TradeJournal` / `TransactionJournal` persist their bounded lists the same way.
"""
from __future__ import annotations

import json
import logging
import os
import sqlite3
import tempfile
import time
from decimal import Decimal
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


def _number(d: Decimal) -> str:
    if not d.is_finite():
        raise ValueError(f"cannot persist non-finite amount {d}")
    # integral values as ints so 10000 stays 10000
    if d == d.to_integral_value():
        return str(int(d))
    return str(d)


def dumps(record: Any) -> str:
    """Compact JSON with Decimals written as their exact number text.

    The json module only knows how to emit Decimals through float, which would
    round 0.12345678901234561 or a repeating average cost on every save.
    """
    if isinstance(record, Decimal):
        return _number(record)
    if isinstance(record, dict):
        return "{" + ",".join(f"{json.dumps(str(k))}:{dumps(v)}" for k, v in record.items()) + "}"
    if isinstance(record, (list, tuple)):
        return "[" + ",".join(dumps(v) for v in record) + "]"
    return json.dumps(record)


def loads(text: str) -> Any:
    return json.loads(text, parse_float=Decimal, parse_int=Decimal)


class WalletStore:
    """Full-record get/set interface. Subclasses implement `load` and `save`."""

    key: str = "wallet"

    def load(self) -> Optional[Any]:
        raise NotImplementedError

    def save(self, record: Any) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError


class MemoryStore(WalletStore):
    def __init__(self, initial: Optional[Any] = None, key: str = "wallet"):
        self.key = key
        self._text: Optional[str] = dumps(initial) if initial is not None else None
        self.writes = 0

    def load(self) -> Optional[Any]:
        if self._text is None:
            return None
        return loads(self._text)

    def save(self, record: Any) -> None:
        # serialize so callers can't mutate what was stored
        self._text = dumps(record)
        self.writes += 1

    def clear(self) -> None:
        self._text = None

    @property
    def raw(self) -> Optional[str]:
        return self._text


class JsonFileStore(WalletStore):
    def __init__(self, path: str, key: Optional[str] = None):
        self.path = path
        self.key = key or os.path.splitext(os.path.basename(path))[0]
        d = os.path.dirname(path)
        if d:
            os.makedirs(d, exist_ok=True)

    def load(self) -> Optional[Any]:
        if not os.path.exists(self.path):
            return None
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return loads(f.read())
        except (OSError, ValueError) as e:
            logger.warning(f"Unreadable record at {self.path}; treating as absent: {e}")
            return None

    def save(self, record: Any) -> None:
        d = os.path.dirname(self.path) or "."
        fd, tmp = tempfile.mkstemp(prefix=".tmp-", dir=d)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(dumps(record))
            os.replace(tmp, self.path)
        except Exception:
            if os.path.exists(tmp):
                os.remove(tmp)
            raise

    def clear(self) -> None:
        if os.path.exists(self.path):
            os.remove(self.path)


DDL = """
CREATE TABLE IF NOT EXISTS wallet_state (
  key TEXT PRIMARY KEY,
  ts INTEGER,
  json TEXT
);
"""


class SQLiteStore(WalletStore):
    def __init__(self, path: str = "data/paperwallet.sqlite", key: str = "wallet"):
        d = os.path.dirname(path)
        if d:
            os.makedirs(d, exist_ok=True)
        self.path = path
        self.key = key
        with sqlite3.connect(self.path) as con:
            con.execute(DDL)

    def load(self) -> Optional[Any]:
        with sqlite3.connect(self.path) as con:
            row = con.execute("SELECT json FROM wallet_state WHERE key = ?", (self.key,)).fetchone()
        if row is None:
            return None
        try:
            return loads(row[0])
        except ValueError as e:
            logger.warning(f"Unreadable record for key={self.key}; treating as absent: {e}")
            return None

    def save(self, record: Any) -> None:
        with sqlite3.connect(self.path) as con:
            con.execute(
                "INSERT INTO wallet_state(key,ts,json) VALUES (?,?,?) "
                "ON CONFLICT(key) DO UPDATE SET ts=excluded.ts, json=excluded.json",
                (self.key, int(time.time() * 1000), dumps(record)),
            )

    def clear(self) -> None:
        with sqlite3.connect(self.path) as con:
            con.execute("DELETE FROM wallet_state WHERE key = ?", (self.key,))


def build_store(storage: Dict[str, Any], key: str) -> WalletStore:
    """Create a store for `key` from the `storage` config section.

    backend=json writes `<path>/<prefix>_<key>.json`; backend=sqlite keeps all
    keys in `<path>/<prefix>.sqlite`; backend=memory keeps nothing on disk.
    """
    backend = str(storage.get("backend", "json")).lower()
    base = str(storage.get("path", "data"))
    prefix = str(storage.get("key_prefix", "paperwallet"))
    full_key = f"{prefix}_{key}" if prefix else key
    if backend == "memory":
        return MemoryStore(key=full_key)
    if backend == "sqlite":
        return SQLiteStore(os.path.join(base, f"{prefix or 'paperwallet'}.sqlite"), key=full_key)
    if backend == "json":
        return JsonFileStore(os.path.join(base, f"{full_key}.json"), key=full_key)
    raise ValueError(f"Unknown storage backend: {backend}")
