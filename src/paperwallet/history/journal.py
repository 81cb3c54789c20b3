"""Bounded, append-only journals of executed trades and cash movements.

Journals are observational: the ledger appends to them after a successful
operation and never reads them back.
"""
from __future__ import annotations

from collections import deque
from dataclasses import asdict
from decimal import Decimal
from typing import Any, Deque, Dict, Generic, List, Optional, TypeVar
import logging
import os

import pandas as pd

from ..wallet.model import TradeRecord, Transaction
from ..wallet.store import WalletStore

logger = logging.getLogger(__name__)

T = TypeVar("T", TradeRecord, Transaction)


class _Journal(Generic[T]):
    def __init__(self, store: Optional[WalletStore] = None, cap: int = 10):
        if cap <= 0:
            raise ValueError("cap must be positive")
        self.cap = int(cap)
        self.store = store
        self._items: Deque[T] = deque(maxlen=self.cap)
        if store is not None:
            self._restore(store.load())

    def _restore(self, raw: Any) -> None:
        if raw is None:
            return
        if not isinstance(raw, list):
            logger.warning(f"Ignoring malformed {type(self).__name__} record")
            return
        for item in raw:
            try:
                self._items.append(self._from_dict(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed journal entry: {e}")

    def _from_dict(self, d: Dict[str, Any]) -> T:
        raise NotImplementedError

    def append(self, rec: T) -> None:
        self._items.append(rec)
        if self.store is not None:
            self.store.save([asdict(r) for r in self._items])

    def records(self) -> List[T]:
        """All retained records, oldest first."""
        return list(self._items)

    def recent(self, n: Optional[int] = None) -> List[T]:
        """Most recent records, newest first."""
        items = list(reversed(self._items))
        return items if n is None else items[:n]

    def clear(self) -> None:
        self._items.clear()
        if self.store is not None:
            self.store.save([])

    def __len__(self) -> int:
        return len(self._items)

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame([asdict(r) for r in self._items])

    def write_parquet(self, path: str) -> None:
        d = os.path.dirname(path)
        if d:
            os.makedirs(d, exist_ok=True)
        df = self.to_frame()
        # parquet has no arbitrary-precision decimal column without a fixed scale
        for col in df.columns:
            if len(df) and isinstance(df[col].iloc[0], Decimal):
                df[col] = df[col].astype(float)
        df.to_parquet(path)


class TradeJournal(_Journal[TradeRecord]):
    def __init__(self, store: Optional[WalletStore] = None, cap: int = 10):
        super().__init__(store, cap)

    def _from_dict(self, d: Dict[str, Any]) -> TradeRecord:
        side = str(d["side"])
        if side not in ("buy", "sell"):
            raise ValueError(f"bad side {side!r}")
        return TradeRecord(
            id=str(d["id"]),
            symbol=str(d["symbol"]),
            side=side,  # type: ignore[arg-type]
            quantity=Decimal(str(d["quantity"])),
            price=Decimal(str(d["price"])),
            total=Decimal(str(d["total"])),
            timestamp=int(d["timestamp"]),
        )


class TransactionJournal(_Journal[Transaction]):
    def __init__(self, store: Optional[WalletStore] = None, cap: int = 50):
        super().__init__(store, cap)

    def _from_dict(self, d: Dict[str, Any]) -> Transaction:
        type_ = str(d["type"])
        if type_ not in ("deposit", "withdrawal"):
            raise ValueError(f"bad transaction type {type_!r}")
        return Transaction(
            id=str(d["id"]),
            type=type_,  # type: ignore[arg-type]
            amount=Decimal(str(d["amount"])),
            currency=str(d.get("currency", "USDT")),
            timestamp=int(d["timestamp"]),
            status=str(d.get("status", "completed")),
        )
