from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Literal
import time
import uuid

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import InvalidOrder

Side = Literal["buy", "sell"]
TransactionType = Literal["deposit", "withdrawal"]


def new_id() -> str:
    return uuid.uuid4().hex


def now_ms() -> int:
    return int(time.time() * 1000)


def to_decimal(value: Any, name: str = "value") -> Decimal:
    """Convert user input to Decimal without going through binary floats."""
    if isinstance(value, bool):
        raise InvalidOrder(f"{name} must be a number")
    if isinstance(value, Decimal):
        d = value
    else:
        try:
            d = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise InvalidOrder(f"{name} must be a number") from None
    if not d.is_finite():
        raise InvalidOrder(f"{name} must be a finite number")
    return d


@dataclass
class Position:
    symbol: str
    quantity: Decimal
    average_cost: Decimal


@dataclass
class WalletState:
    cash: Decimal
    positions: Dict[str, Position] = field(default_factory=dict)

    @classmethod
    def default(cls, cash: Any = 10_000) -> "WalletState":
        return cls(cash=to_decimal(cash, "cash"))

    def copy(self) -> "WalletState":
        return WalletState(
            cash=self.cash,
            positions={
                sym: Position(symbol=p.symbol, quantity=p.quantity, average_cost=p.average_cost)
                for sym, p in self.positions.items()
            },
        )

    def to_snapshot(self) -> Dict[str, Any]:
        return {
            "cash": self.cash,
            "positions": {
                sym: {"quantity": p.quantity, "averageCost": p.average_cost}
                for sym, p in self.positions.items()
            },
        }

    @classmethod
    def from_snapshot(cls, data: Dict[str, Any]) -> "WalletState":
        """Build state from a persisted record.

        Raises pydantic.ValidationError when the record does not match the
        persisted layout (negative cash, zero-quantity positions, ...).
        """
        snap = WalletSnapshot.model_validate(data)
        return cls(
            cash=snap.cash,
            positions={
                sym: Position(symbol=sym, quantity=p.quantity, average_cost=p.average_cost)
                for sym, p in snap.positions.items()
            },
        )


class PositionSnapshot(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    quantity: Decimal = Field(gt=0)
    average_cost: Decimal = Field(ge=0, alias="averageCost")


class WalletSnapshot(BaseModel):
    """Validation model for the persisted wallet record."""

    cash: Decimal = Field(ge=0)
    positions: Dict[str, PositionSnapshot] = {}

    @field_validator("positions")
    @classmethod
    def symbols_non_empty(cls, v: Dict[str, PositionSnapshot]):
        for sym in v:
            if not sym:
                raise ValueError("position symbol required")
        return v


@dataclass
class TradeRecord:
    id: str
    symbol: str
    side: Side
    quantity: Decimal
    price: Decimal
    total: Decimal
    timestamp: int

    @classmethod
    def create(cls, symbol: str, side: Side, quantity: Decimal, price: Decimal) -> "TradeRecord":
        return cls(
            id=new_id(),
            symbol=symbol,
            side=side,
            quantity=quantity,
            price=price,
            total=quantity * price,
            timestamp=now_ms(),
        )


@dataclass
class Transaction:
    id: str
    type: TransactionType
    amount: Decimal
    currency: str
    timestamp: int
    status: str = "completed"

    @classmethod
    def create(cls, type_: TransactionType, amount: Decimal, currency: str = "USDT") -> "Transaction":
        return cls(id=new_id(), type=type_, amount=amount, currency=currency, timestamp=now_ms())


__all__ = [
    "Position",
    "WalletState",
    "WalletSnapshot",
    "PositionSnapshot",
    "TradeRecord",
    "Transaction",
    "new_id",
    "now_ms",
    "to_decimal",
]
