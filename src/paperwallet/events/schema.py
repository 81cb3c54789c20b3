from __future__ import annotations

from typing import List, Literal, Optional, Union
from pydantic import BaseModel


# ---- Base + envelope ----

class BaseEvent(BaseModel):
    event_type: str
    ts: int
    symbol: str
    side: Optional[str] = None  # buy|sell
    tags: List[str] = []


class EventEnvelope(BaseModel):
    schema_version: str = "v1"
    correlation_id: str
    sequence: int = 0
    event: BaseEvent


# ---- Event types ----

class TradeExecuted(BaseEvent):
    event_type: Literal["trade_executed"] = "trade_executed"
    trade_id: str
    quantity: float
    price: float
    total: float
    cash_after: float


class TradeRejected(BaseEvent):
    event_type: Literal["trade_rejected"] = "trade_rejected"
    reason: str
    quantity: Optional[float] = None
    price: Optional[float] = None


class CashMoved(BaseEvent):
    event_type: Literal["cash_moved"] = "cash_moved"
    symbol: str = "CASH"
    transaction_id: str
    type: Literal["deposit", "withdrawal"]
    amount: float
    cash_after: float


AnyEvent = Union[TradeExecuted, TradeRejected, CashMoved]
