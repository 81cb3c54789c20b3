from __future__ import annotations

from decimal import Decimal
from typing import Any, Callable, Dict, Mapping, Optional
import logging

from pydantic import ValidationError

from .errors import InsufficientFunds, InsufficientPosition, InvalidOrder, LedgerError
from .model import Position, TradeRecord, Transaction, WalletState, now_ms, to_decimal
from .store import WalletStore
from ..events.schema import CashMoved, EventEnvelope, TradeExecuted, TradeRejected
from ..metrics import wallet as wallet_metrics

logger = logging.getLogger(__name__)

ZERO = Decimal(0)


class WalletLedger:
    """Paper wallet: quote-currency cash plus positions at average cost.

    Every operation reads the full record from `store`, validates, builds the
    new state on a copy and writes the full record back before returning.
    A rejected operation raises a `LedgerError` and writes nothing.
    """

    def __init__(
        self,
        store: WalletStore,
        default_cash: Any = 10_000,
        quote_asset: str = "USDT",
        trades=None,
        transactions=None,
        publisher: Optional[Callable[[EventEnvelope], None]] = None,
    ):
        self.store = store
        self.default_cash = to_decimal(default_cash, "default_cash")
        if self.default_cash < 0:
            raise ValueError("default_cash must be non-negative")
        self.quote_asset = quote_asset
        self.trades = trades
        self.transactions = transactions
        self.publisher = publisher

    # ------------------------------------------------------------------ #
    # State
    # ------------------------------------------------------------------ #
    def _load(self) -> WalletState:
        raw = self.store.load()
        if raw is not None:
            try:
                return WalletState.from_snapshot(raw)
            except ValidationError as e:
                logger.warning(f"Malformed wallet record in store; resetting to default: {e.error_count()} error(s)")
        state = WalletState.default(self.default_cash)
        self.store.save(state.to_snapshot())
        return state

    def _commit(self, state: WalletState) -> None:
        self.store.save(state.to_snapshot())
        wallet_metrics.set_cash(state.cash)

    def state(self) -> WalletState:
        return self._load()

    def snapshot(self) -> Dict[str, Any]:
        return self._load().to_snapshot()

    def reset(self) -> Dict[str, Any]:
        state = WalletState.default(self.default_cash)
        self._commit(state)
        logger.info(f"wallet reset to {state.cash} {self.quote_asset}")
        return state.to_snapshot()

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #
    def balance_of(self, symbol: str) -> Decimal:
        pos = self._load().positions.get(symbol)
        return pos.quantity if pos else ZERO

    def valuation(self, current_prices: Optional[Mapping[str, Any]] = None) -> Decimal:
        """Cash plus positions marked at `current_prices`.

        A symbol without a positive price (missing, zero or negative) is
        marked at its average cost.
        """
        prices = current_prices or {}
        state = self._load()
        total = state.cash
        for sym, pos in state.positions.items():
            px = prices.get(sym)
            mark = to_decimal(px, f"price[{sym}]") if px is not None else ZERO
            if mark <= 0:
                mark = pos.average_cost
            total += pos.quantity * mark
        wallet_metrics.set_equity(total)
        return total

    # ------------------------------------------------------------------ #
    # Trades
    # ------------------------------------------------------------------ #
    def buy(self, symbol: str, quantity: Any, price: Any) -> Dict[str, Any]:
        symbol, qty, px = self._validate_order("buy", symbol, quantity, price)
        state = self._load()
        cost = qty * px
        if state.cash < cost:
            self._reject("buy", symbol, qty, px, InsufficientFunds(
                f"Insufficient {self.quote_asset} balance: need {cost}, have {state.cash}"
            ))

        new = state.copy()
        new.cash -= cost
        pos = new.positions.get(symbol)
        held_qty = pos.quantity if pos else ZERO
        held_cost = pos.average_cost if pos else ZERO
        total_qty = held_qty + qty
        new.positions[symbol] = Position(
            symbol=symbol,
            quantity=total_qty,
            average_cost=(held_qty * held_cost + cost) / total_qty,
        )
        self._commit(new)
        self._record_trade(symbol, "buy", qty, px, new.cash)
        return new.to_snapshot()

    def sell(self, symbol: str, quantity: Any, price: Any) -> Dict[str, Any]:
        symbol, qty, px = self._validate_order("sell", symbol, quantity, price)
        state = self._load()
        pos = state.positions.get(symbol)
        if pos is None or pos.quantity < qty:
            held = pos.quantity if pos else ZERO
            self._reject("sell", symbol, qty, px, InsufficientPosition(
                f"Insufficient {symbol} balance: need {qty}, have {held}"
            ))

        new = state.copy()
        new.cash += qty * px
        remaining = new.positions[symbol].quantity - qty
        if remaining == 0:
            del new.positions[symbol]
        else:
            # average cost is left as-is on a sell
            new.positions[symbol].quantity = remaining
        self._commit(new)
        self._record_trade(symbol, "sell", qty, px, new.cash)
        return new.to_snapshot()

    # ------------------------------------------------------------------ #
    # Cash movements
    # ------------------------------------------------------------------ #
    def deposit(self, amount: Any) -> Dict[str, Any]:
        amt = self._validate_amount("deposit", amount)
        new = self._load().copy()
        new.cash += amt
        self._commit(new)
        self._record_cash("deposit", amt, new.cash)
        return new.to_snapshot()

    def withdraw(self, amount: Any) -> Dict[str, Any]:
        amt = self._validate_amount("withdrawal", amount)
        state = self._load()
        if amt > state.cash:
            wallet_metrics.record_rejection(InsufficientFunds.kind, self.quote_asset)
            raise InsufficientFunds(f"Insufficient {self.quote_asset} balance: need {amt}, have {state.cash}")
        new = state.copy()
        new.cash -= amt
        self._commit(new)
        self._record_cash("withdrawal", amt, new.cash)
        return new.to_snapshot()

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #
    def _validate_order(self, side: str, symbol: str, quantity: Any, price: Any):
        sym = str(symbol or "").strip()
        try:
            if not sym:
                raise InvalidOrder("symbol required")
            qty = to_decimal(quantity, "quantity")
            px = to_decimal(price, "price")
            if qty <= 0:
                raise InvalidOrder("quantity must be positive")
            if px <= 0:
                raise InvalidOrder("price must be positive")
        except InvalidOrder as e:
            self._reject(side, sym or "?", None, None, e)
        return sym, qty, px

    def _validate_amount(self, type_: str, amount: Any) -> Decimal:
        amt = to_decimal(amount, "amount")
        if amt <= 0:
            wallet_metrics.record_rejection(InvalidOrder.kind, self.quote_asset)
            raise InvalidOrder(f"{type_} amount must be positive")
        return amt

    def _reject(self, side: str, symbol: str, qty: Optional[Decimal], px: Optional[Decimal], err: LedgerError):
        wallet_metrics.record_rejection(err.kind, symbol)
        logger.info(f"{side} rejected: {symbol} qty={qty} price={px} reason={err.kind}")
        self._emit(symbol, TradeRejected(
            ts=now_ms(),
            symbol=symbol,
            side=side,
            reason=err.kind,
            quantity=float(qty) if qty is not None else None,
            price=float(px) if px is not None else None,
        ))
        raise err

    def _record_trade(self, symbol: str, side: str, qty: Decimal, px: Decimal, cash_after: Decimal) -> None:
        rec = TradeRecord.create(symbol, side, qty, px)  # type: ignore[arg-type]
        if self.trades is not None:
            self.trades.append(rec)
        wallet_metrics.record_trade(side, symbol)
        logger.info(f"{side} executed: {qty} {symbol} @ {px} total={rec.total} cash={cash_after}")
        self._emit(symbol, TradeExecuted(
            ts=rec.timestamp,
            symbol=symbol,
            side=side,
            trade_id=rec.id,
            quantity=float(qty),
            price=float(px),
            total=float(rec.total),
            cash_after=float(cash_after),
        ), correlation_id=rec.id)

    def _record_cash(self, type_: str, amount: Decimal, cash_after: Decimal) -> None:
        tx = Transaction.create(type_, amount, self.quote_asset)  # type: ignore[arg-type]
        if self.transactions is not None:
            self.transactions.append(tx)
        wallet_metrics.record_cash_movement(type_)
        logger.info(f"{type_}: {amount} {self.quote_asset} cash={cash_after}")
        self._emit(self.quote_asset, CashMoved(
            ts=tx.timestamp,
            transaction_id=tx.id,
            type=tx.type,
            amount=float(amount),
            cash_after=float(cash_after),
        ), correlation_id=tx.id)

    def _emit(self, symbol: str, evt, correlation_id: Optional[str] = None) -> None:
        if self.publisher is None:
            return
        try:
            self.publisher(EventEnvelope(correlation_id=correlation_id or f"{symbol}:{evt.event_type}", event=evt))
        except Exception as e:
            logger.debug(f"event publish failed: {e}")
