from __future__ import annotations

import logging
from dataclasses import asdict
from decimal import Decimal
from typing import Dict, Literal, Optional

import ccxt
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..history.journal import TradeJournal, TransactionJournal
from ..market.prices import PriceFeed
from ..wallet.errors import InvalidOrder, LedgerError
from ..wallet.ledger import WalletLedger
from ..wallet.model import to_decimal

logger = logging.getLogger(__name__)


class OrderRequest(BaseModel):
    side: Literal["buy", "sell"]
    symbol: str
    quantity: Decimal
    price: Decimal


class CashRequest(BaseModel):
    amount: Decimal


def parse_prices(raw: str) -> Dict[str, Decimal]:
    """Parse `SYM:PRICE,SYM:PRICE` as given in the `prices` query parameter."""
    out: Dict[str, Decimal] = {}
    for part in raw.split(","):
        if not part.strip():
            continue
        sym, sep, px = part.rpartition(":")
        if not sep or not sym.strip():
            raise InvalidOrder(f"bad price entry {part!r}; expected SYMBOL:PRICE")
        out[sym.strip()] = to_decimal(px, f"price[{sym.strip()}]")
    return out


def create_app(
    ledger: WalletLedger,
    feed: Optional[PriceFeed] = None,
    trades: Optional[TradeJournal] = None,
    transactions: Optional[TransactionJournal] = None,
) -> FastAPI:
    app = FastAPI(title="Paperwallet API")

    @app.exception_handler(LedgerError)
    async def ledger_error(request: Request, exc: LedgerError):
        return JSONResponse(status_code=400, content={"error": exc.kind, "message": exc.message})

    @app.exception_handler(ccxt.BaseError)
    async def market_error(request: Request, exc: ccxt.BaseError):
        logger.warning(f"market data request failed: {exc}")
        return JSONResponse(status_code=502, content={"error": "market_data_unavailable", "message": str(exc)})

    @app.get("/wallet")
    def wallet():
        return ledger.snapshot()

    @app.get("/wallet/balance/{symbol:path}")
    def balance(symbol: str):
        return {"symbol": symbol, "quantity": ledger.balance_of(symbol)}

    @app.get("/wallet/valuation")
    def valuation(prices: Optional[str] = None):
        if prices:
            table = parse_prices(prices)
        elif feed is not None:
            table = feed.fetch_prices(ledger.snapshot()["positions"].keys())
        else:
            table = {}
        return {"valuation": ledger.valuation(table), "prices": table}

    @app.post("/orders")
    def place_order(req: OrderRequest):
        if req.side == "buy":
            snap = ledger.buy(req.symbol, req.quantity, req.price)
        else:
            snap = ledger.sell(req.symbol, req.quantity, req.price)
        return {"status": "filled", "wallet": snap}

    @app.post("/wallet/deposit")
    def deposit(req: CashRequest):
        return ledger.deposit(req.amount)

    @app.post("/wallet/withdraw")
    def withdraw(req: CashRequest):
        return ledger.withdraw(req.amount)

    @app.get("/trades")
    def trade_history(limit: Optional[int] = None):
        if trades is None:
            return []
        return [asdict(t) for t in trades.recent(limit)]

    @app.get("/transactions")
    def transaction_history(limit: Optional[int] = None):
        if transactions is None:
            return []
        return [asdict(t) for t in transactions.recent(limit)]

    @app.get("/market/tickers")
    def tickers():
        if feed is None:
            raise HTTPException(status_code=404, detail="market data disabled")
        return feed.fetch_tickers(feed.config.symbols)

    @app.get("/market/orderbook")
    def order_book(symbol: str, limit: int = 10):
        if feed is None:
            raise HTTPException(status_code=404, detail="market data disabled")
        return feed.fetch_order_book(symbol, limit=limit)

    return app
