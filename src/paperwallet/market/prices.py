"""
Public market data via ccxt.

What it does:
- Initializes a ccxt exchange client (public endpoints only, no credentials).
- Fetches last prices, 24h tickers, order books, recent trades and OHLCV
  candles, normalized into plain dicts with `Decimal` prices where they feed
  the wallet.

Where it is used:
- `paperwallet.main` and the API build the `symbol -> price` table passed to
  `WalletLedger.valuation`. Nothing here mutates the wallet.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

import ccxt

from ..config.loader import ExchangeConfig

logger = logging.getLogger(__name__)


def _dec(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    return Decimal(str(value))


class PriceFeed:
    """Thin wrapper around ccxt for the market data the wallet UI needs."""
    def __init__(self, config: Optional[ExchangeConfig] = None, exchange=None):
        self.config = config or ExchangeConfig()
        self.exchange = exchange if exchange is not None else self._init_exchange()

    def _init_exchange(self):
        exchange_class = getattr(ccxt, self.config.name)
        return exchange_class({"enableRateLimit": True, "timeout": self.config.timeout_ms})

    def fetch_price(self, symbol: str) -> Decimal:
        """Last traded price for `symbol` (e.g. 'BTC/USDT')."""
        ticker = self.exchange.fetch_ticker(symbol)
        price = _dec(ticker.get("last"))
        if price is None:
            raise ValueError(f"No last price for {symbol}")
        return price

    def fetch_prices(self, symbols: Iterable[str]) -> Dict[str, Decimal]:
        """Price lookup table for valuation.

        Symbols the exchange does not list, or whose ticker has no last price,
        are omitted so valuation marks them at average cost. ccxt rejects the
        whole `fetch_tickers` call with BadSymbol if any symbol is unknown, so
        they are filtered against the (cached) market list first.
        """
        syms = list(symbols)
        if not syms:
            return {}
        markets = self.exchange.load_markets()
        known = [s for s in syms if s in markets]
        for sym in syms:
            if sym not in markets:
                logger.info(f"{sym} not listed on {self.config.name}; leaving it unpriced")
        if not known:
            return {}
        tickers = self.exchange.fetch_tickers(known)
        prices: Dict[str, Decimal] = {}
        for sym in known:
            px = _dec((tickers.get(sym) or {}).get("last"))
            if px is not None:
                prices[sym] = px
            else:
                logger.debug(f"no last price for {sym}")
        return prices

    def fetch_tickers(self, symbols: Iterable[str]) -> List[Dict[str, Any]]:
        """24h statistics sorted by base volume, highest first."""
        tickers = self.exchange.fetch_tickers(list(symbols))
        rows = [
            {
                "symbol": sym,
                "price": t.get("last"),
                "change": t.get("change"),
                "change_percent": t.get("percentage"),
                "volume": t.get("baseVolume"),
                "high": t.get("high"),
                "low": t.get("low"),
            }
            for sym, t in tickers.items()
        ]
        return sorted(rows, key=lambda r: r["volume"] or 0, reverse=True)

    def fetch_order_book(self, symbol: str, limit: int = 10) -> Dict[str, List[Dict[str, float]]]:
        book = self.exchange.fetch_order_book(symbol, limit=limit)

        def side(levels):
            return [
                {"price": float(px), "quantity": float(qty), "total": float(px) * float(qty)}
                for px, qty, *_ in levels[:limit]
            ]

        return {"bids": side(book.get("bids", [])), "asks": side(book.get("asks", []))}

    def fetch_recent_trades(self, symbol: str, limit: int = 10) -> List[Dict[str, Any]]:
        trades = self.exchange.fetch_trades(symbol, limit=limit)
        return [
            {
                "id": t.get("id"),
                "price": t.get("price"),
                "quantity": t.get("amount"),
                "timestamp": t.get("timestamp"),
                "side": t.get("side"),
            }
            for t in trades
        ]

    def fetch_candles(self, symbol: str, timeframe: str = "1h", limit: int = 24) -> List[Dict[str, Any]]:
        """Fetch recent OHLCV and normalize to dictionaries."""
        candles = self.exchange.fetch_ohlcv(symbol, timeframe=timeframe, limit=limit)
        return [
            {
                "timestamp": c[0],
                "open": c[1],
                "high": c[2],
                "low": c[3],
                "close": c[4],
                "volume": c[5],
            }
            for c in candles
        ]
