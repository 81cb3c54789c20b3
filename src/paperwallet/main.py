"""
Main entrypoint for paperwallet.

What it does:
- Loads settings from `config/config.yaml` plus `PAPERWALLET_*` env overrides.
- Builds the wallet ledger, trade/transaction journals and (when needed) the
  ccxt price feed from those settings.
- Runs one wallet command (`show`, `buy`, `sell`, `deposit`, `withdraw`,
  `value`, `history`, `reset`) or serves the HTTP API (`serve`).

Where it is used:
- Invoked by the `paperwallet` console script or `python -m paperwallet.main`.
"""
from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import asdict, dataclass
from typing import List, Optional

import ccxt

from .config.loader import DEFAULT_PATH, Settings, load_settings
from .events.bus import EventPublisher
from .history.journal import TradeJournal, TransactionJournal
from .market.prices import PriceFeed
from .metrics.core import start_metrics
from .wallet.errors import LedgerError
from .wallet.ledger import WalletLedger
from .wallet.store import build_store, dumps

logger = logging.getLogger("paperwallet")


@dataclass
class Wallet:
    settings: Settings
    ledger: WalletLedger
    trades: TradeJournal
    transactions: TransactionJournal


def build_wallet(settings: Settings) -> Wallet:
    storage = settings.storage.model_dump()
    trades = TradeJournal(build_store(storage, "trade_history"), cap=settings.history.trades_cap)
    transactions = TransactionJournal(
        build_store(storage, "transaction_history"), cap=settings.history.transactions_cap
    )
    publisher = EventPublisher(settings.events.redis_url, stream=settings.events.stream)
    ledger = WalletLedger(
        build_store(storage, "wallet"),
        default_cash=settings.wallet.default_cash,
        quote_asset=settings.wallet.quote_asset,
        trades=trades,
        transactions=transactions,
        publisher=publisher,
    )
    return Wallet(settings=settings, ledger=ledger, trades=trades, transactions=transactions)


def _price_feed(settings: Settings) -> PriceFeed:
    return PriceFeed(settings.exchange)


def _print(obj) -> None:
    print(dumps(obj))


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="paperwallet", description="Paper-trading wallet")
    ap.add_argument("--config", default=DEFAULT_PATH, help="YAML config path")
    ap.add_argument("--log-level", default="INFO")
    sub = ap.add_subparsers(dest="command", required=True)

    sub.add_parser("show", help="print the wallet snapshot")
    for side in ("buy", "sell"):
        p = sub.add_parser(side, help=f"simulate a {side} at a given price")
        p.add_argument("symbol")
        p.add_argument("quantity")
        p.add_argument("price", nargs="?", help="defaults to the live last price")
    for name in ("deposit", "withdraw"):
        p = sub.add_parser(name, help=f"simulate a cash {name}")
        p.add_argument("amount")
    p = sub.add_parser("value", help="mark the wallet to market")
    p.add_argument("--live", action="store_true", help="fetch current prices from the exchange")
    p.add_argument("--price", action="append", default=[], metavar="SYMBOL=PRICE")
    p = sub.add_parser("history", help="recent trades and cash movements")
    p.add_argument("--limit", type=int, default=None)
    sub.add_parser("reset", help="restore the default wallet")
    sub.add_parser("serve", help="run the HTTP API")
    return ap


def run(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s %(message)s")
    settings = load_settings(args.config)
    w = build_wallet(settings)
    start_metrics(settings.metrics, w.ledger)

    try:
        if args.command == "show":
            _print(w.ledger.snapshot())
        elif args.command in ("buy", "sell"):
            price = args.price
            if price is None:
                price = _price_feed(settings).fetch_price(args.symbol)
                logger.info(f"using live price {price} for {args.symbol}")
            op = w.ledger.buy if args.command == "buy" else w.ledger.sell
            _print(op(args.symbol, args.quantity, price))
        elif args.command == "deposit":
            _print(w.ledger.deposit(args.amount))
        elif args.command == "withdraw":
            _print(w.ledger.withdraw(args.amount))
        elif args.command == "value":
            prices = {}
            if args.live:
                prices = _price_feed(settings).fetch_prices(w.ledger.snapshot()["positions"].keys())
            for item in args.price:
                sym, _, px = item.rpartition("=")
                prices[sym] = px
            _print({"valuation": w.ledger.valuation(prices), "prices": prices})
        elif args.command == "history":
            _print({
                "trades": [asdict(t) for t in w.trades.recent(args.limit)],
                "transactions": [asdict(t) for t in w.transactions.recent(args.limit)],
            })
        elif args.command == "reset":
            _print(w.ledger.reset())
        elif args.command == "serve":
            import uvicorn
            from .api.app import create_app
            app = create_app(w.ledger, _price_feed(settings), w.trades, w.transactions)
            uvicorn.run(app, host=settings.api.host, port=settings.api.port)
    except LedgerError as e:
        print(f"{args.command} failed: {e.message}", file=sys.stderr)
        return 1
    except ccxt.BaseError as e:
        # exchange unreachable or symbol unknown to it
        logger.warning(f"{args.command}: market data request failed: {e}")
        print(f"{args.command} failed: market data unavailable: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"{args.command} failed: {e}", file=sys.stderr)
        return 1
    return 0


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
