from decimal import Decimal

import pytest

from paperwallet.wallet.errors import InsufficientFunds, InsufficientPosition, InvalidOrder, LedgerError
from paperwallet.wallet.ledger import WalletLedger
from paperwallet.wallet.store import MemoryStore
from paperwallet.history.journal import TradeJournal, TransactionJournal


def make_ledger(cash=10_000, positions=None, **kw):
    store = MemoryStore({"cash": cash, "positions": positions or {}})
    return WalletLedger(store, **kw), store


def test_first_access_creates_default_wallet():
    store = MemoryStore()
    led = WalletLedger(store, default_cash=10_000)
    snap = led.snapshot()
    assert snap == {"cash": Decimal(10_000), "positions": {}}
    # default wallet was persisted on first access
    assert store.load() == {"cash": Decimal(10_000), "positions": {}}


def test_buy_debits_cash_and_opens_position():
    led, _ = make_ledger()
    snap = led.buy("BTC", 1, 100)
    assert snap["cash"] == Decimal("9900")
    assert snap["positions"]["BTC"] == {"quantity": Decimal(1), "averageCost": Decimal(100)}


def test_buy_volume_weighted_average():
    led, _ = make_ledger()
    led.buy("BTC", 1, 100)
    snap = led.buy("BTC", 1, 200)
    assert snap["positions"]["BTC"]["quantity"] == 2
    assert snap["positions"]["BTC"]["averageCost"] == 150
    assert snap["cash"] == Decimal("9700")


def test_sell_keeps_average_cost_and_credits_cash():
    led, _ = make_ledger()
    led.buy("ETH", 4, 100)
    led.buy("ETH", 4, 200)
    snap = led.sell("ETH", 3, 500)
    assert snap["positions"]["ETH"]["quantity"] == 5
    assert snap["positions"]["ETH"]["averageCost"] == 150
    assert snap["cash"] == Decimal(10_000) - 1200 + 1500


def test_sell_to_zero_removes_position():
    led, _ = make_ledger()
    led.buy("SOL", "2.5", 20)
    snap = led.sell("SOL", "2.5", 30)
    assert "SOL" not in snap["positions"]
    assert led.balance_of("SOL") == 0
    assert "SOL" not in led.snapshot()["positions"]


def test_fractional_sells_reach_exact_zero():
    led, _ = make_ledger()
    led.buy("BTC", "0.3", 100)
    led.sell("BTC", "0.1", 100)
    led.sell("BTC", "0.1", 100)
    snap = led.sell("BTC", "0.1", 100)
    assert snap["positions"] == {}


def test_buy_insufficient_funds_leaves_state_unchanged():
    led, store = make_ledger(cash=100, positions={"BTC": {"quantity": 1, "averageCost": 50}})
    before = store.raw
    writes = store.writes
    with pytest.raises(InsufficientFunds):
        led.buy("BTC", 2, 51)
    assert store.raw == before
    assert store.writes == writes


def test_buy_spending_exact_cash_is_allowed():
    led, _ = make_ledger(cash=100)
    snap = led.buy("BTC", 2, 50)
    assert snap["cash"] == 0
    assert snap["positions"]["BTC"]["quantity"] == 2


def test_sell_insufficient_position_leaves_state_unchanged():
    led, store = make_ledger(positions={"BTC": {"quantity": "0.5", "averageCost": 100}})
    before = store.raw
    with pytest.raises(InsufficientPosition):
        led.sell("BTC", 1, 100)
    with pytest.raises(InsufficientPosition):
        led.sell("ETH", 1, 100)
    assert store.raw == before


@pytest.mark.parametrize("qty,price", [(0, 100), (-1, 100), (1, 0), (1, -5), ("abc", 1), (1, "nan")])
def test_invalid_order_inputs_rejected(qty, price):
    led, store = make_ledger()
    before = store.raw
    with pytest.raises(InvalidOrder):
        led.buy("BTC", qty, price)
    with pytest.raises(InvalidOrder):
        led.sell("BTC", qty, price)
    assert store.raw == before


def test_invalid_order_is_a_value_error():
    led, _ = make_ledger()
    with pytest.raises(ValueError):
        led.buy("", 1, 1)


def test_scenario_btc_accumulation():
    led, store = make_ledger(cash=10_000)
    snap = led.buy("BTC", "0.1", 50_000)
    assert snap["cash"] == 5000
    assert snap["positions"]["BTC"] == {"quantity": Decimal("0.1"), "averageCost": Decimal(50_000)}

    before = store.raw
    with pytest.raises(InsufficientFunds) as exc:
        led.buy("BTC", "0.1", 60_000)
    assert exc.value.kind == "insufficient_funds"
    assert store.raw == before

    snap = led.buy("BTC", "0.05", 60_000)
    assert snap["cash"] == 2000
    assert snap["positions"]["BTC"]["quantity"] == Decimal("0.15")
    avg = snap["positions"]["BTC"]["averageCost"]
    assert abs(avg - Decimal("53333.3333333333")) < Decimal("1e-6")


def test_valuation_uses_prices_and_falls_back_to_average_cost():
    led, _ = make_ledger(cash=1000, positions={
        "BTC": {"quantity": 2, "averageCost": 100},
        "ETH": {"quantity": 10, "averageCost": 5},
    })
    assert led.valuation({"BTC": 150}) == Decimal(1000 + 2 * 150 + 10 * 5)
    # zero price is treated as unknown
    assert led.valuation({"BTC": 0, "ETH": "7.5"}) == Decimal(1000 + 2 * 100) + Decimal("75")
    assert led.valuation() == Decimal(1000 + 200 + 50)
    # so is a negative one
    assert led.valuation({"BTC": -150, "ETH": "-0.01"}) == Decimal(1000 + 200 + 50)


def test_valuation_and_balance_do_not_write():
    led, store = make_ledger(positions={"BTC": {"quantity": 1, "averageCost": 10}})
    writes = store.writes
    led.valuation({"BTC": 20})
    led.balance_of("BTC")
    assert store.writes == writes
    assert led.balance_of("BTC") == 1
    assert led.balance_of("DOGE") == 0


def test_malformed_store_record_is_replaced_by_default():
    store = MemoryStore({"cash": -5, "positions": {}})
    led = WalletLedger(store, default_cash=2500)
    assert led.snapshot() == {"cash": Decimal(2500), "positions": {}}
    assert store.load()["cash"] == 2500

    store = MemoryStore({"cash": 10, "positions": {"BTC": {"quantity": 0, "averageCost": 1}}})
    assert WalletLedger(store).snapshot()["positions"] == {}

    store = MemoryStore(["not", "a", "wallet"])
    assert WalletLedger(store).snapshot()["cash"] == 10_000


def test_every_mutation_persists_full_state():
    led, store = make_ledger()
    led.buy("BTC", 1, 10)
    assert store.load()["positions"]["BTC"]["quantity"] == 1
    led.sell("BTC", 1, 12)
    assert store.load() == {"cash": Decimal(10_002), "positions": {}}


def test_deposit_and_withdraw():
    led, store = make_ledger(cash=100)
    assert led.deposit("50.5")["cash"] == Decimal("150.5")
    assert led.withdraw(150)["cash"] == Decimal("0.5")
    before = store.raw
    with pytest.raises(InsufficientFunds):
        led.withdraw(1)
    with pytest.raises(InvalidOrder):
        led.deposit(0)
    assert store.raw == before


def test_reset_restores_default():
    led, _ = make_ledger(cash=1, positions={"BTC": {"quantity": 1, "averageCost": 1}}, default_cash=500)
    assert led.reset() == {"cash": Decimal(500), "positions": {}}
    assert led.snapshot()["cash"] == 500


def test_journals_receive_successful_operations_only():
    trades = TradeJournal(cap=10)
    txs = TransactionJournal(cap=50)
    led, _ = make_ledger(cash=1000, trades=trades, transactions=txs)
    led.buy("BTC", 2, 100)
    with pytest.raises(LedgerError):
        led.sell("BTC", 5, 100)
    led.sell("BTC", 1, 110)
    led.deposit(10)
    led.withdraw(5)

    recs = trades.records()
    assert [r.side for r in recs] == ["buy", "sell"]
    assert recs[0].total == 200
    assert recs[1].total == 110
    assert recs[0].id != recs[1].id
    assert [t.type for t in txs.records()] == ["deposit", "withdrawal"]
    assert txs.records()[0].currency == "USDT"


def test_publisher_receives_events():
    events = []
    led, _ = make_ledger(cash=100, publisher=events.append)
    led.buy("BTC", 1, 50)
    with pytest.raises(InsufficientFunds):
        led.buy("BTC", 1, 60)
    led.deposit(5)
    types = [e.event.event_type for e in events]
    assert types == ["trade_executed", "trade_rejected", "cash_moved"]
    assert events[0].event.cash_after == 50.0
    assert events[1].event.reason == "insufficient_funds"


def test_publisher_failure_does_not_affect_trade():
    def boom(env):
        raise RuntimeError("down")

    led, _ = make_ledger(cash=100, publisher=boom)
    snap = led.buy("BTC", 1, 50)
    assert snap["cash"] == 50
