# palletsim

In-memory, deterministic models of three runtime modules. You can use them for
experiments, simulations and tests without running a node:

- **Oracle** (`palletsim.oracle`). Assets are registered with answer bounds,
  an accuracy threshold, a reward and a slash. A controller binds a signer and
  stakes funds for it. Signers submit prices for assets that are due for an
  update. At the start of each block (`Oracle.on_initialize`) stale answers
  are pruned and enough fresh answers are aggregated to their median. Each
  answer is then rewarded or slashed according to how close it was. Past
  prices feed a time-weighted average (`Oracle.get_twap`).
- **Ping** (`palletsim.ping`). `PingPallet` keeps a list of target
  parachains. At the end of every block it sends a ping to each of them
  through a sender callable, answers incoming pings with pongs, and records
  the pongs that come back.
- **Transaction fees** (`palletsim.transaction_fee`).
  `TransactionFeePallet` computes base, length and multiplier-adjusted weight
  fees. `ChargeTransactionFee` withdraws the fee before dispatch. If the
  native balance falls short, it can first swap another currency into the
  native one through a `dex` callable. After dispatch it refunds unused
  weight and hands the fee and the tip to a `FeeCollector`.

Supporting modules:

- `palletsim.fixed`: saturating fixed-point `FixedU128` and the
  `Percent`, `Perbill` and `Perquintill` ratios.
- `palletsim.balances`: `Balances` and multi-currency `Tokens`, with
  reserves and existential deposits.
- `palletsim.origin`: call origins (root, signed, sibling parachain) and the
  checks made on them.
- `palletsim.weights`: the benchmarked weights of the oracle calls.
- `palletsim.fee_adjustment`: `TargetedFeeAdjustment`, the
  congestion-driven fee multiplier update.
- `palletsim.oracle_model`: the oracle's records, events and errors, plus
  `median_price` and `prune_old_pre_prices`.
- `palletsim.price_feed`: `parse_price`, `price_url` and `fetch_price`,
  which read a price from an HTTP JSON service (by default
  `http://localhost:3001/price/<asset id>`).

## Install

```
pip install palletsim
```

Python 3.10 or newer; no third-party dependencies.

## Example: fees

```python
from palletsim.balances import Tokens
from palletsim.transaction_fee import (
    BlockWeights, ChargeTransactionFee, CurrencyId, DispatchInfo,
    PostDispatchInfo, TransactionFeePallet,
)

tokens = Tokens()
tokens.deposit(CurrencyId.LAYR, 1, 100)
pallet = TransactionFeePallet(tokens, block_weights=BlockWeights(base_extrinsic=5))

charge = ChargeTransactionFee(pallet, tip=0)
info = DispatchInfo(weight=10)

pre = charge.pre_dispatch(1, info, 10)            # base 5 + length 10 + weight 10
assert tokens.free_balance(CurrencyId.LAYR, 1) == 75

charge.post_dispatch(pre, info, PostDispatchInfo(actual_weight=5), 10)
assert tokens.free_balance(CurrencyId.LAYR, 1) == 80   # 5 refunded
assert pallet.collector.fee_total == 20
```

## Example: oracle

```python
from palletsim.fixed import Percent
from palletsim.oracle import Oracle
from palletsim.origin import Origin

oracle = Oracle()
oracle.currency.set_balance(10, 100)

# asset 1: 80% threshold, 1..3 answers, every 5 blocks, reward 1, slash 1
oracle.add_asset_and_info(Origin.root(), 1, Percent.from_percent(80), 1, 3, 5, 1, 1)
oracle.set_signer(Origin.signed(10), 20)     # controller 10 stakes for signer 20

oracle.set_block_number(6)
oracle.submit_price(Origin.signed(20), 100, 1)
oracle.on_initialize(7)

print(oracle.get_price(1))                   # Price(price=100, block=7)
```

`Oracle.offchain_worker` fetches prices for every asset that is due and
submits them as a given signer. By default it uses
`palletsim.price_feed.fetch_price`, and any callable that takes an asset id
and returns a price can take its place.

Errors are raised as exceptions (`OracleError` with an `OracleErrorKind`,
`BalanceError`, `BadOrigin`, `SendError`, `PriceFetchError`,
`InvalidTransaction`). Each pallet appends the events it emits to its
`events` list. The fee pallet reports fees through its collector.

## What it does not do

There is no chain here. There is no node, no networking between parachains,
no persistent storage, no signing of transactions and no command-line tool.
All state lives in Python objects for as long as they exist. The only
network access is the HTTP request made by `palletsim.price_feed.fetch_price`.

## Tests

```
pip install -e .[test]
pytest
```