"""A staked price oracle: signers submit prices that are aggregated every block."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Hashable

from palletsim.balances import BalanceError, Balances, ExistenceRequirement
from palletsim.fixed import U128_MAX, Percent
from palletsim.oracle_model import (
    AnswerPruned,
    AssetInfo,
    AssetInfoChange,
    OracleError,
    OracleErrorKind,
    Price,
    PrePrice,
    PriceSubmitted,
    SignerSet,
    StakeAdded,
    StakeReclaimed,
    StakeRemoved,
    UserRewarded,
    UserSlashed,
    Withdraw,
    median_price,
    prune_old_pre_prices,
)
from palletsim.origin import BadOrigin, Origin
from palletsim.price_feed import PriceFetchError, fetch_price
from palletsim.weights import WeightInfo

log = logging.getLogger(__name__)

PriceFetcher = Callable[[int], int]
_PRECISION = 100


@dataclass(frozen=True)
class OracleConfig:
    """Limits and parameters of the oracle."""

    min_stake: int = 10
    stake_lock: int = 2
    stale_price: int = 3
    max_answer_bound: int = 5
    max_assets_count: int = 2
    max_history: int = 3
    weight_info: WeightInfo = field(default_factory=WeightInfo)


class Oracle:
    """Oracle state: assets, signers and their stakes, submitted and aggregated prices."""

    def __init__(self, config: OracleConfig | None = None, currency: Balances | None = None) -> None:
        self.config = config or OracleConfig()
        self.currency = currency if currency is not None else Balances()
        self.block_number = 0
        self.assets_count = 0
        self.signer_to_controller: dict[Hashable, Any] = {}
        self.controller_to_signer: dict[Hashable, Any] = {}
        self.declared_withdraws: dict[Hashable, Withdraw] = {}
        self.oracle_stake: dict[Hashable, int] = {}
        self.prices: dict[int, Price] = {}
        self.price_history: dict[int, list[Price]] = {}
        self.pre_prices: dict[int, list[PrePrice]] = {}
        self.assets_info: dict[int, AssetInfo] = {}
        self.events: list[object] = []

    def set_block_number(self, block: int) -> None:
        self.block_number = block

    def _asset_info(self, asset_id: int) -> AssetInfo:
        return self.assets_info.get(asset_id, AssetInfo())

    def _current_price(self, asset_id: int) -> Price:
        return self.prices.get(asset_id, Price())

    def _signer_of(self, controller: Hashable) -> Any:
        if controller not in self.controller_to_signer:
            raise OracleError(OracleErrorKind.UNSET_SIGNER)
        return self.controller_to_signer[controller]

    # Calls

    def add_asset_and_info(
        self,
        origin: Origin,
        asset_id: int,
        threshold: Percent,
        min_answers: int,
        max_answers: int,
        block_interval: int,
        reward: int,
        slash: int,
    ) -> None:
        """Register or change an asset; only root may do this."""
        origin.ensure_root()
        if min_answers <= 0:
            raise OracleError(OracleErrorKind.INVALID_MIN_ANSWERS)
        if max_answers < min_answers:
            raise OracleError(OracleErrorKind.MAX_ANSWERS_LESS_THAN_MIN_ANSWERS)
        if not threshold < Percent.from_percent(100):
            raise OracleError(OracleErrorKind.EXCEED_THRESHOLD)
        if max_answers > self.config.max_answer_bound:
            raise OracleError(OracleErrorKind.EXCEED_MAX_ANSWERS)
        if block_interval <= self.config.stale_price:
            raise OracleError(OracleErrorKind.BLOCK_INTERVAL_LENGTH)
        if self.assets_count >= self.config.max_assets_count:
            raise OracleError(OracleErrorKind.EXCEED_ASSETS_COUNT)
        self.assets_info[asset_id] = AssetInfo(
            threshold, min_answers, max_answers, block_interval, reward, slash
        )
        self.assets_count += 1
        self.events.append(
            AssetInfoChange(
                asset_id, threshold, min_answers, max_answers, block_interval, reward, slash
            )
        )

    def set_signer(self, origin: Origin, signer: Hashable) -> None:
        """Tie a signer to the calling controller and stake the minimum for it."""
        who = origin.ensure_signed()
        if who in self.controller_to_signer:
            raise OracleError(OracleErrorKind.CONTROLLER_USED)
        if signer in self.signer_to_controller:
            raise OracleError(OracleErrorKind.SIGNER_USED)
        self.do_add_stake(who, signer, self.config.min_stake)
        self.controller_to_signer[who] = signer
        self.signer_to_controller[signer] = who
        self.events.append(SignerSet(signer, who))

    def add_stake(self, origin: Origin, stake: int) -> None:
        who = origin.ensure_signed()
        signer = self._signer_of(who)
        self.do_add_stake(who, signer, stake)

    def remove_stake(self, origin: Origin) -> None:
        """Declare a withdrawal of the signer's whole stake, unlocked after the stake lock."""
        who = origin.ensure_signed()
        signer = self._signer_of(who)
        unlock_block = self.block_number + self.config.stake_lock
        if signer not in self.oracle_stake:
            raise OracleError(OracleErrorKind.NO_STAKE)
        stake = self.oracle_stake.pop(signer)
        self.declared_withdraws[signer] = Withdraw(stake, unlock_block)
        self.events.append(StakeRemoved(signer, stake, unlock_block))

    def reclaim_stake(self, origin: Origin) -> None:
        """Return a declared withdrawal to the controller once it is unlocked."""
        who = origin.ensure_signed()
        signer = self._signer_of(who)
        withdrawal = self.declared_withdraws.get(signer)
        if withdrawal is None:
            raise OracleError(OracleErrorKind.UNKNOWN)
        if not self.block_number > withdrawal.unlock_block:
            raise OracleError(OracleErrorKind.STAKE_LOCKED)
        del self.declared_withdraws[signer]
        self.currency.unreserve(signer, withdrawal.stake)
        try:
            self.currency.transfer(
                signer, who, withdrawal.stake, ExistenceRequirement.ALLOW_DEATH
            )
        except BalanceError as error:
            log.warning("failed to return stake of %r: %s", signer, error)
        self.controller_to_signer.pop(who, None)
        self.signer_to_controller.pop(signer, None)
        self.events.append(StakeReclaimed(signer, withdrawal.stake))

    def submit_price(self, origin: Origin, price: int, asset_id: int) -> None:
        """Record a price answer from a staked signer for a requested asset."""
        who = origin.ensure_signed()
        author_stake = self.oracle_stake.get(who, 0)
        if not self.is_requested(asset_id):
            raise OracleError(OracleErrorKind.PRICE_NOT_REQUESTED)
        if author_stake < self.config.min_stake:
            raise OracleError(OracleErrorKind.NOT_ENOUGH_STAKE)
        current = self.pre_prices.get(asset_id, [])
        if len(current) >= self._asset_info(asset_id).max_answers:
            raise OracleError(OracleErrorKind.MAX_PRICES)
        if any(candidate.who == who for candidate in current):
            raise OracleError(OracleErrorKind.ALREADY_SUBMITTED)
        self.pre_prices[asset_id] = [*current, PrePrice(price, self.block_number, who)]
        self.events.append(PriceSubmitted(who, asset_id, price))

    # Internals

    def do_add_stake(self, who: Hashable, signer: Hashable, stake: int) -> None:
        """Move ``stake`` from the controller to the signer and reserve it there."""
        amount_staked = self.oracle_stake.get(signer, 0) + stake
        if amount_staked > U128_MAX:
            raise OracleError(OracleErrorKind.EXCEED_STAKE)
        self.currency.transfer(who, signer, stake, ExistenceRequirement.KEEP_ALIVE)
        self.currency.reserve(signer, stake)
        self.oracle_stake[signer] = amount_staked
        self.events.append(StakeAdded(signer, stake, amount_staked))

    def handle_payout(self, pre_prices: list[PrePrice], price: int, asset_id: int) -> None:
        """Reward answers close enough to ``price`` and slash the others."""
        asset_info = self._asset_info(asset_id)
        for answer in pre_prices:
            if answer.price < price:
                accuracy = Percent.from_rational(answer.price, price)
            else:
                adjusted = max(price - (answer.price - price), 0)
                accuracy = Percent.from_rational(adjusted, price)
            if accuracy < asset_info.threshold:
                if not self.currency.can_slash(answer.who, asset_info.slash):
                    log.warning("Failed to slash %r", answer.who)
                self.currency.slash(answer.who, asset_info.slash)
                self.events.append(UserSlashed(answer.who, asset_id, asset_info.slash))
            else:
                controller = self.signer_to_controller.get(answer.who, answer.who)
                try:
                    self.currency.deposit_into_existing(controller, asset_info.reward)
                except BalanceError:
                    pass
                self.events.append(UserRewarded(answer.who, asset_id, asset_info.reward))

    def on_initialize(self, block: int) -> int:
        """Start ``block`` and aggregate prices; returns the weight used."""
        self.block_number = block
        return self.update_prices(block)

    def update_prices(self, block: int) -> int:
        weights = self.config.weight_info
        one_read = weights.db.reads(1)
        total_weight = 0
        for asset_id, asset_info in list(self.assets_info.items()):
            total_weight += one_read
            removed, pre_prices = self.update_pre_prices(asset_id, asset_info, block)
            total_weight += weights.update_pre_prices(removed)
            count = len(pre_prices)
            self.update_price(asset_id, asset_info, block, pre_prices)
            total_weight += weights.update_price(count)
        return total_weight

    def update_pre_prices(
        self, asset_id: int, asset_info: AssetInfo, block: int
    ) -> tuple[int, list[PrePrice]]:
        """Prune stale answers; returns how many answers were dropped and the fresh ones."""
        pre_pruned = list(self.pre_prices.get(asset_id, []))
        previous_len = len(pre_pruned)
        pre_prices: list[PrePrice] = []
        if previous_len >= asset_info.min_answers:
            stale, pre_prices = prune_old_pre_prices(
                asset_info, pre_pruned, block, self.config.stale_price
            )
            self.events.extend(AnswerPruned(p.who, p.price) for p in stale)
            self.pre_prices[asset_id] = list(pre_prices)
        return previous_len - len(pre_prices), pre_prices

    def update_price(
        self, asset_id: int, asset_info: AssetInfo, block: int, pre_prices: list[PrePrice]
    ) -> None:
        """Aggregate enough answers into a new price, record history and pay out."""
        if len(pre_prices) < asset_info.min_answers:
            return
        price = median_price(pre_prices)
        if price is None:
            return
        self.prices[asset_id] = Price(price, block)
        history = self.price_history.setdefault(asset_id, [])
        if len(history) < self.config.max_history:
            if self.prices[asset_id].block != 0:
                history.append(Price(price, block))
        else:
            if history:
                history.pop(0)
            history.append(Price(price, block))
        self.pre_prices.pop(asset_id, None)
        self.handle_payout(pre_prices, price, asset_id)

    def is_requested(self, asset_id: int) -> bool:
        """Whether the asset's price is due for an update."""
        last_update = self._current_price(asset_id)
        return last_update.block + self._asset_info(asset_id).block_interval < self.block_number

    def get_price(self, asset_id: int) -> Price:
        if asset_id not in self.prices:
            raise OracleError(OracleErrorKind.PRICE_NOT_FOUND)
        return self.prices[asset_id]

    def get_twap(self, asset_id: int, weights: list[int]) -> int:
        """Weighted average of past prices and the current one; the last weight is the current's."""
        history = self.price_history.get(asset_id, [])
        weights = list(weights)
        if len(history) + 1 < len(weights):
            raise OracleError(OracleErrorKind.DEPTH_TOO_LARGE)
        if min(sum(weights), U128_MAX) != _PRECISION:
            raise OracleError(OracleErrorKind.MUST_SUM_TO_100)
        last_weight = weights.pop() if weights else 0
        if last_weight == 0:
            raise OracleError(OracleErrorKind.ARITHMETIC_ERROR)
        offset = len(history) - len(weights)
        weighted = [
            weight * history[offset + i].price // _PRECISION for i, weight in enumerate(weights)
        ]
        weighted.append(last_weight * self._current_price(asset_id).price // _PRECISION)
        average = min(sum(weighted), U128_MAX)
        if average == 0:
            raise OracleError(OracleErrorKind.ARITHMETIC_ERROR)
        return average

    # Off-chain work

    def fetch_price_and_submit(
        self, asset_id: int, signer: Hashable | None, fetch: PriceFetcher = fetch_price
    ) -> bool:
        """Fetch the asset's price and submit it as ``signer``; returns whether it was accepted."""
        if signer is None:
            raise RuntimeError(
                "No local accounts available. Consider adding one via `author_insertKey` RPC."
            )
        if any(p.who == signer for p in self.pre_prices.get(asset_id, [])):
            raise OracleError(OracleErrorKind.ALREADY_SUBMITTED)
        try:
            price = fetch(asset_id)
        except PriceFetchError as error:
            raise PriceFetchError("Failed to fetch price") from error
        log.info("price %s", price)
        try:
            self.submit_price(Origin.signed(signer), price, asset_id)
        except (OracleError, BalanceError, BadOrigin) as error:
            log.error("[%r] Failed to submit transaction: %s", signer, error)
            return False
        log.info("[%r] Submitted price of %s cents", signer, price)
        return True

    def offchain_worker(
        self, signer: Hashable | None, fetch: PriceFetcher = fetch_price
    ) -> list[int]:
        """Submit prices for every requested asset; returns the assets submitted for."""
        log.info("Offchain worker triggered")
        submitted = []
        for asset_id in list(self.assets_info):
            if not self.is_requested(asset_id):
                continue
            try:
                if self.fetch_price_and_submit(asset_id, signer, fetch):
                    submitted.append(asset_id)
            except (OracleError, PriceFetchError, RuntimeError):
                continue
        return submitted