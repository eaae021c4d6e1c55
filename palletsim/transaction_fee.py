"""Transaction fees: computing, charging, refunding and paying them in another currency."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Callable, Hashable

from palletsim.balances import BalanceError, ExistenceRequirement, Tokens
from palletsim.fee_adjustment import TargetedFeeAdjustment
from palletsim.fixed import FixedU128, Perbill

BALANCE_MAX = (1 << 64) - 1
WEIGHT_MAX = (1 << 64) - 1
# Normal share (75%) of the default 5 MiB block length.
NORMAL_BLOCK_LENGTH = 3_932_160


def _balance(value: int) -> int:
    return max(0, min(value, BALANCE_MAX))


class CurrencyId(enum.Enum):
    LAYR = "LAYR"
    PICA = "PICA"


class Pays(enum.Enum):
    YES = "yes"
    NO = "no"


class DispatchClass(enum.Enum):
    NORMAL = "normal"
    OPERATIONAL = "operational"
    MANDATORY = "mandatory"


class InvalidTransaction(Exception):
    """The transaction cannot be included; ``reason`` tells why."""

    def __init__(self, reason: str = "Payment") -> None:
        super().__init__(reason)
        self.reason = reason


@dataclass(frozen=True)
class DispatchInfo:
    weight: int = 0
    dispatch_class: DispatchClass = DispatchClass.NORMAL
    pays_fee: Pays = Pays.YES


@dataclass(frozen=True)
class PostDispatchInfo:
    """What a call reports after it ran: its actual weight and whether it pays."""

    actual_weight: int | None = None
    pays_fee: Pays = Pays.YES

    def calc_actual_weight(self, info: DispatchInfo) -> int:
        """The actual weight, never more than the weight declared beforehand."""
        if self.actual_weight is None:
            return info.weight
        return min(self.actual_weight, info.weight)

    def pays_fee_for(self, info: DispatchInfo) -> Pays:
        if info.pays_fee is Pays.NO or self.pays_fee is Pays.NO:
            return Pays.NO
        return Pays.YES


@dataclass(frozen=True)
class InclusionFee:
    base_fee: int
    len_fee: int
    adjusted_weight_fee: int


@dataclass(frozen=True)
class FeeDetails:
    inclusion_fee: InclusionFee | None
    tip: int

    def final_fee(self) -> int:
        """The whole fee: inclusion parts plus tip, saturating."""
        if self.inclusion_fee is None:
            return self.tip
        parts = self.inclusion_fee
        return _balance(parts.base_fee + parts.len_fee + parts.adjusted_weight_fee + self.tip)


@dataclass(frozen=True)
class RuntimeDispatchInfo:
    weight: int
    dispatch_class: DispatchClass
    partial_fee: int


@dataclass(frozen=True)
class BlockWeights:
    """Block weight limits; the defaults mirror a block capped at 1024 units."""

    base_extrinsic: int = 0
    max_block: int = 1024
    normal_max_total: int | None = 1024

    @property
    def normal_max_weight(self) -> int:
        return self.max_block if self.normal_max_total is None else self.normal_max_total


@dataclass
class FeeCollector:
    """Receives the fees and tips that were finally paid."""

    fee_total: int = 0
    tip_total: int = 0

    def on_unbalanceds(self, fee: int, tip: int) -> None:
        self.fee_total += fee
        self.tip_total += tip


Exchange = Callable[[CurrencyId, Any, CurrencyId, Any, int, Perbill], int]


class TransactionFeePallet:
    """Fee computation against a native currency, with swaps through ``dex`` when short.

    ``dex(from_asset, from_account, to_asset, to_account, to_amount, slippage)`` must
    deliver ``to_amount`` of ``to_asset`` or raise :class:`BalanceError`.
    Without ``fee_multiplier_update`` the multiplier becomes the default (zero) at the
    end of each block.
    """

    def __init__(
        self,
        tokens: Tokens,
        *,
        dex: Exchange | None = None,
        collector: FeeCollector | None = None,
        native_currency: CurrencyId = CurrencyId.LAYR,
        block_weights: BlockWeights | None = None,
        transaction_byte_fee: int = 1,
        weight_fee: int = 1,
        fee_multiplier_update: TargetedFeeAdjustment | None = None,
        max_normal_length: int = NORMAL_BLOCK_LENGTH,
    ) -> None:
        self.tokens = tokens
        self.dex = dex
        self.collector = collector if collector is not None else FeeCollector()
        self.native_currency = native_currency
        self.block_weights = block_weights or BlockWeights()
        self.transaction_byte_fee = transaction_byte_fee
        self.weight_fee = weight_fee
        self.fee_multiplier_update = fee_multiplier_update
        self.max_normal_length = max_normal_length
        self.next_fee_multiplier = FixedU128.from_integer(1)

    @property
    def native(self):
        return self.tokens.currency(self.native_currency)

    def weight_to_fee(self, weight: int) -> int:
        """Fee for a weight, capped at the maximum block weight."""
        capped = min(weight, self.block_weights.max_block)
        return _balance(capped * self.weight_fee)

    def adjusted_weight_fee(self, weight: int) -> int:
        """Weight fee multiplied by the current fee multiplier."""
        return _balance(self.next_fee_multiplier.saturating_mul_int(self.weight_to_fee(weight)))

    def _compute_fee_raw(
        self, length: int, weight: int, tip: int, pays_fee: Pays, dispatch_class: DispatchClass
    ) -> FeeDetails:
        if pays_fee is not Pays.YES:
            return FeeDetails(None, tip)
        len_fee = _balance(self.transaction_byte_fee * length)
        adjusted = self.adjusted_weight_fee(weight)
        base_fee = self.weight_to_fee(self.block_weights.base_extrinsic)
        return FeeDetails(InclusionFee(base_fee, len_fee, adjusted), tip)

    def compute_fee_details(self, length: int, info: DispatchInfo, tip: int) -> FeeDetails:
        return self._compute_fee_raw(length, info.weight, tip, info.pays_fee, info.dispatch_class)

    def compute_fee(self, length: int, info: DispatchInfo, tip: int) -> int:
        return self.compute_fee_details(length, info, tip).final_fee()

    def compute_actual_fee_details(
        self, length: int, info: DispatchInfo, post_info: PostDispatchInfo, tip: int
    ) -> FeeDetails:
        return self._compute_fee_raw(
            length,
            post_info.calc_actual_weight(info),
            tip,
            post_info.pays_fee_for(info),
            info.dispatch_class,
        )

    def compute_actual_fee(
        self, length: int, info: DispatchInfo, post_info: PostDispatchInfo, tip: int
    ) -> int:
        return self.compute_actual_fee_details(length, info, post_info, tip).final_fee()

    def query_info(self, info: DispatchInfo, length: int) -> RuntimeDispatchInfo:
        return RuntimeDispatchInfo(info.weight, info.dispatch_class, self.compute_fee(length, info, 0))

    def query_fee_details(self, info: DispatchInfo, length: int) -> FeeDetails:
        return self.compute_fee_details(length, info, 0)

    def can_pay_fee(
        self, who: Hashable, fee: int, slippage: Perbill, asset_id: CurrencyId | None
    ) -> None:
        """Make sure ``who`` can pay ``fee`` natively, swapping ``asset_id`` into native if needed."""
        native = self.native
        existential = native.existential_deposit
        total = native.total_balance(who)
        enough = fee + existential <= total and native.free_balance(who) >= fee
        if enough:
            return
        if asset_id is None:
            raise BalanceError("Not enough tokens")
        if self.dex is None:
            raise BalanceError("no exchange available")
        amount = _balance(fee + max(existential - total, 0))
        self.dex(asset_id, who, self.native_currency, who, amount, slippage)

    def on_finalize(self, normal_block_weight: int) -> None:
        """Update the fee multiplier from the weight of the block just built."""
        if self.fee_multiplier_update is None:
            self.next_fee_multiplier = FixedU128()
            return
        self.next_fee_multiplier = self.fee_multiplier_update.convert(
            self.next_fee_multiplier,
            normal_block_weight,
            self.block_weights.normal_max_weight,
        )


@dataclass(frozen=True)
class Pre:
    """What pre-dispatch hands on to post-dispatch."""

    tip: int
    who: Any
    imbalance: int | None
    fee: int


@dataclass(frozen=True)
class ChargeTransactionFee:
    """Charges the sender the fee and an optional tip, optionally paying via another asset."""

    pallet: TransactionFeePallet
    tip: int = 0
    slippage: Perbill = field(default_factory=Perbill)
    asset_id: CurrencyId | None = None

    def _withdraw_fee(self, who: Hashable, info: DispatchInfo, length: int) -> tuple[int, int | None]:
        pallet = self.pallet
        fee = pallet.compute_fee(length, info, self.tip)
        if fee == 0:
            return fee, None
        try:
            pallet.can_pay_fee(who, fee, self.slippage, self.asset_id)
            paid = pallet.native.withdraw(who, fee, ExistenceRequirement.KEEP_ALIVE)
        except BalanceError as error:
            raise InvalidTransaction("Payment") from error
        return fee, paid

    def priority(self, length: int, info: DispatchInfo, final_fee: int) -> int:
        """Fee scaled by how many such transactions would fit in a block."""
        weight_saturation = self.pallet.block_weights.max_block // max(info.weight, 1)
        len_saturation = self.pallet.max_normal_length // max(length, 1)
        coefficient = _balance(min(weight_saturation, len_saturation))
        return _balance(final_fee * coefficient)

    def validate(self, who: Hashable, info: DispatchInfo, length: int) -> int:
        """Withdraw the fee as in pre-dispatch and return the transaction's priority."""
        fee, _ = self._withdraw_fee(who, info, length)
        return self.priority(length, info, fee)

    def pre_dispatch(self, who: Hashable, info: DispatchInfo, length: int) -> Pre:
        fee, imbalance = self._withdraw_fee(who, info, length)
        return Pre(self.tip, who, imbalance, fee)

    def post_dispatch(
        self, pre: Pre, info: DispatchInfo, post_info: PostDispatchInfo, length: int
    ) -> None:
        """Refund what was overpaid and hand the rest to the fee collector."""
        if pre.imbalance is None:
            return
        pallet = self.pallet
        actual_fee = pallet.compute_actual_fee(length, info, post_info, pre.tip)
        refund = max(pre.fee - actual_fee, 0)
        try:
            refunded = pallet.native.deposit_into_existing(pre.who, refund)
        except BalanceError:
            refunded = 0
        if refunded > pre.imbalance:
            raise InvalidTransaction("Payment")
        payment = pre.imbalance - refunded
        tip = min(pre.tip, payment)
        pallet.collector.on_unbalanceds(payment - tip, tip)