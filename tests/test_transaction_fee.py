import pytest

from palletsim.balances import BalanceError, Tokens
from palletsim.fee_adjustment import TargetedFeeAdjustment
from palletsim.fixed import FixedU128, Perbill, Perquintill
from palletsim.transaction_fee import (
    BALANCE_MAX,
    WEIGHT_MAX,
    BlockWeights,
    ChargeTransactionFee,
    CurrencyId,
    DispatchClass,
    DispatchInfo,
    FeeCollector,
    FeeDetails,
    InclusionFee,
    InvalidTransaction,
    Pays,
    PostDispatchInfo,
    RuntimeDispatchInfo,
    TransactionFeePallet,
)

U32_MAX = (1 << 32) - 1


def build(balance=(CurrencyId.LAYR, 1), base_weight=0, byte_fee=1, weight_fee=1):
    tokens = Tokens(existential_deposit=1)
    currency, amount = balance
    if amount > 0:
        for who in range(1, 7):
            tokens.deposit(currency, who, amount)

    def dex(from_asset, from_account, to_asset, to_account, to_amount, slippage):
        tokens.deposit(to_asset, to_account, to_amount)
        return 1

    return TransactionFeePallet(
        tokens,
        dex=dex,
        collector=FeeCollector(),
        block_weights=BlockWeights(base_extrinsic=base_weight),
        transaction_byte_fee=byte_fee,
        weight_fee=weight_fee,
    )


def charge(pallet, tip=0, asset_id=None):
    return ChargeTransactionFee(pallet, tip, Perbill(0), asset_id)


def layr(pallet, who):
    return pallet.tokens.free_balance(CurrencyId.LAYR, who)


def test_can_pay_fees_easily():
    pallet = build(balance=(CurrencyId.LAYR, 100), base_weight=5)
    charge(pallet).pre_dispatch(1, DispatchInfo(weight=10), 10)
    fees = 10 + 10 + 5
    assert layr(pallet, 1) == 100 - fees
    assert pallet.collector.tip_total == 0
    assert pallet.collector.fee_total == 0


def test_refund_on_post_dispatch():
    pallet = build(balance=(CurrencyId.LAYR, 100), base_weight=5)
    info = DispatchInfo(weight=10)
    ext = charge(pallet)
    pre = ext.pre_dispatch(1, info, 10)
    fees = 10 + 10 + 5
    assert layr(pallet, 1) == 100 - fees
    assert pallet.collector.fee_total == 0
    ext.post_dispatch(pre, info, PostDispatchInfo(actual_weight=5), 10)
    assert pallet.collector.tip_total == 0
    assert pallet.collector.fee_total == 20
    assert layr(pallet, 1) == 100 - (fees - 5)


def test_can_swap_to_pay_fees():
    pallet = build(balance=(CurrencyId.PICA, 100), base_weight=5)
    info = DispatchInfo(weight=10)
    assert layr(pallet, 1) == 0
    ext = charge(pallet, asset_id=CurrencyId.PICA)
    pre = ext.pre_dispatch(1, info, 10)
    assert pallet.collector.fee_total == 0
    ext.post_dispatch(pre, info, PostDispatchInfo(actual_weight=10), 10)
    assert pallet.collector.tip_total == 0
    assert pallet.collector.fee_total == 25
    assert layr(pallet, 1) == 1


def test_without_asset_and_without_native_funds_is_rejected():
    pallet = build(balance=(CurrencyId.PICA, 100), base_weight=5)
    with pytest.raises(InvalidTransaction) as excinfo:
        charge(pallet).pre_dispatch(1, DispatchInfo(weight=10), 10)
    assert excinfo.value.reason == "Payment"


def test_can_pay_fee_raises_without_funds():
    pallet = build(balance=(CurrencyId.PICA, 100))
    with pytest.raises(BalanceError):
        pallet.can_pay_fee(1, 10, Perbill(0), None)


def test_compute_fee_does_not_overflow():
    pallet = build(base_weight=100, byte_fee=10)
    info = DispatchInfo(WEIGHT_MAX, DispatchClass.OPERATIONAL, Pays.YES)
    assert pallet.compute_fee(U32_MAX, info, BALANCE_MAX) == BALANCE_MAX


def test_signed_extension_transaction_payment_is_bounded():
    pallet = build(balance=(CurrencyId.LAYR, 10000), byte_fee=0)
    pre = charge(pallet).pre_dispatch(1, DispatchInfo(weight=WEIGHT_MAX), 10)
    assert pre.fee == pallet.block_weights.max_block
    assert layr(pallet, 1) == 10000 - pallet.block_weights.max_block


def test_signed_ext_length_fee_is_also_updated_per_congestion():
    pallet = build(balance=(CurrencyId.LAYR, 100), base_weight=5)
    pallet.next_fee_multiplier = FixedU128.from_rational(3, 2)
    charge(pallet, tip=10).pre_dispatch(1, DispatchInfo(weight=3), 10)
    assert layr(pallet, 1) == 100 - 10 - 5 - 10 - (3 * 3 // 2)


def test_query_info_works():
    pallet = build(base_weight=5, weight_fee=2)
    pallet.next_fee_multiplier = FixedU128.from_rational(3, 2)
    info = DispatchInfo(weight=2000)
    length = 25
    expected = 5 * 2 + length + min(info.weight, pallet.block_weights.max_block) * 2 * 3 // 2
    assert pallet.query_info(info, length) == RuntimeDispatchInfo(
        info.weight, info.dispatch_class, expected
    )


def test_query_fee_details_has_all_parts():
    pallet = build(base_weight=5, byte_fee=2)
    details = pallet.query_fee_details(DispatchInfo(weight=7), 3)
    assert details == FeeDetails(InclusionFee(5, 6, 7), 0)
    assert details.final_fee() == 18


def test_compute_fee_works_without_multiplier():
    pallet = build(base_weight=100, byte_fee=10)
    assert pallet.next_fee_multiplier == FixedU128.from_integer(1)
    free = DispatchInfo(0, DispatchClass.OPERATIONAL, Pays.NO)
    assert pallet.compute_fee(0, free, 10) == 10
    paying = DispatchInfo(0, DispatchClass.OPERATIONAL, Pays.YES)
    assert pallet.compute_fee(0, paying, 0) == 100
    assert pallet.compute_fee(0, paying, 69) == 169
    assert pallet.compute_fee(42, paying, 0) == 520
    weighted = DispatchInfo(1000, DispatchClass.OPERATIONAL, Pays.YES)
    assert pallet.compute_fee(0, weighted, 0) == 1100


def test_compute_fee_works_with_multiplier():
    pallet = build(base_weight=100, byte_fee=10)
    pallet.next_fee_multiplier = FixedU128.from_rational(3, 2)
    paying = DispatchInfo(0, DispatchClass.OPERATIONAL, Pays.YES)
    assert pallet.compute_fee(0, paying, 0) == 100
    info = DispatchInfo(123, DispatchClass.OPERATIONAL, Pays.YES)
    assert pallet.compute_fee(456, info, 789) == 100 + (3 * 123 // 2) + 4560 + 789


def test_compute_fee_works_with_negative_multiplier():
    pallet = build(base_weight=100, byte_fee=10)
    pallet.next_fee_multiplier = FixedU128.from_rational(1, 2)
    paying = DispatchInfo(0, DispatchClass.OPERATIONAL, Pays.YES)
    assert pallet.compute_fee(0, paying, 0) == 100
    info = DispatchInfo(123, DispatchClass.OPERATIONAL, Pays.YES)
    assert pallet.compute_fee(456, info, 789) == 100 + (123 // 2) + 4560 + 789


def test_refund_does_not_recreate_account():
    pallet = build(balance=(CurrencyId.LAYR, 200), base_weight=5)
    length = 10
    info = DispatchInfo(weight=100)
    post = PostDispatchInfo(actual_weight=50)
    ext = charge(pallet, tip=5)
    pre = ext.pre_dispatch(1, info, length)
    assert layr(pallet, 1) == 200 - 5 - 10 - 100 - 5
    native = pallet.tokens.currency(CurrencyId.LAYR)
    native.transfer(1, 2, layr(pallet, 1))
    assert layr(pallet, 1) == 0
    assert layr(pallet, 2) == 200 + 80
    assert 1 in native.killed
    ext.post_dispatch(pre, info, post, length)
    assert layr(pallet, 1) == 0


def test_actual_weight_higher_than_max_refunds_nothing():
    pallet = build(balance=(CurrencyId.LAYR, 200), base_weight=5)
    length = 10
    info = DispatchInfo(weight=100)
    ext = charge(pallet, tip=5)
    pre = ext.pre_dispatch(2, info, length)
    assert layr(pallet, 2) == 200 - 5 - 10 - 100 - 5
    ext.post_dispatch(pre, info, PostDispatchInfo(actual_weight=101), length)
    assert layr(pallet, 2) == 200 - 5 - 10 - 100 - 5


def test_zero_transfer_on_free_transaction():
    pallet = build(balance=(CurrencyId.LAYR, 100), base_weight=5)
    info = DispatchInfo(100, DispatchClass.NORMAL, Pays.NO)
    user = 69
    ext = charge(pallet)
    pre = ext.pre_dispatch(user, info, 10)
    assert pre.imbalance is None
    assert pallet.tokens.currency(CurrencyId.LAYR).total_balance(user) == 0
    ext.post_dispatch(pre, info, PostDispatchInfo(), 10)
    assert pallet.tokens.currency(CurrencyId.LAYR).total_balance(user) == 0
    assert pallet.collector == FeeCollector(0, 0)
    assert pallet.tokens.currency(CurrencyId.LAYR).killed == []


def test_refund_consistent_with_actual_weight():
    pallet = build(balance=(CurrencyId.LAYR, 1000), base_weight=7)
    info = DispatchInfo(weight=100)
    post_info = PostDispatchInfo(actual_weight=33)
    prev = layr(pallet, 2)
    length, tip = 10, 5
    pallet.next_fee_multiplier = FixedU128.from_rational(5, 4)
    ext = charge(pallet, tip=tip)
    pre = ext.pre_dispatch(2, info, length)
    ext.post_dispatch(pre, info, post_info, length)
    refund_based_fee = prev - layr(pallet, 2)
    actual_fee = pallet.compute_actual_fee(length, info, post_info, tip)
    assert actual_fee == 7 + 10 + (33 * 5 // 4) + 5
    assert refund_based_fee == actual_fee
    assert pallet.collector.tip_total == tip
    assert pallet.collector.fee_total + pallet.collector.tip_total == actual_fee


def test_post_info_can_change_pays_fee():
    pallet = build(balance=(CurrencyId.LAYR, 1000), base_weight=7)
    info = DispatchInfo(weight=100)
    post_info = PostDispatchInfo(pays_fee=Pays.NO)
    prev = layr(pallet, 2)
    length, tip = 10, 5
    pallet.next_fee_multiplier = FixedU128.from_rational(5, 4)
    ext = charge(pallet, tip=tip)
    pre = ext.pre_dispatch(2, info, length)
    ext.post_dispatch(pre, info, post_info, length)
    refund_based_fee = prev - layr(pallet, 2)
    actual_fee = pallet.compute_actual_fee(length, info, post_info, tip)
    assert actual_fee == 5
    assert refund_based_fee == actual_fee


def test_post_dispatch_info_helpers():
    info = DispatchInfo(weight=100)
    assert PostDispatchInfo(actual_weight=40).calc_actual_weight(info) == 40
    assert PostDispatchInfo(actual_weight=400).calc_actual_weight(info) == 100
    assert PostDispatchInfo().calc_actual_weight(info) == 100
    assert PostDispatchInfo().pays_fee_for(info) is Pays.YES
    assert PostDispatchInfo(pays_fee=Pays.NO).pays_fee_for(info) is Pays.NO
    assert PostDispatchInfo().pays_fee_for(DispatchInfo(pays_fee=Pays.NO)) is Pays.NO


def test_final_fee_saturates():
    details = FeeDetails(InclusionFee(BALANCE_MAX, 1, 1), 1)
    assert details.final_fee() == BALANCE_MAX
    assert FeeDetails(None, 7).final_fee() == 7


def test_priority_prefers_lighter_transactions():
    pallet = build(balance=(CurrencyId.LAYR, 1000))
    ext = charge(pallet)
    light = ext.priority(10, DispatchInfo(weight=10), 25)
    heavy = ext.priority(10, DispatchInfo(weight=500), 25)
    assert light == 25 * (1024 // 10)
    assert heavy < light


def test_validate_returns_priority_and_charges():
    pallet = build(balance=(CurrencyId.LAYR, 100), base_weight=5)
    priority = charge(pallet).validate(1, DispatchInfo(weight=10), 10)
    assert priority == 25 * (1024 // 10)
    assert layr(pallet, 1) == 75


def test_on_finalize_without_update_resets_multiplier():
    pallet = build()
    pallet.on_finalize(500)
    assert pallet.next_fee_multiplier == FixedU128()


def test_on_finalize_follows_block_fullness():
    update = TargetedFeeAdjustment(
        target=Perquintill.from_percent(25),
        variability=FixedU128.from_rational(1, 10),
        minimum=FixedU128.from_rational(1, 10),
    )
    full = build()
    full.fee_multiplier_update = update
    full.on_finalize(1024)
    assert full.next_fee_multiplier > FixedU128.from_integer(1)

    empty = build()
    empty.fee_multiplier_update = update
    empty.on_finalize(0)
    assert empty.next_fee_multiplier < FixedU128.from_integer(1)
    assert empty.next_fee_multiplier >= update.minimum