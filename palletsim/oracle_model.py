"""Records, errors, events and pure price aggregation of the price oracle."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Sequence

from palletsim.fixed import U128_MAX, Percent


class OracleErrorKind(enum.Enum):
    UNKNOWN = "Unknown"
    NO_PERMISSION = "NoPermission"
    NO_STAKE = "NoStake"
    STAKE_LOCKED = "StakeLocked"
    NOT_ENOUGH_STAKE = "NotEnoughStake"
    NOT_ENOUGH_FUNDS = "NotEnoughFunds"
    INVALID_ASSET_ID = "InvalidAssetId"
    ALREADY_SUBMITTED = "AlreadySubmitted"
    MAX_PRICES = "MaxPrices"
    PRICE_NOT_REQUESTED = "PriceNotRequested"
    UNSET_SIGNER = "UnsetSigner"
    ALREADY_SET = "AlreadySet"
    UNSET_CONTROLLER = "UnsetController"
    CONTROLLER_USED = "ControllerUsed"
    SIGNER_USED = "SignerUsed"
    AVOID_PANIC = "AvoidPanic"
    EXCEED_MAX_ANSWERS = "ExceedMaxAnswers"
    INVALID_MIN_ANSWERS = "InvalidMinAnswers"
    MAX_ANSWERS_LESS_THAN_MIN_ANSWERS = "MaxAnswersLessThanMinAnswers"
    EXCEED_THRESHOLD = "ExceedThreshold"
    EXCEED_ASSETS_COUNT = "ExceedAssetsCount"
    PRICE_NOT_FOUND = "PriceNotFound"
    EXCEED_STAKE = "ExceedStake"
    MUST_SUM_TO_100 = "MustSumTo100"
    DEPTH_TOO_LARGE = "DepthTooLarge"
    ARITHMETIC_ERROR = "ArithmeticError"
    BLOCK_INTERVAL_LENGTH = "BlockIntervalLength"


class OracleError(Exception):
    """An oracle call was rejected; ``kind`` tells why."""

    def __init__(self, kind: OracleErrorKind) -> None:
        super().__init__(kind.value)
        self.kind = kind


@dataclass(frozen=True)
class Withdraw:
    stake: int = 0
    unlock_block: int = 0


@dataclass(frozen=True)
class PrePrice:
    """A price answer submitted by an oracle, not yet aggregated."""

    price: int
    block: int
    who: Any


@dataclass(frozen=True)
class Price:
    price: int = 0
    block: int = 0


@dataclass(frozen=True)
class AssetInfo:
    """Aggregation settings of an asset."""

    threshold: Percent = field(default_factory=Percent)
    min_answers: int = 0
    max_answers: int = 0
    block_interval: int = 0
    reward: int = 0
    slash: int = 0


@dataclass(frozen=True)
class AssetInfoChange:
    asset_id: int
    threshold: Percent
    min_answers: int
    max_answers: int
    block_interval: int
    reward: int
    slash: int


@dataclass(frozen=True)
class SignerSet:
    signer: Any
    controller: Any


@dataclass(frozen=True)
class StakeAdded:
    added_by: Any
    amount_added: int
    total_amount: int


@dataclass(frozen=True)
class StakeRemoved:
    removed_by: Any
    amount: int
    block_number: int


@dataclass(frozen=True)
class StakeReclaimed:
    reclaimed_by: Any
    amount: int


@dataclass(frozen=True)
class PriceSubmitted:
    oracle: Any
    asset_id: int
    price: int


@dataclass(frozen=True)
class UserSlashed:
    oracle: Any
    asset_id: int
    amount: int


@dataclass(frozen=True)
class UserRewarded:
    oracle: Any
    asset_id: int
    amount: int


@dataclass(frozen=True)
class AnswerPruned:
    oracle: Any
    price: int


def median_price(prices: Sequence[PrePrice]) -> int | None:
    """Median of the submitted prices; the mean of the middle two when even, rounded down."""
    if not prices:
        return None
    numbers = sorted(p.price for p in prices)
    mid = len(numbers) // 2
    if len(numbers) % 2 == 0:
        return min(numbers[mid - 1] + numbers[mid], U128_MAX) // 2
    return numbers[mid]


def prune_old_pre_prices(
    asset_info: AssetInfo,
    pre_prices: Sequence[PrePrice],
    block: int,
    stale_price: int,
) -> tuple[list[PrePrice], list[PrePrice]]:
    """Split answers into stale and fresh ones, keeping at most ``max_answers`` fresh ones.

    Everything before the first answer not older than ``block - stale_price`` is stale.
    """
    stale_block = max(block - stale_price, 0)
    index = next(
        (i for i, p in enumerate(pre_prices) if p.block >= stale_block), len(pre_prices)
    )
    stale = list(pre_prices[:index])
    fresh = list(pre_prices[index:])
    if len(fresh) > asset_info.max_answers:
        fresh = fresh[: asset_info.max_answers]
    return stale, fresh