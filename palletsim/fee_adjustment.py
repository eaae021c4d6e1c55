"""Per-block update of the transaction fee multiplier according to block fullness."""

from __future__ import annotations

from dataclasses import dataclass

from palletsim.fixed import FixedU128, Perquintill


@dataclass(frozen=True)
class TargetedFeeAdjustment:
    """Move the fee multiplier towards a target block saturation.

    With ``diff = (s - s') / m`` and variability ``v`` the next multiplier is
    ``prev * (1 + v*diff + (v*diff)^2 / 2)``, never below ``minimum``.
    """

    target: Perquintill = Perquintill(0)
    variability: FixedU128 = FixedU128(0)
    minimum: FixedU128 = FixedU128(0)

    def convert(
        self, previous: FixedU128, normal_block_weight: int, normal_max_weight: int
    ) -> FixedU128:
        minimum = self.minimum
        previous = max(previous, minimum)
        block_weight = min(normal_block_weight, normal_max_weight)
        target_weight = self.target.mul_floor(normal_max_weight)

        positive = block_weight >= target_weight
        diff_abs = abs(block_weight - target_weight)

        diff = FixedU128.from_rational(diff_abs, max(normal_max_weight, 1))
        diff_squared = diff.saturating_mul(diff)

        v = self.variability
        v_squared_2 = v.saturating_mul(v).saturating_div_int(2)

        first_term = v.saturating_mul(diff)
        second_term = v_squared_2.saturating_mul(diff_squared)

        if positive:
            excess = first_term.saturating_add(second_term).saturating_mul(previous)
            return max(previous.saturating_add(excess), minimum)
        negative = first_term.saturating_sub(second_term).saturating_mul(previous)
        return max(previous.saturating_sub(negative), minimum)