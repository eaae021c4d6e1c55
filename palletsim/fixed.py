"""Fixed-point multipliers and per-thing ratios with saturating arithmetic."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

U128_MAX = (1 << 128) - 1


def _saturate(value: int) -> int:
    return max(0, min(value, U128_MAX))


@dataclass(frozen=True, order=True)
class FixedU128:
    """Unsigned fixed-point number with 18 decimal places, bounded to 128 bits."""

    inner: int = 0
    DIV: ClassVar[int] = 10**18

    def __post_init__(self) -> None:
        if not 0 <= self.inner <= U128_MAX:
            raise ValueError(f"inner value {self.inner} out of range")

    @classmethod
    def from_integer(cls, n: int) -> FixedU128:
        return cls(_saturate(n * cls.DIV))

    @classmethod
    def from_rational(cls, n: int, d: int) -> FixedU128:
        if d == 0:
            raise ZeroDivisionError("rational with zero denominator")
        return cls(_saturate(n * cls.DIV // d))

    def saturating_add(self, other: FixedU128) -> FixedU128:
        return FixedU128(_saturate(self.inner + other.inner))

    def saturating_sub(self, other: FixedU128) -> FixedU128:
        return FixedU128(_saturate(self.inner - other.inner))

    def saturating_mul(self, other: FixedU128) -> FixedU128:
        return FixedU128(_saturate(self.inner * other.inner // self.DIV))

    def saturating_div_int(self, n: int) -> FixedU128:
        if n == 0:
            raise ZeroDivisionError("division of a fixed-point number by zero")
        return FixedU128(_saturate(self.inner // n))

    def saturating_mul_int(self, n: int) -> int:
        """Multiply an integer by this number, rounding down."""
        return _saturate(n * self.inner // self.DIV)


@dataclass(frozen=True, order=True)
class PerThing:
    """A ratio between zero and one stored as parts of ``ACCURACY``."""

    parts: int = 0
    ACCURACY: ClassVar[int] = 1

    def __post_init__(self) -> None:
        if not 0 <= self.parts <= self.ACCURACY:
            raise ValueError(f"{self.parts} is not within 0..={self.ACCURACY}")

    @classmethod
    def from_percent(cls, percent: int) -> PerThing:
        percent = max(0, min(percent, 100))
        return cls(percent * cls.ACCURACY // 100)

    @classmethod
    def from_rational(cls, n: int, d: int) -> PerThing:
        """Approximate ``n / d``; a zero denominator counts as one and the result saturates at one."""
        d = max(d, 1)
        n = max(0, min(n, d))
        return cls(n * cls.ACCURACY // d)

    def mul_floor(self, value: int) -> int:
        return value * self.parts // self.ACCURACY


class Percent(PerThing):
    ACCURACY: ClassVar[int] = 100


class Perbill(PerThing):
    ACCURACY: ClassVar[int] = 10**9


class Perquintill(PerThing):
    ACCURACY: ClassVar[int] = 10**18