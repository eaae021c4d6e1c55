"""Benchmarked call weights for the oracle pallet."""

from __future__ import annotations

from dataclasses import dataclass, field

WEIGHT_MAX = (1 << 64) - 1


def _saturate(value: int) -> int:
    return min(value, WEIGHT_MAX)


@dataclass(frozen=True)
class DbWeight:
    """Cost of a single storage read and write; defaults are the RocksDB figures."""

    read: int = 25_000_000
    write: int = 100_000_000

    def reads(self, n: int) -> int:
        return _saturate(self.read * n)

    def writes(self, n: int) -> int:
        return _saturate(self.write * n)


@dataclass(frozen=True)
class WeightInfo:
    """Weights of the oracle calls for a given database cost."""

    db: DbWeight = field(default_factory=DbWeight)

    def _weight(self, base: int, reads: int, writes: int, per_item: int = 0, p: int = 0) -> int:
        return _saturate(base + _saturate(per_item * p) + self.db.reads(reads) + self.db.writes(writes))

    def add_asset_and_info(self) -> int:
        return self._weight(33_000_000, 1, 2)

    def set_signer(self) -> int:
        return self._weight(134_000_000, 3, 3)

    def add_stake(self) -> int:
        return self._weight(219_457_000, 3, 2)

    def remove_stake(self) -> int:
        return self._weight(42_512_000, 2, 2)

    def reclaim_stake(self) -> int:
        return self._weight(51_245_000, 3, 3)

    def submit_price(self, p: int) -> int:
        return self._weight(85_274_000, 4, 1, 254_000, p)

    def update_pre_prices(self, p: int) -> int:
        return self._weight(11_336_000, 1, 1, 238_000, p)

    def update_price(self, p: int) -> int:
        return self._weight(0, 2, 3, 22_017_000, p)