"""Single- and multi-currency account balances with reserves and existential deposits."""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from typing import Any, Hashable


class BalanceError(Exception):
    """A balance operation could not be carried out."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class ExistenceRequirement(enum.Enum):
    KEEP_ALIVE = "keep_alive"
    ALLOW_DEATH = "allow_death"


@dataclass(frozen=True)
class _Account:
    free: int = 0
    reserved: int = 0

    @property
    def total(self) -> int:
        return self.free + self.reserved


def _check_amount(amount: int) -> None:
    if amount < 0:
        raise ValueError("amount must not be negative")


class Balances:
    """Balances of one currency.

    An account whose total falls below the existential deposit is removed,
    and its identifier is appended to ``killed``.
    """

    def __init__(self, existential_deposit: int = 1) -> None:
        self.existential_deposit = existential_deposit
        self._accounts: dict[Hashable, _Account] = {}
        self.killed: list[Any] = []

    def _get(self, who: Hashable) -> _Account:
        return self._accounts.get(who, _Account())

    def _store(self, who: Hashable, account: _Account) -> None:
        if account.total == 0 or account.total < self.existential_deposit:
            if who in self._accounts:
                del self._accounts[who]
                self.killed.append(who)
        else:
            self._accounts[who] = account

    def free_balance(self, who: Hashable) -> int:
        return self._get(who).free

    def reserved_balance(self, who: Hashable) -> int:
        return self._get(who).reserved

    def total_balance(self, who: Hashable) -> int:
        return self._get(who).total

    def set_balance(self, who: Hashable, amount: int) -> None:
        """Set the free balance directly."""
        _check_amount(amount)
        self._store(who, replace(self._get(who), free=amount))

    def transfer(
        self,
        source: Hashable,
        dest: Hashable,
        amount: int,
        existence: ExistenceRequirement = ExistenceRequirement.ALLOW_DEATH,
    ) -> None:
        _check_amount(amount)
        if amount == 0 or source == dest:
            return
        src = self._get(source)
        if src.free < amount:
            raise BalanceError("insufficient balance")
        new_src = replace(src, free=src.free - amount)
        if (
            existence is ExistenceRequirement.KEEP_ALIVE
            and new_src.total < self.existential_deposit
        ):
            raise BalanceError("keep alive")
        dst = self._get(dest)
        new_dst = replace(dst, free=dst.free + amount)
        if new_dst.total < self.existential_deposit:
            raise BalanceError("existential deposit")
        self._store(source, new_src)
        self._store(dest, new_dst)

    def reserve(self, who: Hashable, amount: int) -> None:
        _check_amount(amount)
        account = self._get(who)
        if account.free < amount:
            raise BalanceError("insufficient balance")
        if amount:
            self._store(who, _Account(account.free - amount, account.reserved + amount))

    def unreserve(self, who: Hashable, amount: int) -> int:
        """Move up to ``amount`` back to free; returns what could not be unreserved."""
        _check_amount(amount)
        account = self._get(who)
        actual = min(amount, account.reserved)
        if actual:
            self._store(who, _Account(account.free + actual, account.reserved - actual))
        return amount - actual

    def can_slash(self, who: Hashable, amount: int) -> bool:
        return amount == 0 or self.free_balance(who) >= amount

    def slash(self, who: Hashable, amount: int) -> int:
        """Take from free then reserved balance; returns the part that could not be slashed."""
        _check_amount(amount)
        account = self._get(who)
        from_free = min(amount, account.free)
        from_reserved = min(amount - from_free, account.reserved)
        if from_free or from_reserved:
            self._store(
                who, _Account(account.free - from_free, account.reserved - from_reserved)
            )
        return amount - from_free - from_reserved

    def deposit(self, who: Hashable, amount: int) -> int:
        _check_amount(amount)
        if amount == 0:
            return 0
        account = self._get(who)
        new = replace(account, free=account.free + amount)
        if new.total < self.existential_deposit:
            raise BalanceError("existential deposit")
        self._store(who, new)
        return amount

    def deposit_into_existing(self, who: Hashable, amount: int) -> int:
        _check_amount(amount)
        if amount == 0:
            return 0
        if who not in self._accounts:
            raise BalanceError("dead account")
        return self.deposit(who, amount)

    def withdraw(
        self,
        who: Hashable,
        amount: int,
        existence: ExistenceRequirement = ExistenceRequirement.KEEP_ALIVE,
    ) -> int:
        _check_amount(amount)
        if amount == 0:
            return 0
        account = self._get(who)
        if account.free < amount:
            raise BalanceError("insufficient balance")
        new = replace(account, free=account.free - amount)
        if (
            existence is ExistenceRequirement.KEEP_ALIVE
            and new.total < self.existential_deposit
        ):
            raise BalanceError("keep alive")
        self._store(who, new)
        return amount


class Tokens:
    """A set of currencies, each with its own balances."""

    def __init__(self, existential_deposit: int = 1) -> None:
        self.existential_deposit = existential_deposit
        self._currencies: dict[Hashable, Balances] = {}

    def currency(self, currency_id: Hashable) -> Balances:
        if currency_id not in self._currencies:
            self._currencies[currency_id] = Balances(self.existential_deposit)
        return self._currencies[currency_id]

    def free_balance(self, currency_id: Hashable, who: Hashable) -> int:
        return self.currency(currency_id).free_balance(who)

    def deposit(self, currency_id: Hashable, who: Hashable, amount: int) -> int:
        return self.currency(currency_id).deposit(who, amount)