"""Call origins and the checks that dispatchable calls perform on them."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any


class BadOrigin(Exception):
    """Raised when a call comes from an origin it does not accept."""


class OriginKind(enum.Enum):
    ROOT = "root"
    SIGNED = "signed"
    SIBLING = "sibling"


@dataclass(frozen=True)
class Origin:
    """Where a call comes from: root, a signed account or a sibling parachain."""

    kind: OriginKind
    account: Any = None
    para: int | None = None

    @classmethod
    def root(cls) -> Origin:
        return cls(OriginKind.ROOT)

    @classmethod
    def signed(cls, account: Any) -> Origin:
        return cls(OriginKind.SIGNED, account=account)

    @classmethod
    def sibling(cls, para: int) -> Origin:
        return cls(OriginKind.SIBLING, para=para)

    def ensure_root(self) -> None:
        if self.kind is not OriginKind.ROOT:
            raise BadOrigin("root origin required")

    def ensure_signed(self) -> Any:
        if self.kind is not OriginKind.SIGNED:
            raise BadOrigin("signed origin required")
        return self.account

    def ensure_sibling_para(self) -> int:
        if self.kind is not OriginKind.SIBLING:
            raise BadOrigin("sibling parachain origin required")
        return self.para