"""A pallet that pings sibling parachains every block and answers their pings."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from palletsim.origin import Origin


class SendError(Exception):
    """A cross-chain message could not be sent."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


@dataclass(frozen=True)
class XcmCall:
    """A call transacted on a sibling chain."""

    name: str
    seq: int
    payload: bytes
    require_weight_at_most: int = 1_000


@dataclass(frozen=True)
class PingSent:
    para: int
    seq: int
    payload: bytes


@dataclass(frozen=True)
class Pinged:
    para: int
    seq: int
    payload: bytes


@dataclass(frozen=True)
class PongSent:
    para: int
    seq: int
    payload: bytes


@dataclass(frozen=True)
class Ponged:
    para: int
    seq: int
    payload: bytes
    elapsed: int


@dataclass(frozen=True)
class ErrorSendingPing:
    error: SendError
    para: int
    seq: int
    payload: bytes


@dataclass(frozen=True)
class ErrorSendingPong:
    error: SendError
    para: int
    seq: int
    payload: bytes


@dataclass(frozen=True)
class UnknownPong:
    para: int
    seq: int
    payload: bytes


Sender = Callable[[int, XcmCall], None]


class PingPallet:
    """Keeps ping targets and sent pings; ``sender`` delivers calls to a parachain."""

    def __init__(self, sender: Sender) -> None:
        self.sender = sender
        self.targets: list[tuple[int, bytes]] = []
        self.ping_count = 0
        self.pings: dict[int, int] = {}
        self.events: list[object] = []
        self.block_number = 0

    def start(self, origin: Origin, para: int, payload: bytes) -> None:
        origin.ensure_root()
        self.targets.append((para, payload))

    def start_many(self, origin: Origin, para: int, count: int, payload: bytes) -> None:
        origin.ensure_root()
        self.targets.extend((para, payload) for _ in range(count))

    def stop(self, origin: Origin, para: int) -> None:
        """Remove one target of ``para``; the last target takes its place."""
        origin.ensure_root()
        position = next((i for i, (p, _) in enumerate(self.targets) if p == para), None)
        if position is not None:
            last = self.targets.pop()
            if position < len(self.targets):
                self.targets[position] = last

    def stop_all(self, origin: Origin, para: int | None = None) -> None:
        origin.ensure_root()
        if para is None:
            self.targets.clear()
        else:
            self.targets = [t for t in self.targets if t[0] != para]

    def on_finalize(self, block: int) -> None:
        for para, payload in list(self.targets):
            self.ping_count += 1
            seq = self.ping_count
            try:
                self.sender(para, XcmCall("ping", seq, payload))
            except SendError as error:
                self.events.append(ErrorSendingPing(error, para, seq, payload))
            else:
                self.pings[seq] = block
                self.events.append(PingSent(para, seq, payload))

    def ping(self, origin: Origin, seq: int, payload: bytes) -> None:
        para = origin.ensure_sibling_para()
        self.events.append(Pinged(para, seq, payload))
        try:
            self.sender(para, XcmCall("pong", seq, payload))
        except SendError as error:
            self.events.append(ErrorSendingPong(error, para, seq, payload))
        else:
            self.events.append(PongSent(para, seq, payload))

    def pong(self, origin: Origin, seq: int, payload: bytes) -> None:
        para = origin.ensure_sibling_para()
        sent_at = self.pings.pop(seq, None)
        if sent_at is None:
            self.events.append(UnknownPong(para, seq, payload))
        else:
            elapsed = max(self.block_number - sent_at, 0)
            self.events.append(Ponged(para, seq, payload, elapsed))