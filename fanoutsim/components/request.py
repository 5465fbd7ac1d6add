"""A unit of work travelling source -> server -> source.

A request is created OUTBOUND. When its network leg elapses it is enqueued
at the destination server; when the server gets to it, the request is
turned around: it is re-timestamped and travels back INBOUND to the
source that sent it. The next network leg completes it.

Time spent queued is never measured from the clock. It is accumulated in
``delay`` by the server as the queue drains, which lets a request be
cancelled mid-flight without desynchronising from the server.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from fanoutsim.utils.ids import get_id


class Direction(Enum):
    OUTBOUND = "outbound"
    INBOUND = "inbound"


@dataclass(eq=False)
class Request:
    """One request and its routing/timing metadata.

    ``source_index`` and ``server_index`` never change; ``direction`` says
    which of the two the current network leg is heading for.

    Attributes:
        work: Declared work amount, fixed at creation.
        source_index: The source that emitted the request.
        server_index: The server chosen by the load balancer.
        send_ms: Start of the current network leg.
        original_send_ms: When the source first sent the request.
        delay_ms: Accumulated non-network delay plus the outbound leg.
        processing_ms: Processing latency assigned when enqueued.
        direction: OUTBOUND until the server turns the request around.
        source_uid: Identity of the emitting Source object, so a request from
            a retired source is not mistaken for one from a newer source
            occupying the same slot.
    """

    work: float
    source_index: int
    server_index: int
    send_ms: float
    original_send_ms: float
    delay_ms: float = 0.0
    processing_ms: float = 0.0
    direction: Direction = Direction.OUTBOUND
    source_uid: str | None = None
    id: str = field(default_factory=get_id)

    @property
    def is_response(self) -> bool:
        return self.direction is Direction.INBOUND

    def turn_around(self, now_ms: float) -> None:
        """Flip to INBOUND and start the return leg at ``now_ms``."""
        self.direction = Direction.INBOUND
        self.send_ms = now_ms

    def add_delay(self, delay_ms: float) -> None:
        self.delay_ms += delay_ms

    def __repr__(self) -> str:
        return (
            f"Request({self.id}, src={self.source_index}, server={self.server_index}, "
            f"{self.direction.value}, delay={self.delay_ms:.1f}ms)"
        )
