"""Virtual time for the simulation.

Instant is an immutable point on the simulation clock stored as integer
nanoseconds, so that arithmetic on scheduled times never accumulates
floating-point drift. Arithmetic with plain numbers is interpreted as
seconds; the ``*_millis`` helpers exist because the routing model is
expressed in milliseconds throughout.
"""

from __future__ import annotations

from typing import Union

_NANOS_PER_SECOND = 1_000_000_000
_NANOS_PER_MILLI = 1_000_000


class Instant:
    """A point in simulation time with nanosecond resolution.

    Instant.Infinity compares greater than every finite instant and is used
    as an open-ended run horizon.
    """

    __slots__ = ("nanoseconds",)

    Epoch: "Instant"
    Infinity: "Instant"

    def __init__(self, nanoseconds: int | float):
        self.nanoseconds = nanoseconds

    @classmethod
    def from_seconds(cls, seconds: int | float) -> Instant:
        if isinstance(seconds, int):
            return cls(seconds * _NANOS_PER_SECOND)
        return cls(int(round(seconds * _NANOS_PER_SECOND)))

    @classmethod
    def from_millis(cls, millis: int | float) -> Instant:
        if isinstance(millis, int):
            return cls(millis * _NANOS_PER_MILLI)
        return cls(int(round(millis * _NANOS_PER_MILLI)))

    def to_seconds(self) -> float:
        return float(self.nanoseconds) / _NANOS_PER_SECOND

    def to_millis(self) -> float:
        return float(self.nanoseconds) / _NANOS_PER_MILLI

    def is_infinite(self) -> bool:
        return self.nanoseconds == float("inf")

    def after_millis(self, millis: float) -> Instant:
        """Return the instant ``millis`` milliseconds after this one."""
        if self.is_infinite():
            return self
        return Instant(self.nanoseconds + int(round(millis * _NANOS_PER_MILLI)))

    def __add__(self, other: Union[Instant, int, float]) -> Instant:
        if isinstance(other, (int, float)):
            return Instant(self.nanoseconds + int(round(other * _NANOS_PER_SECOND)))
        if isinstance(other, Instant):
            return Instant(self.nanoseconds + other.nanoseconds)
        return NotImplemented

    def __sub__(self, other: Union[Instant, int, float]) -> Instant:
        if isinstance(other, (int, float)):
            return Instant(self.nanoseconds - int(round(other * _NANOS_PER_SECOND)))
        if isinstance(other, Instant):
            return Instant(self.nanoseconds - other.nanoseconds)
        return NotImplemented

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Instant):
            return NotImplemented
        return self.nanoseconds == other.nanoseconds

    def __hash__(self) -> int:
        return hash(self.nanoseconds)

    def __lt__(self, other: Instant) -> bool:
        if not isinstance(other, Instant):
            return NotImplemented
        return self.nanoseconds < other.nanoseconds

    def __le__(self, other: Instant) -> bool:
        if not isinstance(other, Instant):
            return NotImplemented
        return self.nanoseconds <= other.nanoseconds

    def __gt__(self, other: Instant) -> bool:
        if not isinstance(other, Instant):
            return NotImplemented
        return self.nanoseconds > other.nanoseconds

    def __ge__(self, other: Instant) -> bool:
        if not isinstance(other, Instant):
            return NotImplemented
        return self.nanoseconds >= other.nanoseconds

    def __repr__(self) -> str:
        if self.is_infinite():
            return "Instant(Infinity)"
        return f"Instant({self.to_millis():.3f}ms)"


Instant.Epoch = Instant(0)
Instant.Infinity = Instant(float("inf"))
