"""Work-amount generators and server processing-latency functions.

A work function takes no arguments and returns the declared work amount of
a new request. A latency function maps a work amount to a processing
duration in milliseconds. Both are plain callables so that callers can pass
a lambda; the classes here cover the shapes used by the default topology.
"""

from __future__ import annotations

import math
import random


def normal_random() -> float:
    """Gaussian sample centred on 0.5 with sigma 0.1, clamped to [0, 1].

    Box-Muller transform on two uniforms from (0, 1].
    """
    u = 1.0 - random.random()
    v = 1.0 - random.random()
    x = (5.0 + math.sqrt(-2.0 * math.log(u)) * math.cos(2.0 * math.pi * v)) / 10.0
    return min(max(0.0, x), 1.0)


class ConstantWork:
    """Every request declares the same work amount."""

    def __init__(self, amount: float = 50):
        if amount < 0:
            raise ValueError(f"amount must be non-negative, got {amount}")
        self.amount = amount

    def __call__(self) -> float:
        return self.amount

    def __repr__(self) -> str:
        return f"ConstantWork({self.amount})"


class NormalJitterLatency:
    """``|round(work + jitter * normal_random())|`` milliseconds.

    With the default jitter of 100 and work of 50 the latency ranges over
    roughly 50..150ms, centred on 100ms.
    """

    def __init__(self, jitter_ms: float = 100.0):
        self.jitter_ms = jitter_ms

    def __call__(self, work: float) -> float:
        return abs(round(work + self.jitter_ms * normal_random()))

    def __repr__(self) -> str:
        return f"NormalJitterLatency(jitter_ms={self.jitter_ms})"


class ConstantLatency:
    """Processing takes exactly ``latency_ms`` regardless of work."""

    def __init__(self, latency_ms: float):
        if latency_ms < 0:
            raise ValueError(f"latency_ms must be non-negative, got {latency_ms}")
        self.latency_ms = latency_ms

    def __call__(self, work: float) -> float:
        return self.latency_ms

    def __repr__(self) -> str:
        return f"ConstantLatency({self.latency_ms})"


class ProportionalLatency:
    """Processing time equal to the declared work amount."""

    def __call__(self, work: float) -> float:
        return max(0.0, work)

    def __repr__(self) -> str:
        return "ProportionalLatency()"
