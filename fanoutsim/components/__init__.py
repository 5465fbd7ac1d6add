"""Actors and per-link state of the routing model."""

from fanoutsim.components.emitter import Emitter
from fanoutsim.components.garbage_collector import (
    ConcurrentGC,
    GarbageCollector,
    GCStats,
    GCStrategy,
    GenerationalGC,
    Pause,
    StopTheWorld,
)
from fanoutsim.components.link_stats import STARTUP_PENALTY, LinkSnapshot, LinkStats
from fanoutsim.components.request import Direction, Request
from fanoutsim.components.server import Server, ServerSnapshot, ServerStats
from fanoutsim.components.source import Source, SourceSnapshot

__all__ = [
    "STARTUP_PENALTY",
    "ConcurrentGC",
    "Direction",
    "Emitter",
    "GCStats",
    "GCStrategy",
    "GarbageCollector",
    "GenerationalGC",
    "LinkSnapshot",
    "LinkStats",
    "Pause",
    "Request",
    "Server",
    "ServerSnapshot",
    "ServerStats",
    "Source",
    "SourceSnapshot",
    "StopTheWorld",
]
