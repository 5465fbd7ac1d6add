"""Core simulation engine components."""

from fanoutsim.core.callback_entity import CallbackEntity
from fanoutsim.core.clock import Clock
from fanoutsim.core.entity import Entity
from fanoutsim.core.event import Event
from fanoutsim.core.event_heap import EventHeap
from fanoutsim.core.temporal import Instant

__all__ = [
    "CallbackEntity",
    "Clock",
    "Entity",
    "Event",
    "EventHeap",
    "Instant",
]
