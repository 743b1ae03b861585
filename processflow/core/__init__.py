"""Simulated time, scheduled callbacks and the run context."""

from processflow.core.clock import Clock
from processflow.core.entity import Entity
from processflow.core.event import DEFAULT_PRIORITY, NOTIFY_PRIORITY, Event
from processflow.core.event_heap import EventHeap
from processflow.core.simulation import Simulation
from processflow.core.temporal import Instant

__all__ = [
    "DEFAULT_PRIORITY",
    "NOTIFY_PRIORITY",
    "Clock",
    "Entity",
    "Event",
    "EventHeap",
    "Instant",
    "Simulation",
]
