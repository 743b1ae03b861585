"""Run context and event loop.

A Simulation owns the entities of one model run, the clock and the event
heap. It is the only scheduler components talk to: they call
``schedule(delay, priority, callback)`` and keep the returned Event as a
cancellation handle.

Cross-references between entities are resolved once, in ``initialize()``,
into explicit back-reference lists (queue users, resource users, downtime
users). Nothing is looked up globally while the run is in progress.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from typing import TypeVar, Union

from processflow.core.clock import Clock
from processflow.core.entity import Entity
from processflow.core.event import DEFAULT_PRIORITY, Event
from processflow.core.event_heap import EventHeap
from processflow.core.temporal import Instant
from processflow.errors import ConfigurationError, InternalConsistencyError
from processflow.instrumentation.summary import SimulationSummary, build_summary
from processflow.logging_config import set_sim_time_source

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Entity)

Delay = Union[int, float, Instant]


class Simulation:
    """Holds the entities of a run and executes their scheduled callbacks.

    Args:
        entities: Every entity taking part in the run. Entities referenced by
            other entities must also appear here.
        start_time: Simulated time at which the run begins.
        end_time: Events after this time are not executed.
        duration: Alternative to ``end_time``, in seconds from ``start_time``.
        warmup: Seconds after which ``clear_statistics()`` is called on every
            entity that supports it.
    """

    def __init__(
        self,
        entities: Iterable[Entity] | None = None,
        *,
        start_time: Instant = Instant.Epoch,
        end_time: Instant | None = None,
        duration: float | None = None,
        warmup: float = 0.0,
    ):
        if end_time is not None and duration is not None:
            raise ConfigurationError("give either end_time or duration, not both", "Simulation")
        if duration is not None:
            end_time = start_time + Instant.from_seconds(duration)
        if warmup < 0:
            raise ConfigurationError(f"warmup must be >= 0, got {warmup}", "Simulation")

        self._start_time = start_time
        self._end_time = end_time if end_time is not None else Instant.Infinity
        self._warmup = warmup
        self._clock = Clock(start_time)
        self._event_heap = EventHeap()
        self._entities: list[Entity] = []
        self._names: set[str] = set()
        self._initialized = False
        self._events_processed = 0
        self._events_cancelled = 0
        self._summary: SimulationSummary | None = None

        for entity in entities or ():
            self.add_entity(entity)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def add_entity(self, entity: Entity) -> None:
        if self._initialized:
            raise ConfigurationError(
                f"cannot add {entity.name} after the simulation was initialized", "Simulation"
            )
        if entity in self._entities:
            return
        if entity.name in self._names:
            raise ConfigurationError(f"duplicate entity name {entity.name!r}", "Simulation")
        self._entities.append(entity)
        self._names.add(entity.name)

    @property
    def entities(self) -> list[Entity]:
        return list(self._entities)

    def entities_of_type(self, cls: type[E]) -> list[E]:
        return [e for e in self._entities if isinstance(e, cls)]

    def is_registered(self, entity: Entity) -> bool:
        return any(e is entity for e in self._entities)

    def require_registered(self, entity: Entity, owner: Entity, keyword: str) -> None:
        """Raise ConfigurationError if ``owner`` references an unregistered entity."""
        if not self.is_registered(entity):
            logger.error("[%s] %s references unregistered entity %s", owner.name, keyword, entity)
            raise ConfigurationError(
                f"{keyword} references {entity.name!r}, which is not part of the simulation",
                owner.name,
            )

    # ------------------------------------------------------------------
    # Clock interface
    # ------------------------------------------------------------------

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def now(self) -> Instant:
        return self._clock.now

    @property
    def start_time(self) -> Instant:
        return self._start_time

    @property
    def end_time(self) -> Instant:
        return self._end_time

    def schedule(
        self,
        delay: Delay,
        priority: int,
        callback: Callable[[], object],
        name: str | None = None,
    ) -> Event:
        """Run ``callback`` after ``delay`` (seconds or an Instant duration).

        Zero-delay callbacks still run after every already-queued callback of
        the same instant with a lower or equal priority.

        Returns:
            The scheduled Event, usable as a cancellation handle.
        """
        span = delay if isinstance(delay, Instant) else Instant.from_seconds(delay)
        if span.nanoseconds < 0:
            raise InternalConsistencyError(f"cannot schedule {name or callback} in the past ({delay})")
        return self.schedule_at(self._clock.now + span, priority, callback, name)

    def schedule_at(
        self,
        when: Instant,
        priority: int,
        callback: Callable[[], object],
        name: str | None = None,
    ) -> Event:
        """Run ``callback`` at the absolute time ``when``."""
        if when < self._clock.now:
            raise InternalConsistencyError(
                f"cannot schedule {name or callback} at {when!r}, before now ({self._clock.now!r})"
            )
        event = Event(when, name or getattr(callback, "__name__", "callback"), callback,
                      priority=priority)
        self._event_heap.push(event)
        return event

    def cancel(self, event: Event | None) -> None:
        """Cancel a scheduled callback. Safe on None, fired or cancelled events."""
        if event is not None:
            event.cancel()

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        """Attach, reset, link and validate every entity, then start them up.

        Raises:
            ConfigurationError: If any entity is misconfigured.
        """
        if self._initialized:
            return
        self._clock.update(self._start_time)
        self._event_heap.clear()

        for entity in self._entities:
            entity.set_simulation(self)
        for entity in self._entities:
            entity.initialize()
        for entity in self._entities:
            entity.resolve_references()
        for entity in self._entities:
            entity.validate()

        self._initialized = True
        for entity in self._entities:
            entity.start_up()

        if self._warmup > 0:
            self.schedule(self._warmup, 0, self._clear_statistics, name="warmup")
        logger.info(
            "Simulation initialized with %d entities (end=%r)", len(self._entities), self._end_time
        )

    def _clear_statistics(self) -> None:
        for entity in self._entities:
            clear = getattr(entity, "clear_statistics", None)
            if clear is not None:
                clear()
        logger.debug("Statistics cleared at %r", self.now)

    def run(self) -> SimulationSummary:
        """Execute events in order until the heap is empty or end_time is passed."""
        self.initialize()
        wall_start = time.perf_counter()
        set_sim_time_source(lambda: self._clock.now.to_seconds())
        try:
            while self._event_heap.has_events():
                event = self._event_heap.peek()
                if event.time > self._end_time:
                    break
                self._event_heap.pop()
                if event.cancelled:
                    self._events_cancelled += 1
                    continue
                self._clock.update(event.time)
                event.invoke()
                self._events_processed += 1

            if not self._end_time.is_infinite() and self._clock.now < self._end_time:
                self._clock.update(self._end_time)
        finally:
            set_sim_time_source(None)

        wall = time.perf_counter() - wall_start
        self._summary = build_summary(self, wall)
        logger.info(
            "Simulation finished at %r: %d events processed, %d cancelled",
            self._clock.now,
            self._events_processed,
            self._events_cancelled,
        )
        return self._summary

    @property
    def events_processed(self) -> int:
        return self._events_processed

    @property
    def events_cancelled(self) -> int:
        return self._events_cancelled

    @property
    def summary(self) -> SimulationSummary | None:
        return self._summary
