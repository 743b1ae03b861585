"""Entities that move through a model, plus ready-made source and sink.

Part is the default in-transit entity. Any Python object may flow through
queues and stations; Part only adds the attributes that some components
read or write (``created_at`` for latency, ``present_state`` for queue state
assignment).
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from itertools import count
from typing import Any

from processflow.components.linked import LinkedComponent
from processflow.core.event import DEFAULT_PRIORITY, Event
from processflow.core.temporal import Instant
from processflow.distributions.sample_input import SampleSpec, as_sample_input
from processflow.errors import ConfigurationError

logger = logging.getLogger(__name__)


class Part:
    """A unit of work moving through the process flow.

    Attributes:
        name: Identifier.
        attributes: Free-form values that entity expressions can read.
        created_at: Simulated time the part was generated, if known.
        present_state: Label set by queues with a ``state_assignment``.
    """

    def __init__(self, name: str, **attributes: Any):
        self.name = name
        self.attributes: dict[str, Any] = dict(attributes)
        self.created_at: Instant | None = None
        self.present_state: str | None = None

    def __getitem__(self, key: str) -> Any:
        return self.attributes[key]

    def __repr__(self) -> str:
        return f"Part({self.name!r})"


class EntityGenerator(LinkedComponent):
    """Creates parts at sampled intervals and sends them downstream.

    Args:
        name: Identifier.
        next_component: Where generated parts go.
        inter_arrival: Seconds between arrivals.
        first_arrival: Seconds until the first arrival (defaults to one
            inter-arrival sample).
        max_number: Stop after this many parts. None means unlimited.
        prototype: Factory ``fn(index) -> entity``. Defaults to ``Part``.
    """

    def __init__(
        self,
        name: str,
        next_component: LinkedComponent,
        inter_arrival: SampleSpec,
        first_arrival: SampleSpec = None,
        max_number: int | None = None,
        prototype: Callable[[int], Any] | None = None,
    ):
        super().__init__(name, next_component)
        self.inter_arrival = as_sample_input("inter_arrival", inter_arrival)
        self.first_arrival = as_sample_input("first_arrival", first_arrival)
        self.max_number = max_number
        self.prototype = prototype
        self._generated = 0
        self._next_arrival: Event | None = None

    def initialize(self) -> None:
        super().initialize()
        self._generated = 0
        self._next_arrival = None

    def validate(self) -> None:
        if not self.inter_arrival.is_set:
            raise ConfigurationError("inter_arrival must be set", self.name)
        if self.next_component is None:
            raise ConfigurationError("next_component must be set", self.name)

    def start_up(self) -> None:
        if self.first_arrival.is_set:
            delay = self.first_arrival.sample(self.name, self.sim_time)
        else:
            delay = self.inter_arrival.sample(self.name, self.sim_time)
        self._next_arrival = self.schedule(delay, self._arrive, priority=DEFAULT_PRIORITY)

    def _arrive(self) -> None:
        self._generated += 1
        index = self._generated
        entity = self.prototype(index) if self.prototype else Part(f"{self.name}_{index}")
        if hasattr(entity, "created_at"):
            entity.created_at = self.now
        self.register_entity(entity)
        logger.debug("[%s] Generated %s", self.name, entity)
        self.send_to_next_component(entity)

        if self.max_number is not None and self._generated >= self.max_number:
            self._next_arrival = None
            return
        delay = self.inter_arrival.sample(self.name, self.sim_time)
        self._next_arrival = self.schedule(delay, self._arrive, priority=DEFAULT_PRIORITY)

    @property
    def number_generated(self) -> int:
        return self._generated


class Sink(LinkedComponent):
    """Terminal component that records every entity it receives.

    Latency is measured from ``entity.created_at`` when present, otherwise
    recorded as 0.

    Attributes:
        entities: Received entities in arrival order.
        arrival_times: Simulated arrival time of each entity.
        latencies_s: Per-entity latency in seconds.
    """

    def __init__(self, name: str = "Sink"):
        super().__init__(name)
        self.entities: list[Any] = []
        self.arrival_times: list[Instant] = []
        self.latencies_s: list[float] = []

    def initialize(self) -> None:
        super().initialize()
        self.entities = []
        self.arrival_times = []
        self.latencies_s = []

    def add_entity(self, entity: Any) -> None:
        self.register_entity(entity)
        now = self.now
        created_at = getattr(entity, "created_at", None) or now
        self.entities.append(entity)
        self.arrival_times.append(now)
        self.latencies_s.append((now - created_at).to_seconds())
        self.send_to_next_component(entity)

    @property
    def count(self) -> int:
        return len(self.entities)

    def arrival_times_s(self) -> list[float]:
        return [t.to_seconds() for t in self.arrival_times]

    def average_latency(self) -> float:
        if not self.latencies_s:
            return 0.0
        return sum(self.latencies_s) / len(self.latencies_s)
