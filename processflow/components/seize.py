"""Seize and Release: acquiring and returning Resource units.

A Seize component holds entities in its wait queue until every resource it
needs has enough free units, then takes the units and forwards the entity
without delay. A Release component gives units back and wakes the waiting
Seize components of each resource in the order the resources were declared.

Both accept ``number_of_units`` as one value per resource. The last value
repeats for the remaining resources, and each value may be an entity
expression, e.g. ``lambda part: part["crew_size"]``.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from processflow.components.linked import LinkedComponent
from processflow.components.queue import Queue
from processflow.components.resource import Resource
from processflow.components.station import LinkedService
from processflow.components.tasks import TaskProvider
from processflow.distributions.sample_input import SampleInput, SampleSpec, as_sample_input
from processflow.errors import ConfigurationError, InternalConsistencyError

logger = logging.getLogger(__name__)


def _unit_inputs(numbers: SampleSpec | Sequence[SampleSpec]) -> list[SampleInput]:
    if numbers is None or isinstance(numbers, (int, float)) or callable(numbers):
        numbers = [numbers]
    elif hasattr(numbers, "next_sample"):
        numbers = [numbers]
    return [as_sample_input("number_of_units", n, integer=True) for n in numbers]


def _units_for(
    inputs: list[SampleInput], index: int, owner: str, sim_time_s: float, entity: Any
) -> int:
    unit_input = inputs[min(index, len(inputs) - 1)]
    return unit_input.sample(owner, sim_time_s, entity)


class _SeizeEntities(TaskProvider):
    """Starts every ready entity at once.

    Seizing takes no time, so the Seize never enters Working and its
    utilisation always reads 0. Time spent holding units shows on the
    Resource instead.
    """

    def select_next_task(self, sim_time_s: float) -> bool:
        station = self.owner
        while station.is_ready_to_start():
            station.start_next_entity()
        return False

    def task_duration(self, sim_time_s: float) -> float:
        return 0.0

    def on_task_complete(self, sim_time_s: float) -> None:
        pass


class Seize(LinkedService):
    """Waits for resource units, seizes them and forwards the entity.

    The match value and unit counts are sampled once for the entity at the
    head of the queue and held until that entity is seized, so a readiness
    check and the seize that follows it always agree. A Seize is never Working:
    its utilisation is 0 and resource usage is reported by each Resource.

    Args:
        name: Identifier.
        wait_queue: Queue entities wait in until the units are free.
        resources: Resources to seize, all at once.
        number_of_units: Units per resource (the last value repeats).
        next_component: Where entities go once their units are seized.
        **kwargs: Thresholds and downtime lists, as for LinkedService.
    """

    def __init__(
        self,
        name: str,
        wait_queue: Queue,
        resources: Sequence[Resource],
        number_of_units: SampleSpec | Sequence[SampleSpec] = 1,
        next_component: LinkedComponent | None = None,
        **kwargs: Any,
    ):
        super().__init__(
            name,
            task=_SeizeEntities(),
            wait_queue=wait_queue,
            next_component=next_component,
            **kwargs,
        )
        self.resources = list(resources)
        self.number_of_units = _unit_inputs(number_of_units)
        self._ready: tuple[int | None, Any, list[int]] | None = None

    def initialize(self) -> None:
        super().initialize()
        self._ready = None

    def resolve_references(self) -> None:
        super().resolve_references()
        for resource in self.resources:
            self.sim.require_registered(resource, self, "resources")
            resource.register_user(self)

    def validate(self) -> None:
        super().validate()
        if not self.resources:
            logger.error("[%s] No resources listed", self.name)
            raise ConfigurationError("resources must not be empty", self.name)

    def required_resources(self) -> list[Resource]:
        return list(self.resources)

    def _required_units(self, entity: Any) -> list[int]:
        sim_time = self.sim_time
        return [
            _units_for(self.number_of_units, i, self.name, sim_time, entity)
            for i in range(len(self.resources))
        ]

    def _ready_entity(self) -> tuple[int | None, Any, list[int]] | None:
        """(match, entity, units) for the next entity to seize, or None."""
        if self._ready is not None:
            match, entity, _ = self._ready
            if self.wait_queue.get_first_for_match(match) is entity:
                return self._ready
            self._ready = None
        match = self.next_match_value(self.sim_time)
        entity = self.wait_queue.get_first_for_match(match)
        if entity is None:
            return None
        self._ready = (match, entity, self._required_units(entity))
        return self._ready

    # ------------------------------------------------------------------
    # Resource user
    # ------------------------------------------------------------------

    def has_waiting_entity(self) -> bool:
        return self._ready_entity() is not None

    def wait_time(self) -> float:
        """Seconds the entity at the head of the queue has waited."""
        ready = self._ready_entity()
        if ready is None:
            return 0.0
        return self.wait_queue.wait_time_of_first(ready[0])

    def is_ready_to_start(self) -> bool:
        """True when the head entity's units are all free and the station may work."""
        if not (self.is_available and self.is_open):
            return False
        ready = self._ready_entity()
        if ready is None:
            return False
        _, _, units = ready
        return all(r.can_seize(n) for r, n in zip(self.resources, units))

    def start_next_entity(self) -> None:
        ready = self._ready_entity()
        if ready is None:
            raise InternalConsistencyError(f"{self.name}: no entity is waiting to seize")
        _, entity, units = ready
        self._ready = None
        self.wait_queue.remove_entity(entity)
        self.register_entity(entity)
        for resource, n in zip(self.resources, units):
            resource.seize(n)
        logger.debug("[%s] Seized resources for %s", self.name, entity)
        self.send_to_next_component(entity)


class Release(LinkedComponent):
    """Returns resource units and wakes the components waiting for them.

    Args:
        name: Identifier.
        resources: Resources to release, notified in this order.
        number_of_units: Units per resource (the last value repeats).
        next_component: Where entities go after the release.
    """

    def __init__(
        self,
        name: str,
        resources: Sequence[Resource],
        number_of_units: SampleSpec | Sequence[SampleSpec] = 1,
        next_component: LinkedComponent | None = None,
    ):
        super().__init__(name, next_component)
        self.resources = list(resources)
        self.number_of_units = _unit_inputs(number_of_units)

    def resolve_references(self) -> None:
        super().resolve_references()
        for resource in self.resources:
            self.sim.require_registered(resource, self, "resources")

    def validate(self) -> None:
        super().validate()
        if not self.resources:
            raise ConfigurationError("resources must not be empty", self.name)

    def add_entity(self, entity: Any) -> None:
        self.register_entity(entity)
        sim_time = self.sim_time
        for i, resource in enumerate(self.resources):
            n = _units_for(self.number_of_units, i, self.name, sim_time, entity)
            resource.release(n)
        logger.debug("[%s] Released resources for %s", self.name, entity)
        for resource in self.resources:
            resource.notify_waiters()
        self.send_to_next_component(entity)
