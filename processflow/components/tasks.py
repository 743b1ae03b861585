"""Task providers: what a processing station does with its time.

A LinkedService runs the generic start/stop/interrupt state machine. The
provider plugged into it decides which work to take next, how long one task
lasts and what happens when a task completes:

- ``FixedDuration``: take one entity, hold it for a service time, pass it on.
- ``ContainerFill``: put entities into a container one task at a time.
- ``ContainerDrain``: take entities out of a container one task at a time.
- ``Assembly``: consume a set of (optionally matching) entities from several
  queues and emit one.
- ``ConveyorTravel``: move every entity on a conveyor; a task ends when the
  lead entity reaches the end.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any

from processflow.components.container import EntityContainer
from processflow.components.queue import Queue
from processflow.distributions.sample_input import SampleSpec, as_sample_input
from processflow.errors import ConfigurationError, InternalConsistencyError

if TYPE_CHECKING:
    from processflow.components.station import LinkedService

logger = logging.getLogger(__name__)


class TaskProvider:
    """Supplies tasks to a LinkedService.

    Subclasses implement ``select_next_task``, ``task_duration`` and
    ``on_task_complete``. The remaining hooks have workable defaults.
    """

    requires_wait_queue = True

    def __init__(self) -> None:
        self.station: LinkedService | None = None

    def bind(self, station: LinkedService) -> None:
        self.station = station

    @property
    def owner(self) -> LinkedService:
        if self.station is None:
            raise InternalConsistencyError(f"{type(self).__name__} is not bound to a station")
        return self.station

    def initialize(self) -> None:
        """Reset per-run state."""

    def queues(self) -> list[Queue]:
        """Queues this provider takes entities from."""
        queue = self.owner.wait_queue
        return [queue] if queue is not None else []

    def validate(self) -> None:
        if self.requires_wait_queue and self.owner.wait_queue is None:
            raise ConfigurationError("wait_queue must be set", self.owner.name)

    def accept_entity(self, entity: Any) -> bool:
        """Take an arriving entity directly. Returns False to route it to the wait queue."""
        return False

    def select_next_task(self, sim_time_s: float) -> bool:
        """Pick the next task. Returns False when there is nothing to do."""
        raise NotImplementedError

    def task_duration(self, sim_time_s: float) -> float:
        """Seconds the selected task takes."""
        raise NotImplementedError

    def on_task_complete(self, sim_time_s: float) -> None:
        """Finish the selected task, typically by forwarding an entity."""
        raise NotImplementedError

    def update_progress(self, dt_s: float) -> None:
        """Called with the busy time elapsed since the previous update."""


def _number_for(numbers: Sequence[int], index: int) -> int:
    return int(numbers[min(index, len(numbers) - 1)])


class FixedDuration(TaskProvider):
    """One entity per task, held for a sampled service time.

    Args:
        service_time: Seconds per entity (number, distribution or entity
            expression).
    """

    def __init__(self, service_time: SampleSpec):
        super().__init__()
        self.service_time = as_sample_input("service_time", service_time)
        self._entity: Any = None

    def initialize(self) -> None:
        self._entity = None

    def validate(self) -> None:
        super().validate()
        if not self.service_time.is_set:
            raise ConfigurationError("service_time must be set", self.owner.name)

    def select_next_task(self, sim_time_s: float) -> bool:
        station = self.owner
        entity = station.wait_queue.remove_first_for_match(station.next_match_value(sim_time_s))
        if entity is None:
            return False
        station.register_entity(entity)
        self._entity = entity
        return True

    def task_duration(self, sim_time_s: float) -> float:
        return self.service_time.sample(self.owner.name, sim_time_s, self._entity)

    def on_task_complete(self, sim_time_s: float) -> None:
        entity, self._entity = self._entity, None
        self.owner.send_to_next_component(entity)


class ContainerFill(TaskProvider):
    """Packs queued entities into new containers, one entity per task.

    Args:
        number_of_entities: Entities per container (sampled per container).
        service_time: Seconds to insert one entity.
        container_factory: ``fn(index) -> EntityContainer``.
        number_to_start: Entities that must be waiting before a container is
            started. Ignored when ``wait_for_entities`` is True.
        wait_for_entities: Do not start a container until a full load waits.
    """

    def __init__(
        self,
        number_of_entities: SampleSpec,
        service_time: SampleSpec,
        container_factory: Callable[[int], EntityContainer] | None = None,
        number_to_start: int = 1,
        wait_for_entities: bool = False,
    ):
        super().__init__()
        self.number_of_entities = as_sample_input(
            "number_of_entities", number_of_entities, (1, float("inf")), integer=True
        )
        self.service_time = as_sample_input("service_time", service_time)
        self.container_factory = container_factory
        self.number_to_start = number_to_start
        self.wait_for_entities = wait_for_entities
        self._reset()

    def _reset(self) -> None:
        self.container: EntityContainer | None = None
        self._number_to_insert = 0
        self._number_inserted = 0
        self._match: int | None = None
        self._packed: Any = None
        self._containers_created = 0

    def initialize(self) -> None:
        self._reset()

    def validate(self) -> None:
        super().validate()
        if not self.service_time.is_set:
            raise ConfigurationError("service_time must be set", self.owner.name)
        if not self.number_of_entities.is_set:
            raise ConfigurationError("number_of_entities must be set", self.owner.name)
        if self.number_to_start < 1:
            raise ConfigurationError("number_to_start must be >= 1", self.owner.name)

    def _new_container(self) -> EntityContainer:
        self._containers_created += 1
        index = self._containers_created
        if self.container_factory is not None:
            return self.container_factory(index)
        return EntityContainer(f"{self.owner.name}_container_{index}")

    def select_next_task(self, sim_time_s: float) -> bool:
        station = self.owner
        queue = station.wait_queue

        if self.container is None:
            match = station.next_match_value(sim_time_s)
            number = self.number_of_entities.sample(station.name, sim_time_s)
            needed = number if self.wait_for_entities else self.number_to_start
            if queue.get_match_count(match) < needed:
                return False
            self.container = self._new_container()
            self._number_to_insert = number
            self._number_inserted = 0
            self._match = match
            logger.debug("[%s] Started %s for %d entities", station.name, self.container, number)

        entity = queue.remove_first_for_match(self._match)
        if entity is None:
            return False
        station.register_entity(entity)
        self._packed = entity
        return True

    def task_duration(self, sim_time_s: float) -> float:
        return self.service_time.sample(self.owner.name, sim_time_s, self._packed)

    def on_task_complete(self, sim_time_s: float) -> None:
        self.container.add_entity(self._packed, self._match)
        self._packed = None
        self._number_inserted += 1
        if self._number_inserted >= self._number_to_insert:
            container, self.container = self.container, None
            self.owner.send_to_next_component(container)


class ContainerDrain(TaskProvider):
    """Takes entities out of queued containers, one entity per task.

    Empty containers are disposed of and counted.

    Args:
        service_time: Seconds to remove one entity.
        match_for_entities: Only remove contained entities whose match value
            equals the station's match value.
    """

    def __init__(self, service_time: SampleSpec, match_for_entities: bool = False):
        super().__init__()
        self.service_time = as_sample_input("service_time", service_time)
        self.match_for_entities = match_for_entities
        self._reset()

    def _reset(self) -> None:
        self.container: EntityContainer | None = None
        self._match: int | None = None
        self._unpacked: Any = None
        self.containers_disposed = 0

    def initialize(self) -> None:
        self._reset()

    def validate(self) -> None:
        super().validate()
        if not self.service_time.is_set:
            raise ConfigurationError("service_time must be set", self.owner.name)
        if self.match_for_entities and not self.owner.match.is_set:
            raise ConfigurationError(
                "match_for_entities requires the station match to be set", self.owner.name
            )

    def _dispose_container(self) -> None:
        logger.debug("[%s] Disposed of empty %s", self.owner.name, self.container)
        self.container = None
        self.containers_disposed += 1

    def select_next_task(self, sim_time_s: float) -> bool:
        station = self.owner
        while True:
            if self.container is None:
                container = station.wait_queue.remove_first_for_match(
                    station.next_match_value(sim_time_s)
                )
                if container is None:
                    return False
                if not isinstance(container, EntityContainer):
                    raise InternalConsistencyError(
                        f"{station.name}: {container!r} is not an EntityContainer"
                    )
                station.register_entity(container)
                self.container = container
                self._match = (
                    station.next_match_value(sim_time_s, container)
                    if self.match_for_entities
                    else None
                )

            entity = self.container.remove_entity(self._match)
            if entity is not None:
                self._unpacked = entity
                return True
            self._dispose_container()

    def task_duration(self, sim_time_s: float) -> float:
        return self.service_time.sample(self.owner.name, sim_time_s, self._unpacked)

    def on_task_complete(self, sim_time_s: float) -> None:
        entity, self._unpacked = self._unpacked, None
        self.owner.send_to_next_component(entity)
        if self.container is not None and self.container.get_count(self._match) == 0:
            self._dispose_container()


class Assembly(TaskProvider):
    """Consumes entities from several queues and emits one result.

    With a ``prototype`` the consumed entities are replaced by a newly made
    entity (assembly). Without one, the entity taken from the first queue is
    passed on and the others are disposed of (combining); ``retain_all``
    passes every consumed entity on instead.

    Args:
        wait_queues: Input queues, one per part type.
        service_time: Seconds per assembly.
        number_required: Entities needed from each queue; the last value
            repeats for the remaining queues.
        match_required: Only consume entities with a common match value.
        prototype: ``fn(index) -> entity`` building the assembled entity.
        retain_all: Without a prototype, forward every consumed entity.
    """

    requires_wait_queue = False

    def __init__(
        self,
        wait_queues: Sequence[Queue],
        service_time: SampleSpec = 0.0,
        number_required: Sequence[int] = (1,),
        match_required: bool = False,
        prototype: Callable[[int], Any] | None = None,
        retain_all: bool = False,
    ):
        super().__init__()
        self.wait_queues = list(wait_queues)
        self.service_time = as_sample_input("service_time", service_time)
        self.number_required = list(number_required) or [1]
        self.match_required = match_required
        self.prototype = prototype
        self.retain_all = retain_all
        self._reset()

    def _reset(self) -> None:
        self._consumed: list[Any] = []
        self._output: Any = None
        self._assembled = 0
        self.entities_disposed = 0

    def initialize(self) -> None:
        self._reset()

    def queues(self) -> list[Queue]:
        return list(self.wait_queues)

    def validate(self) -> None:
        name = self.owner.name
        if not self.wait_queues:
            raise ConfigurationError("wait_queues must not be empty", name)
        if any(n < 1 for n in self.number_required):
            raise ConfigurationError("number_required values must be >= 1", name)
        if self.match_required and not self.owner.match.is_set:
            for queue in self.wait_queues:
                if not queue.match.is_set:
                    raise ConfigurationError(
                        f"match_required but queue {queue.name!r} assigns no match values", name
                    )

    def _select_match(self, sim_time_s: float) -> tuple[bool, int | None]:
        station = self.owner
        if station.match.is_set:
            match = station.next_match_value(sim_time_s)
        elif self.match_required:
            match = Queue.select_match_value(self.wait_queues, self.number_required)
            if match is None:
                return False, None
        else:
            match = None
        ready = Queue.sufficient_entities(self.wait_queues, self.number_required, match)
        return ready, match

    def select_next_task(self, sim_time_s: float) -> bool:
        ready, match = self._select_match(sim_time_s)
        if not ready:
            return False

        consumed = []
        for i, queue in enumerate(self.wait_queues):
            for _ in range(_number_for(self.number_required, i)):
                consumed.append(queue.remove_first_for_match(match))
        for entity in consumed:
            self.owner.register_entity(entity)

        if self.prototype is not None:
            self._assembled += 1
            self._output = self.prototype(self._assembled)
        else:
            self._output = consumed[0]
        self._consumed = consumed
        return True

    def task_duration(self, sim_time_s: float) -> float:
        return self.service_time.sample(self.owner.name, sim_time_s, self._output)

    def on_task_complete(self, sim_time_s: float) -> None:
        station = self.owner
        consumed, self._consumed = self._consumed, []
        output, self._output = self._output, None
        if self.prototype is None and self.retain_all:
            for entity in consumed:
                station.send_to_next_component(entity)
            return
        if self.prototype is None:
            self.entities_disposed += len(consumed) - 1
        else:
            self.entities_disposed += len(consumed)
        station.send_to_next_component(output)


class ConveyorTravel(TaskProvider):
    """Moves entities along a conveyor of length one.

    Each entity's position is the fraction of the conveyor it has covered.
    A task lasts until the lead entity reaches the end:
    ``(1 - lead position) * travel_time``. Positions advance only while the
    station is busy, so downtime stops the whole belt.

    Args:
        travel_time: Seconds from end to end. May vary over time; a change
            restarts the in-flight step with the new speed.
    """

    requires_wait_queue = False

    def __init__(self, travel_time: SampleSpec):
        super().__init__()
        self.travel_time_input = as_sample_input("travel_time", travel_time)
        self._entries: list[list[Any]] = []
        self._travel_time = 0.0

    def initialize(self) -> None:
        self._entries = []
        self._travel_time = 0.0

    def validate(self) -> None:
        if not self.travel_time_input.is_set:
            raise ConfigurationError("travel_time must be set", self.owner.name)
        if self.travel_time_input.is_entity_expression:
            raise ConfigurationError("travel_time cannot depend on an entity", self.owner.name)

    def queues(self) -> list[Queue]:
        return []

    @property
    def travel_time(self) -> float:
        return self._travel_time

    @property
    def entities(self) -> list[Any]:
        return [entity for entity, _ in self._entries]

    @property
    def positions(self) -> list[float]:
        return [position for _, position in self._entries]

    def _refresh_travel_time(self) -> bool:
        """Resample the travel time; True when it changed."""
        new = self.travel_time_input.sample(self.owner.name, self.owner.sim_time)
        changed = new != self._travel_time
        self._travel_time = new
        return changed

    def accept_entity(self, entity: Any) -> bool:
        station = self.owner
        station.update_progress()
        if self._refresh_travel_time() and self._entries:
            station.reset_process()
        self._entries.append([entity, 0.0])
        station.register_entity(entity)
        logger.debug("[%s] %s entered the conveyor", station.name, entity)
        station.start_action()
        return True

    def select_next_task(self, sim_time_s: float) -> bool:
        return bool(self._entries)

    def task_duration(self, sim_time_s: float) -> float:
        lead_position = self._entries[0][1]
        return max((1.0 - lead_position) * self._travel_time, 0.0)

    def update_progress(self, dt_s: float) -> None:
        if self._travel_time <= 0:
            return
        step = dt_s / self._travel_time
        for entry in self._entries:
            entry[1] = min(entry[1] + step, 1.0)

    def on_task_complete(self, sim_time_s: float) -> None:
        entity, _ = self._entries.pop(0)
        self.owner.send_to_next_component(entity)
        if self._refresh_travel_time() and self._entries:
            logger.debug("[%s] Travel time changed to %s", self.owner.name, self._travel_time)
