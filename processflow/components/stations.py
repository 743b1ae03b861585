"""Ready-made stations: a LinkedService with a task provider plugged in.

Each class only translates its constructor arguments into a TaskProvider;
all start/stop/downtime behaviour lives in LinkedService. Remaining keyword
arguments (thresholds, downtime lists, ``match``) pass straight through.

Example::

    q = Queue("q")
    server = Server("server", wait_queue=q, service_time=Exponential(2.0),
                    next_component=sink)
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any

from processflow.components.container import EntityContainer
from processflow.components.linked import LinkedComponent
from processflow.components.queue import Queue
from processflow.components.station import LinkedService
from processflow.components.tasks import Assembly, ContainerDrain, ContainerFill, FixedDuration
from processflow.distributions.sample_input import SampleSpec


class Server(LinkedService):
    """Serves one entity at a time for a sampled service time."""

    def __init__(
        self,
        name: str,
        wait_queue: Queue,
        service_time: SampleSpec,
        next_component: LinkedComponent | None = None,
        **kwargs: Any,
    ):
        super().__init__(
            name,
            task=FixedDuration(service_time),
            wait_queue=wait_queue,
            next_component=next_component,
            **kwargs,
        )

    @property
    def service_time(self):
        return self.task.service_time


class Pack(LinkedService):
    """Fills containers with queued entities and sends each full container on."""

    def __init__(
        self,
        name: str,
        wait_queue: Queue,
        number_of_entities: SampleSpec,
        service_time: SampleSpec,
        next_component: LinkedComponent | None = None,
        container_factory: Callable[[int], EntityContainer] | None = None,
        number_to_start: int = 1,
        wait_for_entities: bool = False,
        **kwargs: Any,
    ):
        super().__init__(
            name,
            task=ContainerFill(
                number_of_entities,
                service_time,
                container_factory=container_factory,
                number_to_start=number_to_start,
                wait_for_entities=wait_for_entities,
            ),
            wait_queue=wait_queue,
            next_component=next_component,
            **kwargs,
        )

    @property
    def container(self) -> EntityContainer | None:
        """The container being filled, if any."""
        return self.task.container


class Unpack(LinkedService):
    """Empties queued containers and sends the contents on one at a time."""

    def __init__(
        self,
        name: str,
        wait_queue: Queue,
        service_time: SampleSpec,
        next_component: LinkedComponent | None = None,
        match_for_entities: bool = False,
        **kwargs: Any,
    ):
        super().__init__(
            name,
            task=ContainerDrain(service_time, match_for_entities=match_for_entities),
            wait_queue=wait_queue,
            next_component=next_component,
            **kwargs,
        )

    @property
    def container(self) -> EntityContainer | None:
        return self.task.container

    @property
    def containers_disposed(self) -> int:
        return self.task.containers_disposed


class Assemble(LinkedService):
    """Builds a new entity from a set of entities taken from several queues.

    ``prototype(index)`` creates the assembled entity; the consumed parts are
    disposed of.
    """

    def __init__(
        self,
        name: str,
        wait_queues: Sequence[Queue],
        prototype: Callable[[int], Any],
        service_time: SampleSpec = 0.0,
        number_required: Sequence[int] = (1,),
        match_required: bool = False,
        next_component: LinkedComponent | None = None,
        **kwargs: Any,
    ):
        super().__init__(
            name,
            task=Assembly(
                wait_queues,
                service_time=service_time,
                number_required=number_required,
                match_required=match_required,
                prototype=prototype,
            ),
            next_component=next_component,
            **kwargs,
        )

    @property
    def entities_disposed(self) -> int:
        return self.task.entities_disposed


class Combine(LinkedService):
    """Joins matching entities from several queues, keeping the first queue's entity."""

    def __init__(
        self,
        name: str,
        wait_queues: Sequence[Queue],
        service_time: SampleSpec = 0.0,
        number_required: Sequence[int] = (1,),
        match_required: bool = True,
        retain_all: bool = False,
        next_component: LinkedComponent | None = None,
        **kwargs: Any,
    ):
        super().__init__(
            name,
            task=Assembly(
                wait_queues,
                service_time=service_time,
                number_required=number_required,
                match_required=match_required,
                retain_all=retain_all,
            ),
            next_component=next_component,
            **kwargs,
        )

    @property
    def entities_disposed(self) -> int:
        return self.task.entities_disposed
