"""Conveyor: entities travel end to end in a fixed (or time-varying) time.

Entities enter at position 0 and leave at position 1. Every entity on the
belt moves together, so a downtime or closed immediate threshold stops the
whole conveyor and it picks up where it left off.
"""

from __future__ import annotations

from typing import Any

from processflow.components.linked import LinkedComponent
from processflow.components.station import LinkedService
from processflow.components.tasks import ConveyorTravel
from processflow.distributions.sample_input import SampleSpec


class EntityConveyor(LinkedService):
    """Moves entities from one end to the other.

    Args:
        name: Identifier.
        travel_time: Seconds from end to end. A TimeSeries makes the belt
            speed change during the run.
        next_component: Where entities go when they reach the end.
        **kwargs: Thresholds and downtime lists, as for LinkedService.
    """

    def __init__(
        self,
        name: str,
        travel_time: SampleSpec,
        next_component: LinkedComponent | None = None,
        **kwargs: Any,
    ):
        super().__init__(
            name, task=ConveyorTravel(travel_time), next_component=next_component, **kwargs
        )

    @property
    def travel_time(self) -> float:
        return self.task.travel_time

    @property
    def entities(self) -> list[Any]:
        """Entities on the belt, lead entity first."""
        return self.task.entities

    @property
    def positions(self) -> list[float]:
        """Fraction of the belt covered by each entity, lead entity first."""
        self.update_progress()
        return self.task.positions
