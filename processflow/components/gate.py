"""Gate that holds entities while any of its operating thresholds is closed."""

from __future__ import annotations

import logging
from typing import Any

from processflow.components.linked import LinkedComponent
from processflow.components.queue import Queue
from processflow.components.station import LinkedService
from processflow.components.tasks import FixedDuration
from processflow.distributions.sample_input import SampleSpec

logger = logging.getLogger(__name__)


class _GateRelease(FixedDuration):
    """Lets entities straight through an open, empty gate; otherwise queues them."""

    def accept_entity(self, entity: Any) -> bool:
        station = self.owner
        if station.is_open and station.is_idle and station.wait_queue.is_empty:
            station.register_entity(entity)
            logger.debug("[%s] %s passed through", station.name, entity)
            station.send_to_next_component(entity)
            return True
        return False


class EntityGate(LinkedService):
    """Passes entities while open and releases the held ones when it reopens.

    Held entities leave one at a time, ``release_delay`` seconds apart.

    Args:
        name: Identifier.
        wait_queue: Queue entities wait in while the gate is closed.
        operating_thresholds: The gate is open when all of these are open.
        release_delay: Seconds between releases of held entities.
        next_component: Where entities go.
    """

    def __init__(
        self,
        name: str,
        wait_queue: Queue,
        operating_thresholds,
        release_delay: SampleSpec = 0.0,
        next_component: LinkedComponent | None = None,
        **kwargs: Any,
    ):
        super().__init__(
            name,
            task=_GateRelease(release_delay),
            wait_queue=wait_queue,
            next_component=next_component,
            operating_thresholds=operating_thresholds,
            **kwargs,
        )

    @property
    def release_delay(self):
        return self.task.service_time
