"""Base class for simulation objects.

Everything that takes part in a run (queues, resources, stations, downtime
entities, thresholds) derives from Entity. The Simulation attaches itself to
each entity before the run and drives the lifecycle hooks in order:

1. ``initialize()``: reset run state and statistics.
2. ``resolve_references()``: register with referenced entities.
3. ``validate()``: raise ConfigurationError for bad wiring.
4. ``start_up()``: schedule the first events.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from processflow.core.event import DEFAULT_PRIORITY, Event

if TYPE_CHECKING:
    from processflow.core.clock import Clock
    from processflow.core.simulation import Simulation
    from processflow.core.temporal import Instant

logger = logging.getLogger(__name__)


class Entity:
    """A named participant in a simulation run.

    Attributes:
        name: Identifier for logging and summaries.
    """

    def __init__(self, name: str):
        self.name = name
        self._sim: Simulation | None = None
        self._clock: Clock | None = None

    def set_simulation(self, sim: Simulation) -> None:
        """Attach to a run. Called by the Simulation during initialization."""
        self._sim = sim
        self._clock = sim.clock
        logger.debug("[%s] Attached to simulation", self.name)

    @property
    def sim(self) -> Simulation:
        """The run this entity belongs to.

        Raises:
            RuntimeError: If the entity was never registered with a Simulation.
        """
        if self._sim is None:
            logger.error("[%s] Used outside of a simulation", self.name)
            raise RuntimeError(f"Entity {self.name} is not attached to a simulation.")
        return self._sim

    @property
    def now(self) -> Instant:
        """Current simulated time.

        Raises:
            RuntimeError: If accessed before the entity is attached.
        """
        if self._clock is None:
            logger.error("[%s] Attempted to access time before clock injection", self.name)
            raise RuntimeError(
                f"Entity {self.name} is not attached to a simulation (Clock is None)."
            )
        return self._clock.now

    @property
    def sim_time(self) -> float:
        """Current simulated time in seconds."""
        return self.now.to_seconds()

    def schedule(
        self,
        delay,
        callback: Callable[[], object],
        *,
        priority: int = DEFAULT_PRIORITY,
        name: str | None = None,
    ) -> Event:
        """Shorthand for ``self.sim.schedule`` with a name prefixed by this entity."""
        label = f"{self.name}.{name or getattr(callback, '__name__', 'callback')}"
        return self.sim.schedule(delay, priority, callback, name=label)

    def initialize(self) -> None:
        """Reset run state. Called once per run before validation."""

    def resolve_references(self) -> None:
        """Register this entity with the entities it references.

        Stations register with their queues, thresholds and downtime
        entities here so that those keep explicit back-reference lists.
        """

    def validate(self) -> None:
        """Check the configuration. Raise ConfigurationError on a problem."""

    def start_up(self) -> None:
        """Schedule any initial events."""

    def clear_statistics(self) -> None:
        """Discard statistics gathered so far (used at the end of a warmup)."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"
