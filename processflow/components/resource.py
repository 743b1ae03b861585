"""Pool of interchangeable capacity units.

A Resource is seized and released by Seize and Release components. It never
blocks by itself: an entity that cannot get its units waits in the Seize
component's queue. When units come back, ``notify_waiters()`` hands them to
the waiting consumer that has been waiting longest, repeatedly, until no
waiter can be satisfied.

Example::

    crane = Resource("crane", capacity=2)
    grab = Seize("grab_crane", wait_queue=q, resources=[crane], next_component=work)
    drop = Release("drop_crane", resources=[crane], next_component=sink)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from processflow.core.entity import Entity
from processflow.core.event import DEFAULT_PRIORITY, Event
from processflow.distributions.sample_input import SampleSpec, as_sample_input
from processflow.distributions.time_series import TimeSeries
from processflow.errors import ConfigurationError, InternalConsistencyError

logger = logging.getLogger(__name__)


@runtime_checkable
class ResourceUser(Protocol):
    """A consumer that waits for units of one or more resources."""

    name: str

    def has_waiting_entity(self) -> bool: ...

    def wait_time(self) -> float: ...

    def is_ready_to_start(self) -> bool: ...

    def start_next_entity(self) -> None: ...


@dataclass(frozen=True)
class ResourceStats:
    """Frozen snapshot of resource statistics.

    Attributes:
        name: Resource name.
        capacity: Capacity at the time of the snapshot.
        units_in_use: Units currently seized.
        units_seized: Units seized since the last reset.
        units_released: Units released since the last reset.
        min_units_in_use: Lowest number in use observed.
        max_units_in_use: Highest number in use observed.
        average_units_in_use: Time-weighted mean number in use.
        utilisation: Average in use divided by average capacity.
        in_use_distribution_s: Seconds spent at each number in use.
    """

    name: str
    capacity: int
    units_in_use: int
    units_seized: int
    units_released: int
    min_units_in_use: int
    max_units_in_use: int
    average_units_in_use: float
    utilisation: float
    in_use_distribution_s: tuple[float, ...]


class Resource(Entity):
    """Shared pool of capacity units.

    Args:
        name: Identifier.
        capacity: Number of units. A TimeSeries makes the capacity vary over
            simulated time.
        strict_order: When True, ``notify_waiters`` stops as soon as the
            longest-waiting user cannot proceed instead of trying the next.

    Raises:
        ConfigurationError: If a constant capacity is negative.
    """

    def __init__(self, name: str, capacity: SampleSpec = 1, strict_order: bool = False):
        super().__init__(name)
        if isinstance(capacity, (int, float)) and capacity < 0:
            raise ConfigurationError(f"capacity must be >= 0, got {capacity}", name)
        self.capacity_input = as_sample_input("capacity", capacity, integer=True)
        self.strict_order = strict_order

        self._users: list[ResourceUser] = []
        self._units_in_use = 0
        self._capacity_event: Event | None = None
        self._last_capacity = 0
        self._reset_statistics(0)

    def initialize(self) -> None:
        super().initialize()
        self._users = []
        self._units_in_use = 0
        self._capacity_event = None
        self._last_capacity = 0
        self._reset_statistics(self.now.nanoseconds)

    def validate(self) -> None:
        super().validate()
        if not self.capacity_input.is_set:
            raise ConfigurationError("capacity must be set", self.name)
        if self.capacity_input.is_entity_expression:
            raise ConfigurationError("capacity cannot depend on an entity", self.name)
        if not self._users:
            logger.error("[%s] No component seizes this resource", self.name)
            raise ConfigurationError("at least one component must seize this resource", self.name)

    def start_up(self) -> None:
        self._last_capacity = self.capacity
        self._schedule_capacity_change()

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def register_user(self, user: ResourceUser) -> None:
        if user not in self._users:
            self._users.append(user)

    def unregister_user(self, user: ResourceUser) -> None:
        if user in self._users:
            self._users.remove(user)

    @property
    def users(self) -> list[ResourceUser]:
        return list(self._users)

    # ------------------------------------------------------------------
    # Capacity
    # ------------------------------------------------------------------

    @property
    def capacity(self) -> int:
        """Capacity at the current simulated time."""
        sim_time = self.sim_time if self._clock is not None else 0.0
        return self.capacity_input.sample(self.name, sim_time)

    @property
    def units_in_use(self) -> int:
        return self._units_in_use

    def get_available_units(self) -> int:
        """Capacity now minus units in use (never below zero)."""
        return max(self.capacity - self._units_in_use, 0)

    def can_seize(self, n: int) -> bool:
        return n <= self.get_available_units()

    def _schedule_capacity_change(self) -> None:
        provider = self.capacity_input.provider
        if not isinstance(provider, TimeSeries):
            return
        next_change = provider.next_change_after(self.sim_time)
        if next_change is None:
            return
        self._capacity_event = self.schedule(
            next_change - self.sim_time, self._capacity_changed, priority=DEFAULT_PRIORITY
        )

    def _capacity_changed(self) -> None:
        self._update_statistics()
        previous = self._last_capacity
        self._last_capacity = self.capacity
        logger.debug("[%s] Capacity %d -> %d", self.name, previous, self._last_capacity)
        self._schedule_capacity_change()
        if self._last_capacity > previous:
            self.notify_waiters()

    # ------------------------------------------------------------------
    # Seize / release
    # ------------------------------------------------------------------

    def seize(self, n: int) -> None:
        """Take ``n`` units.

        Raises:
            InternalConsistencyError: If fewer than ``n`` units are available.
        """
        if n < 0:
            raise InternalConsistencyError(f"{self.name}: cannot seize {n} units")
        available = self.get_available_units()
        if n > available:
            raise InternalConsistencyError(
                f"{self.name}: cannot seize {n} units, only {available} available"
            )
        self._update_statistics()
        self._units_in_use += n
        self._units_seized += n
        self._max_in_use = max(self._max_in_use, self._units_in_use)
        logger.debug("[%s] Seized %d (in use %d)", self.name, n, self._units_in_use)

    def release(self, n: int) -> int:
        """Return up to ``n`` units; more than are in use is clamped.

        Returns:
            The number of units actually released.
        """
        released = max(min(n, self._units_in_use), 0)
        self._update_statistics()
        self._units_in_use -= released
        self._units_released += released
        self._min_in_use = min(self._min_in_use, self._units_in_use)
        logger.debug("[%s] Released %d (in use %d)", self.name, released, self._units_in_use)
        return released

    def notify_waiters(self) -> None:
        """Let waiting users seize units, longest-waiting first.

        Ties on wait time go to the user registered first. Repeats until no
        waiting user can be satisfied.
        """
        while self.get_available_units() > 0:
            waiting = [user for user in self._users if user.has_waiting_entity()]
            if not waiting:
                return
            ordered = sorted(
                enumerate(waiting), key=lambda pair: (-pair[1].wait_time(), pair[0])
            )
            for _, user in ordered:
                if user.is_ready_to_start():
                    logger.debug("[%s] Waking %s", self.name, user.name)
                    user.start_next_entity()
                    break
                if self.strict_order:
                    return
            else:
                return

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def _reset_statistics(self, now_ns: int) -> None:
        self._stats_start_ns = now_ns
        self._last_update_ns = now_ns
        self._units_seized = 0
        self._units_released = 0
        self._min_in_use = self._units_in_use
        self._max_in_use = self._units_in_use
        self._unit_seconds = 0.0
        self._capacity_seconds = 0.0
        self._in_use_dist: list[float] = []

    def _update_statistics(self) -> None:
        now_ns = self.now.nanoseconds
        dt_ns = now_ns - self._last_update_ns
        if dt_ns <= 0:
            return
        dt = dt_ns / 1e9
        n = self._units_in_use
        self._unit_seconds += dt * n
        self._capacity_seconds += dt * self._last_capacity
        if len(self._in_use_dist) <= n:
            self._in_use_dist.extend([0.0] * (n + 1 - len(self._in_use_dist)))
        self._in_use_dist[n] += dt
        self._last_update_ns = now_ns

    def clear_statistics(self) -> None:
        super().clear_statistics()
        self._update_statistics()
        self._reset_statistics(self.now.nanoseconds)

    @property
    def units_seized(self) -> int:
        return self._units_seized

    @property
    def units_released(self) -> int:
        return self._units_released

    @property
    def average_units_in_use(self) -> float:
        self._update_statistics()
        total = (self.now.nanoseconds - self._stats_start_ns) / 1e9
        if total <= 0:
            return 0.0
        return self._unit_seconds / total

    @property
    def utilisation(self) -> float:
        self._update_statistics()
        if self._capacity_seconds <= 0:
            return 0.0
        return self._unit_seconds / self._capacity_seconds

    @property
    def stats(self) -> ResourceStats:
        self._update_statistics()
        return ResourceStats(
            name=self.name,
            capacity=self.capacity,
            units_in_use=self._units_in_use,
            units_seized=self._units_seized,
            units_released=self._units_released,
            min_units_in_use=self._min_in_use,
            max_units_in_use=self._max_in_use,
            average_units_in_use=self.average_units_in_use,
            utilisation=self.utilisation,
            in_use_distribution_s=tuple(self._in_use_dist),
        )

    def __repr__(self) -> str:
        return f"Resource({self.name!r}, in_use={self._units_in_use})"
