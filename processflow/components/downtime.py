"""Recurring planned or unplanned downtime (maintenance, breakdowns).

A DowntimeEntity decides *when* a downtime is due and *how long* it lasts;
the stations registered as its users decide *when they can stop*. Each user
lists the entity under one of three policies:

- immediate: in-flight work is interrupted as soon as the downtime is due,
- forced: the current task finishes, no new task is started,
- opportunistic: the station keeps working until its queue is empty.

Both the interval and the duration can run on calendar time or on the
accumulated working time of a nominated StateEntity. A working-time clock
only advances while that entity works, so due and completion events are
re-armed every time the entity starts or stops working.

Occurrences that fall due before the previous one could start accumulate as
a backlog. When the backlog is at ``max_downtimes_pending`` further
occurrences are dropped and counted.

Example::

    pm = DowntimeEntity("pm", interval=100.0, duration=10.0)
    press = Server("press", wait_queue=q, service_time=50.0,
                   immediate_maintenance=[pm])
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable

from processflow.components.state import StateEntity
from processflow.core.event import DEFAULT_PRIORITY, Event
from processflow.core.temporal import Instant
from processflow.distributions.sample_input import SampleSpec, as_sample_input
from processflow.errors import ConfigurationError

logger = logging.getLogger(__name__)


class DowntimePolicy(Enum):
    """When a due downtime may interrupt a station's work."""

    IMMEDIATE = "immediate"
    FORCED = "forced"
    OPPORTUNISTIC = "opportunistic"


class DowntimeKind(Enum):
    """How a station reports time spent in the downtime."""

    MAINTENANCE = "maintenance"
    BREAKDOWN = "breakdown"


class DowntimeState(Enum):
    WORKING = "Working"
    DOWNTIME = "Downtime"


@runtime_checkable
class DowntimeUser(Protocol):
    """A component that stops for a DowntimeEntity."""

    name: str

    def can_start_downtime(self, down: DowntimeEntity) -> bool: ...

    def prepare_for_downtime(self, down: DowntimeEntity) -> None: ...

    def start_downtime(self, down: DowntimeEntity) -> None: ...

    def end_downtime(self, down: DowntimeEntity) -> None: ...


@dataclass(frozen=True)
class DowntimeStats:
    """Snapshot of downtime statistics.

    Attributes:
        number_started: Downtimes that began.
        number_completed: Downtimes that ended.
        number_dropped: Occurrences dropped because the backlog was full.
        number_late: Downtimes that ended after their completion target.
        total_lateness_s: Sum of the overage of late downtimes.
        downtimes_pending: Occurrences due but not yet started.
        total_downtime_s: Time spent down.
        total_uptime_s: Time spent up.
        mean_start_delay_s: Mean wait from due time to start.
    """

    number_started: int = 0
    number_completed: int = 0
    number_dropped: int = 0
    number_late: int = 0
    total_lateness_s: float = 0.0
    downtimes_pending: int = 0
    total_downtime_s: float = 0.0
    total_uptime_s: float = 0.0
    mean_start_delay_s: float = 0.0

    @property
    def availability(self) -> float:
        """Fraction of time not down (0.0-1.0)."""
        total = self.total_uptime_s + self.total_downtime_s
        if total == 0:
            return 1.0
        return self.total_uptime_s / total

    @property
    def reliability(self) -> float:
        """Fraction of completed downtimes that met their completion target."""
        if self.number_completed == 0:
            return 1.0
        return (self.number_completed - self.number_late) / self.number_completed


class DowntimeEntity(StateEntity):
    """Schedules one recurring downtime against a set of users.

    Args:
        name: Identifier for logging.
        interval: Seconds between occurrences (calendar or working time).
        duration: Seconds each downtime lasts (calendar or working time).
        first_downtime: Seconds until the first occurrence. Defaults to one
            interval sample.
        interval_working_entity: Entity whose working time drives the
            interval. None means calendar time.
        duration_working_entity: Entity whose working time drives the
            duration. None means calendar time.
        max_downtimes_pending: Backlog limit. None means unbounded.
        completion_time_limit: Seconds from an occurrence's due time by which
            it should be complete. Without it the target is the planned end,
            start time plus duration.
    """

    INITIAL_STATE = DowntimeState.WORKING
    WORKING_STATES = frozenset({DowntimeState.WORKING})

    def __init__(
        self,
        name: str,
        interval: SampleSpec = None,
        duration: SampleSpec = None,
        first_downtime: SampleSpec = None,
        interval_working_entity: StateEntity | None = None,
        duration_working_entity: StateEntity | None = None,
        max_downtimes_pending: int | None = None,
        completion_time_limit: SampleSpec = None,
    ):
        super().__init__(name)
        self.interval = as_sample_input("interval", interval)
        self.duration = as_sample_input("duration", duration)
        self.first_downtime = as_sample_input("first_downtime", first_downtime)
        self.interval_working_entity = interval_working_entity
        self.duration_working_entity = duration_working_entity
        self.max_downtimes_pending = max_downtimes_pending
        self.completion_time_limit = as_sample_input("completion_time_limit", completion_time_limit)
        self._users: list[DowntimeUser] = []
        self._reset()

    def _reset(self) -> None:
        self._down = False
        self._pending = 0
        self._due_times: deque[Instant] = deque()
        self._next_due_ns = 0
        self._completion_due_ns = 0
        self._due_event: Event | None = None
        self._end_event: Event | None = None
        self._target: Instant | None = None
        self.last_start_time: Instant | None = None
        self.last_end_time: Instant | None = None
        self.last_actual_end_time: Instant | None = None
        self.start_delays: list[float] = []
        self._number_started = 0
        self._number_completed = 0
        self._number_dropped = 0
        self._number_late = 0
        self._total_lateness_s = 0.0

    def initialize(self) -> None:
        super().initialize()
        self._users = []
        self._reset()

    def resolve_references(self) -> None:
        super().resolve_references()
        for keyword in ("interval_working_entity", "duration_working_entity"):
            entity = getattr(self, keyword)
            if entity is None:
                continue
            self.sim.require_registered(entity, self, keyword)
            if not isinstance(entity, StateEntity):
                raise ConfigurationError(f"{keyword} must track working time", self.name)
            entity.add_state_listener(self)

    def validate(self) -> None:
        super().validate()
        if not self.interval.is_set:
            logger.error("[%s] interval is not set", self.name)
            raise ConfigurationError("interval must be set", self.name)
        if not self.duration.is_set:
            logger.error("[%s] duration is not set", self.name)
            raise ConfigurationError("duration must be set", self.name)
        if self.max_downtimes_pending is not None and self.max_downtimes_pending < 1:
            raise ConfigurationError("max_downtimes_pending must be >= 1", self.name)
        if not self._users:
            logger.warning("[%s] No downtime users registered", self.name)

    def start_up(self) -> None:
        sim_time = self.sim_time
        if self.first_downtime.is_set:
            first = self.first_downtime.sample(self.name, sim_time)
        else:
            first = self.interval.sample(self.name, sim_time)
        self._next_due_ns = self._interval_clock_ns() + Instant.from_seconds(first).nanoseconds
        self.check_process_network()

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def register_downtime_user(self, user: DowntimeUser) -> None:
        if user in self._users:
            return
        self._users.append(user)
        if isinstance(user, StateEntity):
            user.add_state_listener(self)

    def unregister_downtime_user(self, user: DowntimeUser) -> None:
        if user not in self._users:
            return
        self._users.remove(user)
        if isinstance(user, StateEntity) and user not in (
            self.interval_working_entity,
            self.duration_working_entity,
        ):
            user.remove_state_listener(self)

    @property
    def users(self) -> list[DowntimeUser]:
        return list(self._users)

    def update_for_state_change(self, entity, previous, new) -> None:
        self.check_process_network()

    # ------------------------------------------------------------------
    # Clocks
    # ------------------------------------------------------------------

    def _interval_clock_ns(self) -> int:
        if self.interval_working_entity is None:
            return self.now.nanoseconds
        return self.interval_working_entity.working_time_ns

    def _duration_clock_ns(self) -> int:
        if self.duration_working_entity is None:
            return self.now.nanoseconds
        return self.duration_working_entity.working_time_ns

    def _rearm(self, event: Event | None, due: Instant, callback, label: str) -> Event:
        if event is not None and event.pending and event.time == due:
            return event
        self.sim.cancel(event)
        when = max(due, self.now)
        return self.sim.schedule_at(when, DEFAULT_PRIORITY, callback, name=f"{self.name}.{label}")

    def _due_instant(self, target_ns: int, clock_entity: StateEntity | None) -> Instant | None:
        """Absolute time a clock reaches ``target_ns``; None while a working clock is stopped."""
        if clock_entity is None:
            return Instant(target_ns)
        if not clock_entity.is_working:
            return None
        remaining = max(target_ns - clock_entity.working_time_ns, 0)
        return self.now + Instant(remaining)

    # ------------------------------------------------------------------
    # Process network
    # ------------------------------------------------------------------

    def check_process_network(self) -> None:
        """Re-arm the due and completion events and start a pending downtime if possible."""
        due = self._due_instant(self._next_due_ns, self.interval_working_entity)
        if due is None:
            self.sim.cancel(self._due_event)
            self._due_event = None
        else:
            self._due_event = self._rearm(self._due_event, due, self.schedule_downtime, "due")

        if self._down:
            end = self._due_instant(self._completion_due_ns, self.duration_working_entity)
            if end is None:
                self.sim.cancel(self._end_event)
                self._end_event = None
            else:
                self._end_event = self._rearm(self._end_event, end, self.end_downtime, "end")
            return

        if self._pending > 0 and self._all_users_can_start():
            self.start_downtime()

    def _all_users_can_start(self) -> bool:
        return all(user.can_start_downtime(self) for user in self._users)

    def schedule_downtime(self) -> None:
        """An occurrence is due: queue it, prepare the users and try to start."""
        self._due_event = None
        now = self.now
        interval = self.interval.sample(self.name, now.to_seconds())
        self._next_due_ns = self._interval_clock_ns() + Instant.from_seconds(interval).nanoseconds

        if self.max_downtimes_pending is not None and self._pending >= self.max_downtimes_pending:
            self._number_dropped += 1
            logger.info(
                "[%s] Backlog full (%d pending), occurrence at %r dropped",
                self.name, self._pending, now,
            )
            self.check_process_network()
            return

        self._pending += 1
        self._due_times.append(now)
        logger.debug("[%s] Downtime due at %r (%d pending)", self.name, now, self._pending)

        for user in list(self._users):
            user.prepare_for_downtime(self)
        self.check_process_network()

    def start_downtime(self) -> None:
        now = self.now
        self._down = True
        self._pending -= 1
        due_time = self._due_times.popleft()
        delay_s = (now - due_time).to_seconds()
        self.start_delays.append(delay_s)
        if delay_s > 0:
            logger.debug("[%s] Downtime started %.6fs after it was due", self.name, delay_s)

        duration_s = self.duration.sample(self.name, now.to_seconds())
        duration = Instant.from_seconds(duration_s)
        self._completion_due_ns = self._duration_clock_ns() + duration.nanoseconds
        self.last_start_time = now
        self.last_end_time = now + duration
        if self.completion_time_limit.is_set:
            limit = self.completion_time_limit.sample(self.name, now.to_seconds())
            self._target = due_time + Instant.from_seconds(limit)
        else:
            self._target = now + duration
        self._number_started += 1
        logger.debug("[%s] Downtime started at %r for %.6fs", self.name, now, duration_s)

        self.set_state(DowntimeState.DOWNTIME)
        for user in list(self._users):
            user.start_downtime(self)
        self.check_process_network()

    def end_downtime(self) -> None:
        self._end_event = None
        now = self.now
        self._down = False
        self._number_completed += 1
        self.last_actual_end_time = now
        if self._target is not None and now > self._target:
            overage = (now - self._target).to_seconds()
            self._number_late += 1
            self._total_lateness_s += overage
            logger.info("[%s] Downtime completed %.6fs late", self.name, overage)
        logger.debug("[%s] Downtime ended at %r", self.name, now)

        self.set_state(DowntimeState.WORKING)
        if self._pending > 0 and self._all_users_can_start():
            self.start_downtime()
            return
        for user in list(self._users):
            user.end_downtime(self)
        self.check_process_network()

    # ------------------------------------------------------------------
    # Outputs
    # ------------------------------------------------------------------

    @property
    def is_down(self) -> bool:
        return self._down

    @property
    def downtimes_pending(self) -> int:
        return self._pending

    @property
    def pending_start_time(self) -> Instant | None:
        """When the oldest pending occurrence fell due, or None."""
        return self._due_times[0] if self._due_times else None

    @property
    def next_start_time(self) -> Instant:
        """Estimated start of the next downtime; Infinity while its clock is stopped."""
        if self._pending > 0 and not self._down:
            return self.now
        due = self._due_instant(self._next_due_ns, self.interval_working_entity)
        return due if due is not None else Instant.Infinity

    @property
    def number_started(self) -> int:
        return self._number_started

    @property
    def number_completed(self) -> int:
        return self._number_completed

    @property
    def number_dropped(self) -> int:
        return self._number_dropped

    @property
    def number_late(self) -> int:
        return self._number_late

    @property
    def total_lateness_s(self) -> float:
        return self._total_lateness_s

    @property
    def availability(self) -> float:
        return self.stats.availability

    @property
    def reliability(self) -> float:
        return self.stats.reliability

    def clear_statistics(self) -> None:
        super().clear_statistics()
        self.start_delays = []
        self._number_started = 0
        self._number_completed = 0
        self._number_dropped = 0
        self._number_late = 0
        self._total_lateness_s = 0.0

    @property
    def stats(self) -> DowntimeStats:
        delays = self.start_delays
        return DowntimeStats(
            number_started=self._number_started,
            number_completed=self._number_completed,
            number_dropped=self._number_dropped,
            number_late=self._number_late,
            total_lateness_s=self._total_lateness_s,
            downtimes_pending=self._pending,
            total_downtime_s=self.time_in_state(DowntimeState.DOWNTIME),
            total_uptime_s=self.time_in_state(DowntimeState.WORKING),
            mean_start_delay_s=sum(delays) / len(delays) if delays else 0.0,
        )
