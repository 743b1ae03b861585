"""Generic processing station: the start/stop/interrupt state machine.

A LinkedService alternates between waiting and working. What it works on is
decided by a TaskProvider (see ``tasks.py``); the station itself owns:

- the end-of-task event and the remaining duration of an interrupted task,
- the three threshold roles (operating, immediate, immediate-release),
- the downtime entities it stops for and their policies,
- the present state and the utilisation ratios derived from it.

Remaining task time is tracked in integer nanoseconds, so a task of duration
D interrupted after E seconds resumes with exactly D - E left.

The state machine in short::

    start_action -> (select task) -> schedule end -> _end_action
         ^                                               |
         +-------------- task complete / resumed --------+

    stop_action: cancel the end event, keep the remaining duration.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from processflow.components.downtime import DowntimeEntity, DowntimeKind, DowntimePolicy
from processflow.components.linked import LinkedComponent
from processflow.components.queue import Queue
from processflow.components.state import StateEntity
from processflow.components.tasks import TaskProvider
from processflow.components.threshold import Threshold
from processflow.core.event import DEFAULT_PRIORITY, Event
from processflow.core.temporal import Instant
from processflow.distributions.sample_input import ANY_VALUE, SampleSpec, as_sample_input
from processflow.errors import ConfigurationError

logger = logging.getLogger(__name__)


class StationState(Enum):
    WORKING = "Working"
    CLEARING_WHILE_STOPPED = "Clearing_while_Stopped"
    IDLE = "Idle"
    STOPPED = "Stopped"
    MAINTENANCE = "Maintenance"
    BREAKDOWN = "Breakdown"


@dataclass(frozen=True)
class StationStats:
    """Snapshot of station statistics.

    Attributes:
        name: Station name.
        present_state: State name at the time of the snapshot.
        number_added: Entities taken in.
        number_processed: Entities sent on.
        tasks_completed: Tasks finished.
        state_times_s: Seconds per state name.
        utilisation: Working time over time not stopped or down.
        commitment: Fraction of time not idle.
        availability: Fraction of time not down.
        reliability: Working time over working plus breakdown time.
    """

    name: str
    present_state: str
    number_added: int
    number_processed: int
    tasks_completed: int
    state_times_s: dict[str, float]
    utilisation: float
    commitment: float
    availability: float
    reliability: float


def _ratio(numerator: float, denominator: float) -> float:
    if denominator <= 0:
        return 0.0
    return numerator / denominator


class LinkedService(LinkedComponent, StateEntity):
    """A station that processes entities one task at a time.

    Args:
        name: Identifier.
        task: The TaskProvider deciding what a task is.
        wait_queue: Queue arriving entities wait in.
        match: Match value restricting which queued entities are taken.
        next_component: Downstream component.
        operating_thresholds: While any is closed no new task starts; the
            task in progress finishes.
        immediate_thresholds: Closing any interrupts the task in progress.
        immediate_release_thresholds: Closing any completes the task in
            progress at once.
        immediate_maintenance, forced_maintenance, opportunistic_maintenance:
            Maintenance DowntimeEntities per policy.
        immediate_breakdown, forced_breakdown, opportunistic_breakdown:
            Breakdown DowntimeEntities per policy.
    """

    INITIAL_STATE = StationState.IDLE
    WORKING_STATES = frozenset({StationState.WORKING, StationState.CLEARING_WHILE_STOPPED})

    def __init__(
        self,
        name: str,
        task: TaskProvider,
        wait_queue: Queue | None = None,
        match: SampleSpec = None,
        next_component: LinkedComponent | None = None,
        operating_thresholds: Iterable[Threshold] = (),
        immediate_thresholds: Iterable[Threshold] = (),
        immediate_release_thresholds: Iterable[Threshold] = (),
        immediate_maintenance: Iterable[DowntimeEntity] = (),
        forced_maintenance: Iterable[DowntimeEntity] = (),
        opportunistic_maintenance: Iterable[DowntimeEntity] = (),
        immediate_breakdown: Iterable[DowntimeEntity] = (),
        forced_breakdown: Iterable[DowntimeEntity] = (),
        opportunistic_breakdown: Iterable[DowntimeEntity] = (),
    ):
        super().__init__(name, next_component=next_component)
        self.task = task
        self.wait_queue = wait_queue
        self.match = as_sample_input("match", match, ANY_VALUE, integer=True)
        self.operating_thresholds = list(operating_thresholds)
        self.immediate_thresholds = list(immediate_thresholds)
        self.immediate_release_thresholds = list(immediate_release_thresholds)

        self._downtimes: dict[DowntimeEntity, tuple[DowntimeKind, DowntimePolicy]] = {}
        for kind, policy, entities in (
            (DowntimeKind.MAINTENANCE, DowntimePolicy.IMMEDIATE, immediate_maintenance),
            (DowntimeKind.MAINTENANCE, DowntimePolicy.FORCED, forced_maintenance),
            (DowntimeKind.MAINTENANCE, DowntimePolicy.OPPORTUNISTIC, opportunistic_maintenance),
            (DowntimeKind.BREAKDOWN, DowntimePolicy.IMMEDIATE, immediate_breakdown),
            (DowntimeKind.BREAKDOWN, DowntimePolicy.FORCED, forced_breakdown),
            (DowntimeKind.BREAKDOWN, DowntimePolicy.OPPORTUNISTIC, opportunistic_breakdown),
        ):
            for down in entities:
                if down in self._downtimes:
                    raise ConfigurationError(
                        f"downtime entity {down.name!r} is listed more than once", name
                    )
                self._downtimes[down] = (kind, policy)

        task.bind(self)
        self._reset_process_state()

    def _reset_process_state(self) -> None:
        self._busy = False
        self._remaining_ns = 0
        self._end_event: Event | None = None
        self._end_time: Instant | None = None
        self._last_update: Instant = Instant.Epoch
        self._forced_pending = False
        self._process_completed = True
        self.interrupted = False
        self.stop_time: Instant | None = None
        self.task_start_time: Instant | None = None
        self.task_duration = 0.0
        self._tasks_completed = 0
        self._initial_tasks_completed = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        super().initialize()
        self._reset_process_state()
        self._last_update = self.now
        self.task.initialize()

    def resolve_references(self) -> None:
        super().resolve_references()
        for queue in self.task.queues():
            self.sim.require_registered(queue, self, "wait_queue")
            queue.register_user(self)
        for keyword in ("operating_thresholds", "immediate_thresholds",
                        "immediate_release_thresholds"):
            for threshold in getattr(self, keyword):
                self.sim.require_registered(threshold, self, keyword)
                threshold.register_user(self)
        for down in self._downtimes:
            self.sim.require_registered(down, self, "downtime")
            down.register_downtime_user(self)

    def validate(self) -> None:
        super().validate()
        self.task.validate()

    def start_up(self) -> None:
        super().start_up()
        self.set_present_state()

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def add_entity(self, entity: Any) -> None:
        if self.task.accept_entity(entity):
            return
        if self.wait_queue is None:
            raise ConfigurationError("wait_queue must be set to receive entities", self.name)
        self.wait_queue.add(entity)

    def queue_changed(self) -> None:
        self.start_action()

    def threshold_changed(self, threshold: Threshold) -> None:
        if threshold in self.immediate_release_thresholds and not threshold.is_open:
            if self._end_event is not None and self._end_event.pending:
                logger.debug("[%s] Released early by %s", self.name, threshold.name)
                self.sim.cancel(self._end_event)
                self._end_action()
                return
        if threshold in self.immediate_thresholds and not threshold.is_open:
            self.stop_action()
            return
        if self.is_open:
            self.start_action()
        else:
            self.set_present_state()

    def next_match_value(self, sim_time_s: float, entity: Any = None) -> int | None:
        """The station's match value, or None when it has none."""
        if not self.match.is_set:
            return None
        return self.match.sample(self.name, sim_time_s, entity)

    # ------------------------------------------------------------------
    # Conditions
    # ------------------------------------------------------------------

    @property
    def is_busy(self) -> bool:
        return self._busy

    @property
    def is_open(self) -> bool:
        """True when every operating and immediate threshold is open."""
        return all(t.is_open for t in self.operating_thresholds) and self.is_immediate_open

    @property
    def is_immediate_open(self) -> bool:
        return all(t.is_open for t in self.immediate_thresholds)

    @property
    def is_immediate_release_closed(self) -> bool:
        return any(not t.is_open for t in self.immediate_release_thresholds)

    def _is_down(self, kind: DowntimeKind) -> bool:
        return any(d.is_down and k is kind for d, (k, _) in self._downtimes.items())

    @property
    def is_maintenance(self) -> bool:
        return self._is_down(DowntimeKind.MAINTENANCE)

    @property
    def is_breakdown(self) -> bool:
        return self._is_down(DowntimeKind.BREAKDOWN)

    @property
    def is_available(self) -> bool:
        """Not in maintenance or breakdown."""
        return not (self.is_maintenance or self.is_breakdown)

    @property
    def is_idle(self) -> bool:
        """Not busy, every threshold open and no downtime active."""
        return not self._busy and self.is_open and self.is_available

    @property
    def is_unable_to_work(self) -> bool:
        """Stopped by a threshold or down for maintenance or a breakdown."""
        return not self._busy and (not self.is_open or not self.is_available)

    @property
    def end_time(self) -> Instant | None:
        """When the task in progress ends, or None."""
        if self._end_event is not None and self._end_event.pending:
            return self._end_time
        return None

    @property
    def remaining_duration(self) -> float:
        """Seconds left on the current or interrupted task."""
        return Instant(self._remaining_ns).to_seconds()

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def start_action(self) -> None:
        """Start the next task, or resume an interrupted one."""
        if self._end_event is not None and self._end_event.pending:
            self.set_present_state()
            return

        if not self.is_available or not self.is_immediate_open or self._forced_pending:
            self._forced_pending = False
            self.stop_action()
            return

        now = self.now
        self._last_update = now
        if self._process_completed:
            if not self.is_open:
                self.stop_action()
                return
            sim_time = now.to_seconds()
            if not self.task.select_next_task(sim_time):
                self.stop_action()
                return
            self.task_duration = self.task.task_duration(sim_time)
            self._remaining_ns = Instant.from_seconds(self.task_duration).nanoseconds
            self.task_start_time = now
            self.interrupted = False
        elif self.interrupted:
            logger.debug(
                "[%s] Resuming with %.6fs left", self.name, self.remaining_duration
            )
            self.interrupted = False

        self._busy = True
        self._process_completed = False
        self._end_time = now + Instant(self._remaining_ns)
        self._end_event = self.sim.schedule_at(
            self._end_time, DEFAULT_PRIORITY, self._end_action, name=f"{self.name}.end_task"
        )
        self.set_present_state()

    def _end_action(self) -> None:
        self._end_event = None
        self.update_progress()
        if self._remaining_ns <= 0 or self.is_immediate_release_closed:
            self._remaining_ns = 0
            self.task.on_task_complete(self.sim_time)
            self._process_completed = True
            self._tasks_completed += 1
        self.start_action()

    def stop_action(self) -> None:
        """Halt work. An in-flight task keeps its remaining duration."""
        if self._end_event is not None and self._end_event.pending:
            self.sim.cancel(self._end_event)
            self._end_event = None
            self.interrupted = True
            self.stop_time = self.now
            logger.debug("[%s] Interrupted at %r", self.name, self.now)
        self.update_progress()
        self._busy = False
        self.set_present_state()

    def update_progress(self) -> None:
        """Charge the busy time since the last update to the task in progress."""
        now = self.now
        dt_ns = now.nanoseconds - self._last_update.nanoseconds
        if self._busy and dt_ns > 0:
            self._remaining_ns = max(self._remaining_ns - dt_ns, 0)
            self.task.update_progress(dt_ns / 1e9)
        self._last_update = now

    def reset_process(self) -> None:
        """Abandon the in-flight duration and pick the task again from scratch."""
        if self._end_event is None or not self._end_event.pending:
            return
        self.sim.cancel(self._end_event)
        self._end_event = None
        self.update_progress()
        self._process_completed = True
        self.start_action()

    def set_present_state(self) -> None:
        if self._busy:
            state = (
                StationState.WORKING if self.is_open else StationState.CLEARING_WHILE_STOPPED
            )
        elif not self.is_open:
            state = StationState.STOPPED
        elif self.is_maintenance:
            state = StationState.MAINTENANCE
        elif self.is_breakdown:
            state = StationState.BREAKDOWN
        else:
            state = StationState.IDLE
        self.set_state(state)

    # ------------------------------------------------------------------
    # Downtime user
    # ------------------------------------------------------------------

    def _policy(self, down: DowntimeEntity) -> DowntimePolicy:
        return self._downtimes[down][1]

    def can_start_downtime(self, down: DowntimeEntity) -> bool:
        if self._policy(down) is DowntimePolicy.OPPORTUNISTIC:
            if any(not queue.is_empty for queue in self.task.queues()):
                return False
        return self.is_idle

    def prepare_for_downtime(self, down: DowntimeEntity) -> None:
        policy = self._policy(down)
        if policy is DowntimePolicy.IMMEDIATE:
            logger.debug("[%s] Stopping for %s", self.name, down.name)
            self.stop_action()
        elif policy is DowntimePolicy.FORCED and self._busy:
            self._forced_pending = True

    def start_downtime(self, down: DowntimeEntity) -> None:
        self.set_present_state()

    def end_downtime(self, down: DowntimeEntity) -> None:
        self.start_action()

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    @property
    def tasks_completed(self) -> int:
        return self._tasks_completed - self._initial_tasks_completed

    def clear_statistics(self) -> None:
        super().clear_statistics()
        self._initial_tasks_completed = self._tasks_completed

    @property
    def utilisation(self) -> float:
        excluded = sum(
            self.time_in_state(s)
            for s in (StationState.STOPPED, StationState.MAINTENANCE, StationState.BREAKDOWN)
        )
        return _ratio(self.time_in_state(StationState.WORKING), self.total_time - excluded)

    @property
    def commitment(self) -> float:
        total = self.total_time
        if total <= 0:
            return 0.0
        return 1.0 - self.time_in_state(StationState.IDLE) / total

    @property
    def availability(self) -> float:
        total = self.total_time
        if total <= 0:
            return 1.0
        down = self.time_in_state(StationState.MAINTENANCE) + self.time_in_state(
            StationState.BREAKDOWN
        )
        return 1.0 - down / total

    @property
    def reliability(self) -> float:
        working = self.time_in_state(StationState.WORKING)
        return _ratio(working, working + self.time_in_state(StationState.BREAKDOWN))

    @property
    def stats(self) -> StationStats:
        return StationStats(
            name=self.name,
            present_state=self.present_state.value,
            number_added=self.number_added,
            number_processed=self.number_processed,
            tasks_completed=self.tasks_completed,
            state_times_s={state.value: t for state, t in self.state_times().items()},
            utilisation=self.utilisation,
            commitment=self.commitment,
            availability=self.availability,
            reliability=self.reliability,
        )
