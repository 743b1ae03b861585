"""Priority queue with match-value partitioning and occupancy statistics.

Entries are ordered by ``(priority, signed sequence number)``. Lower priority
numbers come out first; within a priority, the sequence number gives FIFO
order, or LIFO order when it is negated. Sequence numbers are unique, so the
ordering never has ties.

Entries may carry an integer match value. A parallel index maps each match
value to its entries so that stations such as Combine and Assemble can wait
until several queues hold entries with the same value.

Adding an entry schedules a single zero-delay notification to every
registered user (``queue_changed()``). Adds at the same instant share one
notification pass.
"""

from __future__ import annotations

import bisect
import logging
import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from processflow.components.linked import LinkedComponent
from processflow.core.event import DEFAULT_PRIORITY, NOTIFY_PRIORITY, Event
from processflow.core.temporal import Instant
from processflow.distributions.sample_input import ANY_VALUE, SampleSpec, as_sample_input
from processflow.errors import InternalConsistencyError

logger = logging.getLogger(__name__)


@runtime_checkable
class QueueUser(Protocol):
    """A component that wants to know when entities arrive in a queue."""

    name: str

    def queue_changed(self) -> None: ...


@dataclass(eq=False)
class QueueEntry:
    """One entity's residency in a queue."""

    entity: Any
    priority: int
    sequence: int
    match: int | None
    time_added: Instant
    saved_state: Any = None
    renege_event: Event | None = field(default=None, repr=False)
    removed: bool = False

    @property
    def sort_key(self) -> tuple[int, int]:
        return (self.priority, self.sequence)

    def __lt__(self, other: QueueEntry) -> bool:
        return self.sort_key < other.sort_key


@dataclass(frozen=True)
class QueueStats:
    """Snapshot of queue statistics since the last reset."""

    number_added: int
    number_removed: int
    number_reneged: int
    current_length: int
    min_length: int
    max_length: int
    average_length: float
    std_dev_length: float
    average_queue_time_s: float
    length_distribution_s: tuple[float, ...]

    @property
    def length_fractions(self) -> tuple[float, ...]:
        """Fraction of time spent at each length."""
        total = sum(self.length_distribution_s)
        if total == 0:
            return tuple(0.0 for _ in self.length_distribution_s)
        return tuple(t / total for t in self.length_distribution_s)


class Queue(LinkedComponent):
    """Holding area for entities waiting to be processed.

    Args:
        name: Identifier.
        priority: Priority of each added entity (number or entity
            expression). Lower values are removed first.
        match: Match value of each added entity. None disables matching.
        fifo: False for LIFO order among entries of equal priority.
        state_assignment: Written into ``entity.present_state`` while the
            entity waits; the previous value is restored on removal.
        renege_time: Seconds an entity waits before it may leave unserved.
        renege_condition: ``fn(queue, entity) -> bool`` evaluated at the
            renege time. Defaults to always renege.
        renege_destination: Component that receives reneging entities.
    """

    def __init__(
        self,
        name: str,
        priority: SampleSpec = 0,
        match: SampleSpec = None,
        fifo: bool = True,
        state_assignment: str | None = None,
        renege_time: SampleSpec = None,
        renege_condition: Callable[[Queue, Any], bool] | None = None,
        renege_destination: LinkedComponent | None = None,
    ):
        super().__init__(name)
        self.priority = as_sample_input("priority", priority, ANY_VALUE, integer=True)
        self.match = as_sample_input("match", match, ANY_VALUE, integer=True)
        self.fifo = fifo
        self.state_assignment = state_assignment
        self.renege_time = as_sample_input("renege_time", renege_time)
        self.renege_condition = renege_condition
        self.renege_destination = renege_destination

        self._entries: list[QueueEntry] = []
        self._match_index: dict[int, list[QueueEntry]] = {}
        self._max_cache: tuple[int | None, int] | None = None
        self._sequence = 0
        self._users: list[QueueUser] = []
        self._notify_event: Event | None = None
        self._reset_statistics()

    def initialize(self) -> None:
        super().initialize()
        self._entries = []
        self._match_index = {}
        self._max_cache = None
        self._sequence = 0
        self._users = []
        self._notify_event = None
        self._reset_statistics()

    def resolve_references(self) -> None:
        super().resolve_references()
        if self.renege_destination is not None:
            self.sim.require_registered(self.renege_destination, self, "renege_destination")

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def register_user(self, user: QueueUser) -> None:
        if user not in self._users:
            self._users.append(user)

    def unregister_user(self, user: QueueUser) -> None:
        if user in self._users:
            self._users.remove(user)

    @property
    def users(self) -> list[QueueUser]:
        return list(self._users)

    def _schedule_notify(self) -> None:
        if self._notify_event is not None and self._notify_event.pending:
            return
        self._notify_event = self.sim.schedule(
            0, NOTIFY_PRIORITY, self._notify_users, name=f"{self.name}.queue_changed"
        )

    def _notify_users(self) -> None:
        self._notify_event = None
        for user in list(self._users):
            user.queue_changed()

    # ------------------------------------------------------------------
    # Add / remove
    # ------------------------------------------------------------------

    def add_entity(self, entity: Any) -> None:
        self.add(entity)

    def add(self, entity: Any) -> QueueEntry:
        """Insert ``entity`` according to its sampled priority and match value."""
        self.register_entity(entity)
        sim_time = self.sim_time
        priority = self.priority.sample(self.name, sim_time, entity)
        match = self.match.sample(self.name, sim_time, entity) if self.match.is_set else None

        self._sequence += 1
        sequence = self._sequence if self.fifo else -self._sequence
        entry = QueueEntry(entity, priority, sequence, match, self.now)

        if self.state_assignment is not None and hasattr(entity, "present_state"):
            entry.saved_state = entity.present_state
            entity.present_state = self.state_assignment

        old = len(self._entries)
        bisect.insort(self._entries, entry)
        if match is not None:
            bisect.insort(self._match_index.setdefault(match, []), entry)
        self._max_cache = None
        self.update_statistics(old, old + 1)
        logger.debug(
            "[%s] Added %s (priority=%s, match=%s, length=%d)",
            self.name, entity, priority, match, old + 1,
        )

        if self.renege_time.is_set:
            delay = self.renege_time.sample(self.name, sim_time, entity)
            entry.renege_event = self.sim.schedule(
                delay, DEFAULT_PRIORITY, lambda: self._renege(entry), name=f"{self.name}.renege"
            )

        self._schedule_notify()
        return entry

    def _remove_entry(self, entry: QueueEntry) -> Any:
        index = bisect.bisect_left(self._entries, entry)
        if index >= len(self._entries) or self._entries[index] is not entry:
            raise InternalConsistencyError(
                f"{self.name}: entry for {entry.entity!r} not found in queue"
            )
        old = len(self._entries)
        del self._entries[index]

        if entry.match is not None:
            bucket = self._match_index.get(entry.match)
            if bucket is None:
                raise InternalConsistencyError(
                    f"{self.name}: match value {entry.match} missing from the match index"
                )
            bucket_index = bisect.bisect_left(bucket, entry)
            if bucket_index >= len(bucket) or bucket[bucket_index] is not entry:
                raise InternalConsistencyError(
                    f"{self.name}: entry for {entry.entity!r} missing from match bucket {entry.match}"
                )
            del bucket[bucket_index]
            if not bucket:
                del self._match_index[entry.match]

        self._max_cache = None
        entry.removed = True
        self.sim.cancel(entry.renege_event)
        if self.state_assignment is not None and hasattr(entry.entity, "present_state"):
            entry.entity.present_state = entry.saved_state

        self._number_removed += 1
        self.update_statistics(old, old - 1)
        logger.debug("[%s] Removed %s (length=%d)", self.name, entry.entity, old - 1)
        return entry.entity

    def remove_first(self) -> Any:
        """Remove and return the highest-priority entity.

        Raises:
            InternalConsistencyError: If the queue is empty.
        """
        if not self._entries:
            raise InternalConsistencyError(f"{self.name}: cannot remove from an empty queue")
        return self._remove_entry(self._entries[0])

    def remove_first_for_match(self, match: int | None) -> Any:
        """Remove the highest-priority entity with ``match``.

        ``match=None`` removes the first entity regardless of match value.
        Returns None when no entity has that match value.
        """
        entry = self._first_entry(match)
        if entry is None:
            return None
        return self._remove_entry(entry)

    def remove_entity(self, entity: Any) -> Any:
        """Remove a specific entity.

        Raises:
            InternalConsistencyError: If the entity is not in the queue.
        """
        for entry in self._entries:
            if entry.entity is entity:
                return self._remove_entry(entry)
        raise InternalConsistencyError(f"{self.name}: {entity!r} is not in the queue")

    def _renege(self, entry: QueueEntry) -> None:
        entry.renege_event = None
        if entry.removed:
            return
        if self.renege_condition is not None and not self.renege_condition(self, entry.entity):
            return
        entity = self._remove_entry(entry)
        self._number_reneged += 1
        logger.debug("[%s] %s reneged", self.name, entity)
        if self.renege_destination is not None:
            self.renege_destination.add_entity(entity)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def _first_entry(self, match: int | None = None) -> QueueEntry | None:
        if match is None:
            return self._entries[0] if self._entries else None
        bucket = self._match_index.get(match)
        return bucket[0] if bucket else None

    def get_first(self) -> Any:
        entry = self._first_entry()
        return entry.entity if entry is not None else None

    def get_first_for_match(self, match: int | None) -> Any:
        entry = self._first_entry(match)
        return entry.entity if entry is not None else None

    def has_entity_for_match(self, match: int | None) -> bool:
        return self._first_entry(match) is not None

    @property
    def count(self) -> int:
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def is_empty(self) -> bool:
        return not self._entries

    @property
    def entities(self) -> list[Any]:
        return [entry.entity for entry in self._entries]

    @property
    def entries(self) -> list[QueueEntry]:
        return list(self._entries)

    def queue_position(self, entity: Any) -> int | None:
        """Zero-based position of ``entity``, or None when absent."""
        for index, entry in enumerate(self._entries):
            if entry.entity is entity:
                return index
        return None

    @property
    def priority_values(self) -> list[int]:
        return [entry.priority for entry in self._entries]

    @property
    def match_values(self) -> list[int | None]:
        return [entry.match for entry in self._entries]

    @property
    def queue_times(self) -> list[float]:
        """Seconds each entity has waited so far, in queue order."""
        now = self.now
        return [(now - entry.time_added).to_seconds() for entry in self._entries]

    @property
    def first_priority(self) -> int | None:
        return self._entries[0].priority if self._entries else None

    def wait_time_of_first(self, match: int | None = None) -> float:
        """Seconds the first entity (optionally for ``match``) has waited; 0 if none."""
        entry = self._first_entry(match)
        if entry is None:
            return 0.0
        return (self.now - entry.time_added).to_seconds()

    # ------------------------------------------------------------------
    # Match values
    # ------------------------------------------------------------------

    def get_match_count(self, match: int | None) -> int:
        """Number of entities with ``match`` (all entities when None)."""
        if match is None:
            return len(self._entries)
        return len(self._match_index.get(match, ()))

    def unique_match_values(self) -> list[int]:
        """Match values present, ordered by their first entity's queue position."""
        return [
            m for m, _ in sorted(self._match_index.items(), key=lambda item: item[1][0].sort_key)
        ]

    @property
    def match_value_count(self) -> int:
        return len(self._match_index)

    def _largest_bucket(self) -> tuple[int | None, int]:
        if self._max_cache is None:
            best: int | None = None
            best_count = 0
            for m in self.unique_match_values():
                n = len(self._match_index[m])
                if n > best_count:
                    best, best_count = m, n
            self._max_cache = (best, best_count)
        return self._max_cache

    def get_max_count(self) -> int:
        """Size of the largest match-value bucket; the queue length without matching."""
        if not self.match.is_set:
            return len(self._entries)
        return self._largest_bucket()[1]

    def get_match_for_max(self) -> int | None:
        """Match value with the most entities, or None."""
        return self._largest_bucket()[0]

    @staticmethod
    def _number_for(numbers: Sequence[int] | None, index: int) -> int:
        if not numbers:
            return 1
        return int(numbers[min(index, len(numbers) - 1)])

    @staticmethod
    def sufficient_entities(
        queues: Sequence[Queue], numbers: Sequence[int] | None, match: int | None
    ) -> bool:
        """True when every queue holds its required number of entities for ``match``.

        ``numbers`` gives the requirement per queue; the last value repeats.
        """
        return all(
            queue.get_match_count(match) >= Queue._number_for(numbers, i)
            for i, queue in enumerate(queues)
        )

    @staticmethod
    def select_match_value(
        queues: Sequence[Queue], numbers: Sequence[int] | None = None
    ) -> int | None:
        """First match value for which every queue holds enough entities, else None."""
        if not queues:
            return None
        for i, queue in enumerate(queues):
            if queue.get_max_count() < Queue._number_for(numbers, i):
                return None

        shortest = min(queues, key=lambda q: q.match_value_count)
        for m in shortest.unique_match_values():
            if Queue.sufficient_entities(queues, numbers, m):
                return m
        return None

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def _reset_statistics(self) -> None:
        self._number_removed = 0
        self._number_reneged = 0
        start = self._clock.now.nanoseconds if self._clock is not None else 0
        self._stats_start_ns = start
        self._last_update_ns = start
        current = len(self._entries)
        self._min_length = current
        self._max_length = current
        self._element_seconds = 0.0
        self._squared_element_seconds = 0.0
        self._length_dist: list[float] = []

    def update_statistics(self, old_value: int, new_value: int) -> None:
        """Account for a change of length from ``old_value`` to ``new_value``."""
        self._min_length = min(new_value, self._min_length)
        self._max_length = max(new_value, self._max_length)

        now_ns = self.now.nanoseconds
        dt_ns = now_ns - self._last_update_ns
        if dt_ns > 0:
            dt = dt_ns / 1e9
            self._element_seconds += dt * old_value
            self._squared_element_seconds += dt * old_value * old_value
            if len(self._length_dist) <= old_value:
                self._length_dist.extend([0.0] * (old_value + 1 - len(self._length_dist)))
            self._length_dist[old_value] += dt
            self._last_update_ns = now_ns

    def clear_statistics(self) -> None:
        super().clear_statistics()
        self._reset_statistics()

    def _pending_dt(self) -> float:
        return (self.now.nanoseconds - self._last_update_ns) / 1e9

    @property
    def length_distribution(self) -> list[float]:
        """Seconds spent at each queue length, including the current interval."""
        dist = list(self._length_dist)
        n = len(self._entries)
        dt = self._pending_dt()
        if dt > 0:
            if len(dist) <= n:
                dist.extend([0.0] * (n + 1 - len(dist)))
            dist[n] += dt
        return dist

    @property
    def average_length(self) -> float:
        total = (self.now.nanoseconds - self._stats_start_ns) / 1e9
        if total <= 0:
            return 0.0
        return (self._element_seconds + self._pending_dt() * len(self._entries)) / total

    @property
    def std_dev_length(self) -> float:
        total = (self.now.nanoseconds - self._stats_start_ns) / 1e9
        if total <= 0:
            return 0.0
        n = len(self._entries)
        mean = self.average_length
        squared = (self._squared_element_seconds + self._pending_dt() * n * n) / total
        return math.sqrt(max(squared - mean * mean, 0.0))

    @property
    def min_length(self) -> int:
        return self._min_length

    @property
    def max_length(self) -> int:
        """Largest length observed.

        An entity that passes through an empty queue without waiting does not
        count as a queue length of one.
        """
        if self._max_length == 1:
            dist = self.length_distribution
            if len(dist) < 2 or dist[1] == 0.0:
                return 0
        return self._max_length

    @property
    def average_queue_time(self) -> float:
        """Mean seconds an added entity spends in the queue (Little's law)."""
        added = self.number_added
        if added == 0:
            return 0.0
        return (self._element_seconds + self._pending_dt() * len(self._entries)) / added

    @property
    def number_removed(self) -> int:
        return self._number_removed

    @property
    def number_reneged(self) -> int:
        return self._number_reneged

    @property
    def stats(self) -> QueueStats:
        return QueueStats(
            number_added=self.number_added,
            number_removed=self._number_removed,
            number_reneged=self._number_reneged,
            current_length=len(self._entries),
            min_length=self._min_length,
            max_length=self.max_length,
            average_length=self.average_length,
            std_dev_length=self.std_dev_length,
            average_queue_time_s=self.average_queue_time,
            length_distribution_s=tuple(self.length_distribution),
        )

    def __repr__(self) -> str:
        return f"Queue({self.name!r}, length={len(self._entries)})"
