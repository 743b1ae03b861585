"""Scheduled callbacks.

An Event binds a callback to a simulated time and a priority. Events sort by
``(time, priority, insertion order)`` so that callbacks due at the same instant
run in a reproducible order: lower priority numbers first, then first
scheduled, first run.

Events double as the cancellation handle returned by ``Simulation.schedule``.
Cancellation is lazy: a cancelled event stays on the heap and is skipped when
popped.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from itertools import count

from processflow.core.temporal import Instant

logger = logging.getLogger(__name__)

_global_event_counter = count()

DEFAULT_PRIORITY = 5
"""Priority used for task completions, downtime events and arrivals."""

NOTIFY_PRIORITY = 2
"""Priority used for coalesced queue-changed notifications."""


class Event:
    """A callback scheduled at a simulated time.

    Attributes:
        time: When the callback runs.
        priority: Ordering among events at the same time (lower runs first).
        event_type: Label used in logs and reprs.
        callback: Zero-argument function to invoke.
    """

    __slots__ = (
        "_cancelled",
        "_fired",
        "_sort_index",
        "callback",
        "event_type",
        "priority",
        "time",
    )

    def __init__(
        self,
        time: Instant,
        event_type: str,
        callback: Callable[[], object],
        *,
        priority: int = DEFAULT_PRIORITY,
    ):
        if callback is None:
            raise ValueError(f"Event '{event_type}' must have a callback.")
        self.time = time
        self.event_type = event_type
        self.callback = callback
        self.priority = priority
        self._sort_index = next(_global_event_counter)
        self._cancelled = False
        self._fired = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def fired(self) -> bool:
        return self._fired

    @property
    def pending(self) -> bool:
        """True until the event fires or is cancelled."""
        return not (self._cancelled or self._fired)

    def cancel(self) -> None:
        """Cancel the event. A no-op if it already fired or was cancelled."""
        if self._fired:
            return
        self._cancelled = True

    def invoke(self) -> None:
        """Run the callback. Cancelled or already-fired events do nothing."""
        if not self.pending:
            return
        self._fired = True
        self.callback()

    def __lt__(self, other: Event) -> bool:
        return (self.time, self.priority, self._sort_index) < (
            other.time,
            other.priority,
            other._sort_index,
        )

    def __repr__(self) -> str:
        return f"Event({self.time!r}, {self.event_type!r}, priority={self.priority})"
