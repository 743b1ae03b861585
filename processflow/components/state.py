"""Time-in-state bookkeeping shared by stations and downtime entities."""

from __future__ import annotations

import logging
from collections.abc import Hashable, Iterable
from typing import Protocol, runtime_checkable

from processflow.core.entity import Entity

logger = logging.getLogger(__name__)


@runtime_checkable
class StateListener(Protocol):
    """Receives a call whenever a watched StateEntity changes state."""

    def update_for_state_change(
        self, entity: StateEntity, previous: Hashable, new: Hashable
    ) -> None: ...


class StateEntity(Entity):
    """Entity with a present state and accumulated time per state.

    Times are kept in integer nanoseconds. A subset of states can be declared
    as "working"; the accumulated time in those states is the working time
    that downtime entities can use as their clock.

    Args:
        name: Identifier.
        initial_state: State entered at run start. Defaults to the class's
            ``INITIAL_STATE``.
        working_states: States that count as working. Defaults to the
            class's ``WORKING_STATES``.
    """

    INITIAL_STATE: Hashable = None
    WORKING_STATES: frozenset = frozenset()

    def __init__(
        self,
        name: str,
        initial_state: Hashable = None,
        working_states: Iterable[Hashable] | None = None,
    ):
        super().__init__(name)
        self._initial_state = self.INITIAL_STATE if initial_state is None else initial_state
        self._working_states = frozenset(
            self.WORKING_STATES if working_states is None else working_states
        )
        self._present_state = self._initial_state
        self._state_start_ns = 0
        self._time_in_state_ns: dict[Hashable, int] = {}
        self._working_ns = 0
        self._stats_start_ns = 0
        self._listeners: list[StateListener] = []

    def initialize(self) -> None:
        super().initialize()
        self._present_state = self._initial_state
        self._state_start_ns = self.now.nanoseconds
        self._stats_start_ns = self._state_start_ns
        self._time_in_state_ns = {}
        self._working_ns = 0
        self._listeners = []

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_state_listener(self, listener: StateListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_state_listener(self, listener: StateListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def state_listeners(self) -> list[StateListener]:
        return list(self._listeners)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def present_state(self) -> Hashable:
        return self._present_state

    def is_working_state(self, state: Hashable) -> bool:
        return state in self._working_states

    @property
    def is_working(self) -> bool:
        return self.is_working_state(self._present_state)

    def set_state(self, state: Hashable) -> None:
        """Enter ``state`` and notify listeners. Re-entering the present state is a no-op."""
        if state == self._present_state:
            return
        self._collect_current_state()
        previous = self._present_state
        self._present_state = state
        logger.debug("[%s] State %s -> %s", self.name, previous, state)

        for listener in list(self._listeners):
            listener.update_for_state_change(self, previous, state)

    def _collect_current_state(self) -> None:
        now_ns = self.now.nanoseconds
        elapsed = now_ns - self._state_start_ns
        if elapsed > 0:
            state = self._present_state
            self._time_in_state_ns[state] = self._time_in_state_ns.get(state, 0) + elapsed
            if self.is_working_state(state):
                self._working_ns += elapsed
        self._state_start_ns = now_ns

    # ------------------------------------------------------------------
    # Accumulated times
    # ------------------------------------------------------------------

    def time_in_state_ns(self, state: Hashable) -> int:
        total = self._time_in_state_ns.get(state, 0)
        if state == self._present_state:
            total += self.now.nanoseconds - self._state_start_ns
        return total

    def time_in_state(self, state: Hashable) -> float:
        """Seconds spent in ``state`` since the last statistics reset."""
        return self.time_in_state_ns(state) / 1e9

    @property
    def working_time_ns(self) -> int:
        """Cumulative working time; never reset by ``clear_statistics``."""
        total = self._working_ns
        if self.is_working:
            total += self.now.nanoseconds - self._state_start_ns
        return total

    @property
    def working_time(self) -> float:
        return self.working_time_ns / 1e9

    @property
    def total_time(self) -> float:
        """Seconds since the last statistics reset."""
        return (self.now.nanoseconds - self._stats_start_ns) / 1e9

    def state_times(self) -> dict[Hashable, float]:
        states = set(self._time_in_state_ns) | {self._present_state}
        return {state: self.time_in_state(state) for state in states}

    def clear_statistics(self) -> None:
        super().clear_statistics()
        self._collect_current_state()
        self._time_in_state_ns = {}
        self._stats_start_ns = self.now.nanoseconds
