"""Simulation clock shared by every entity of a run."""

from __future__ import annotations

from processflow.core.temporal import Instant


class Clock:
    """Holds the current simulated time. Only the Simulation advances it."""

    def __init__(self, start_time: Instant = Instant.Epoch):
        self._now = start_time

    @property
    def now(self) -> Instant:
        return self._now

    def update(self, time: Instant) -> None:
        self._now = time
