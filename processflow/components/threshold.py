"""Gating condition that opens and closes on schedule or programmatically.

A Threshold does not hold entities itself. Stations list thresholds in one
of three roles (operating, immediate, immediate-release) and are told of
every transition through ``threshold_changed``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from processflow.core.entity import Entity
from processflow.core.event import DEFAULT_PRIORITY
from processflow.errors import ConfigurationError

logger = logging.getLogger(__name__)


@runtime_checkable
class ThresholdUser(Protocol):
    """A component that reacts when one of its thresholds opens or closes."""

    name: str

    def threshold_changed(self, threshold: Threshold) -> None: ...


@dataclass(frozen=True)
class ThresholdStats:
    """Snapshot of threshold statistics."""

    open_count: int = 0
    close_count: int = 0
    open_time_s: float = 0.0
    closed_time_s: float = 0.0
    is_open: bool = True

    @property
    def open_fraction(self) -> float:
        total = self.open_time_s + self.closed_time_s
        if total == 0:
            return 1.0 if self.is_open else 0.0
        return self.open_time_s / total


class Threshold(Entity):
    """An open/closed signal shared by one or more stations.

    Args:
        name: Identifier for logging.
        initially_open: State at run start.
        schedule: ``(open_at_s, close_at_s)`` windows applied during the run.
    """

    def __init__(
        self,
        name: str,
        initially_open: bool = True,
        schedule: list[tuple[float, float]] | None = None,
    ):
        super().__init__(name)
        self.initially_open = initially_open
        self.schedule_windows = list(schedule or [])
        self._is_open = initially_open
        self._users: list[ThresholdUser] = []
        self._open_count = 0
        self._close_count = 0
        self._open_ns = 0
        self._closed_ns = 0
        self._last_change_ns = 0

    def initialize(self) -> None:
        super().initialize()
        self._is_open = self.initially_open
        self._users = []
        self._open_count = 0
        self._close_count = 0
        self._open_ns = 0
        self._closed_ns = 0
        self._last_change_ns = self.now.nanoseconds

    def validate(self) -> None:
        super().validate()
        for open_at, close_at in self.schedule_windows:
            if close_at <= open_at:
                raise ConfigurationError(
                    f"schedule window ({open_at}, {close_at}) closes before it opens", self.name
                )

    def start_up(self) -> None:
        for open_at, close_at in self.schedule_windows:
            self.schedule(max(open_at - self.sim_time, 0.0), self.open, priority=DEFAULT_PRIORITY)
            self.schedule(max(close_at - self.sim_time, 0.0), self.close, priority=DEFAULT_PRIORITY)

    def register_user(self, user: ThresholdUser) -> None:
        if user not in self._users:
            self._users.append(user)

    def unregister_user(self, user: ThresholdUser) -> None:
        if user in self._users:
            self._users.remove(user)

    @property
    def users(self) -> list[ThresholdUser]:
        return list(self._users)

    @property
    def is_open(self) -> bool:
        return self._is_open

    def open(self) -> None:
        """Open the threshold. A no-op when already open."""
        self._set_open(True)

    def close(self) -> None:
        """Close the threshold. A no-op when already closed."""
        self._set_open(False)

    def _set_open(self, value: bool) -> None:
        if value == self._is_open:
            return
        self._collect()
        self._is_open = value
        if value:
            self._open_count += 1
        else:
            self._close_count += 1
        logger.debug("[%s] %s", self.name, "Opened" if value else "Closed")
        for user in list(self._users):
            user.threshold_changed(self)

    def _collect(self) -> None:
        now_ns = self.now.nanoseconds
        elapsed = now_ns - self._last_change_ns
        if self._is_open:
            self._open_ns += elapsed
        else:
            self._closed_ns += elapsed
        self._last_change_ns = now_ns

    def clear_statistics(self) -> None:
        super().clear_statistics()
        self._collect()
        self._open_count = 0
        self._close_count = 0
        self._open_ns = 0
        self._closed_ns = 0

    @property
    def stats(self) -> ThresholdStats:
        self._collect()
        return ThresholdStats(
            open_count=self._open_count,
            close_count=self._close_count,
            open_time_s=self._open_ns / 1e9,
            closed_time_s=self._closed_ns / 1e9,
            is_open=self._is_open,
        )
