"""Piecewise-constant values over simulated time."""

from __future__ import annotations

import bisect
from collections.abc import Iterable

from processflow.distributions.distribution import Distribution


class TimeSeries(Distribution):
    """A value that changes at given simulated times.

    Each point ``(t, value)`` means "from t seconds on, the value is value".
    Before the first point the first value applies.

    Args:
        points: ``(time_s, value)`` pairs in strictly increasing time order.

    Raises:
        ValueError: If points is empty or not strictly increasing.
    """

    def __init__(self, points: Iterable[tuple[float, float]]):
        super().__init__(seed=0)
        pairs = [(float(t), v) for t, v in points]
        if not pairs:
            raise ValueError("points must not be empty")
        times = [t for t, _ in pairs]
        if any(b <= a for a, b in zip(times, times[1:])):
            raise ValueError("point times must be strictly increasing")
        self._times = times
        self._values = [v for _, v in pairs]

    def value_at(self, sim_time_s: float) -> float:
        index = bisect.bisect_right(self._times, sim_time_s) - 1
        return self._values[max(index, 0)]

    def next_sample(self, sim_time_s: float) -> float:
        return self.value_at(sim_time_s)

    def next_change_after(self, sim_time_s: float) -> float | None:
        """Time of the first point strictly after ``sim_time_s``, or None."""
        index = bisect.bisect_right(self._times, sim_time_s)
        if index >= len(self._times):
            return None
        return self._times[index]

    @property
    def min_value(self) -> float:
        return min(self._values)

    @property
    def max_value(self) -> float:
        return max(self._values)
