"""Deterministic sequence of values, returned in order."""

from collections.abc import Iterable

from processflow.distributions.distribution import Distribution


class Sequence(Distribution):
    """Returns the given values one after another.

    Args:
        values: Values to return. Must not be empty.
        repeat: Start again from the first value once exhausted. When False,
            the last value is repeated forever.
    """

    def __init__(self, values: Iterable[float], repeat: bool = True):
        super().__init__(seed=0)
        self.values = list(values)
        if not self.values:
            raise ValueError("values must not be empty")
        self.repeat = repeat
        self._index = 0

    def next_sample(self, sim_time_s: float) -> float:
        if self._index >= len(self.values):
            if not self.repeat:
                return self.values[-1]
            self._index = 0
        value = self.values[self._index]
        self._index += 1
        return value

    def reset(self) -> None:
        self._index = 0

    @property
    def min_value(self) -> float:
        return min(self.values)

    @property
    def max_value(self) -> float:
        return max(self.values)
