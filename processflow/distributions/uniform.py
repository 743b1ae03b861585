"""Uniformly distributed samples."""

from processflow.distributions.distribution import Distribution


class Uniform(Distribution):
    """Continuous uniform distribution on ``[low, high]``.

    Raises:
        ValueError: If high < low.
    """

    def __init__(self, low: float, high: float, seed: int | None = None):
        if high < low:
            raise ValueError(f"high ({high}) must be >= low ({low})")
        super().__init__(seed)
        self.low = low
        self.high = high

    def next_sample(self, sim_time_s: float) -> float:
        return self._rng.uniform(self.low, self.high)

    @property
    def min_value(self) -> float:
        return self.low

    @property
    def max_value(self) -> float:
        return self.high

    def __repr__(self) -> str:
        return f"Uniform({self.low!r}, {self.high!r})"
