"""Constant-valued distribution."""

from processflow.distributions.distribution import Distribution


class Constant(Distribution):
    def __init__(self, value: float):
        super().__init__(seed=0)
        self.value = value

    def next_sample(self, sim_time_s: float) -> float:
        return self.value

    @property
    def min_value(self) -> float:
        return self.value

    @property
    def max_value(self) -> float:
        return self.value

    def __repr__(self) -> str:
        return f"Constant({self.value!r})"
