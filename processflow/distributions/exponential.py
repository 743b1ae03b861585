"""Exponentially distributed samples, typical for inter-arrival and repair times."""

import logging

from processflow.distributions.distribution import Distribution

logger = logging.getLogger(__name__)


class Exponential(Distribution):
    """Exponential distribution with the given mean.

    Args:
        mean: Mean of the distribution (seconds when used as a duration).
        seed: Seed for the private generator.

    Raises:
        ValueError: If mean is not positive.
    """

    def __init__(self, mean: float, seed: int | None = None):
        if mean <= 0:
            raise ValueError(f"mean must be > 0, got {mean}")
        super().__init__(seed)
        self.mean = mean
        logger.debug("Exponential created: mean=%.6f", mean)

    def next_sample(self, sim_time_s: float) -> float:
        return self._rng.expovariate(1.0 / self.mean)

    @property
    def min_value(self) -> float:
        return 0.0

    def __repr__(self) -> str:
        return f"Exponential(mean={self.mean!r})"
