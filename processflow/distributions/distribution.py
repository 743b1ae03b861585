"""Base class for sampled model parameters."""

from __future__ import annotations

import random
from abc import ABC, abstractmethod


class Distribution(ABC):
    """Produces one sample per call to ``next_sample``.

    Random distributions draw from their own ``random.Random`` so a seeded
    model reproduces exactly regardless of what else consumes randomness.

    Args:
        seed: Seed for the private generator. None seeds from the OS.
    """

    def __init__(self, seed: int | None = None):
        self._rng = random.Random(seed)

    @abstractmethod
    def next_sample(self, sim_time_s: float) -> float:
        """Return the next value. ``sim_time_s`` is the current simulated time."""

    @property
    def min_value(self) -> float:
        return float("-inf")

    @property
    def max_value(self) -> float:
        return float("inf")
