"""Range-checked sampled inputs.

Component parameters such as service times, inter-arrival times, priorities
and match values may be given as

- a number, used as a constant,
- a Distribution (anything with ``next_sample(sim_time_s)``),
- a callable ``fn(entity)``, evaluated against the entity being handled.

SampleInput wraps any of these with the keyword it was given under and a
valid range. A value outside the range raises SamplingError rather than
being clamped.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from typing import Any, Union

from processflow.distributions.constant import Constant
from processflow.distributions.distribution import Distribution
from processflow.errors import SamplingError

SampleSpec = Union[int, float, Distribution, Callable[[Any], float], None]

NON_NEGATIVE = (0.0, math.inf)
ANY_VALUE = (-math.inf, math.inf)


class SampleInput:
    """A named, range-checked source of values.

    Args:
        keyword: Name of the parameter, used in error messages.
        provider: Number, Distribution or entity expression.
        valid_range: Inclusive ``(low, high)`` bounds.
        integer: Round-trip the sample to int (priorities, match values, counts).
    """

    def __init__(
        self,
        keyword: str,
        provider: SampleSpec,
        valid_range: tuple[float, float] = NON_NEGATIVE,
        integer: bool = False,
    ):
        if isinstance(provider, bool):
            raise TypeError(f"{keyword}: booleans are not valid samples")
        if isinstance(provider, (int, float)):
            provider = Constant(provider)
        if provider is not None and not (
            hasattr(provider, "next_sample") or callable(provider)
        ):
            raise TypeError(
                f"{keyword}: expected a number, distribution or callable, got {provider!r}"
            )
        self.keyword = keyword
        self.provider = provider
        self.valid_range = valid_range
        self.integer = integer

    @property
    def is_set(self) -> bool:
        return self.provider is not None

    @property
    def is_entity_expression(self) -> bool:
        return self.provider is not None and not hasattr(self.provider, "next_sample")

    def sample(self, owner: str, sim_time_s: float, entity: Any = None) -> float:
        """Draw a value.

        Raises:
            SamplingError: If the value is outside ``valid_range`` or not a number.
        """
        if self.provider is None:
            raise SamplingError(owner, self.keyword, None)
        if hasattr(self.provider, "next_sample"):
            value = self.provider.next_sample(sim_time_s)
        else:
            value = self.provider(entity)

        if isinstance(value, bool) or not isinstance(value, (int, float)) or math.isnan(value):
            raise SamplingError(owner, self.keyword, value, self.valid_range)
        low, high = self.valid_range
        if value < low or value > high:
            raise SamplingError(owner, self.keyword, value, self.valid_range)
        if self.integer:
            if math.isinf(value) or value != int(value):
                raise SamplingError(owner, self.keyword, value, self.valid_range)
            return int(value)
        return value

    def __repr__(self) -> str:
        return f"SampleInput({self.keyword!r}, {self.provider!r})"


def as_sample_input(
    keyword: str,
    spec: SampleSpec | SampleInput,
    valid_range: tuple[float, float] = NON_NEGATIVE,
    integer: bool = False,
) -> SampleInput:
    """Wrap ``spec`` in a SampleInput unless it already is one."""
    if isinstance(spec, SampleInput):
        return spec
    return SampleInput(keyword, spec, valid_range=valid_range, integer=integer)
