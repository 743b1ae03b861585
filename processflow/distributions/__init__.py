"""Samplers for durations, intervals, priorities and capacities."""

from processflow.distributions.constant import Constant
from processflow.distributions.distribution import Distribution
from processflow.distributions.exponential import Exponential
from processflow.distributions.sample_input import (
    ANY_VALUE,
    NON_NEGATIVE,
    SampleInput,
    SampleSpec,
    as_sample_input,
)
from processflow.distributions.sequence import Sequence
from processflow.distributions.time_series import TimeSeries
from processflow.distributions.uniform import Uniform

__all__ = [
    "ANY_VALUE",
    "NON_NEGATIVE",
    "Constant",
    "Distribution",
    "Exponential",
    "SampleInput",
    "SampleSpec",
    "Sequence",
    "TimeSeries",
    "Uniform",
    "as_sample_input",
]
