"""Exception types raised by processflow.

Errors fall into three groups:

- ``ConfigurationError``: the model is wired incorrectly. Detected when the
  simulation is initialized, before any event runs.
- ``InternalConsistencyError``: a bookkeeping invariant was broken. These
  terminate the run.
- ``SamplingError``: a sampled parameter produced a value outside its valid
  range.

Bounded conditions such as a full downtime backlog are not errors; they are
counted by the component that owns them.
"""

from __future__ import annotations

from typing import Any


class ProcessFlowError(Exception):
    """Base class for all processflow errors."""


class ConfigurationError(ProcessFlowError, ValueError):
    """A component is missing a required input or references an unknown entity.

    Attributes:
        component: Name of the offending component, if known.
    """

    def __init__(self, message: str, component: str | None = None):
        self.component = component
        if component is not None:
            message = f"{component}: {message}"
        super().__init__(message)


class InternalConsistencyError(ProcessFlowError, RuntimeError):
    """Internal bookkeeping is corrupt; the run cannot continue."""


class SamplingError(ProcessFlowError, ValueError):
    """A sampled value fell outside the valid range of its input.

    Attributes:
        component: Name of the component that requested the sample.
        keyword: Name of the input that was sampled.
        value: The offending value.
    """

    def __init__(
        self,
        component: str,
        keyword: str,
        value: Any,
        valid_range: tuple[float, float] | None = None,
    ):
        self.component = component
        self.keyword = keyword
        self.value = value
        self.valid_range = valid_range
        message = f"{component}.{keyword}: sampled value {value!r} is out of range"
        if valid_range is not None:
            message += f" [{valid_range[0]}, {valid_range[1]}]"
        super().__init__(message)
