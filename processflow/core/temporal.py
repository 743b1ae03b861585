"""Simulated time.

Instant stores time as integer nanoseconds so that repeated interrupt/resume
arithmetic on task durations never accumulates floating point error. The same
type is used for absolute times and for durations.
"""

from __future__ import annotations

from typing import Union

_NS_PER_SECOND = 1_000_000_000
_INFINITE_NS = 2**63 - 1


class Instant:
    """A point in (or span of) simulated time, in nanoseconds."""

    __slots__ = ("nanoseconds",)

    Epoch: Instant
    Infinity: Instant

    def __init__(self, nanoseconds: int):
        self.nanoseconds = int(nanoseconds)

    @classmethod
    def from_seconds(cls, seconds: Union[int, float]) -> Instant:
        if seconds == float("inf") or seconds >= _INFINITE_NS / _NS_PER_SECOND:
            return cls(_INFINITE_NS)
        if isinstance(seconds, int):
            return cls(seconds * _NS_PER_SECOND)
        return cls(round(seconds * _NS_PER_SECOND))

    def to_seconds(self) -> float:
        if self.is_infinite():
            return float("inf")
        return self.nanoseconds / _NS_PER_SECOND

    def is_infinite(self) -> bool:
        return self.nanoseconds >= _INFINITE_NS

    def _coerce(self, other) -> int | None:
        if isinstance(other, Instant):
            return other.nanoseconds
        if isinstance(other, (int, float)):
            return Instant.from_seconds(other).nanoseconds
        return None

    def __add__(self, other: Union[Instant, int, float]) -> Instant:
        ns = self._coerce(other)
        if ns is None:
            return NotImplemented
        if self.is_infinite() or ns >= _INFINITE_NS:
            return Instant.Infinity
        return Instant(self.nanoseconds + ns)

    __radd__ = __add__

    def __sub__(self, other: Union[Instant, int, float]) -> Instant:
        ns = self._coerce(other)
        if ns is None:
            return NotImplemented
        if self.is_infinite():
            return Instant.Infinity
        return Instant(self.nanoseconds - ns)

    def __eq__(self, other):
        if not isinstance(other, Instant):
            return NotImplemented
        return self.nanoseconds == other.nanoseconds

    def __lt__(self, other):
        if not isinstance(other, Instant):
            return NotImplemented
        return self.nanoseconds < other.nanoseconds

    def __le__(self, other):
        if not isinstance(other, Instant):
            return NotImplemented
        return self.nanoseconds <= other.nanoseconds

    def __gt__(self, other):
        if not isinstance(other, Instant):
            return NotImplemented
        return self.nanoseconds > other.nanoseconds

    def __ge__(self, other):
        if not isinstance(other, Instant):
            return NotImplemented
        return self.nanoseconds >= other.nanoseconds

    def __hash__(self) -> int:
        return hash(self.nanoseconds)

    def __repr__(self) -> str:
        if self.is_infinite():
            return "Instant(inf)"
        return f"Instant({self.to_seconds():g}s)"


Instant.Epoch = Instant(0)
Instant.Infinity = Instant(_INFINITE_NS)
