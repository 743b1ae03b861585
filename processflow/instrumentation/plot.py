"""Matplotlib charts for run statistics."""

from __future__ import annotations

from typing import TYPE_CHECKING

import matplotlib.pyplot as plt

from processflow.instrumentation.summary import queue_length_distribution

if TYPE_CHECKING:
    from matplotlib.axes import Axes

    from processflow.components.queue import QueueStats
    from processflow.components.station import StationStats


def plot_queue_length_distribution(queue_stats: QueueStats, ax: Axes | None = None,
                                   title: str | None = None) -> Axes:
    """Bar chart of the fraction of time spent at each queue length."""
    if ax is None:
        _, ax = plt.subplots(figsize=(8, 4))
    series = queue_length_distribution(queue_stats)
    total = series.sum()
    fractions = series / total if total > 0 else series
    ax.bar(fractions.index, fractions.values, color="steelblue")
    ax.set_xlabel("Queue length")
    ax.set_ylabel("Fraction of time")
    ax.set_title(title or "Queue length distribution")
    ax.grid(True, axis="y", alpha=0.3)
    return ax


def plot_state_times(station_stats: StationStats, ax: Axes | None = None) -> Axes:
    """Horizontal bar chart of seconds spent in each station state."""
    if ax is None:
        _, ax = plt.subplots(figsize=(8, 3))
    states = sorted(station_stats.state_times_s)
    ax.barh(states, [station_stats.state_times_s[s] for s in states], color="darkorange")
    ax.set_xlabel("Time (s)")
    ax.set_title(f"{station_stats.name} state times")
    return ax
