"""Simulation summary generated after a run completes.

SimulationSummary gives a structured overview of a run: event counts, wall
clock time and the statistics snapshot (``stats``) of every entity that
keeps one. It is returned by Simulation.run() and also accessible via
Simulation.summary.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, is_dataclass
from typing import TYPE_CHECKING, Any

import pandas as pd

if TYPE_CHECKING:
    from processflow.components.queue import QueueStats
    from processflow.core.simulation import Simulation


@dataclass
class EntitySummary:
    """Per-entity statistics from a simulation run."""
    name: str
    entity_type: str
    stats: Any = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"name": self.name, "type": self.entity_type}
        if self.stats is not None:
            for key, value in asdict(self.stats).items():
                if key != "name":
                    result[key] = value
        return result


@dataclass
class SimulationSummary:
    """Auto-generated summary of a simulation run."""
    duration_s: float
    total_events_processed: int
    events_cancelled: int
    events_per_second: float
    wall_clock_seconds: float
    entities: dict[str, EntitySummary] = field(default_factory=dict)

    def __str__(self) -> str:
        lines = [
            "Simulation Summary",
            f"  Duration: {self.duration_s:.2f}s (sim) / {self.wall_clock_seconds:.3f}s (wall)",
            f"  Events processed: {self.total_events_processed} ({self.events_cancelled} cancelled)",
            f"  Events/sec (sim): {self.events_per_second:.1f}",
        ]
        if self.entities:
            lines.append("  Entities:")
            for name, es in self.entities.items():
                line = f"    {name} ({es.entity_type})"
                stats = es.stats
                if hasattr(stats, "utilisation"):
                    line += f" | utilisation={stats.utilisation:.3f}"
                if hasattr(stats, "average_length"):
                    line += f" | avg length={stats.average_length:.3f}, max={stats.max_length}"
                if hasattr(stats, "number_started"):
                    line += f" | downtimes={stats.number_started}, dropped={stats.number_dropped}"
                lines.append(line)
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        return {
            "duration_s": self.duration_s,
            "total_events_processed": self.total_events_processed,
            "events_cancelled": self.events_cancelled,
            "events_per_second": self.events_per_second,
            "wall_clock_seconds": self.wall_clock_seconds,
            "entities": {
                name: es.to_dict() for name, es in self.entities.items()
            },
        }

    def to_dataframe(self) -> pd.DataFrame:
        """One row per entity, indexed by name; columns are the union of stats fields."""
        rows = [es.to_dict() for es in self.entities.values()]
        if not rows:
            return pd.DataFrame(columns=["type"]).rename_axis("name")
        return pd.DataFrame(rows).set_index("name")


def queue_length_distribution(queue_stats: QueueStats) -> pd.Series:
    """Seconds spent at each queue length, indexed by length."""
    return pd.Series(
        list(queue_stats.length_distribution_s),
        index=pd.RangeIndex(len(queue_stats.length_distribution_s), name="length"),
        name="time_s",
        dtype=float,
    )


def build_summary(sim: Simulation, wall_clock_seconds: float) -> SimulationSummary:
    """Collect the stats snapshot of every entity that has one."""
    duration_s = (sim.now - sim.start_time).to_seconds()
    processed = sim.events_processed
    entities: dict[str, EntitySummary] = {}
    for entity in sim.entities:
        stats = getattr(entity, "stats", None)
        if stats is not None and not is_dataclass(stats):
            stats = None
        entities[entity.name] = EntitySummary(
            name=entity.name,
            entity_type=type(entity).__name__,
            stats=stats,
        )
    return SimulationSummary(
        duration_s=duration_s,
        total_events_processed=processed,
        events_cancelled=sim.events_cancelled,
        events_per_second=processed / duration_s if duration_s > 0 else 0.0,
        wall_clock_seconds=wall_clock_seconds,
        entities=entities,
    )
