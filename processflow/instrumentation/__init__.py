"""Run summaries and their pandas exports."""

from processflow.instrumentation.summary import (
    EntitySummary,
    SimulationSummary,
    build_summary,
    queue_length_distribution,
)

__all__ = [
    "EntitySummary",
    "SimulationSummary",
    "build_summary",
    "queue_length_distribution",
]
