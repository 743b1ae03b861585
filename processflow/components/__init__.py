"""Process-flow components: queues, resources, stations and downtime."""

from processflow.components.common import EntityGenerator, Part, Sink
from processflow.components.container import EntityContainer
from processflow.components.conveyor import EntityConveyor
from processflow.components.downtime import (
    DowntimeEntity,
    DowntimeKind,
    DowntimePolicy,
    DowntimeState,
    DowntimeStats,
    DowntimeUser,
)
from processflow.components.gate import EntityGate
from processflow.components.linked import LinkedComponent
from processflow.components.queue import Queue, QueueEntry, QueueStats, QueueUser
from processflow.components.resource import Resource, ResourceStats, ResourceUser
from processflow.components.seize import Release, Seize
from processflow.components.state import StateEntity, StateListener
from processflow.components.station import LinkedService, StationState, StationStats
from processflow.components.stations import Assemble, Combine, Pack, Server, Unpack
from processflow.components.tasks import (
    Assembly,
    ContainerDrain,
    ContainerFill,
    ConveyorTravel,
    FixedDuration,
    TaskProvider,
)
from processflow.components.threshold import Threshold, ThresholdStats, ThresholdUser

__all__ = [
    "Assemble",
    "Assembly",
    "Combine",
    "ContainerDrain",
    "ContainerFill",
    "ConveyorTravel",
    "DowntimeEntity",
    "DowntimeKind",
    "DowntimePolicy",
    "DowntimeState",
    "DowntimeStats",
    "DowntimeUser",
    "EntityContainer",
    "EntityConveyor",
    "EntityGate",
    "EntityGenerator",
    "FixedDuration",
    "LinkedComponent",
    "LinkedService",
    "Pack",
    "Part",
    "Queue",
    "QueueEntry",
    "QueueStats",
    "QueueUser",
    "Release",
    "Resource",
    "ResourceStats",
    "ResourceUser",
    "Seize",
    "Server",
    "Sink",
    "StateEntity",
    "StateListener",
    "StationState",
    "StationStats",
    "TaskProvider",
    "Threshold",
    "ThresholdStats",
    "ThresholdUser",
    "Unpack",
]
