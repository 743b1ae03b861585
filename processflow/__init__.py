"""processflow: process-flow components for discrete-event simulation.

Queues, resources, processing stations and downtime entities driven by a
single-threaded event scheduler.

Basic usage::

    from processflow import EntityGenerator, Queue, Server, Simulation, Sink

    sink = Sink()
    queue = Queue("queue")
    server = Server("server", wait_queue=queue, service_time=1.0, next_component=sink)
    source = EntityGenerator("source", next_component=queue, inter_arrival=1.5)

    summary = Simulation([source, queue, server, sink], duration=100.0).run()
    print(summary)

The library is silent by default. Enable logging with::

    import processflow
    processflow.enable_console_logging("DEBUG")
"""

import logging

logging.getLogger("processflow").addHandler(logging.NullHandler())

__version__ = "0.1.0"

from processflow.components import (
    Assemble,
    Combine,
    DowntimeEntity,
    DowntimePolicy,
    EntityContainer,
    EntityConveyor,
    EntityGate,
    EntityGenerator,
    LinkedComponent,
    LinkedService,
    Pack,
    Part,
    Queue,
    Release,
    Resource,
    Seize,
    Server,
    Sink,
    StateEntity,
    StationState,
    Threshold,
    Unpack,
)
from processflow.core import DEFAULT_PRIORITY, NOTIFY_PRIORITY, Entity, Event, Instant, Simulation
from processflow.distributions import (
    Constant,
    Distribution,
    Exponential,
    SampleInput,
    Sequence,
    TimeSeries,
    Uniform,
)
from processflow.errors import (
    ConfigurationError,
    InternalConsistencyError,
    ProcessFlowError,
    SamplingError,
)
from processflow.instrumentation import SimulationSummary
from processflow.logging_config import (
    configure_from_env,
    disable_logging,
    enable_console_logging,
    enable_file_logging,
    enable_json_file_logging,
    enable_json_logging,
    enable_timed_file_logging,
    set_level,
    set_module_level,
)

__all__ = [
    "__version__",
    # Core
    "DEFAULT_PRIORITY",
    "NOTIFY_PRIORITY",
    "Entity",
    "Event",
    "Instant",
    "Simulation",
    # Components
    "Assemble",
    "Combine",
    "DowntimeEntity",
    "DowntimePolicy",
    "EntityContainer",
    "EntityConveyor",
    "EntityGate",
    "EntityGenerator",
    "LinkedComponent",
    "LinkedService",
    "Pack",
    "Part",
    "Queue",
    "Release",
    "Resource",
    "Seize",
    "Server",
    "Sink",
    "StateEntity",
    "StationState",
    "Threshold",
    "Unpack",
    # Distributions
    "Constant",
    "Distribution",
    "Exponential",
    "SampleInput",
    "Sequence",
    "TimeSeries",
    "Uniform",
    # Errors
    "ConfigurationError",
    "InternalConsistencyError",
    "ProcessFlowError",
    "SamplingError",
    # Instrumentation
    "SimulationSummary",
    # Logging
    "configure_from_env",
    "disable_logging",
    "enable_console_logging",
    "enable_file_logging",
    "enable_json_file_logging",
    "enable_json_logging",
    "enable_timed_file_logging",
    "set_level",
    "set_module_level",
]
