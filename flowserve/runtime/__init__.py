# flowserve/runtime package
# Run lifecycle and event delivery, independent of the HTTP layer.
#
# Core components:
#   - paths: PathProvider deriving route templates and run URLs
#   - event_queue: ordered, unbounded, single-consumer EventQueue
#   - flow: the Flow abstraction (input model + async process)
#   - flow_run: FlowRun lifecycle and the detached execution task
#   - registry: RunRegistry (run id -> FlowRun) with optional eviction
#   - asset_storage / run_logger: collaborators the runs write to
#
# Usage:
#     from flowserve.runtime import FlowRun, RunRegistry, PathProvider
#     run = FlowRun(paths=paths, asset_storage=storage, run_logger=run_logger)
#     registry.register(run)
#     run.start(flow, flow.parse_input(body))

from .asset_storage import (
    Asset,
    AssetStorage,
    FileSystemAssetStorage,
    InMemoryAssetStorage,
)
from .context import RunContextFilter, bind_run, get_current_run
from .event_queue import EventQueue, QueueBusyError, QueueClosedError
from .flow import Flow
from .flow_run import FlowRun
from .paths import PathProvider
from .registry import DuplicateRunError, RunRegistry
from .run_logger import (
    CompositeRunLogger,
    FileSystemRunLogger,
    RunLogger,
    StdlibRunLogger,
)
from .types import RunId, RunStatus, generate_run_id

__all__ = [
    # Types
    "RunId",
    "RunStatus",
    "generate_run_id",
    # Core
    "EventQueue",
    "QueueBusyError",
    "QueueClosedError",
    "Flow",
    "FlowRun",
    "PathProvider",
    "RunRegistry",
    "DuplicateRunError",
    # Context
    "RunContextFilter",
    "bind_run",
    "get_current_run",
    # Collaborators
    "Asset",
    "AssetStorage",
    "FileSystemAssetStorage",
    "InMemoryAssetStorage",
    "RunLogger",
    "StdlibRunLogger",
    "FileSystemRunLogger",
    "CompositeRunLogger",
]
