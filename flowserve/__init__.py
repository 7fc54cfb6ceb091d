"""
flowserve - serve long-running asynchronous flows over HTTP.

A client starts a flow run with a JSON payload, receives the run id right
away, follows progress on a server-sent event stream and downloads the
binary assets the run produces.

Usage:
    from flowserve import Flow, create_app

    app = create_app(my_flow, base_path="/generate-story")
"""

from .api import create_app, mount_flow
from .runtime import (
    Asset,
    EventQueue,
    Flow,
    FlowRun,
    PathProvider,
    RunRegistry,
    RunStatus,
    get_current_run,
)

__version__ = "0.1.0"

__all__ = [
    "Asset",
    "EventQueue",
    "Flow",
    "FlowRun",
    "PathProvider",
    "RunRegistry",
    "RunStatus",
    "create_app",
    "get_current_run",
    "mount_flow",
]
