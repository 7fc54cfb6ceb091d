"""
flowserve API - FastAPI endpoints for serving flows.

Endpoints per mounted flow (base path B):
    POST   B                              - Start a run (returns id + events path)
    GET    B/{run_id}/events              - SSE stream of the run's events
    GET    B/{run_id}/assets/{asset_name} - Download an asset produced by the run

Health:
    GET    /health                        - Health check
"""

from .mount import FlowMount, build_flow_router, mount_flow
from .server import create_app, main

__all__ = [
    "FlowMount",
    "build_flow_router",
    "create_app",
    "main",
    "mount_flow",
]
