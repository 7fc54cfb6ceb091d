"""
Mounting a flow on a FastAPI application.

A mounted flow gets its own PathProvider, RunRegistry and collaborators,
bundled in a FlowMount that the route factories close over. Several flows
can share one app under different base paths:

    app = FastAPI()
    mount_flow(app, story_flow, base_path="/generate-story")
    mount_flow(app, echo_flow, base_path="/echo")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

from fastapi import APIRouter, FastAPI

from ..runtime.asset_storage import AssetStorage, InMemoryAssetStorage
from ..runtime.flow import Flow
from ..runtime.paths import PathProvider
from ..runtime.registry import RunRegistry
from ..runtime.run_logger import RunLogger, StdlibRunLogger
from .errors import install_error_handlers
from .routes import assets, events, runs

logger = logging.getLogger(__name__)


@dataclass
class FlowMount:
    """Everything the endpoints of one mounted flow need."""

    flow: Flow[Any, Any]
    paths: PathProvider
    registry: RunRegistry = field(default_factory=RunRegistry)
    asset_storage: AssetStorage = field(default_factory=InMemoryAssetStorage)
    run_logger: RunLogger = field(default_factory=StdlibRunLogger)
    base_url: Optional[str] = None

    def absolute_url(self, path: str) -> Optional[str]:
        """Join a path onto base_url, or None without a base URL."""
        if not self.base_url:
            return None
        return self.base_url.rstrip("/") + path


def build_flow_router(mount: FlowMount) -> APIRouter:
    """Combine the submit, event and asset routes of a mounted flow."""
    router = APIRouter()
    router.include_router(runs.create_router(mount))
    router.include_router(events.create_router(mount))
    router.include_router(assets.create_router(mount))
    return router


def mount_flow(
    app: FastAPI,
    flow: Flow[Any, Any],
    *,
    base_path: str,
    asset_storage: Optional[AssetStorage] = None,
    run_logger: Optional[RunLogger] = None,
    registry: Optional[RunRegistry] = None,
    base_url: Optional[str] = None,
) -> FlowMount:
    """Register the endpoints of ``flow`` on ``app`` under ``base_path``.

    The mount is appended to ``app.state.flow_mounts`` so the app lifespan
    can prune registries and stop pending runs at shutdown.

    Returns:
        The FlowMount holding the flow's registry and collaborators.
    """
    mount = FlowMount(
        flow=flow,
        paths=PathProvider(base_path),
        registry=registry if registry is not None else RunRegistry(),
        asset_storage=asset_storage if asset_storage is not None else InMemoryAssetStorage(),
        run_logger=run_logger if run_logger is not None else StdlibRunLogger(),
        base_url=base_url,
    )

    install_error_handlers(app)
    app.include_router(build_flow_router(mount))

    mounts: List[FlowMount] = getattr(app.state, "flow_mounts", [])
    mounts.append(mount)
    app.state.flow_mounts = mounts

    logger.info("Mounted flow %s at %s", flow.name, mount.paths.submit_path)
    return mount
