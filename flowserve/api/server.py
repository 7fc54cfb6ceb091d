"""
FastAPI application factory and server entry point for flowserve.

Usage:
    # Run standalone (serves the configured flow, echo demo by default)
    flowserve --port 3001 --flow mypackage.flows:story_flow

    # Or via factory
    from flowserve.api import create_app
    app = create_app(story_flow, base_path="/generate-story")
    uvicorn.run(app, port=3001)

API Structure (base path B):
    POST   B                              - Start a run
    GET    B/{run_id}/events              - SSE event stream
    GET    B/{run_id}/assets/{asset_name} - Asset download
    GET    /health                        - Health check
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel

from ..runtime.asset_storage import AssetStorage, FileSystemAssetStorage
from ..runtime.context import RunContextFilter
from ..runtime.flow import Flow
from ..runtime.registry import RunRegistry
from ..runtime.run_logger import (
    CompositeRunLogger,
    FileSystemRunLogger,
    RunLogger,
    StdlibRunLogger,
)
from ..runtime.types import datetime_to_iso, utc_now
from .mount import FlowMount, mount_flow

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(run_id)s] %(name)s: %(message)s"


# =============================================================================
# Pydantic Models for Request/Response
# =============================================================================


class HealthResponse(BaseModel):
    """Response for health check endpoint."""

    status: str
    timestamp: str
    active_runs: int
    total_runs: int


# =============================================================================
# Lifespan helpers
# =============================================================================


def _flow_mounts(app: FastAPI) -> List[FlowMount]:
    return getattr(app.state, "flow_mounts", [])


async def _prune_loop(app: FastAPI, interval: float) -> None:
    """Periodically evict expired runs from every mounted registry."""
    while True:
        await asyncio.sleep(interval)
        for mount in _flow_mounts(app):
            try:
                mount.registry.prune()
            except Exception as e:
                logger.error("Pruning runs of %s failed: %s", mount.paths.submit_path, e)


async def _cancel_pending_runs(app: FastAPI) -> None:
    """Cancel flow tasks still running at shutdown and wait for them."""
    tasks = [
        run.task
        for mount in _flow_mounts(app)
        for run in mount.registry.list_runs()
        if run.task is not None and not run.task.done()
    ]
    if not tasks:
        return

    logger.info("Cancelling %d pending runs", len(tasks))
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)


# =============================================================================
# App factory
# =============================================================================


def create_app(
    flow: Flow[Any, Any],
    *,
    base_path: str = "/flow",
    asset_storage: Optional[AssetStorage] = None,
    run_logger: Optional[RunLogger] = None,
    registry: Optional[RunRegistry] = None,
    base_url: Optional[str] = None,
    enable_cors: bool = True,
    static_dir: Optional[str] = None,
    prune_interval_seconds: float = 60.0,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        flow: The flow served under ``base_path``.
        base_path: Route prefix of the flow endpoints.
        asset_storage: Asset storage (in-memory when omitted).
        run_logger: Run error logger (stdlib logging when omitted).
        registry: Run registry; pass one with ``retention_seconds`` to
            enable eviction of finished runs.
        base_url: Public URL prefix; adds an absolute ``url`` to submit
            responses.
        enable_cors: Whether to enable CORS middleware.
        static_dir: Optional directory served at ``/`` after the API routes.
        prune_interval_seconds: Seconds between registry prune passes.

    Returns:
        Configured FastAPI application.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager.

        On startup:
        - Start the prune task when any registry has a retention period

        On shutdown:
        - Cancel the prune task
        - Cancel flow tasks that are still running
        """
        logger.info("flowserve starting...")

        prune_task: Optional[asyncio.Task] = None
        if any(m.registry.retention_seconds is not None for m in _flow_mounts(app)):
            prune_task = asyncio.create_task(_prune_loop(app, prune_interval_seconds))
            logger.info("Run pruning enabled (every %.0fs)", prune_interval_seconds)

        yield

        logger.info("flowserve shutting down...")
        if prune_task is not None:
            prune_task.cancel()
            try:
                await prune_task
            except asyncio.CancelledError:
                pass
        await _cancel_pending_runs(app)

    app = FastAPI(
        title="flowserve",
        description="Start long-running flows, stream their events and download their assets.",
        version="0.1.0",
        lifespan=lifespan,
    )

    if enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["*"],
        )

    # -------------------------------------------------------------------------
    # Request Logging Middleware
    # -------------------------------------------------------------------------

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        duration = time.time() - start_time
        logger.info(
            "%s %s %s %.3fs",
            request.method,
            request.url.path,
            response.status_code,
            duration,
        )
        return response

    # -------------------------------------------------------------------------
    # Health
    # -------------------------------------------------------------------------

    @app.get("/health", response_model=HealthResponse)
    async def health_check():
        """Health check endpoint."""
        mounts = _flow_mounts(app)
        return HealthResponse(
            status="ok",
            timestamp=datetime_to_iso(utc_now()),
            active_runs=sum(m.registry.active_count() for m in mounts),
            total_runs=sum(len(m.registry) for m in mounts),
        )

    # -------------------------------------------------------------------------
    # Flow endpoints
    # -------------------------------------------------------------------------

    mount = mount_flow(
        app,
        flow,
        base_path=base_path,
        asset_storage=asset_storage,
        run_logger=run_logger,
        registry=registry,
        base_url=base_url,
    )
    app.state.registry = mount.registry

    if static_dir is not None:
        # Mounted last so API routes take precedence
        app.mount("/", StaticFiles(directory=static_dir, html=True), name="static")

    return app


# =============================================================================
# Main Entry Point
# =============================================================================


def configure_logging(level: str) -> None:
    """Configure root logging with the run id stamped on every record."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    for handler in logging.getLogger().handlers:
        handler.addFilter(RunContextFilter())


def main(argv: Optional[List[str]] = None) -> None:
    """Run the API server."""
    import argparse

    import uvicorn

    from ..config.server_config import load_flow, load_server_config

    parser = argparse.ArgumentParser(description="flowserve server")
    parser.add_argument("--config", default=None, help="Path to a YAML config file")
    parser.add_argument("--host", default=None, help="Host to bind to")
    parser.add_argument("--port", type=int, default=None, help="Port to bind to")
    parser.add_argument("--base-path", default=None, help="Route prefix of the flow endpoints")
    parser.add_argument("--runs-dir", default=None, help="Directory for run assets and logs")
    parser.add_argument("--flow", default=None, help="Flow to serve, as module:attribute")
    parser.add_argument("--log-level", default=None, help="Logging level")
    parser.add_argument("--no-cors", action="store_true", help="Disable CORS")
    args = parser.parse_args(argv)

    config = load_server_config(args.config)
    overrides: Dict[str, Any] = {
        "host": args.host,
        "port": args.port,
        "base_path": args.base_path,
        "runs_dir": args.runs_dir,
        "flow": args.flow,
        "log_level": args.log_level,
    }
    for name, value in overrides.items():
        if value is not None:
            setattr(config, name, value)
    if args.no_cors:
        config.enable_cors = False

    configure_logging(config.log_level)

    runs_dir = Path(config.runs_dir)
    app = create_app(
        load_flow(config.flow),
        base_path=config.base_path,
        asset_storage=FileSystemAssetStorage(runs_dir),
        run_logger=CompositeRunLogger(StdlibRunLogger(), FileSystemRunLogger(runs_dir)),
        registry=RunRegistry(retention_seconds=config.run_retention_seconds),
        base_url=config.public_base_url,
        enable_cors=config.enable_cors,
        static_dir=config.static_dir,
        prune_interval_seconds=config.prune_interval_seconds,
    )

    logger.info(
        "Starting flowserve at http://%s:%s%s (runs in %s)",
        config.host,
        config.port,
        config.base_path,
        runs_dir,
    )
    uvicorn.run(app, host=config.host, port=config.port, log_level=config.log_level.lower())


if __name__ == "__main__":
    main()
