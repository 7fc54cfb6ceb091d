"""
Test fixtures and utilities for flowserve tests.

Provides small flows with predictable behavior, a run logger that records
what it receives, and TestClient fixtures wired to an in-memory app.
"""

import asyncio
import json
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient
from pydantic import BaseModel, Field

from flowserve.api.server import create_app
from flowserve.runtime import (
    FlowRun,
    InMemoryAssetStorage,
    PathProvider,
    RunRegistry,
)
from flowserve.runtime.flow import Flow

BASE_PATH = "/flow"


# ============================================================================
# Flows
# ============================================================================


class ScriptInput(BaseModel):
    """Input for the script flow: events to publish, optional asset, optional failure."""

    events: List[Dict[str, Any]] = Field(default_factory=list)
    delay_seconds: float = 0.0
    asset_name: Optional[str] = None
    asset_size: int = 0
    asset_content_type: str = "application/octet-stream"
    fail_with: Optional[str] = None


def asset_bytes(size: int) -> bytes:
    """Deterministic asset payload of ``size`` bytes."""
    return bytes(i % 256 for i in range(size))


async def run_script(input: ScriptInput, run: FlowRun) -> None:
    for event in input.events:
        if input.delay_seconds:
            await asyncio.sleep(input.delay_seconds)
        run.publish_event(event)

    if input.asset_name:
        await run.store_asset(
            input.asset_name,
            asset_bytes(input.asset_size),
            input.asset_content_type,
        )

    if input.fail_with:
        raise RuntimeError(input.fail_with)


script_flow = Flow(input_model=ScriptInput, process=run_script, name="script")


# ============================================================================
# Collaborators
# ============================================================================


class RecordingRunLogger:
    """RunLogger that keeps every logged error in memory."""

    def __init__(self):
        self.errors: List[Dict[str, Any]] = []

    def log_error(self, *, run, message, error):
        self.errors.append({"run": run, "message": message, "error": error})


@pytest.fixture
def run_logger() -> RecordingRunLogger:
    return RecordingRunLogger()


@pytest.fixture
def asset_storage() -> InMemoryAssetStorage:
    return InMemoryAssetStorage()


@pytest.fixture
def paths() -> PathProvider:
    return PathProvider(BASE_PATH)


@pytest.fixture
def make_run(paths, asset_storage, run_logger):
    """Factory for FlowRun instances sharing the test collaborators."""

    def _make_run(**kwargs) -> FlowRun:
        return FlowRun(
            paths=paths,
            asset_storage=asset_storage,
            run_logger=run_logger,
            **kwargs,
        )

    return _make_run


# ============================================================================
# App Fixtures
# ============================================================================


@pytest.fixture
def registry() -> RunRegistry:
    return RunRegistry()


@pytest.fixture
def app(registry, asset_storage, run_logger):
    return create_app(
        script_flow,
        base_path=BASE_PATH,
        asset_storage=asset_storage,
        run_logger=run_logger,
        registry=registry,
    )


@pytest.fixture
def client(app):
    """TestClient kept open for the whole test.

    The context manager keeps a single event loop alive, so flow tasks
    launched by one request keep running while later requests are made.
    """
    with TestClient(app) as test_client:
        yield test_client


# ============================================================================
# Helpers
# ============================================================================


def parse_sse_frames(body: str) -> List[Any]:
    """Decode the JSON payloads of ``data:`` frames in an SSE body."""
    frames = []
    for block in body.split("\n\n"):
        if not block.strip():
            continue
        assert block.startswith("data: "), f"Unexpected SSE block: {block!r}"
        frames.append(json.loads(block[len("data: "):]))
    return frames
