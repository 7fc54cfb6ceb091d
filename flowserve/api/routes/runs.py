"""
Run submission endpoint.

    POST <base>    - validate the body, start a run, return its id

The flow is launched as a detached task and the response is returned
without waiting for it. Progress is observed on the run's event stream.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any, Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field, ValidationError

from ...runtime.flow_run import FlowRun
from ...runtime.registry import DuplicateRunError
from ..errors import ErrorResponse, InvalidInputError, InvalidJSONError, RunIdConflictError

if TYPE_CHECKING:
    from ..mount import FlowMount

logger = logging.getLogger(__name__)

# New ids are drawn this many times before giving up on a collision
REGISTER_ATTEMPTS = 3


# =============================================================================
# Pydantic Models
# =============================================================================


class RunSubmitResponse(BaseModel):
    """Response when starting a new run."""

    id: str = Field(..., description="Run identifier")
    path: str = Field(..., description="Event stream path of the run")
    url: Optional[str] = Field(None, description="Absolute event stream URL, when a base URL is configured")


# =============================================================================
# Helpers
# =============================================================================


async def read_json_body(request: Request) -> Any:
    """Decode the request body as JSON.

    Raises:
        InvalidJSONError: If the body is empty or not valid JSON.
    """
    try:
        return await request.json()
    except ValueError as e:
        raise InvalidJSONError("Request body must be valid JSON", {"reason": str(e)})


def validate_input(mount: "FlowMount", raw: Any) -> Any:
    """Validate raw input against the flow's input model.

    Raises:
        InvalidInputError: If validation fails. No run exists at that point.
    """
    try:
        return mount.flow.parse_input(raw)
    except ValidationError as e:
        raise InvalidInputError(
            f"Input does not match {mount.flow.input_model.__name__}",
            {"errors": json.loads(e.json())},
        )


def register_new_run(mount: "FlowMount") -> FlowRun:
    """Create a run and register it, drawing a new id on collision.

    Raises:
        RunIdConflictError: If every drawn id was already registered.
    """
    for _ in range(REGISTER_ATTEMPTS):
        run: FlowRun = FlowRun(
            paths=mount.paths,
            asset_storage=mount.asset_storage,
            run_logger=mount.run_logger,
        )
        try:
            mount.registry.register(run)
        except DuplicateRunError:
            logger.warning("Run id %s already registered, drawing a new one", run.run_id)
            continue
        return run
    raise RunIdConflictError(REGISTER_ATTEMPTS)


# =============================================================================
# Router
# =============================================================================


def create_router(mount: "FlowMount") -> APIRouter:
    """Build the submission route for a mounted flow."""
    router = APIRouter(tags=["runs"])

    @router.post(
        mount.paths.submit_path,
        response_model=RunSubmitResponse,
        response_model_exclude_none=True,
        responses={
            400: {"model": ErrorResponse},
            422: {"model": ErrorResponse},
            500: {"model": ErrorResponse},
        },
    )
    async def submit_run(request: Request):
        """Start a new run.

        Validates the JSON body against the flow's input model, registers a
        new run and launches the flow without awaiting it.

        Returns:
            RunSubmitResponse with the run id and its event stream path.
        """
        raw = await read_json_body(request)
        flow_input = validate_input(mount, raw)

        run = register_new_run(mount)
        run.start(mount.flow, flow_input)

        logger.info("Accepted run %s for flow %s", run.run_id, mount.flow.name)
        return RunSubmitResponse(
            id=run.run_id,
            path=run.events_path,
            url=mount.absolute_url(run.events_path),
        )

    return router
