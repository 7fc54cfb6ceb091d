"""
SSE event streaming endpoint.

    GET <base>/{run_id}/events    - stream the run's events

Each event the flow publishes becomes one frame:

    data: <json>\\n\\n

The stream ends when the run finishes (its queue closes) or when the client
disconnects, whichever comes first. A disconnect only stops the writing; the
flow itself keeps running.
"""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import aclosing
from typing import TYPE_CHECKING, Any, AsyncGenerator, Optional

from fastapi import APIRouter, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from ...runtime.event_queue import QueueBusyError
from ...runtime.flow_run import FlowRun
from ..errors import ErrorResponse, RunNotFoundError, StreamBusyError

if TYPE_CHECKING:
    from ..mount import FlowMount

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Connection": "keep-alive",
    "Cache-Control": "no-cache",
    "Content-Encoding": "none",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}


# =============================================================================
# Event Formatting
# =============================================================================


def serialize_event(event: Any) -> str:
    """Serialize a domain event to JSON text."""
    if isinstance(event, BaseModel):
        data = event.model_dump(mode="json")
    else:
        data = jsonable_encoder(event)
    return json.dumps(data, ensure_ascii=False)


def format_sse_event(event: Any) -> str:
    """Format an event as a single SSE ``data:`` frame."""
    return f"data: {serialize_event(event)}\n\n"


# =============================================================================
# Event Generation
# =============================================================================


async def generate_run_events(
    run: FlowRun,
    request: Optional[Request] = None,
) -> AsyncGenerator[str, None]:
    """Drain a run's event queue as SSE frames.

    Args:
        run: The run whose events are streamed.
        request: Request used for disconnect detection. Checked before every
            write; once the client is gone nothing more is written.

    Yields:
        SSE-formatted event strings.
    """
    logger.debug("SSE client connected for run %s", run.run_id)
    try:
        async with aclosing(run.event_queue.consume()) as events:
            async for event in events:
                if request is not None and await request.is_disconnected():
                    logger.debug("SSE client disconnected for run %s", run.run_id)
                    return
                yield format_sse_event(event)
    except QueueBusyError:
        logger.warning("Rejected second event stream consumer for run %s", run.run_id)
        return
    except asyncio.CancelledError:
        logger.debug("SSE stream cancelled for run %s", run.run_id)
        raise

    logger.debug("SSE stream completed for run %s (status=%s)", run.run_id, run.status.value)


# =============================================================================
# Router
# =============================================================================


def create_router(mount: "FlowMount") -> APIRouter:
    """Build the event stream route for a mounted flow."""
    router = APIRouter(tags=["events"])

    @router.get(
        mount.paths.get_events_path_template(),
        responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    )
    async def stream_run_events(run_id: str, request: Request):
        """Stream Server-Sent Events for a run.

        Example events:
            data: {"type": "started"}

            data: {"type": "chunk", "index": 0, "text": "hello"}

        Raises:
            404: Run not found.
            409: Another client is already streaming this run.
        """
        run = mount.registry.get(run_id)
        if run is None:
            raise RunNotFoundError(run_id)
        if run.event_queue.has_consumer:
            raise StreamBusyError(run_id)

        return StreamingResponse(
            generate_run_events(run, request),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    return router
