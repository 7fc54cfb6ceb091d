"""
flow_run.py - One execution of a flow.

A FlowRun owns the run's event queue and references to the collaborators
its flow writes to (asset storage, run logger). Lifecycle:

    created -> running -> succeeded | failed

``start`` spawns the flow as a detached asyncio task. The task is not tied
to any HTTP request: it runs to completion even when nobody is streaming its
events. Whatever the outcome, the run is finished when the task settles,
which closes the event queue so that stream consumers terminate.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, Generic, Optional, TypeVar

from .asset_storage import Asset, AssetStorage
from .context import bind_run
from .event_queue import EventQueue
from .paths import PathProvider
from .run_logger import RunLogger
from .types import RunId, RunStatus, datetime_to_iso, generate_run_id, utc_now

if TYPE_CHECKING:
    from .flow import Flow

logger = logging.getLogger(__name__)

EventT = TypeVar("EventT")


class FlowRun(Generic[EventT]):
    """State and flow-facing API of a single run.

    Attributes:
        run_id: Unique run identifier.
        event_queue: Events published by the flow, drained by the SSE endpoint.
        paths: Path provider of the endpoint that created the run.
        asset_storage: Where ``store_asset`` writes.
        run_logger: Receives flow failures.
        status: Current lifecycle status.
        error: Error text when the flow failed.
    """

    def __init__(
        self,
        *,
        paths: PathProvider,
        asset_storage: AssetStorage,
        run_logger: RunLogger,
        run_id: Optional[RunId] = None,
    ):
        self.run_id: RunId = run_id or generate_run_id()
        self.paths = paths
        self.asset_storage = asset_storage
        self.run_logger = run_logger
        self.event_queue: EventQueue[EventT] = EventQueue()

        self.status = RunStatus.CREATED
        self.created_at: datetime = utc_now()
        self.finished_at: Optional[datetime] = None
        self.error: Optional[str] = None
        self._task: Optional[asyncio.Task] = None

    def __repr__(self) -> str:
        return f"FlowRun(run_id={self.run_id!r}, status={self.status.value!r})"

    @property
    def finished(self) -> bool:
        return self.status.is_terminal

    @property
    def task(self) -> Optional[asyncio.Task]:
        return self._task

    @property
    def events_path(self) -> str:
        return self.paths.get_events_path(self.run_id)

    def get_asset_path(self, asset_name: str) -> str:
        return self.paths.get_asset_path(self.run_id, asset_name)

    # -------------------------------------------------------------------------
    # Flow-facing API
    # -------------------------------------------------------------------------

    def publish_event(self, event: EventT) -> None:
        """Push an event to the run's stream."""
        self.event_queue.push(event)

    async def store_asset(self, name: str, data: bytes, content_type: str) -> str:
        """Store an asset for this run and return its URL path."""
        await self.asset_storage.store_asset(
            run=self,
            asset=Asset(name=name, data=data, content_type=content_type),
        )
        return self.get_asset_path(name)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self, flow: "Flow[Any, EventT]", input: Any) -> asyncio.Task:
        """Launch the flow as a detached task on the running loop.

        The caller does not await the task. The run keeps a reference to it so
        it is not garbage collected while pending. The run is finished when
        the task completes, even if it is cancelled before its first step.

        Raises:
            RuntimeError: If the run was already started.
        """
        if self._task is not None:
            raise RuntimeError(f"Run '{self.run_id}' was already started")
        self._task = asyncio.get_running_loop().create_task(
            self._execute(flow, input), name=f"flow-run-{self.run_id}"
        )
        self._task.add_done_callback(self._on_task_done)
        return self._task

    async def _execute(self, flow: "Flow[Any, EventT]", input: Any) -> None:
        if self.finished:
            logger.warning("Run %s was finished before its flow started", self.run_id)
            return

        self.status = RunStatus.RUNNING
        logger.info("Run %s started (flow=%s)", self.run_id, flow.name)
        try:
            with bind_run(self):
                await flow.process(input, self)
        except Exception as e:
            if self.finished_at is not None:
                # Outcome already recorded by an explicit finish()
                logger.warning("Run %s raised after it was finished: %s", self.run_id, e)
            else:
                self.status = RunStatus.FAILED
                self.error = str(e) or type(e).__name__
                logger.error("Run %s failed: %s", self.run_id, e)
                self.run_logger.log_error(run=self, message="Failed to process flow", error=e)
        else:
            if self.finished_at is None:
                self.status = RunStatus.SUCCEEDED
        finally:
            self._settle()

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._settle()

    def _settle(self) -> None:
        """Finish the run, recording a cancellation if no outcome was set."""
        if self.finished_at is not None:
            return
        if not self.finished:
            self.status = RunStatus.FAILED
            self.error = "cancelled"
        self.finish()

    def finish(self) -> None:
        """Mark the run finished and close its event queue. Idempotent.

        A finished run keeps its status; a flow still running afterwards can
        no longer publish events and its outcome is not recorded.
        """
        if self.finished_at is not None:
            return
        if not self.finished:
            self.status = RunStatus.SUCCEEDED
        self.finished_at = utc_now()
        self.event_queue.close()
        logger.info("Run %s finished with status %s", self.run_id, self.status.value)

    def to_dict(self) -> Dict[str, Any]:
        """Summary for health and listing endpoints."""
        return {
            "run_id": self.run_id,
            "status": self.status.value,
            "created_at": datetime_to_iso(self.created_at),
            "finished_at": datetime_to_iso(self.finished_at),
            "error": self.error,
            "events_path": self.events_path,
        }
