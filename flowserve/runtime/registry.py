"""
registry.py - In-memory index of the runs served by one flow endpoint.

The submit endpoint registers every run it creates; the event and asset
endpoints look runs up by id. The registry belongs to the app (or mounted
flow) that created it, so independent servers never share runs.

Runs are kept until pruned. With ``retention_seconds`` set, ``prune`` evicts
runs that finished more than that long ago and have no active stream
consumer. Without it, runs accumulate for the life of the process.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from .flow_run import FlowRun
from .types import RunId, utc_now

logger = logging.getLogger(__name__)


class DuplicateRunError(ValueError):
    """Raised when registering a run id that is already present."""


class RunRegistry:
    """Maps run ids to FlowRun instances."""

    def __init__(self, retention_seconds: Optional[float] = None):
        if retention_seconds is not None and retention_seconds < 0:
            raise ValueError("retention_seconds must be >= 0")
        self.retention_seconds = retention_seconds
        self._runs: Dict[RunId, FlowRun] = {}

    def __len__(self) -> int:
        return len(self._runs)

    def __contains__(self, run_id: object) -> bool:
        return run_id in self._runs

    def register(self, run: FlowRun) -> None:
        """Store a run under its id.

        Raises:
            DuplicateRunError: If a run with the same id is registered.
        """
        if run.run_id in self._runs:
            raise DuplicateRunError(f"Run '{run.run_id}' is already registered")
        self._runs[run.run_id] = run
        logger.debug("Registered run %s (%d runs)", run.run_id, len(self._runs))

    def get(self, run_id: RunId) -> Optional[FlowRun]:
        """Return the run, or None if no run has that id."""
        return self._runs.get(run_id)

    def list_runs(self) -> List[FlowRun]:
        return list(self._runs.values())

    def active_count(self) -> int:
        return sum(1 for run in self._runs.values() if not run.finished)

    def prune(self, now: Optional[datetime] = None) -> List[RunId]:
        """Evict expired runs.

        A run is expired when it is finished, nobody is draining its event
        queue, and it finished more than ``retention_seconds`` ago.

        Args:
            now: Reference time (defaults to the current UTC time).

        Returns:
            Ids of the evicted runs. Always empty when retention is disabled.
        """
        if self.retention_seconds is None:
            return []

        cutoff = (now or utc_now()) - timedelta(seconds=self.retention_seconds)
        expired = [
            run_id
            for run_id, run in self._runs.items()
            if run.finished
            and run.finished_at is not None
            and run.finished_at <= cutoff
            and not run.event_queue.has_consumer
        ]
        for run_id in expired:
            del self._runs[run_id]

        if expired:
            logger.info("Pruned %d expired runs (%d remaining)", len(expired), len(self._runs))
        return expired
