"""Current-run context for code executing inside a flow.

Holds the FlowRun whose flow is currently executing in a ``ContextVar``.
The run task binds it before calling ``Flow.process`` so that any code the
flow calls (helpers, libraries, log records) can find its run without
threading a parameter through every call.

Usage::

    from flowserve.runtime.context import get_current_run

    run = get_current_run()
    if run is not None:
        run.publish_event({"type": "progress"})
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import TYPE_CHECKING, Iterator, Optional

if TYPE_CHECKING:
    from .flow_run import FlowRun

_current_run: ContextVar[Optional["FlowRun"]] = ContextVar("flowserve_current_run", default=None)


def get_current_run() -> Optional["FlowRun"]:
    """Return the run bound to the current async scope, if any."""
    return _current_run.get()


@contextmanager
def bind_run(run: "FlowRun") -> Iterator["FlowRun"]:
    """Bind ``run`` as the current run for the duration of the block."""
    token = _current_run.set(run)
    try:
        yield run
    finally:
        _current_run.reset(token)


class RunContextFilter(logging.Filter):
    """Stamps ``record.run_id`` on every record ("-" outside a run)."""

    def filter(self, record: logging.LogRecord) -> bool:
        run = _current_run.get()
        record.run_id = run.run_id if run is not None else "-"
        return True
