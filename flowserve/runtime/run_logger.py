"""
run_logger.py - Run-scoped error logging.

The runtime reports run failures (flow exceptions, missing assets) to a
RunLogger together with the run they belong to. Implementations:

    StdlibRunLogger     - forwards to a stdlib ``logging`` logger
    FileSystemRunLogger - appends JSON lines to <base_dir>/<run_id>/logs/errors.jsonl
    CompositeRunLogger  - fans out to several loggers

Storage layout of FileSystemRunLogger:

    <base_dir>/
      <run_id>/
        logs/
          errors.jsonl     # one JSON object per logged error
"""

from __future__ import annotations

import json
import logging
import threading
import traceback
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional, Protocol, Union

from .types import datetime_to_iso, utc_now

if TYPE_CHECKING:
    from .flow_run import FlowRun

# Module logger
logger = logging.getLogger(__name__)

ERRORS_FILE = "errors.jsonl"


class RunLogger(Protocol):
    """Receives errors that happen while serving a run."""

    def log_error(self, *, run: Optional["FlowRun"], message: str, error: BaseException) -> None:
        ...


def error_record(run: Optional["FlowRun"], message: str, error: BaseException) -> Dict[str, Any]:
    """Build the JSON-serializable record for a logged error."""
    return {
        "timestamp": datetime_to_iso(utc_now()),
        "run_id": run.run_id if run is not None else None,
        "message": message,
        "error_type": type(error).__name__,
        "error": str(error),
        "traceback": "".join(
            traceback.format_exception(type(error), error, error.__traceback__)
        ),
    }


class StdlibRunLogger:
    """Logs run errors through the ``logging`` module."""

    def __init__(self, logger_name: str = "flowserve.runs"):
        self._logger = logging.getLogger(logger_name)

    def log_error(self, *, run: Optional["FlowRun"], message: str, error: BaseException) -> None:
        run_id = run.run_id if run is not None else "-"
        self._logger.error("[%s] %s: %s", run_id, message, error, exc_info=error)


class FileSystemRunLogger:
    """Appends run errors to a per-run JSONL file.

    Logging is best effort: I/O and serialization failures are reported as
    warnings on the module logger and never raised into the run.
    """

    def __init__(self, base_dir: Union[str, Path]):
        self.base_dir = Path(base_dir)
        self._lock = threading.Lock()

    def errors_path(self, run_id: str) -> Path:
        return self.base_dir / run_id / "logs" / ERRORS_FILE

    def log_error(self, *, run: Optional["FlowRun"], message: str, error: BaseException) -> None:
        if run is None:
            logger.warning("Dropping run error without a run: %s: %s", message, error)
            return

        path = self.errors_path(run.run_id)
        try:
            line = json.dumps(error_record(run, message, error), ensure_ascii=False)
            with self._lock:
                path.parent.mkdir(parents=True, exist_ok=True)
                with open(path, "a", encoding="utf-8") as f:
                    f.write(line + "\n")
                    f.flush()
        except (OSError, IOError) as e:
            logger.warning("Failed to write error log for run '%s' at %s: %s", run.run_id, path, e)
        except (TypeError, ValueError) as e:
            logger.warning("Failed to serialize error log for run '%s': %s", run.run_id, e)


class CompositeRunLogger:
    """Forwards each error to every wrapped logger."""

    def __init__(self, *loggers: RunLogger):
        self.loggers = loggers

    def log_error(self, *, run: Optional["FlowRun"], message: str, error: BaseException) -> None:
        for run_logger in self.loggers:
            run_logger.log_error(run=run, message=message, error=error)
