"""Run id generation, run status and time helpers.

Provides the identifiers and small value types shared by the runtime and
the HTTP layer.
"""

from __future__ import annotations

import secrets
import string
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

# Type aliases
RunId = str


class RunStatus(str, Enum):
    """Status of a run's execution lifecycle."""

    CREATED = "created"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.SUCCEEDED, RunStatus.FAILED)


RUN_ID_PREFIX = "run"
_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits
_SUFFIX_LENGTH = 6


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def generate_run_id() -> RunId:
    """New run id, sortable by submission second.

    The id appears in every run URL (``/flow/run-20260301-091500-k3x9qa/events``)
    so it only uses lowercase letters, digits and dashes. Ids drawn within the
    same second differ by their random suffix; the registry rejects the rare
    collision and the submit endpoint draws again.
    """
    stamp = utc_now().strftime("%Y%m%d-%H%M%S")
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(_SUFFIX_LENGTH))
    return f"{RUN_ID_PREFIX}-{stamp}-{suffix}"


def datetime_to_iso(dt: Optional[datetime]) -> Optional[str]:
    """Convert datetime to ISO format string with Z suffix."""
    if dt is None:
        return None
    return dt.astimezone(timezone.utc).replace(tzinfo=None).isoformat() + "Z"
