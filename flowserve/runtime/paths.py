"""
paths.py - Route templates and run URLs for a mounted flow.

All three flow endpoints and the URLs handed back to clients are derived
from one base path, so they can never disagree:

    POST  <base>                              - start a run
    GET   <base>/{run_id}/events              - SSE event stream
    GET   <base>/{run_id}/assets/{asset_name} - asset download
"""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import quote


def normalize_base_path(base_path: str) -> str:
    """Return base_path with a leading slash and no trailing slash.

    An empty path or "/" normalizes to "" (routes mounted at the root).
    """
    path = base_path.strip().strip("/")
    return f"/{path}" if path else ""


@dataclass(frozen=True)
class PathProvider:
    """Derives route templates and concrete run URLs from a base path."""

    base_path: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "base_path", normalize_base_path(self.base_path))

    @property
    def submit_path(self) -> str:
        return self.base_path or "/"

    def get_events_path_template(self) -> str:
        return f"{self.base_path}/{{run_id}}/events"

    def get_events_path(self, run_id: str) -> str:
        return f"{self.base_path}/{quote(run_id, safe='')}/events"

    def get_asset_path_template(self) -> str:
        return f"{self.base_path}/{{run_id}}/assets/{{asset_name}}"

    def get_asset_path(self, run_id: str, asset_name: str) -> str:
        return f"{self.base_path}/{quote(run_id, safe='')}/assets/{quote(asset_name, safe='')}"
