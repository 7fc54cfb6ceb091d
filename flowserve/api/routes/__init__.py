"""
Routes package for the flowserve API.

Each module exposes ``create_router(mount)`` building the routes of one
mounted flow:
- runs: run submission
- events: SSE event streaming for runs
- assets: asset download
"""

from . import assets, events, runs

__all__ = ["assets", "events", "runs"]
