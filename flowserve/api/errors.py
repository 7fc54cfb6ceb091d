"""
Error responses for the flow endpoints.

Every client-facing error is rendered with the same body:

    {"error": "<code>", "message": "<human readable>", "details": {...}}

Route handlers raise a FlowServeError subclass; the handler installed by
``install_error_handlers`` turns it into a JSONResponse.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class FlowServeError(Exception):
    """Base class for errors returned to HTTP clients."""

    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return ErrorResponse(
            error=self.error_code,
            message=self.message,
            details=self.details,
        ).model_dump()


class InvalidJSONError(FlowServeError):
    status_code = 400
    error_code = "invalid_json"


class InvalidInputError(FlowServeError):
    status_code = 422
    error_code = "invalid_input"


class RunNotFoundError(FlowServeError):
    status_code = 404
    error_code = "run_not_found"

    def __init__(self, run_id: str):
        super().__init__(f"Run '{run_id}' not found", {"run_id": run_id})
        self.run_id = run_id


class AssetNotFoundError(FlowServeError):
    status_code = 404
    error_code = "asset_not_found"

    def __init__(self, run_id: str, asset_name: str):
        super().__init__(
            f"Asset {asset_name} not found",
            {"run_id": run_id, "asset_name": asset_name},
        )
        self.run_id = run_id
        self.asset_name = asset_name


class StreamBusyError(FlowServeError):
    status_code = 409
    error_code = "stream_busy"

    def __init__(self, run_id: str):
        super().__init__(
            f"Run '{run_id}' already has an active event stream",
            {"run_id": run_id},
        )
        self.run_id = run_id


class RunIdConflictError(FlowServeError):
    status_code = 500
    error_code = "run_id_conflict"

    def __init__(self, attempts: int):
        super().__init__(
            f"Could not allocate a unique run id after {attempts} attempts",
            {"attempts": attempts},
        )


async def flowserve_error_handler(request: Request, exc: FlowServeError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(FlowServeError, flowserve_error_handler)
