"""
Asset download endpoint.

    GET <base>/{run_id}/assets/{asset_name}    - raw asset bytes

Responds 404 both for unknown runs and for assets the storage does not
have. Both failures are also reported to the run logger, with no run
attached when the run is unknown.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, Response

from ..errors import AssetNotFoundError, ErrorResponse, RunNotFoundError

if TYPE_CHECKING:
    from ..mount import FlowMount

logger = logging.getLogger(__name__)


def create_router(mount: "FlowMount") -> APIRouter:
    """Build the asset route for a mounted flow."""
    router = APIRouter(tags=["assets"])

    @router.get(
        mount.paths.get_asset_path_template(),
        response_class=Response,
        responses={
            200: {"content": {"application/octet-stream": {}}},
            404: {"model": ErrorResponse},
        },
    )
    async def get_asset(run_id: str, asset_name: str):
        """Download an asset produced by a run.

        Raises:
            404: Run not found, or the run has no asset with that name.
        """
        run = mount.registry.get(run_id)
        if run is None:
            logger.warning("Asset %s requested for unknown run %s", asset_name, run_id)
            error = RunNotFoundError(run_id)
            mount.run_logger.log_error(run=None, message=error.message, error=error)
            raise error

        asset = await mount.asset_storage.read_asset(run=run, asset_name=asset_name)
        if asset is None:
            error = AssetNotFoundError(run_id, asset_name)
            mount.run_logger.log_error(run=run, message=error.message, error=error)
            raise error

        return Response(
            content=asset.data,
            headers={
                "Access-Control-Allow-Origin": "*",
                "Content-Type": asset.content_type,
                "Cache-Control": "no-cache",
            },
        )

    return router
