"""POST /deploy: decrypt the store into both deployment targets."""

import asyncio
from typing import Annotated

from fastapi import APIRouter, Depends, Request

from simple_secrets.api.dependencies import get_engine, require_password
from simple_secrets.core.config import get_settings
from simple_secrets.models.schemas import DeployStatsResponse
from simple_secrets.services.bootstrap import bootstrap_oauth2
from simple_secrets.services.deployment import DeploymentEngine

router = APIRouter(tags=["deploy"])


@router.post("/deploy", response_model=DeployStatsResponse)
async def deploy(
    request: Request,
    password: Annotated[str, Depends(require_password)],
    engine: Annotated[DeploymentEngine, Depends(get_engine)],
) -> DeployStatsResponse:
    """Incremental deploy; 401 aborts the run, 409 if another run is in progress."""
    stats = await engine.deploy_all(password)

    settings = get_settings()
    oauth2 = getattr(request.app.state, "oauth2_config", None)
    if settings.dss_service_name and (oauth2 is None or stats.deployed or stats.updated or stats.deleted):
        oauth2 = await asyncio.to_thread(
            bootstrap_oauth2, settings.container_secrets_dir, settings.dss_service_name
        )
        request.app.state.oauth2_config = oauth2

    return DeployStatsResponse(
        deployed=stats.deployed,
        updated=stats.updated,
        skipped=stats.skipped,
        deleted=stats.deleted,
        failed=stats.failed,
        message=stats.summary(),
        oauth2_configured=oauth2 is not None,
    )
