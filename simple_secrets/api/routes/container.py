"""Internal container surface, reachable only from loopback and the local Docker networks.

Mounted under `container_api_base` (default /api/services):

    GET /                   manifest of `<file path>|<fetch url>` lines for the caller
    GET /.container-info    shell-sourceable description of the caller's original command
    GET /{service}/{secret} deployed plaintext value
"""

import re
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse, Response

from simple_secrets.api.dependencies import (
    get_authorizer,
    get_requesting_container,
    require_local_network,
)
from simple_secrets.core.config import get_settings
from simple_secrets.core.errors import InvalidRequestError
from simple_secrets.models.entities import ContainerIdentity
from simple_secrets.models.schemas import ContainerInfoResponse
from simple_secrets.services.container_auth import ContainerAuthorizer

CONTAINER_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")

router = APIRouter(tags=["container"])
container_info_router = APIRouter(prefix="/api/container", tags=["container"])

Requester = Annotated[ContainerIdentity, Depends(get_requesting_container)]
Authorizer = Annotated[ContainerAuthorizer, Depends(get_authorizer)]


@router.get("", response_class=PlainTextResponse, include_in_schema=False)
@router.get("/", response_class=PlainTextResponse)
def list_available(request: Request, identity: Requester, authorizer: Authorizer) -> PlainTextResponse:
    base_url = str(request.base_url).rstrip("/") + get_settings().container_api_base
    lines = authorizer.list_available(identity, base_url)
    return PlainTextResponse("\n".join(lines) + "\n")


@router.get("/.container-info", response_class=PlainTextResponse)
async def container_info(identity: Requester, authorizer: Authorizer) -> PlainTextResponse:
    return PlainTextResponse(await authorizer.render_container_info(identity))


@router.get("/{service}/{secret}", response_class=PlainTextResponse)
def fetch_secret(service: str, secret: str, identity: Requester, authorizer: Authorizer) -> Response:
    return Response(content=authorizer.fetch_secret(identity, service, secret), media_type="text/plain")


@container_info_router.get("/{name}/info", response_model=ContainerInfoResponse)
async def container_info_by_name(
    name: str,
    _: Annotated[str, Depends(require_local_network)],
    authorizer: Authorizer,
) -> ContainerInfoResponse:
    """Original entrypoint/cmd of a container's image, looked up by container name."""
    if not CONTAINER_NAME_PATTERN.match(name):
        raise InvalidRequestError(f"Invalid container name: {name}")
    identity = await authorizer.resolve_by_name(name)
    if not identity.image:
        raise InvalidRequestError("Container has no image reference")
    image = await authorizer.image_config(identity)
    return ContainerInfoResponse(
        container=name,
        entrypoint=image.entrypoint,
        cmd=image.cmd,
        image=identity.image,
        workingDir=image.working_dir or None,
    )
