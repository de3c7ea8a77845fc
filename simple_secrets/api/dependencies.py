"""FastAPI dependencies: shared services, master password auth, local-network guard."""

from functools import lru_cache
from typing import Annotated, Optional

from fastapi import Depends, Header, Request

from simple_secrets.core.config import get_settings
from simple_secrets.core.errors import ForbiddenError, InvalidPasswordError
from simple_secrets.core.logging import structured_log
from simple_secrets.models.entities import ContainerIdentity
from simple_secrets.services.container_auth import ContainerAuthorizer
from simple_secrets.services.deployment import DeploymentEngine
from simple_secrets.services.docker_client import DockerClient
from simple_secrets.services.network_guard import NetworkGuard
from simple_secrets.services.password_gate import PasswordGate
from simple_secrets.services.rate_limiter import RateLimiter
from simple_secrets.services.secret_store import SecretStore

PASSWORD_HEADER = "X-User-Password"


@lru_cache
def get_store() -> SecretStore:
    settings = get_settings()
    return SecretStore(
        settings.data_dir,
        extension=settings.secret_extension,
        container_root=settings.container_secrets_dir,
        shared_root=settings.shared_secrets_dir,
    )


@lru_cache
def get_gate() -> PasswordGate:
    return PasswordGate(get_settings().password_validation_file)


@lru_cache
def get_engine() -> DeploymentEngine:
    settings = get_settings()
    return DeploymentEngine(
        get_store(),
        container_root=settings.container_secrets_dir,
        shared_root=settings.shared_secrets_dir,
        concurrency=settings.deploy_concurrency,
    )


@lru_cache
def get_rate_limiter() -> RateLimiter:
    settings = get_settings()
    return RateLimiter(
        max_attempts=settings.password_max_attempts,
        window_seconds=settings.password_attempt_window_seconds,
        block_seconds=settings.password_block_seconds,
    )


@lru_cache
def get_docker_client() -> DockerClient:
    settings = get_settings()
    return DockerClient(settings.docker_socket, timeout=settings.docker_timeout_seconds)


@lru_cache
def get_network_guard() -> NetworkGuard:
    return NetworkGuard()


@lru_cache
def get_authorizer() -> ContainerAuthorizer:
    return ContainerAuthorizer(get_docker_client(), get_store(), get_settings().container_secrets_dir)


def reset_dependencies() -> None:
    """Drop cached singletons (settings changes, tests)."""
    for factory in (
        get_store,
        get_gate,
        get_engine,
        get_rate_limiter,
        get_docker_client,
        get_network_guard,
        get_authorizer,
    ):
        factory.cache_clear()


def client_ip(request: Request) -> str:
    return request.client.host if request.client else ""


def check_password(request: Request, password: str) -> None:
    """Rate-limit by client address, validate against the gate, reset the limiter on success."""
    limiter = get_rate_limiter()
    identifier = client_ip(request) or "unknown"
    limiter.check(identifier)
    try:
        get_gate().validate(password)
    except InvalidPasswordError:
        structured_log(
            "WARNING",
            "Invalid master password attempt",
            operation="password.validate",
            metadata={"client": identifier},
        )
        raise
    limiter.reset(identifier)


def require_password(
    request: Request,
    x_user_password: Annotated[Optional[str], Header(alias=PASSWORD_HEADER)] = None,
) -> str:
    """Master password from the X-User-Password header, validated."""
    if not x_user_password:
        raise InvalidPasswordError("Password required")
    check_password(request, x_user_password)
    return x_user_password


async def require_local_network(
    request: Request,
    guard: Annotated[NetworkGuard, Depends(get_network_guard)],
) -> str:
    """Reject sources outside loopback and the Docker networks before any Docker call."""
    address = client_ip(request)
    if not guard.is_allowed(address):
        structured_log(
            "WARNING",
            "Blocked request from non-local address",
            operation="network.guard",
            metadata={"address": address, "path": request.url.path},
        )
        raise ForbiddenError("Access denied: endpoint only accessible from local network")
    return address


async def get_requesting_container(
    address: Annotated[str, Depends(require_local_network)],
    authorizer: Annotated[ContainerAuthorizer, Depends(get_authorizer)],
) -> ContainerIdentity:
    return await authorizer.resolve_requester(address)
