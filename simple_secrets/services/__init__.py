"""Services: cipher, secret store, password gate, deployment, Docker and container authorization."""

from simple_secrets.services.container_auth import ContainerAuthorizer, parse_mount_grants
from simple_secrets.services.deployment import DeploymentEngine
from simple_secrets.services.docker_client import DockerClient
from simple_secrets.services.network_guard import NetworkGuard
from simple_secrets.services.password_gate import PasswordGate
from simple_secrets.services.rate_limiter import RateLimiter
from simple_secrets.services.secret_store import SecretStore

__all__ = [
    "ContainerAuthorizer",
    "parse_mount_grants",
    "DeploymentEngine",
    "DockerClient",
    "NetworkGuard",
    "PasswordGate",
    "RateLimiter",
    "SecretStore",
]
