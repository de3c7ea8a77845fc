"""Container identification and label-based authorization for the internal surface.

A container is identified by matching the request's source address against the network
IPs of running containers. Access is granted by labels on that container:

    dss.<service>.mount.*=<dir>         every secret of <service>, written below <dir>
    dss.<service>.mount.<secret>=<path> only <secret>, written to <path>
"""

import re
import shlex
from datetime import UTC, datetime
from pathlib import Path
from typing import Optional

from simple_secrets.core.errors import (
    ContainerNotFoundError,
    DockerAPIError,
    DockerTimeoutError,
    ForbiddenError,
    InvalidNameError,
    SecretNotDeployedError,
    ServiceNotFoundError,
)
from simple_secrets.core.logging import structured_log
from simple_secrets.core.telemetry import record_container_lookup
from simple_secrets.models.entities import ContainerIdentity, ImageConfig, MountGrant
from simple_secrets.services.docker_client import DockerClient
from simple_secrets.services.network_guard import normalize_address
from simple_secrets.services.secret_store import NAME_PATTERN, SecretStore

LABEL_PREFIX = "dss."
MOUNT_MARKER = ".mount."
WILDCARD = "*"

_LABEL_KEY_SANITIZER = re.compile(r"[^A-Za-z0-9_]")


def parse_mount_grant(key: str, value: str) -> Optional[MountGrant]:
    """Parse one label; None when key is not a well-formed mount label."""
    if not key.startswith(LABEL_PREFIX):
        return None
    rest = key[len(LABEL_PREFIX):]
    service, marker, secret = rest.partition(MOUNT_MARKER)
    if not marker or not NAME_PATTERN.match(service):
        return None
    if secret == WILDCARD:
        return MountGrant(service=service, secret=None, mount_path=value)
    if not NAME_PATTERN.match(secret):
        return None
    return MountGrant(service=service, secret=secret, mount_path=value)


def parse_mount_grants(labels: dict[str, str]) -> list[MountGrant]:
    grants = []
    for key, value in sorted(labels.items()):
        grant = parse_mount_grant(key, value)
        if grant is not None:
            grants.append(grant)
    return grants


def _container_ips(inspect: dict) -> list[str]:
    networks = (inspect.get("NetworkSettings") or {}).get("Networks") or {}
    return [n.get("IPAddress") for n in networks.values() if n and n.get("IPAddress")]


class ContainerAuthorizer:
    """Request-scoped container resolution; no decision is cached across requests."""

    def __init__(self, docker: DockerClient, store: SecretStore, container_root: Path) -> None:
        self.docker = docker
        self.store = store
        self.container_root = Path(container_root)

    async def resolve_requester(self, remote_address: str) -> ContainerIdentity:
        """Find the running container owning remote_address or raise ForbiddenError."""
        record_container_lookup()
        wanted = normalize_address(remote_address)
        if wanted is None:
            raise ForbiddenError("Forbidden: Container not found for requesting IP")
        try:
            containers = await self.docker.list_containers()
            for summary in containers:
                container_id = summary.get("Id", "")
                try:
                    inspect = await self.docker.inspect_container(container_id)
                except DockerAPIError as exc:
                    # Container exited between list and inspect
                    if exc.docker_status == 404:
                        continue
                    raise
                for ip in _container_ips(inspect):
                    if normalize_address(ip) == wanted:
                        return ContainerIdentity.from_inspect(inspect, ip)
        except DockerTimeoutError:
            raise ForbiddenError("Forbidden: Unable to verify container") from None

        structured_log(
            "WARNING",
            "No container matches requesting address",
            operation="container.resolve",
            metadata={"address": str(wanted)},
        )
        raise ForbiddenError("Forbidden: Container not found for requesting IP")

    async def resolve_by_name(self, name: str) -> ContainerIdentity:
        try:
            inspect = await self.docker.inspect_container(name)
        except DockerAPIError as exc:
            if exc.docker_status == 404:
                raise ContainerNotFoundError(name) from None
            raise
        ips = _container_ips(inspect)
        return ContainerIdentity.from_inspect(inspect, ips[0] if ips else "")

    def authorize(self, identity: ContainerIdentity, service: str, secret: str) -> bool:
        return any(grant.covers(service, secret) for grant in parse_mount_grants(identity.labels))

    def list_available(self, identity: ContainerIdentity, base_url: str) -> list[str]:
        """Manifest lines `<file path>|<fetch url>`; unresolvable grants become `# Warning:` lines."""
        grants = parse_mount_grants(identity.labels)
        if not grants:
            return ["# No mount labels found for this container"]

        base_url = base_url.rstrip("/")
        lines: list[str] = []
        names_by_service: dict[str, list[str]] = {}
        for grant in grants:
            if grant.service not in names_by_service:
                try:
                    names_by_service[grant.service] = self.store.list_secret_names(grant.service)
                except ServiceNotFoundError:
                    names_by_service[grant.service] = []
            names = names_by_service[grant.service]
            if not names:
                lines.append(f"# Warning: Service '{grant.service}' not found or has no secrets")
                continue

            if grant.is_wildcard:
                directory = grant.mount_path if grant.mount_path.endswith("/") else f"{grant.mount_path}/"
                for name in names:
                    lines.append(f"{directory}{name}|{base_url}/{grant.service}/{name}")
            elif grant.secret in names:
                lines.append(f"{grant.mount_path}|{base_url}/{grant.service}/{grant.secret}")
            else:
                lines.append(f"# Warning: Secret '{grant.secret}' not found in service '{grant.service}'")
        return lines

    def fetch_secret(self, identity: ContainerIdentity, service: str, secret: str) -> bytes:
        """Serve the plaintext already deployed at the container-local target."""
        if not self.authorize(identity, service, secret):
            structured_log(
                "WARNING",
                "Container not permitted to access secret",
                service=service,
                secret=secret,
                operation="container.fetch",
                metadata={"container": identity.name},
            )
            raise ForbiddenError("Forbidden: Container does not have permission to access this secret")
        try:
            self.store.validate_name("service", service)
            self.store.validate_name("secret", secret)
        except InvalidNameError:
            raise SecretNotDeployedError(service, secret) from None
        try:
            return (self.container_root / service / secret).read_bytes()
        except (FileNotFoundError, IsADirectoryError):
            raise SecretNotDeployedError(service, secret) from None

    async def image_config(self, identity: ContainerIdentity) -> ImageConfig:
        if not identity.image:
            return ImageConfig()
        return ImageConfig.from_inspect(await self.docker.inspect_image(identity.image))

    async def render_container_info(self, identity: ContainerIdentity) -> str:
        """Shell-sourceable description of the container and its image's original command."""
        image = await self.image_config(identity)
        values = [
            ("CONTAINER_ID", identity.id),
            ("CONTAINER_NAME", identity.name),
            ("CONTAINER_IP", identity.ip_address),
            None,
            ("ORIGINAL_ENTRYPOINT", shlex.join(image.entrypoint)),
            ("ORIGINAL_CMD", shlex.join(image.cmd)),
            ("ORIGINAL_IMAGE", identity.image),
            ("ORIGINAL_WORKDIR", image.working_dir),
            None,
            ("CURRENT_ENTRYPOINT", shlex.join(identity.entrypoint)),
            ("CURRENT_ARGS", shlex.join(identity.args)),
            ("CURRENT_CMD", shlex.join(identity.cmd)),
        ]
        lines = [
            "#!/bin/sh",
            "# Container reflection - auto-generated",
            f"# Updated: {datetime.now(UTC).isoformat()}",
            "",
        ]
        for item in values:
            if item is None:
                lines.append("")
                continue
            name, value = item
            lines.append(f"{name}={shlex.quote(value)}")
        lines.append("")
        lines.append("# Container Labels")
        for key, value in sorted(identity.labels.items()):
            lines.append(f"LABEL_{label_variable(key)}={shlex.quote(str(value))}")
        lines.append("")
        return "\n".join(lines)


def label_variable(key: str) -> str:
    """Docker label key as a shell variable suffix: dss.api.mount.* -> DSS_API_MOUNT__."""
    return _LABEL_KEY_SANITIZER.sub("_", key).upper()
