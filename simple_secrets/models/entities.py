"""In-memory entity models for the store, deployments and containers."""

import json
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class SecretState:
    """Mutable side-record stored next to each encrypted payload."""

    mounted: bool = False

    def to_bytes(self) -> bytes:
        return json.dumps({"mounted": self.mounted}, indent=2).encode("utf-8")

    @classmethod
    def from_bytes(cls, raw: bytes) -> "SecretState":
        data = json.loads(raw.decode("utf-8"))
        if not isinstance(data, dict):
            raise ValueError("secret state must be a JSON object")
        return cls(mounted=bool(data.get("mounted", False)))


@dataclass
class SecretEntry:
    """One secret in the store tree, annotated with its deployment status."""

    service: str
    name: str
    path: str  # relative to the store root
    mounted: bool = False
    is_deployed: bool = False
    has_changes: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "path": self.path,
            "mounted": self.mounted,
            "is_deployed": self.is_deployed,
            "has_changes": self.has_changes,
        }


@dataclass
class ServiceEntry:
    """A service directory and its secrets."""

    name: str
    secrets: list[SecretEntry] = field(default_factory=list)

    def find(self, secret_name: str) -> Optional[SecretEntry]:
        for secret in self.secrets:
            if secret.name == secret_name:
                return secret
        return None

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "secrets": [s.to_dict() for s in self.secrets]}


@dataclass
class DeployStats:
    """Aggregate outcome of one deployment run."""

    deployed: int = 0
    updated: int = 0
    skipped: int = 0
    deleted: int = 0
    failed: int = 0

    def summary(self) -> str:
        parts = []
        if self.deployed:
            parts.append(f"{self.deployed} new")
        if self.updated:
            parts.append(f"{self.updated} updated")
        if self.skipped:
            parts.append(f"{self.skipped} unchanged")
        if self.deleted:
            parts.append(f"{self.deleted} removed")
        if self.failed:
            parts.append(f"{self.failed} failed")
        if not parts:
            return "All secrets up to date"
        return "Deployment complete: " + ", ".join(parts)


@dataclass(frozen=True)
class MountGrant:
    """Parsed `dss.<service>.mount.<secret|*>=<path>` container label."""

    service: str
    secret: Optional[str]  # None means every secret of the service
    mount_path: str

    @property
    def is_wildcard(self) -> bool:
        return self.secret is None

    def covers(self, service: str, secret: str) -> bool:
        return self.service == service and (self.secret is None or self.secret == secret)


@dataclass
class ContainerIdentity:
    """Request-scoped view of a running container resolved from the Docker API."""

    id: str
    name: str
    image: str
    ip_address: str
    labels: dict[str, str] = field(default_factory=dict)
    entrypoint: list[str] = field(default_factory=list)
    cmd: list[str] = field(default_factory=list)
    args: list[str] = field(default_factory=list)

    @classmethod
    def from_inspect(cls, data: dict[str, Any], ip_address: str) -> "ContainerIdentity":
        config = data.get("Config") or {}
        container_id = data.get("Id", "")
        name = (data.get("Name") or "").lstrip("/") or container_id[:12]
        return cls(
            id=container_id,
            name=name,
            image=config.get("Image") or "",
            ip_address=ip_address,
            labels=dict(config.get("Labels") or {}),
            entrypoint=_as_list(config.get("Entrypoint")),
            cmd=_as_list(config.get("Cmd")),
            args=_as_list(data.get("Args")),
        )


@dataclass
class ImageConfig:
    """Startup configuration declared by an image."""

    entrypoint: list[str] = field(default_factory=list)
    cmd: list[str] = field(default_factory=list)
    working_dir: str = ""

    @classmethod
    def from_inspect(cls, data: dict[str, Any]) -> "ImageConfig":
        config = data.get("Config") or {}
        return cls(
            entrypoint=_as_list(config.get("Entrypoint")),
            cmd=_as_list(config.get("Cmd")),
            working_dir=config.get("WorkingDir") or "",
        )


@dataclass
class RateLimitEntry:
    """Attempt counter for one client identifier."""

    attempts: int
    last_attempt: float
    blocked_until: Optional[float] = None


def _as_list(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value]
