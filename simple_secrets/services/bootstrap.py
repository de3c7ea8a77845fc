"""Configuration bootstrapped from this service's own deployed secrets.

The values are threaded through as an explicit object; the process environment is never
written to.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from simple_secrets.core.logging import structured_log
from simple_secrets.services.secret_store import FINGERPRINT_SUFFIX


def load_deployed_secrets(root: Path, service: str) -> dict[str, str]:
    """Read every deployed secret of service below root into a name -> value mapping."""
    service_dir = Path(root) / service
    if not service_dir.is_dir():
        return {}
    values: dict[str, str] = {}
    for entry in sorted(service_dir.iterdir()):
        if not entry.is_file() or entry.name.startswith(".") or entry.name.endswith(FINGERPRINT_SUFFIX):
            continue
        values[entry.name] = entry.read_text(encoding="utf-8").strip()
    return values


@dataclass(frozen=True)
class OAuth2Config:
    """OAuth2 gateway settings. Built only when client id, secret and issuer are all present."""

    client_id: str
    client_secret: str
    issuer_url: str
    authorization_url: str = ""
    token_url: str = ""
    scope: str = "openid"
    provider_name: str = "OAuth2 Provider"

    @classmethod
    def from_secrets(cls, secrets: dict[str, str]) -> Optional["OAuth2Config"]:
        client_id = secrets.get("OAUTH2_CLIENT_ID", "")
        client_secret = secrets.get("OAUTH2_CLIENT_SECRET", "")
        issuer_url = secrets.get("OAUTH2_ISSUER_URL", "")
        if not (client_id and client_secret and issuer_url):
            return None
        return cls(
            client_id=client_id,
            client_secret=client_secret,
            issuer_url=issuer_url.rstrip("/"),
            authorization_url=secrets.get("OAUTH2_AUTHORIZATION_URL", ""),
            token_url=secrets.get("OAUTH2_TOKEN_URL", ""),
            scope=secrets.get("OAUTH2_SCOPE") or "openid",
            provider_name=secrets.get("OAUTH2_PROVIDER_NAME") or "OAuth2 Provider",
        )

    def __repr__(self) -> str:
        return f"OAuth2Config(client_id={self.client_id!r}, issuer_url={self.issuer_url!r}, scope={self.scope!r})"


def bootstrap_oauth2(root: Path, service: str) -> Optional[OAuth2Config]:
    """Build the OAuth2 configuration from service's deployed secrets, or None."""
    if not service:
        return None
    try:
        secrets = load_deployed_secrets(root, service)
    except OSError as exc:
        structured_log(
            "ERROR",
            "Failed to read deployed secrets for OAuth2 bootstrap",
            service=service,
            operation="bootstrap.oauth2",
            error={"type": type(exc).__name__, "message": str(exc)},
        )
        return None
    config = OAuth2Config.from_secrets(secrets)
    if config is None:
        structured_log(
            "INFO",
            "OAuth2 not configured: client id, client secret or issuer URL missing",
            service=service,
            operation="bootstrap.oauth2",
        )
    else:
        structured_log(
            "INFO",
            "OAuth2 configured from deployed secrets",
            service=service,
            operation="bootstrap.oauth2",
            metadata={"issuer_url": config.issuer_url, "provider": config.provider_name},
        )
    return config
