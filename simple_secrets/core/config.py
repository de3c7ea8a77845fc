"""Application settings loaded from environment with validation."""

import socket
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
Environment = Literal["production", "development"]


class Settings(BaseSettings):
    """Secrets service settings from environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    environment: Environment = Field(
        default="production",
        description="production refuses to start on unmet storage requirements; development only warns",
    )

    # Server
    host: str = Field(default="0.0.0.0", description="Address the HTTP server binds to")
    port: int = Field(default=3000, ge=1, le=65535)

    # Storage
    data_dir: Path = Field(default=Path("/var/data"), description="Encrypted secret store root")
    container_secrets_dir: Path = Field(
        default=Path("/var/secrets"),
        description="Container-local deployment target (every secret, served to containers over HTTP)",
    )
    shared_secrets_dir: Path = Field(
        default=Path("/var/shared-secrets"),
        description="Shared deployment target (mounted secrets only, volume-mounted by sibling containers)",
    )
    secret_extension: str = Field(
        default="aes",
        min_length=1,
        pattern=r"^[A-Za-z0-9]+$",
        description="File extension of encrypted secret payloads",
    )

    # Docker
    docker_socket: str = Field(default="/var/run/docker.sock", min_length=1)
    docker_timeout_seconds: float = Field(default=5.0, gt=0, le=60)
    hostname: str = Field(
        default_factory=socket.gethostname,
        description="Reference to this container, used to discover the Docker networks in use",
    )
    container_api_base: str = Field(
        default="/api/services",
        pattern=r"^/[A-Za-z0-9/_-]*[A-Za-z0-9_-]$",
        description="Path prefix of the internal container surface",
    )

    # Deployment
    deploy_concurrency: int = Field(default=8, ge=1, le=64)
    require_ephemeral_storage: bool = Field(
        default=True,
        description="Check that deployment targets live on tmpfs at startup",
    )
    purge_on_shutdown: bool = Field(
        default=True,
        description="Remove all deployed plaintext when the process stops",
    )
    dss_service_name: str = Field(
        default="",
        description="Name of this service's own secrets (used to bootstrap OAuth2 configuration)",
    )

    # Password rate limiting
    password_max_attempts: int = Field(default=5, ge=1, le=100)
    password_attempt_window_seconds: int = Field(default=300, ge=1, le=86400)
    password_block_seconds: int = Field(default=900, ge=1, le=86400)

    # Logging
    log_level: LogLevel = Field(default="INFO")

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
        u = (v or "INFO").upper()
        if u not in allowed:
            raise ValueError(f"log_level must be one of {allowed}")
        return u

    @field_validator("environment", mode="before")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        return (v or "production").lower()

    @property
    def strict_mode(self) -> bool:
        return self.environment == "production"

    @property
    def password_validation_file(self) -> Path:
        return self.data_dir / f".password-validation.{self.secret_extension}"


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
