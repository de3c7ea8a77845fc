"""Pydantic request/response models for the admin API."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


# --- Request ---
class PasswordBody(BaseModel):
    """POST /password/setup and /password/verify body."""

    password: str = Field(..., min_length=1, max_length=1024)


class ServiceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)


class ServiceRename(BaseModel):
    new_name: str = Field(..., min_length=1, max_length=128)


class SecretCreate(BaseModel):
    """POST /services/{service}/secrets body."""

    name: str = Field(..., min_length=1, max_length=128)
    value: str = Field(..., min_length=1, description="Plaintext value, encrypted before it touches disk")


class SecretUpdate(BaseModel):
    value: str = Field(..., min_length=1)


class SecretRename(BaseModel):
    new_name: str = Field(..., min_length=1, max_length=128)


class BulkImport(BaseModel):
    """POST /services/{service}/bulk-import body (.env format)."""

    env_content: str = Field(..., min_length=1)


# --- Response ---
class SecretSchema(BaseModel):
    name: str
    path: str
    mounted: bool = False
    is_deployed: bool = False
    has_changes: bool = False


class ServiceSchema(BaseModel):
    name: str
    secrets: list[SecretSchema] = Field(default_factory=list)


class ServiceTreeResponse(BaseModel):
    services: list[ServiceSchema] = Field(default_factory=list)


class PasswordResponse(BaseModel):
    """Result of password setup or verification."""

    message: str
    auto_deploy: bool = False
    services: list[ServiceSchema] = Field(default_factory=list)


class SecretValueResponse(BaseModel):
    service: str
    name: str
    value: str
    updated: bool = False


class MountedResponse(BaseModel):
    service: str
    name: str
    mounted: bool


class BulkImportResponse(BaseModel):
    imported: int
    total: int
    errors: list[str] = Field(default_factory=list)


class DeployStatsResponse(BaseModel):
    """POST /deploy response."""

    deployed: int
    updated: int
    skipped: int
    deleted: int
    failed: int = 0
    message: str
    oauth2_configured: bool = False


class ContainerInfoResponse(BaseModel):
    """GET /api/container/{name}/info response."""

    container: str
    entrypoint: list[str] = Field(default_factory=list)
    cmd: list[str] = Field(default_factory=list)
    image: str
    workingDir: Optional[str] = None


class HealthResponse(BaseModel):
    status: str = "ok"
    timestamp: datetime
