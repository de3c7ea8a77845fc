"""Secret CRUD below /services/{service}: create, bulk import, read, update, delete, rename, toggle mounted."""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from simple_secrets.api.dependencies import get_store, require_password
from simple_secrets.core.errors import AlreadyExistsError
from simple_secrets.models.schemas import (
    BulkImport,
    BulkImportResponse,
    MountedResponse,
    SecretCreate,
    SecretRename,
    SecretUpdate,
    SecretValueResponse,
)
from simple_secrets.services.secret_store import SecretStore

router = APIRouter(prefix="/services/{service}", tags=["secrets"])

Password = Annotated[str, Depends(require_password)]
Store = Annotated[SecretStore, Depends(get_store)]


@router.post("/secrets", status_code=status.HTTP_201_CREATED)
def create_secret(service: str, body: SecretCreate, password: Password, store: Store) -> dict:
    if store.exists(service, body.name):
        raise AlreadyExistsError("secret", f"{service}/{body.name}")
    store.create(service, body.name, body.value, password)
    return {"message": "Secret created", "service": service, "name": body.name}


@router.post("/bulk-import", response_model=BulkImportResponse)
def bulk_import(service: str, body: BulkImport, password: Password, store: Store) -> BulkImportResponse:
    """Import .env content; per-line failures are reported alongside the imported count."""
    result = store.bulk_import(service, body.env_content, password)
    return BulkImportResponse(imported=result.imported, total=result.total, errors=result.errors)


@router.get("/secrets/{name}", response_model=SecretValueResponse)
def read_secret(service: str, name: str, password: Password, store: Store) -> SecretValueResponse:
    return SecretValueResponse(service=service, name=name, value=store.read(service, name, password))


@router.put("/secrets/{name}")
def update_secret(service: str, name: str, body: SecretUpdate, password: Password, store: Store) -> dict:
    store.update(service, name, body.value, password)
    return {"message": "Secret updated", "service": service, "name": name}


@router.delete("/secrets/{name}")
def delete_secret(service: str, name: str, _: Password, store: Store) -> dict:
    store.delete(service, name)
    return {"message": "Secret deleted", "service": service, "name": name}


@router.post("/secrets/{name}/rename")
def rename_secret(service: str, name: str, body: SecretRename, _: Password, store: Store) -> dict:
    store.rename(service, name, body.new_name)
    return {"message": "Secret renamed", "service": service, "name": body.new_name}


@router.post("/secrets/{name}/toggle-mounted", response_model=MountedResponse)
def toggle_mounted(service: str, name: str, _: Password, store: Store) -> MountedResponse:
    mounted = store.toggle_mounted(service, name)
    return MountedResponse(service=service, name=name, mounted=mounted)
