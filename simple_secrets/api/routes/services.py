"""Service management: GET/POST /services, PUT/DELETE /services/{service}."""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from simple_secrets.api.dependencies import get_store, require_password
from simple_secrets.core.errors import AlreadyExistsError
from simple_secrets.models.schemas import ServiceCreate, ServiceRename, ServiceSchema, ServiceTreeResponse
from simple_secrets.services.secret_store import SecretStore

router = APIRouter(prefix="/services", tags=["services"])


def build_tree(store: SecretStore) -> list[ServiceSchema]:
    """Store tree with per-secret mounted/deployed/changed flags."""
    return [ServiceSchema(**service.to_dict()) for service in store.list_tree()]


@router.get("", response_model=ServiceTreeResponse)
def list_services(
    _: Annotated[str, Depends(require_password)],
    store: Annotated[SecretStore, Depends(get_store)],
) -> ServiceTreeResponse:
    return ServiceTreeResponse(services=build_tree(store))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_service(
    body: ServiceCreate,
    _: Annotated[str, Depends(require_password)],
    store: Annotated[SecretStore, Depends(get_store)],
) -> dict:
    if store.service_path(body.name).exists():
        raise AlreadyExistsError("service", body.name)
    store.create_service(body.name)
    return {"message": "Service created", "service": body.name}


@router.put("/{service}")
def rename_service(
    service: str,
    body: ServiceRename,
    _: Annotated[str, Depends(require_password)],
    store: Annotated[SecretStore, Depends(get_store)],
) -> dict:
    """Rename a service. Deployed copies under the old name are removed; deploy again to republish."""
    store.rename_service(service, body.new_name)
    return {"message": "Service renamed", "service": body.new_name}


@router.delete("/{service}")
def delete_service(
    service: str,
    _: Annotated[str, Depends(require_password)],
    store: Annotated[SecretStore, Depends(get_store)],
) -> dict:
    store.delete_service(service)
    return {"message": "Service deleted", "service": service}
