"""Master password: first-time setup and verification."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status

from simple_secrets.api.dependencies import check_password, get_gate, get_store
from simple_secrets.api.routes.services import build_tree
from simple_secrets.core.config import get_settings
from simple_secrets.models.schemas import PasswordBody, PasswordResponse
from simple_secrets.services.password_gate import PasswordGate
from simple_secrets.services.secret_store import SecretStore

router = APIRouter(prefix="/password", tags=["password"])


def needs_initial_deploy(store: SecretStore) -> bool:
    """True when the store has services but nothing has been deployed to the shared target yet."""
    if not store.list_services():
        return False
    shared = get_settings().shared_secrets_dir
    return not shared.is_dir() or not any(shared.iterdir())


@router.post("/setup", status_code=status.HTTP_201_CREATED, response_model=PasswordResponse)
def setup_password(
    body: PasswordBody,
    gate: Annotated[PasswordGate, Depends(get_gate)],
    store: Annotated[SecretStore, Depends(get_store)],
) -> PasswordResponse:
    """First-time setup; 409 once a password exists."""
    gate.initialize(body.password)
    return PasswordResponse(
        message="Password set successfully",
        auto_deploy=needs_initial_deploy(store),
        services=build_tree(store),
    )


@router.post("/verify", response_model=PasswordResponse)
def verify_password(
    request: Request,
    body: PasswordBody,
    store: Annotated[SecretStore, Depends(get_store)],
) -> PasswordResponse:
    check_password(request, body.password)
    return PasswordResponse(
        message="Password verified",
        auto_deploy=needs_initial_deploy(store),
        services=build_tree(store),
    )
