"""API route modules."""

from simple_secrets.api.routes.container import container_info_router
from simple_secrets.api.routes.container import router as container_router
from simple_secrets.api.routes.deploy import router as deploy_router
from simple_secrets.api.routes.health import router as health_router
from simple_secrets.api.routes.password import router as password_router
from simple_secrets.api.routes.secrets import router as secrets_router
from simple_secrets.api.routes.services import router as services_router

__all__ = [
    "container_info_router",
    "container_router",
    "deploy_router",
    "health_router",
    "password_router",
    "secrets_router",
    "services_router",
]
