"""FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from simple_secrets import __version__
from simple_secrets.api.dependencies import get_docker_client, get_network_guard
from simple_secrets.api.routes import (
    container_info_router,
    container_router,
    deploy_router,
    health_router,
    password_router,
    secrets_router,
    services_router,
)
from simple_secrets.core.config import get_settings
from simple_secrets.core.errors import SecretsError
from simple_secrets.core.logging import configure_logging, structured_log
from simple_secrets.core.telemetry import instrument_fastapi
from simple_secrets.services.storage_check import purge_targets, verify_ephemeral_storage


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: logging, deployment targets, storage check, network discovery. Shutdown: purge."""
    settings = get_settings()
    configure_logging(settings.log_level)
    targets = [settings.container_secrets_dir, settings.shared_secrets_dir]
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    for target in targets:
        target.mkdir(parents=True, exist_ok=True)
    if settings.require_ephemeral_storage:
        verify_ephemeral_storage(targets, strict=settings.strict_mode)

    app.state.oauth2_config = None
    await get_network_guard().discover(get_docker_client(), settings.hostname)
    structured_log(
        "INFO",
        "Secrets service started",
        operation="startup",
        metadata={"environment": settings.environment, "data_dir": str(settings.data_dir)},
    )
    yield
    if settings.purge_on_shutdown:
        purge_targets(targets)


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(
        title="Simple Secrets",
        description="Encrypted secret store with ephemeral plaintext deployment for Docker services",
        version=__version__,
        lifespan=lifespan,
    )
    app.include_router(health_router)
    app.include_router(password_router)
    app.include_router(services_router)
    app.include_router(secrets_router)
    app.include_router(deploy_router)
    app.include_router(container_router, prefix=settings.container_api_base)
    app.include_router(container_info_router)

    instrument_fastapi(app)

    @app.exception_handler(SecretsError)
    async def secrets_error_handler(request: Request, exc: SecretsError) -> Response:
        """Map custom exceptions to JSON, or plain text on the container surface."""
        base = settings.container_api_base
        if request.url.path == base or request.url.path.startswith(base + "/"):
            return PlainTextResponse(exc.message, status_code=exc.status_code)
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": exc.error_code,
                "message": exc.message,
                "details": exc.details,
            },
        )

    return app


app = create_app()
