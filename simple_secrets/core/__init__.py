"""Core configuration, logging, errors, and telemetry."""

from simple_secrets.core.config import Settings, get_settings
from simple_secrets.core.errors import (
    AlreadyExistsError,
    ContainerNotFoundError,
    DecryptionError,
    DeploymentInProgressError,
    DockerAPIError,
    DockerTimeoutError,
    FatalStartupError,
    ForbiddenError,
    InvalidNameError,
    InvalidPasswordError,
    InvalidRequestError,
    PasswordAlreadyInitializedError,
    PasswordNotInitializedError,
    RateLimitError,
    SecretNotDeployedError,
    SecretNotFoundError,
    SecretsError,
    ServiceNotFoundError,
)
from simple_secrets.core.logging import configure_logging, structured_log
from simple_secrets.core.telemetry import get_metrics, instrument_fastapi, span

__all__ = [
    "Settings",
    "get_settings",
    "SecretsError",
    "InvalidNameError",
    "InvalidRequestError",
    "DecryptionError",
    "InvalidPasswordError",
    "PasswordNotInitializedError",
    "PasswordAlreadyInitializedError",
    "RateLimitError",
    "ServiceNotFoundError",
    "SecretNotFoundError",
    "SecretNotDeployedError",
    "ContainerNotFoundError",
    "AlreadyExistsError",
    "DeploymentInProgressError",
    "ForbiddenError",
    "DockerAPIError",
    "DockerTimeoutError",
    "FatalStartupError",
    "configure_logging",
    "structured_log",
    "get_metrics",
    "instrument_fastapi",
    "span",
]
