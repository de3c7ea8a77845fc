"""Custom exceptions for the secrets service."""

from typing import Any, Optional


class SecretsError(Exception):
    """Base exception for secrets service errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}


# --- Validation ---
class InvalidNameError(SecretsError):
    """Raised when a service or secret name does not match the allowed pattern."""

    def __init__(self, kind: str, name: str, message: Optional[str] = None) -> None:
        super().__init__(
            message
            or f"Invalid {kind} name '{name}': use letters, numbers, '.', '_' and '-' (not starting with '.' or '-')",
            status_code=400,
            details={"kind": kind, "name": name},
        )


class InvalidRequestError(SecretsError):
    """Raised when a request carries missing or malformed input."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=400)


# --- Authentication ---
class DecryptionError(SecretsError):
    """Raised by the cipher for any decrypt failure: wrong password, tampering or truncation alike."""

    def __init__(self) -> None:
        super().__init__("Decryption failed - invalid password or corrupted data", status_code=401)


class InvalidPasswordError(SecretsError):
    """Raised when the master password is wrong or a secret is corrupted."""

    def __init__(self, message: str = "Invalid password") -> None:
        super().__init__(message, status_code=401)


class PasswordNotInitializedError(SecretsError):
    """Raised when no password validation token exists yet (first-time setup required)."""

    def __init__(self) -> None:
        super().__init__("Master password has not been set up yet", status_code=409)


class PasswordAlreadyInitializedError(SecretsError):
    """Raised when first-time setup runs while a validation token already exists."""

    def __init__(self) -> None:
        super().__init__("Password already set. Please use the login form.", status_code=409)


class RateLimitError(SecretsError):
    """Raised when a client exceeds the allowed password attempts."""

    def __init__(self, retry_after_seconds: int = 60) -> None:
        minutes = max(1, -(-retry_after_seconds // 60))
        super().__init__(
            f"Too many failed attempts. Try again in {minutes} minutes.",
            status_code=429,
            details={"retry_after_seconds": retry_after_seconds},
        )


# --- Not found / conflicts ---
class ServiceNotFoundError(SecretsError):
    """Raised when a service directory does not exist."""

    def __init__(self, service: str) -> None:
        super().__init__(
            f"Service not found: {service}",
            status_code=404,
            details={"service": service},
        )


class SecretNotFoundError(SecretsError):
    """Raised when a secret payload does not exist in the store."""

    def __init__(self, service: str, secret: str) -> None:
        super().__init__(
            f"Secret not found: {service}/{secret}",
            status_code=404,
            details={"service": service, "secret": secret},
        )


class SecretNotDeployedError(SecretsError):
    """Raised when a secret has not been materialized at the container-local target yet."""

    def __init__(self, service: str, secret: str) -> None:
        super().__init__(
            "Secret not found or not deployed",
            status_code=404,
            details={"service": service, "secret": secret},
        )


class ContainerNotFoundError(SecretsError):
    """Raised when Docker reports that a named container does not exist."""

    def __init__(self, container: str) -> None:
        super().__init__(
            f"Container not found: {container}",
            status_code=404,
            details={"container": container},
        )


class AlreadyExistsError(SecretsError):
    """Raised when a create or rename would clobber an existing service or secret."""

    def __init__(self, kind: str, name: str) -> None:
        super().__init__(
            f"A {kind} with this name already exists: {name}",
            status_code=409,
            details={"kind": kind, "name": name},
        )


class DeploymentInProgressError(SecretsError):
    """Raised when a deployment is requested while another one is still running."""

    def __init__(self) -> None:
        super().__init__("A deployment is already in progress", status_code=409)


# --- Authorization ---
class ForbiddenError(SecretsError):
    """Raised when a requester is outside the local networks or lacks a mount label."""

    def __init__(self, message: str = "Forbidden") -> None:
        super().__init__(message, status_code=403)


# --- Upstream ---
class DockerAPIError(SecretsError):
    """Raised when the Docker daemon is unreachable or returns an error payload."""

    def __init__(
        self,
        message: str,
        docker_status: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message=message,
            status_code=502,
            details={"docker_status": docker_status, **(details or {})},
        )
        self.docker_status = docker_status


class DockerTimeoutError(DockerAPIError):
    """Raised when a Docker API call exceeds its bounded timeout."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Docker API call timed out: {path}", details={"path": path})


# --- Startup ---
class FatalStartupError(SecretsError):
    """Raised when integrity preconditions are unmet at boot in strict mode."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message, status_code=500, details=details)
