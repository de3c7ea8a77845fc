"""Unit tests for custom exceptions."""

from simple_secrets.core.errors import (
    AlreadyExistsError,
    DecryptionError,
    DockerAPIError,
    DockerTimeoutError,
    ForbiddenError,
    InvalidNameError,
    RateLimitError,
    SecretNotDeployedError,
    SecretsError,
    ServiceNotFoundError,
)


def test_secrets_error_base() -> None:
    e = SecretsError("msg", status_code=500, error_code="TestError")
    assert str(e) == "msg"
    assert e.error_code == "TestError"
    assert e.details == {}


def test_default_error_code_is_class_name() -> None:
    assert ServiceNotFoundError("api").error_code == "ServiceNotFoundError"


def test_not_found_errors() -> None:
    e = ServiceNotFoundError("api")
    assert e.status_code == 404
    assert e.details == {"service": "api"}
    assert SecretNotDeployedError("api", "KEY").message == "Secret not found or not deployed"


def test_invalid_name() -> None:
    e = InvalidNameError("secret", "../x")
    assert e.status_code == 400
    assert "../x" in e.message


def test_decryption_error_message() -> None:
    e = DecryptionError()
    assert e.status_code == 401
    assert e.message == "Decryption failed - invalid password or corrupted data"


def test_conflicts_and_forbidden() -> None:
    assert AlreadyExistsError("service", "api").status_code == 409
    assert ForbiddenError().status_code == 403


def test_rate_limit_minutes_round_up() -> None:
    assert "2 minutes" in RateLimitError(61).message
    assert RateLimitError(61).details["retry_after_seconds"] == 61


def test_docker_errors() -> None:
    e = DockerAPIError("boom", docker_status=404)
    assert e.status_code == 502
    assert e.docker_status == 404
    timeout = DockerTimeoutError("/containers/json")
    assert isinstance(timeout, DockerAPIError)
    assert timeout.details["path"] == "/containers/json"
