"""Master password validation against an encrypted sentinel token."""

from pathlib import Path

from simple_secrets.core.errors import (
    DecryptionError,
    InvalidPasswordError,
    PasswordAlreadyInitializedError,
    PasswordNotInitializedError,
)
from simple_secrets.core.logging import structured_log
from simple_secrets.core.telemetry import record_decrypt_failure
from simple_secrets.services import cipher
from simple_secrets.services.files import write_file_atomic

SENTINEL = "VALID_PASSWORD"


class PasswordGate:
    """Two states: no validation token, token present. Setup is one-way."""

    def __init__(self, validation_file: Path) -> None:
        self.validation_file = Path(validation_file)

    def is_initialized(self) -> bool:
        return self.validation_file.is_file()

    def validate(self, password: str) -> None:
        """Raise PasswordNotInitializedError or InvalidPasswordError unless password is the master password."""
        try:
            blob = self.validation_file.read_bytes()
        except FileNotFoundError:
            raise PasswordNotInitializedError() from None
        try:
            plaintext = cipher.decrypt(blob, password)
        except DecryptionError:
            record_decrypt_failure()
            raise InvalidPasswordError() from None
        if plaintext != SENTINEL:
            raise InvalidPasswordError()

    def initialize(self, password: str) -> None:
        """Write the sentinel token encrypted under password; refuses once a token exists."""
        if self.is_initialized():
            raise PasswordAlreadyInitializedError()
        write_file_atomic(self.validation_file, cipher.encrypt(SENTINEL, password))
        structured_log("INFO", "Master password initialized", operation="password.initialize")
