"""Encrypted secret store: one directory per service, one payload + state record per secret.

On-disk layout below the store root:

    <service>/<secret>.<ext>    encrypted payload (see services.cipher)
    <service>/<secret>.state    JSON side-record {"mounted": bool}

Single-writer semantics: check-then-act sequences (rename, create-if-absent) are not
atomic against concurrent writers.
"""

import re
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from simple_secrets.core.errors import (
    AlreadyExistsError,
    DecryptionError,
    InvalidNameError,
    InvalidPasswordError,
    SecretNotFoundError,
    ServiceNotFoundError,
)
from simple_secrets.core.logging import structured_log
from simple_secrets.core.telemetry import record_decrypt_failure, record_secret_decrypted
from simple_secrets.models.entities import SecretEntry, SecretState, ServiceEntry
from simple_secrets.services import cipher
from simple_secrets.services.files import md5_hex, read_text_if_exists, write_file_atomic

NAME_PATTERN = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9._-]*$")
ENV_LINE_PATTERN = re.compile(r"^([A-Za-z0-9_][A-Za-z0-9._-]*)=(.*)$")

STATE_SUFFIX = ".state"
FINGERPRINT_SUFFIX = ".md5"
FINGERPRINT_SEPARATOR = ":"

# Written at the root of the shared target, so no service may take this name
ENTRYPOINT_NAME = "entrypoint.sh"
RESERVED_SERVICE_NAMES = frozenset({ENTRYPOINT_NAME})


@dataclass
class ImportResult:
    imported: int = 0
    total: int = 0
    errors: list[str] = field(default_factory=list)


def fingerprint_path(root: Path, service: str, name: str) -> Path:
    """Path of the fingerprint recorded next to a deployed secret."""
    return root / service / f"{name}{FINGERPRINT_SUFFIX}"


class SecretStore:
    """Filesystem-backed store of encrypted secrets grouped by service."""

    def __init__(
        self,
        root: Path,
        extension: str = "aes",
        container_root: Optional[Path] = None,
        shared_root: Optional[Path] = None,
    ) -> None:
        self.root = Path(root)
        self.extension = extension
        self.payload_suffix = f".{extension}"
        # Deployment status is read from the container-local target
        self.container_root = Path(container_root) if container_root else None
        self.shared_root = Path(shared_root) if shared_root else None

    # --- paths and validation ---
    def validate_name(self, kind: str, name: str) -> None:
        if not name or not NAME_PATTERN.match(name):
            raise InvalidNameError(kind, name)
        if kind == "service" and name in RESERVED_SERVICE_NAMES:
            raise InvalidNameError(kind, name, f"Invalid service name '{name}': name is reserved")
        reserved = (STATE_SUFFIX, FINGERPRINT_SUFFIX, self.payload_suffix)
        if kind == "secret" and name.endswith(reserved):
            raise InvalidNameError(
                kind,
                name,
                f"Invalid secret name '{name}': names may not end with {', '.join(reserved)}",
            )

    def service_path(self, service: str) -> Path:
        self.validate_name("service", service)
        return self.root / service

    def payload_path(self, service: str, name: str) -> Path:
        self.validate_name("secret", name)
        return self.service_path(service) / f"{name}{self.payload_suffix}"

    def state_path(self, service: str, name: str) -> Path:
        self.validate_name("secret", name)
        return self.service_path(service) / f"{name}{STATE_SUFFIX}"

    def _deployment_roots(self) -> list[Path]:
        return [r for r in (self.container_root, self.shared_root) if r is not None]

    # --- secrets ---
    def exists(self, service: str, name: str) -> bool:
        return self.payload_path(service, name).is_file()

    def create(self, service: str, name: str, value: str, password: str) -> None:
        """Encrypt value and write it with a default state record. Overwrites an existing secret."""
        payload = self.payload_path(service, name)
        write_file_atomic(payload, cipher.encrypt(value, password))
        self.write_state(service, name, SecretState())
        structured_log("INFO", "Secret created", service=service, secret=name, operation="store.create")

    def read_payload(self, service: str, name: str) -> bytes:
        try:
            return self.payload_path(service, name).read_bytes()
        except FileNotFoundError:
            raise SecretNotFoundError(service, name) from None

    def read(self, service: str, name: str, password: str) -> str:
        """Decrypt and return the plaintext value."""
        blob = self.read_payload(service, name)
        try:
            value = cipher.decrypt(blob, password)
        except DecryptionError:
            record_decrypt_failure()
            structured_log(
                "WARNING",
                "Decryption failed",
                service=service,
                secret=name,
                operation="store.read",
            )
            raise InvalidPasswordError("Wrong password or corrupted secret") from None
        record_secret_decrypted()
        return value

    def update(self, service: str, name: str, value: str, password: str) -> None:
        """Re-encrypt an existing secret in place; the state record is left untouched."""
        payload = self.payload_path(service, name)
        if not payload.is_file():
            raise SecretNotFoundError(service, name)
        write_file_atomic(payload, cipher.encrypt(value, password))
        structured_log("INFO", "Secret updated", service=service, secret=name, operation="store.update")

    def rename(self, service: str, name: str, new_name: str) -> None:
        """Move payload and state record to new_name; never clobbers an existing secret."""
        source = self.payload_path(service, name)
        target = self.payload_path(service, new_name)
        if not source.is_file():
            raise SecretNotFoundError(service, name)
        if target.exists():
            raise AlreadyExistsError("secret", f"{service}/{new_name}")
        source.rename(target)
        state = self.state_path(service, name)
        if state.exists():
            state.rename(self.state_path(service, new_name))
        structured_log(
            "INFO",
            "Secret renamed",
            service=service,
            secret=name,
            operation="store.rename",
            metadata={"new_name": new_name},
        )

    def delete(self, service: str, name: str) -> None:
        """Remove payload and state record; a missing state record is not an error."""
        try:
            self.payload_path(service, name).unlink()
        except FileNotFoundError:
            raise SecretNotFoundError(service, name) from None
        self.state_path(service, name).unlink(missing_ok=True)
        structured_log("INFO", "Secret deleted", service=service, secret=name, operation="store.delete")

    # --- state ---
    def read_state(self, service: str, name: str) -> SecretState:
        try:
            raw = self.state_path(service, name).read_bytes()
        except FileNotFoundError:
            return SecretState()
        try:
            return SecretState.from_bytes(raw)
        except ValueError as exc:
            structured_log(
                "WARNING",
                "Unreadable secret state record, using defaults",
                service=service,
                secret=name,
                operation="store.read_state",
                error={"type": type(exc).__name__, "message": str(exc)},
            )
            return SecretState()

    def write_state(self, service: str, name: str, state: SecretState) -> None:
        write_file_atomic(self.state_path(service, name), state.to_bytes(), mode=0o644)

    def set_mounted(self, service: str, name: str, mounted: bool) -> None:
        if not self.exists(service, name):
            raise SecretNotFoundError(service, name)
        self.write_state(service, name, SecretState(mounted=mounted))

    def toggle_mounted(self, service: str, name: str) -> bool:
        """Flip the mounted flag and return its new value."""
        mounted = not self.read_state(service, name).mounted
        self.set_mounted(service, name, mounted)
        return mounted

    # --- fingerprints ---
    def fingerprint(self, service: str, name: str) -> str:
        """md5(payload):md5(state); changes whenever the value or the mounted flag changes."""
        payload_hash = md5_hex(self.read_payload(service, name))
        try:
            state_bytes = self.state_path(service, name).read_bytes()
        except FileNotFoundError:
            state_bytes = SecretState().to_bytes()
        return f"{payload_hash}{FINGERPRINT_SEPARATOR}{md5_hex(state_bytes)}"

    def deployed_fingerprint(self, service: str, name: str) -> Optional[str]:
        if self.container_root is None:
            return None
        return read_text_if_exists(fingerprint_path(self.container_root, service, name))

    def deployment_status(self, service: str, name: str) -> tuple[bool, bool]:
        """Return (is_deployed, has_changes) against the container-local target."""
        deployed = self.deployed_fingerprint(service, name)
        if deployed is None:
            return False, False
        return True, deployed != self.fingerprint(service, name)

    # --- services ---
    def _is_valid_name(self, kind: str, name: str) -> bool:
        try:
            self.validate_name(kind, name)
        except InvalidNameError:
            return False
        return True

    def list_services(self) -> list[str]:
        if not self.root.is_dir():
            return []
        return sorted(
            entry.name
            for entry in self.root.iterdir()
            if entry.is_dir() and self._is_valid_name("service", entry.name)
        )

    def list_secret_names(self, service: str) -> list[str]:
        service_dir = self.service_path(service)
        if not service_dir.is_dir():
            raise ServiceNotFoundError(service)
        names = []
        for entry in service_dir.iterdir():
            if not entry.is_file() or not entry.name.endswith(self.payload_suffix):
                continue
            name = entry.name[: -len(self.payload_suffix)]
            # Stray files that no store operation could have written
            if self._is_valid_name("secret", name):
                names.append(name)
        return sorted(names)

    def list_pairs(self) -> list[tuple[str, str]]:
        """Every (service, secret) pair currently in the store."""
        pairs: list[tuple[str, str]] = []
        for service in self.list_services():
            pairs.extend((service, name) for name in self.list_secret_names(service))
        return pairs

    def list_tree(self) -> list[ServiceEntry]:
        """Walk the store and annotate every secret with its deployment status and mounted flag."""
        services: list[ServiceEntry] = []
        for service in self.list_services():
            entry = ServiceEntry(name=service)
            for name in self.list_secret_names(service):
                try:
                    is_deployed, has_changes = self.deployment_status(service, name)
                except SecretNotFoundError:
                    # Removed while walking
                    continue
                entry.secrets.append(
                    SecretEntry(
                        service=service,
                        name=name,
                        path=f"{service}/{name}{self.payload_suffix}",
                        mounted=self.read_state(service, name).mounted,
                        is_deployed=is_deployed,
                        has_changes=has_changes,
                    )
                )
            services.append(entry)
        return services

    def create_service(self, service: str) -> None:
        self.service_path(service).mkdir(parents=True, exist_ok=True)

    def rename_service(self, service: str, new_name: str) -> None:
        """Rename a service directory; secrets move with it and old deployed copies are removed."""
        source = self.service_path(service)
        target = self.service_path(new_name)
        if not source.is_dir():
            raise ServiceNotFoundError(service)
        if target.exists():
            raise AlreadyExistsError("service", new_name)
        source.rename(target)
        self._remove_deployed_service(service)
        structured_log(
            "INFO",
            "Service renamed",
            service=service,
            operation="store.rename_service",
            metadata={"new_name": new_name},
        )

    def delete_service(self, service: str) -> None:
        """Recursively remove a service and its deployed copies."""
        source = self.service_path(service)
        if not source.is_dir():
            raise ServiceNotFoundError(service)
        shutil.rmtree(source)
        self._remove_deployed_service(service)
        structured_log("INFO", "Service deleted", service=service, operation="store.delete_service")

    def _remove_deployed_service(self, service: str) -> None:
        for root in self._deployment_roots():
            shutil.rmtree(root / service, ignore_errors=True)

    def bulk_import(self, service: str, env_content: str, password: str) -> ImportResult:
        """Import KEY=value lines; invalid lines and failed writes are reported, not fatal."""
        self.validate_name("service", service)
        result = ImportResult()
        parsed: list[tuple[str, str]] = []
        for index, raw_line in enumerate(env_content.splitlines(), start=1):
            line = raw_line.strip()
            if not line or line.startswith("#"):
                continue
            match = ENV_LINE_PATTERN.match(line)
            if not match:
                result.errors.append(f"Line {index}: Invalid format")
                continue
            key, value = match.group(1), _strip_quotes(match.group(2))
            parsed.append((key, value))

        result.total = len(parsed)
        for key, value in parsed:
            try:
                if self.exists(service, key):
                    self.update(service, key, value, password)
                else:
                    self.create(service, key, value, password)
                result.imported += 1
            except (InvalidNameError, OSError) as exc:
                result.errors.append(f"Failed to import {key}: {getattr(exc, 'message', exc)}")
        structured_log(
            "INFO",
            f"Bulk import finished: {result.imported}/{result.total}",
            service=service,
            operation="store.bulk_import",
            metadata={"errors": len(result.errors)},
        )
        return result


def _strip_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value
