"""Deployment engine: decrypt the store into the container-local and shared targets.

Per secret: compare the store fingerprint with the one recorded at the container-local
target, skip when equal, otherwise decrypt and write plaintext + fingerprint. Mounted
secrets are written to the shared target as well. After every secret is processed, both
targets are swept of files whose secret no longer belongs there.
"""

import asyncio
import contextlib
import threading
import time
from collections import Counter
from importlib import resources
from pathlib import Path
from typing import Optional

from simple_secrets.core.errors import (
    DeploymentInProgressError,
    InvalidPasswordError,
    SecretsError,
)
from simple_secrets.core.logging import structured_log
from simple_secrets.core.telemetry import record_deploy_run, span
from simple_secrets.models.entities import DeployStats
from simple_secrets.services.files import read_text_if_exists, write_file_atomic
from simple_secrets.services.secret_store import (
    ENTRYPOINT_NAME,
    FINGERPRINT_SUFFIX,
    SecretStore,
    fingerprint_path,
)

DEPLOYED = "deployed"
UPDATED = "updated"
SKIPPED = "skipped"
FAILED = "failed"
ABORTED = "aborted"


def load_entrypoint_script() -> bytes:
    """Entrypoint wrapper shipped with the package."""
    return resources.files("simple_secrets.assets").joinpath(ENTRYPOINT_NAME).read_bytes()


class DeploymentEngine:
    """Incremental, concurrent deployment of decrypted secrets."""

    def __init__(
        self,
        store: SecretStore,
        container_root: Path,
        shared_root: Path,
        concurrency: int = 8,
        entrypoint_script: Optional[bytes] = None,
    ) -> None:
        self.store = store
        self.container_root = Path(container_root)
        self.shared_root = Path(shared_root)
        self.concurrency = concurrency
        self._entrypoint_script = entrypoint_script
        self._running = asyncio.Lock()

    @property
    def in_progress(self) -> bool:
        return self._running.locked()

    async def deploy_all(self, password: str) -> DeployStats:
        """Deploy every secret; raises InvalidPasswordError if any decrypt fails.

        Writes made before an abort are not rolled back; the next run re-converges via
        fingerprints.
        """
        if self._running.locked():
            raise DeploymentInProgressError()
        async with self._running:
            started = time.monotonic()
            with span("deploy.all"):
                stats = await self._deploy(password)
            duration = time.monotonic() - started
            record_deploy_run(duration)
            structured_log(
                "INFO",
                stats.summary(),
                operation="deploy.all",
                duration_ms=duration * 1000,
                metadata={
                    "deployed": stats.deployed,
                    "updated": stats.updated,
                    "skipped": stats.skipped,
                    "deleted": stats.deleted,
                    "failed": stats.failed,
                },
            )
            return stats

    async def _deploy(self, password: str) -> DeployStats:
        self.container_root.mkdir(parents=True, exist_ok=True)
        self.shared_root.mkdir(parents=True, exist_ok=True)

        pairs = await asyncio.to_thread(self.store.list_pairs)
        abort = threading.Event()
        semaphore = asyncio.Semaphore(self.concurrency)

        async def run(service: str, name: str) -> str:
            async with semaphore:
                if abort.is_set():
                    return ABORTED
                return await asyncio.to_thread(self._deploy_secret, service, name, password, abort)

        outcomes = await asyncio.gather(*(run(s, n) for s, n in pairs), return_exceptions=True)

        for outcome in outcomes:
            if isinstance(outcome, InvalidPasswordError):
                structured_log(
                    "ERROR",
                    "Deployment aborted: invalid password",
                    operation="deploy.all",
                    metadata={"secrets": len(pairs)},
                )
                raise InvalidPasswordError() from outcome
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome

        counts = Counter(outcomes)
        stats = DeployStats(
            deployed=counts[DEPLOYED],
            updated=counts[UPDATED],
            skipped=counts[SKIPPED],
            failed=counts[FAILED],
        )

        # Sweep only after every secret task has finished
        stats.deleted = await asyncio.to_thread(self._sweep_targets, pairs)
        await asyncio.to_thread(self._install_entrypoint)
        return stats

    def _deploy_secret(self, service: str, name: str, password: str, abort: threading.Event) -> str:
        try:
            current = self.store.fingerprint(service, name)
            local_fingerprint = fingerprint_path(self.container_root, service, name)
            previous = read_text_if_exists(local_fingerprint)
            if previous == current:
                return SKIPPED
            if abort.is_set():
                return ABORTED

            try:
                plaintext = self.store.read(service, name, password)
            except InvalidPasswordError:
                abort.set()
                raise
            state = self.store.read_state(service, name)
            data = plaintext.encode("utf-8")

            write_file_atomic(self.container_root / service / name, data)
            if state.mounted:
                write_file_atomic(self.shared_root / service / name, data, mode=0o644)
                write_file_atomic(
                    fingerprint_path(self.shared_root, service, name),
                    current.encode("utf-8"),
                    mode=0o644,
                )
            # Written last: a failure above leaves the old fingerprint, so the secret retries next run
            write_file_atomic(local_fingerprint, current.encode("utf-8"), mode=0o644)
            return DEPLOYED if previous is None else UPDATED
        except InvalidPasswordError:
            raise
        except (OSError, SecretsError) as exc:
            structured_log(
                "ERROR",
                "Failed to deploy secret",
                service=service,
                secret=name,
                operation="deploy.secret",
                error={"type": type(exc).__name__, "message": str(exc)},
            )
            return FAILED

    def _sweep_targets(self, pairs: list[tuple[str, str]]) -> int:
        valid = set(pairs)
        mounted = {(s, n) for s, n in pairs if self.store.read_state(s, n).mounted}
        return self._sweep(self.container_root, valid) + self._sweep(self.shared_root, mounted)

    def _sweep(self, root: Path, valid: set[tuple[str, str]]) -> int:
        """Delete deployed files (and fingerprints) whose secret is not in valid."""
        if not root.is_dir():
            return 0
        deleted = 0
        for service_dir in sorted(root.iterdir()):
            if not service_dir.is_dir() or service_dir.name.startswith("."):
                continue
            service = service_dir.name
            for entry in sorted(service_dir.iterdir()):
                if not entry.is_file() or entry.name.startswith("."):
                    continue
                if entry.name.endswith(FINGERPRINT_SUFFIX):
                    name = entry.name[: -len(FINGERPRINT_SUFFIX)]
                    # Fingerprint left behind without its payload
                    if (service, name) not in valid and not (service_dir / name).exists():
                        entry.unlink(missing_ok=True)
                    continue
                if (service, entry.name) in valid:
                    continue
                try:
                    entry.unlink()
                    fingerprint_path(root, service, entry.name).unlink(missing_ok=True)
                    deleted += 1
                    structured_log(
                        "INFO",
                        "Removed stale deployed secret",
                        service=service,
                        secret=entry.name,
                        operation="deploy.sweep",
                        metadata={"target": str(root)},
                    )
                except OSError as exc:
                    structured_log(
                        "ERROR",
                        "Failed to remove stale deployed secret",
                        service=service,
                        secret=entry.name,
                        operation="deploy.sweep",
                        error={"type": type(exc).__name__, "message": str(exc)},
                    )
            with contextlib.suppress(OSError):
                if not any(service_dir.iterdir()):
                    service_dir.rmdir()
        return deleted

    def _install_entrypoint(self) -> None:
        try:
            script = self._entrypoint_script
            if script is None:
                script = load_entrypoint_script()
            write_file_atomic(self.shared_root / ENTRYPOINT_NAME, script, mode=0o755)
        except OSError as exc:
            structured_log(
                "ERROR",
                "Failed to copy entrypoint script",
                operation="deploy.entrypoint",
                error={"type": type(exc).__name__, "message": str(exc)},
            )
