"""Pytest configuration and shared fixtures."""

import os
import re
from pathlib import Path
from typing import Any, Callable, Optional

import httpx
import pytest

os.environ.setdefault("LOG_FORMAT", "readable")

from simple_secrets.api.dependencies import reset_dependencies  # noqa: E402
from simple_secrets.core.config import Settings, get_settings  # noqa: E402
from simple_secrets.services.deployment import DeploymentEngine  # noqa: E402
from simple_secrets.services.secret_store import SecretStore  # noqa: E402

PASSWORD = "correct horse battery staple"


@pytest.fixture
def settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Settings:
    """Settings pointing every directory into tmp_path; caches cleared before and after."""
    monkeypatch.setenv("ENVIRONMENT", "development")
    monkeypatch.setenv("DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("CONTAINER_SECRETS_DIR", str(tmp_path / "secrets"))
    monkeypatch.setenv("SHARED_SECRETS_DIR", str(tmp_path / "shared"))
    monkeypatch.setenv("DOCKER_SOCKET", str(tmp_path / "docker.sock"))
    monkeypatch.setenv("HOSTNAME", "dss-test")
    monkeypatch.setenv("REQUIRE_EPHEMERAL_STORAGE", "false")
    monkeypatch.setenv("DSS_SERVICE_NAME", "")
    get_settings.cache_clear()
    reset_dependencies()
    yield get_settings()
    get_settings.cache_clear()
    reset_dependencies()


@pytest.fixture
def roots(tmp_path: Path) -> dict[str, Path]:
    return {"data": tmp_path / "data", "local": tmp_path / "secrets", "shared": tmp_path / "shared"}


@pytest.fixture
def store(roots: dict[str, Path]) -> SecretStore:
    return SecretStore(roots["data"], container_root=roots["local"], shared_root=roots["shared"])


@pytest.fixture
def engine(store: SecretStore, roots: dict[str, Path]) -> DeploymentEngine:
    return DeploymentEngine(
        store,
        container_root=roots["local"],
        shared_root=roots["shared"],
        concurrency=4,
        entrypoint_script=b"#!/bin/sh\nexec \"$@\"\n",
    )


def container_payload(
    container_id: str,
    name: str,
    ip: str,
    labels: Optional[dict[str, str]] = None,
    image: str = "example/api:1.2",
) -> dict[str, Any]:
    """Minimal `GET /containers/{id}/json` response."""
    return {
        "Id": container_id,
        "Name": f"/{name}",
        "Args": ["api"],
        "Config": {
            "Image": image,
            "Labels": labels or {},
            "Entrypoint": ["/run/dss/entrypoint.sh"],
            "Cmd": ["api"],
        },
        "NetworkSettings": {"Networks": {"dss_default": {"IPAddress": ip}}},
    }


def fake_docker(
    containers: list[dict[str, Any]],
    images: Optional[dict[str, dict[str, Any]]] = None,
    networks: Optional[dict[str, dict[str, Any]]] = None,
    calls: Optional[list[str]] = None,
) -> httpx.MockTransport:
    """MockTransport answering the Docker Engine API calls the service makes."""
    by_ref = {}
    for c in containers:
        by_ref[c["Id"]] = c
        by_ref[c["Name"].lstrip("/")] = c

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if calls is not None:
            calls.append(path)
        if path == "/containers/json":
            return httpx.Response(200, json=[{"Id": c["Id"]} for c in containers])
        match = re.fullmatch(r"/containers/([^/]+)/json", path)
        if match:
            found = by_ref.get(match.group(1))
            if found is None:
                return httpx.Response(404, json={"message": f"No such container: {match.group(1)}"})
            return httpx.Response(200, json=found)
        match = re.fullmatch(r"/images/(.+)/json", path)
        if match and images and match.group(1) in images:
            return httpx.Response(200, json=images[match.group(1)])
        match = re.fullmatch(r"/networks/([^/]+)", path)
        if match and networks and match.group(1) in networks:
            return httpx.Response(200, json=networks[match.group(1)])
        return httpx.Response(404, json={"message": "No such object"})

    return httpx.MockTransport(handler)


@pytest.fixture
def docker_factory() -> Callable[..., httpx.MockTransport]:
    return fake_docker
