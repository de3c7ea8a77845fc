"""Integration tests: admin API through TestClient, container surface through ASGITransport."""

import asyncio
import ipaddress
from pathlib import Path
from typing import Iterator

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from simple_secrets.api.dependencies import (
    get_authorizer,
    get_engine,
    get_network_guard,
    get_store,
    reset_dependencies,
)
from simple_secrets.core.config import Settings, get_settings
from simple_secrets.services.container_auth import ContainerAuthorizer
from simple_secrets.services.docker_client import DockerClient
from simple_secrets.services.network_guard import NetworkGuard
from tests.conftest import PASSWORD, container_payload, fake_docker

H = {"X-User-Password": PASSWORD}


@pytest.fixture
def app(settings: Settings) -> FastAPI:
    from simple_secrets.main import create_app

    return create_app()


@pytest.fixture
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app) as c:
        yield c


def setup_password(client: TestClient) -> None:
    r = client.post("/password/setup", json={"password": PASSWORD})
    assert r.status_code == 201


def test_healthz_and_metrics(client: TestClient) -> None:
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"
    r = client.get("/metrics")
    assert r.status_code == 200
    assert "deploy_duration_seconds" in r.json()


def test_password_setup_and_verify(client: TestClient) -> None:
    r = client.get("/services", headers=H)
    assert r.status_code == 409
    assert r.json()["error"] == "PasswordNotInitializedError"

    setup_password(client)
    r = client.post("/password/setup", json={"password": "other"})
    assert r.status_code == 409

    r = client.post("/password/verify", json={"password": "wrong"})
    assert r.status_code == 401
    assert r.json()["message"] == "Invalid password"

    r = client.post("/password/verify", json={"password": PASSWORD})
    assert r.status_code == 200
    assert r.json()["auto_deploy"] is False

    assert client.get("/services").status_code == 401


def test_password_attempts_are_rate_limited(client: TestClient) -> None:
    setup_password(client)
    for _ in range(5):
        assert client.post("/password/verify", json={"password": "wrong"}).status_code == 401
    r = client.post("/password/verify", json={"password": PASSWORD})
    assert r.status_code == 429
    assert r.json()["error"] == "RateLimitError"


def test_admin_flow(client: TestClient, settings: Settings) -> None:
    setup_password(client)
    local, shared = settings.container_secrets_dir, settings.shared_secrets_dir

    assert client.post("/services", json={"name": "db"}, headers=H).status_code == 201
    assert client.post("/services", json={"name": "db"}, headers=H).status_code == 409
    r = client.post("/services/db/secrets", json={"name": "PASSWORD", "value": "hunter2"}, headers=H)
    assert r.status_code == 201
    r = client.post("/services/db/secrets", json={"name": "PASSWORD", "value": "x"}, headers=H)
    assert r.status_code == 409

    r = client.post("/services/db/secrets", json={"name": "bad.md5", "value": "x"}, headers=H)
    assert r.status_code == 400
    assert r.json()["error"] == "InvalidNameError"

    secret = client.get("/services", headers=H).json()["services"][0]["secrets"][0]
    assert secret == {
        "name": "PASSWORD",
        "path": "db/PASSWORD.aes",
        "mounted": False,
        "is_deployed": False,
        "has_changes": False,
    }
    assert client.post("/password/verify", json={"password": PASSWORD}).json()["auto_deploy"] is True

    r = client.post("/deploy", headers=H)
    assert r.status_code == 200
    assert r.json()["deployed"] == 1
    assert r.json()["oauth2_configured"] is False
    assert (local / "db" / "PASSWORD").read_text() == "hunter2"
    assert not (shared / "db" / "PASSWORD").exists()
    secret = client.get("/services", headers=H).json()["services"][0]["secrets"][0]
    assert (secret["is_deployed"], secret["has_changes"]) == (True, False)

    r = client.get("/services/db/secrets/PASSWORD", headers=H)
    assert r.json()["value"] == "hunter2"

    r = client.post("/services/db/secrets/PASSWORD/toggle-mounted", headers=H)
    assert r.json()["mounted"] is True
    secret = client.get("/services", headers=H).json()["services"][0]["secrets"][0]
    assert secret["has_changes"] is True
    assert client.post("/deploy", headers=H).json()["updated"] == 1
    assert (shared / "db" / "PASSWORD").read_text() == "hunter2"

    r = client.post("/services/db/secrets/PASSWORD/rename", json={"new_name": "DB_PASSWORD"}, headers=H)
    assert r.status_code == 200
    stats = client.post("/deploy", headers=H).json()
    assert (stats["deployed"], stats["deleted"]) == (1, 2)
    for root in (local, shared):
        assert not (root / "db" / "PASSWORD").exists()
        assert (root / "db" / "DB_PASSWORD").read_text() == "hunter2"

    r = client.put("/services/db/secrets/DB_PASSWORD", json={"value": "new"}, headers=H)
    assert r.status_code == 200
    assert client.post("/deploy", headers=H).json()["message"] == "Deployment complete: 1 updated"

    r = client.post("/services/db/bulk-import", json={"env_content": "A=1\nB='2'\nnope\n"}, headers=H)
    assert r.json() == {"imported": 2, "total": 2, "errors": ["Line 3: Invalid format"]}

    assert client.delete("/services/db/secrets/A", headers=H).status_code == 200
    assert client.get("/services/db/secrets/A", headers=H).status_code == 404

    assert client.put("/services/db", json={"new_name": "database"}, headers=H).status_code == 200
    assert not (local / "db").exists()
    assert client.delete("/services/database", headers=H).status_code == 200
    assert client.get("/services", headers=H).json() == {"services": []}


def test_deploy_with_wrong_password(client: TestClient) -> None:
    setup_password(client)
    r = client.post("/deploy", headers={"X-User-Password": "wrong"})
    assert r.status_code == 401


def test_oauth2_bootstrap_after_deploy(settings: Settings, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DSS_SERVICE_NAME", "dss")
    get_settings.cache_clear()
    reset_dependencies()
    from simple_secrets.main import create_app

    app = create_app()
    with TestClient(app) as client:
        setup_password(client)
        r = client.post(
            "/services/dss/bulk-import",
            json={
                "env_content": "OAUTH2_CLIENT_ID=client\nOAUTH2_CLIENT_SECRET=s3cret\n"
                "OAUTH2_ISSUER_URL=https://idp.example\n"
            },
            headers=H,
        )
        assert r.json()["imported"] == 3
        assert client.post("/deploy", headers=H).json()["oauth2_configured"] is True
        assert app.state.oauth2_config.client_id == "client"


def test_shutdown_purges_deployment_targets(app: FastAPI, settings: Settings) -> None:
    with TestClient(app) as client:
        setup_password(client)
        client.post("/services/api/secrets", json={"name": "KEY", "value": "v"}, headers=H)
        client.post("/deploy", headers=H)
        assert (settings.container_secrets_dir / "api" / "KEY").exists()
    assert list(settings.container_secrets_dir.iterdir()) == []
    assert list(settings.shared_secrets_dir.iterdir()) == []


IMAGES = {
    "example/api:1.2": {
        "Config": {"Entrypoint": ["/docker-entrypoint.sh"], "Cmd": ["api", "--port", "80"], "WorkingDir": "/srv"}
    }
}


@pytest.fixture
def container_app(app: FastAPI, settings: Settings) -> tuple[FastAPI, list[str]]:
    """App with a fake Docker daemon and the 172.18.0.0/16 network discovered; secrets deployed."""
    store = get_store()
    store.create("api", "API_KEY", "k-123", PASSWORD)
    store.create("api", "TOKEN", "t-456", PASSWORD)
    store.create("db", "PASSWORD", "hunter2", PASSWORD)
    asyncio.run(get_engine().deploy_all(PASSWORD))

    calls: list[str] = []
    transport = fake_docker(
        [
            container_payload("c0", "web", "172.18.0.4"),
            container_payload("c1", "app", "172.18.0.5", {"dss.api.mount.*": "/run/secrets"}),
        ],
        images=IMAGES,
        calls=calls,
    )
    authorizer = ContainerAuthorizer(DockerClient(transport=transport), store, settings.container_secrets_dir)
    guard = NetworkGuard([ipaddress.ip_network("172.18.0.0/16")])
    app.dependency_overrides[get_authorizer] = lambda: authorizer
    app.dependency_overrides[get_network_guard] = lambda: guard
    return app, calls


async def get(app: FastAPI, address: str, path: str) -> httpx.Response:
    transport = httpx.ASGITransport(app=app, client=(address, 41000))
    async with httpx.AsyncClient(transport=transport, base_url="http://dss:8080") as c:
        return await c.get(path)


def test_container_manifest_and_fetch(container_app: tuple[FastAPI, list[str]]) -> None:
    app, _ = container_app

    r = asyncio.run(get(app, "172.18.0.5", "/api/services/"))
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/plain")
    assert r.text == (
        "/run/secrets/API_KEY|http://dss:8080/api/services/api/API_KEY\n"
        "/run/secrets/TOKEN|http://dss:8080/api/services/api/TOKEN\n"
    )
    assert asyncio.run(get(app, "172.18.0.5", "/api/services")).status_code == 200

    r = asyncio.run(get(app, "::ffff:172.18.0.5", "/api/services/api/API_KEY"))
    assert r.status_code == 200
    assert r.text == "k-123"

    r = asyncio.run(get(app, "172.18.0.5", "/api/services/db/PASSWORD"))
    assert r.status_code == 403
    assert r.text.startswith("Forbidden")

    r = asyncio.run(get(app, "172.18.0.4", "/api/services/"))
    assert r.text == "# No mount labels found for this container\n"

    r = asyncio.run(get(app, "172.18.0.77", "/api/services/api/API_KEY"))
    assert r.status_code == 403
    assert r.text == "Forbidden: Container not found for requesting IP"


def test_container_fetch_before_deploy_is_not_found(container_app: tuple[FastAPI, list[str]]) -> None:
    app, _ = container_app
    get_store().create("api", "NEW", "later", PASSWORD)
    r = asyncio.run(get(app, "172.18.0.5", "/api/services/api/NEW"))
    assert r.status_code == 404
    assert r.text == "Secret not found or not deployed"


def test_container_info_script(container_app: tuple[FastAPI, list[str]]) -> None:
    app, _ = container_app
    r = asyncio.run(get(app, "172.18.0.5", "/api/services/.container-info"))
    assert r.status_code == 200
    lines = r.text.splitlines()
    assert "CONTAINER_NAME=app" in lines
    assert "ORIGINAL_ENTRYPOINT=/docker-entrypoint.sh" in lines
    assert "ORIGINAL_CMD='api --port 80'" in lines
    assert "ORIGINAL_WORKDIR=/srv" in lines
    assert "LABEL_DSS_API_MOUNT__=/run/secrets" in lines


def test_container_info_by_name(container_app: tuple[FastAPI, list[str]]) -> None:
    app, _ = container_app
    r = asyncio.run(get(app, "127.0.0.1", "/api/container/app/info"))
    assert r.status_code == 200
    assert r.json() == {
        "container": "app",
        "entrypoint": ["/docker-entrypoint.sh"],
        "cmd": ["api", "--port", "80"],
        "image": "example/api:1.2",
        "workingDir": "/srv",
    }

    r = asyncio.run(get(app, "127.0.0.1", "/api/container/ghost/info"))
    assert r.status_code == 404
    assert r.json()["error"] == "ContainerNotFoundError"


def test_outside_address_rejected_before_docker(container_app: tuple[FastAPI, list[str]]) -> None:
    app, calls = container_app
    for path in ("/api/services/", "/api/services/api/API_KEY", "/api/services/.container-info", "/api/container/app/info"):
        r = asyncio.run(get(app, "203.0.113.9", path))
        assert r.status_code == 403
    assert calls == []
