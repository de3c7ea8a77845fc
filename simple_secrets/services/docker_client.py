"""Minimal async Docker Engine API client over the local unix socket."""

from typing import Any, Optional
from urllib.parse import quote

import httpx

from simple_secrets.core.errors import DockerAPIError, DockerTimeoutError
from simple_secrets.core.logging import structured_log
from simple_secrets.core.telemetry import record_docker_api_error, span

DOCKER_BASE_URL = "http://docker"


class DockerClient:
    """Read-only calls used for container identification and network discovery.

    Every call is bounded by timeout; a timeout raises DockerTimeoutError so callers can
    treat it as "not identified" instead of waiting on a stuck daemon.
    """

    def __init__(
        self,
        socket_path: str = "/var/run/docker.sock",
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.socket_path = socket_path
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        transport = self._transport or httpx.AsyncHTTPTransport(uds=self.socket_path)
        return httpx.AsyncClient(transport=transport, base_url=DOCKER_BASE_URL, timeout=self.timeout)

    async def _get(self, path: str, params: Optional[dict[str, str]] = None) -> Any:
        with span("docker.get", {"path": path}):
            try:
                async with self._client() as client:
                    resp = await client.get(path, params=params)
            except httpx.TimeoutException:
                record_docker_api_error()
                structured_log("WARNING", "Docker API call timed out", operation="docker.get", metadata={"path": path})
                raise DockerTimeoutError(path) from None
            except httpx.HTTPError as exc:
                record_docker_api_error()
                raise DockerAPIError(f"Docker API unreachable: {exc}", details={"path": path}) from exc

        if resp.status_code >= 400:
            record_docker_api_error()
            message = resp.text[:500]
            try:
                message = resp.json().get("message", message)
            except ValueError:
                pass
            raise DockerAPIError(
                f"Docker API error {resp.status_code}: {message}",
                docker_status=resp.status_code,
                details={"path": path},
            )
        return resp.json()

    async def list_containers(self) -> list[dict[str, Any]]:
        """Running containers (GET /containers/json)."""
        return await self._get("/containers/json", params={"all": "false"})

    async def inspect_container(self, ref: str) -> dict[str, Any]:
        return await self._get(f"/containers/{quote(ref, safe='')}/json")

    async def inspect_image(self, ref: str) -> dict[str, Any]:
        return await self._get(f"/images/{quote(ref, safe='/:@')}/json")

    async def inspect_network(self, name: str) -> dict[str, Any]:
        return await self._get(f"/networks/{quote(name, safe='')}")
