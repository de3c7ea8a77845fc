"""Unit tests for the Docker API client."""

import asyncio

import httpx
import pytest

from simple_secrets.core.errors import DockerAPIError, DockerTimeoutError
from simple_secrets.core.telemetry import get_metrics
from simple_secrets.services.docker_client import DockerClient


def test_requests_and_parsing() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[{"Id": "abc"}])

    client = DockerClient(transport=httpx.MockTransport(handler))
    assert asyncio.run(client.list_containers()) == [{"Id": "abc"}]
    assert seen[0].url.path == "/containers/json"
    assert seen[0].url.params["all"] == "false"


def test_error_payload_is_upstream_error() -> None:
    before = get_metrics()["docker_api_errors_total"]
    client = DockerClient(
        transport=httpx.MockTransport(lambda r: httpx.Response(404, json={"message": "No such container: x"}))
    )
    with pytest.raises(DockerAPIError) as exc_info:
        asyncio.run(client.inspect_container("x"))
    assert exc_info.value.docker_status == 404
    assert "No such container" in exc_info.value.message
    assert get_metrics()["docker_api_errors_total"] == before + 1


def test_timeout() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("slow", request=request)

    client = DockerClient(timeout=0.1, transport=httpx.MockTransport(handler))
    with pytest.raises(DockerTimeoutError):
        asyncio.run(client.inspect_network("bridge"))
