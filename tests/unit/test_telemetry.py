"""Unit tests for tracing hooks."""

from contextlib import contextmanager
from typing import Any

import pytest

from simple_secrets.core import telemetry


class _RecordingSpan:
    def __init__(self) -> None:
        self.attributes: dict[str, str] = {}

    def set_attribute(self, key: str, value: str) -> None:
        self.attributes[key] = value


class _RecordingTracer:
    def __init__(self) -> None:
        self.started: list[tuple[str, _RecordingSpan]] = []

    @contextmanager
    def start_as_current_span(self, name: str) -> Any:
        span_obj = _RecordingSpan()
        self.started.append((name, span_obj))
        yield span_obj


def test_span_is_noop_without_tracer(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(telemetry, "get_tracer", lambda name=telemetry.TRACER_NAME: None)
    with telemetry.span("deploy.all", {"secrets": 3}) as span_obj:
        assert span_obj is None


def test_span_uses_get_tracer(monkeypatch: pytest.MonkeyPatch) -> None:
    tracer = _RecordingTracer()
    monkeypatch.setattr(telemetry, "get_tracer", lambda name=telemetry.TRACER_NAME: tracer)
    with telemetry.span("docker.get", {"path": "/containers/json", "attempt": 1}) as span_obj:
        assert span_obj is tracer.started[0][1]
    name, recorded = tracer.started[0]
    assert name == "docker.get"
    assert recorded.attributes == {"path": "/containers/json", "attempt": "1"}


def test_get_tracer_without_opentelemetry(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(telemetry, "_OTEL_AVAILABLE", False)
    assert telemetry.get_tracer() is None
