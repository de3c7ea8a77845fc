"""OpenTelemetry tracing hooks and in-process metrics."""

from contextlib import contextmanager
from threading import Lock
from typing import Any, Generator, Optional

# Optional: only load if packages available
try:
    from opentelemetry import trace
    from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

    _OTEL_AVAILABLE = True
except ImportError:
    _OTEL_AVAILABLE = False
    trace = None  # type: ignore
    FastAPIInstrumentor = None  # type: ignore

TRACER_NAME = "simple-secrets"

# In-memory metrics (single process; lost on restart)
_metrics: dict[str, list[float] | int] = {
    "deploy_runs_total": 0,
    "deploy_duration_seconds": [],
    "secrets_decrypted_total": 0,
    "decrypt_failures_total": 0,
    "container_lookups_total": 0,
    "docker_api_errors_total": 0,
}
_metrics_lock = Lock()


def get_tracer(name: str = TRACER_NAME) -> Any:
    """Return OpenTelemetry tracer or no-op."""
    if _OTEL_AVAILABLE and trace is not None:
        return trace.get_tracer(name)
    return None


def instrument_fastapi(app: Any) -> None:
    """Instrument FastAPI app for automatic tracing."""
    if _OTEL_AVAILABLE and FastAPIInstrumentor is not None:
        FastAPIInstrumentor.instrument_app(app)


def _increment(key: str, amount: int = 1) -> None:
    with _metrics_lock:
        _metrics[key] = int(_metrics.get(key, 0)) + amount


def record_deploy_run(seconds: float) -> None:
    """Count a finished deployment run and its duration."""
    with _metrics_lock:
        _metrics["deploy_runs_total"] = int(_metrics.get("deploy_runs_total", 0)) + 1
        _metrics.setdefault("deploy_duration_seconds", []).append(seconds)  # type: ignore[union-attr]


def record_secret_decrypted() -> None:
    _increment("secrets_decrypted_total")


def record_decrypt_failure() -> None:
    _increment("decrypt_failures_total")


def record_container_lookup() -> None:
    _increment("container_lookups_total")


def record_docker_api_error() -> None:
    _increment("docker_api_errors_total")


def get_metrics() -> dict[str, Any]:
    """Return current metrics snapshot (for /metrics or tests)."""
    out: dict[str, Any] = {}
    with _metrics_lock:
        for k, v in _metrics.items():
            if isinstance(v, list):
                out[k] = {"count": len(v), "sum": sum(v), "values": list(v)}
            else:
                out[k] = v
    return out


@contextmanager
def span(name: str, attributes: Optional[dict[str, Any]] = None) -> Generator[Any, None, None]:
    """Context manager for a child span."""
    tracer = get_tracer()
    if tracer is None:
        yield None
        return
    with tracer.start_as_current_span(name) as span_obj:
        if attributes:
            for key, val in attributes.items():
                span_obj.set_attribute(key, str(val))
        yield span_obj
