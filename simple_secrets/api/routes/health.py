"""Health and metrics endpoints."""

from datetime import UTC, datetime

from fastapi import APIRouter

from simple_secrets.core.telemetry import get_metrics
from simple_secrets.models.schemas import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/healthz", response_model=HealthResponse)
async def healthz() -> HealthResponse:
    """Liveness: no disk or Docker access."""
    return HealthResponse(status="ok", timestamp=datetime.now(UTC))


def _percentile(values: list[float], p: float) -> float:
    if not values:
        return 0.0
    sorted_vals = sorted(values)
    idx = int((len(sorted_vals) - 1) * p)
    return round(sorted_vals[idx], 3)


@router.get("/metrics")
async def metrics() -> dict:
    """Simple JSON metrics endpoint for operational visibility."""
    snapshot = get_metrics()
    durations = snapshot.get("deploy_duration_seconds", {}).get("values", [])
    return {
        "deploy_runs_total": snapshot.get("deploy_runs_total", 0),
        "secrets_decrypted_total": snapshot.get("secrets_decrypted_total", 0),
        "decrypt_failures_total": snapshot.get("decrypt_failures_total", 0),
        "container_lookups_total": snapshot.get("container_lookups_total", 0),
        "docker_api_errors_total": snapshot.get("docker_api_errors_total", 0),
        "deploy_duration_seconds": {
            "count": len(durations),
            "p50": _percentile(durations, 0.50),
            "p95": _percentile(durations, 0.95),
            "sum": round(float(sum(durations)), 3),
        },
    }
