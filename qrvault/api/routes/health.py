"""Health check endpoints.

Provides health status for platform health checks and monitoring.
"""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from qrvault import __version__
from qrvault.api.deps import Storage
from qrvault.config import settings
from qrvault.infra.database import verify_db_connection
from qrvault.infra.logging import get_logger
from qrvault.schemas.common import HealthResponse

router = APIRouter()
logger = get_logger(__name__)


@router.get("/health", response_model=HealthResponse)
async def health(storage: Storage) -> HealthResponse:
    """Basic health check.

    Returns 200 if service is running.
    """
    return HealthResponse(
        status="healthy",
        version=__version__,
        environment=settings.environment,
        storage_backend=storage.kind.value,
        checks={},
    )


@router.get("/health/live", response_model=HealthResponse)
async def health_live() -> HealthResponse:
    """Liveness check - the process is up."""
    return HealthResponse(
        status="healthy",
        version=__version__,
        environment=settings.environment,
    )


@router.get("/health/ready", response_model=HealthResponse)
async def health_ready(storage: Storage) -> JSONResponse:
    """Readiness check.

    Verifies the database is reachable and reports the storage backend.
    Returns 503 when a dependency is down.
    """
    checks: dict[str, bool] = {"database": await verify_db_connection()}

    all_healthy = all(checks.values())
    body = HealthResponse(
        status="healthy" if all_healthy else "degraded",
        version=__version__,
        environment=settings.environment,
        storage_backend=storage.kind.value,
        checks=checks,
    )
    return JSONResponse(
        status_code=status.HTTP_200_OK if all_healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content=body.model_dump(),
    )
