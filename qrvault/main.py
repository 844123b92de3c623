"""FastAPI application entry point.

Hosts the QR artifact pipeline: serial allocation, rendering and tiered
storage, plus the on-demand regeneration endpoints.
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from qrvault import __version__
from qrvault.config import settings
from qrvault.core.errors import QRVaultError
from qrvault.infra.database import close_db_engine, init_models, verify_db_connection
from qrvault.infra.logging import get_logger, setup_logging
from qrvault.infra.storage import (
    GRAM_QR_FOLDER,
    QR_FOLDER,
    BackendKind,
    get_storage_manager,
    reset_storage_manager,
    select_backend_kind,
)
from qrvault.schemas.common import ErrorResponse

# Import routers
from qrvault.api.routes.health import router as health_router
from qrvault.api.routes.products import router as products_router
from qrvault.api.routes.qr import router as qr_router

# Setup logging first
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler.

    Startup:
    - Select the storage backend (fixed for the process lifetime)
    - Verify database connection, creating tables in dev

    Shutdown:
    - Close database connections
    """
    storage = get_storage_manager()
    logger.info(
        "QR service starting",
        environment=settings.environment,
        storage_backend=storage.kind.value,
        deployed_runtime=settings.is_deployed_runtime,
    )

    if settings.environment == "dev":
        try:
            await init_models()
        except Exception as e:
            logger.warning("Failed to create tables", error=str(e))

    db_ok = await verify_db_connection()
    if not db_ok:
        logger.warning("Database connection failed - will retry on first request")

    yield

    logger.info("QR service shutting down")
    await close_db_engine()
    reset_storage_manager()
    logger.info("Cleanup complete")


app = FastAPI(
    title="QR Vault",
    description="QR artifact generation and tiered storage",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs" if settings.environment == "dev" else None,
    redoc_url=None,
)

if settings.environment == "dev":
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


# =============================================================================
# Exception Handlers
# =============================================================================


@app.exception_handler(QRVaultError)
async def service_exception_handler(request: Request, exc: QRVaultError) -> JSONResponse:
    """Map service errors to their HTTP status."""
    logger.warning(
        "Request rejected",
        error=exc.message,
        error_type=type(exc).__name__,
        path=request.url.path,
        status_code=exc.status_code,
    )
    body = ErrorResponse(error=exc.message, error_type=type(exc).__name__, detail=exc.detail)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle uncaught exceptions."""
    logger.error(
        "Unhandled exception",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        exc_info=True,
    )
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal server error",
            "error_type": type(exc).__name__,
        },
    )


# =============================================================================
# Include Routers
# =============================================================================

app.include_router(health_router, tags=["Health"])
app.include_router(qr_router, prefix="/api", tags=["QR"])
app.include_router(products_router, prefix="/api", tags=["Products"])

# Local development serves stored artifacts directly
if select_backend_kind(settings) is BackendKind.LOCAL_FILESYSTEM:
    for folder in (QR_FOLDER, GRAM_QR_FOLDER):
        app.mount(
            f"/{folder}",
            StaticFiles(directory=Path(settings.local_storage_root) / folder, check_dir=False),
            name=folder,
        )


@app.get("/")
async def root() -> dict:
    """Root endpoint - basic service info."""
    return {
        "service": "QR Vault",
        "version": __version__,
        "environment": settings.environment,
        "storage_backend": select_backend_kind(settings).value,
    }
