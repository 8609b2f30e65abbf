"""
Flux Studio Batch Pipeline - Main Application

FastAPI application with:
- API versioning (/api/v1/)
- Structured logging with structlog
- Prometheus metrics
- Global exception handling
- Key-value state (local JSON file or Redis)
"""

import time
from pathlib import Path
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from flux_studio.core.config import settings
from flux_studio.core.logging import setup_logging, get_logger
from flux_studio.core.exceptions import register_exception_handlers
from flux_studio.core.metrics import set_app_info, http_requests_total, http_request_duration_seconds
from flux_studio.api.v1 import api_v1_router
from flux_studio.api.dependencies import get_kv_store, get_registry
from flux_studio.modules.batch.session import STAGING_URL_PREFIX
from flux_studio.pipeline.profiles import PROFILES


# =============================================================================
# Initialize Logging
# =============================================================================
setup_logging(
    log_level=settings.LOG_LEVEL,
    json_format=settings.LOG_FORMAT_JSON
)
logger = get_logger(__name__)


# =============================================================================
# Lifespan Handler
# =============================================================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler - startup and shutdown."""
    logger.info(
        "application_starting",
        app_name=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        kv_backend=settings.KV_BACKEND
    )

    set_app_info(
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT
    )
    get_kv_store()
    logger.info("application_ready")

    yield

    # Shutdown: stop active runs, then release the store
    logger.info("application_shutting_down")
    await get_registry().shutdown()
    await get_kv_store().close()
    logger.info("application_shutdown_complete")


# =============================================================================
# Create FastAPI Application
# =============================================================================
app = FastAPI(
    title=settings.APP_NAME,
    description="""
    Batch pipeline for image AI tools.

    - **Restyle**: edge-guided restyling (FLUX Canny)
    - **Upscale**: ComfyUI upscale workflow with LoRA tuning
    - **Generate**: text-to-image (FLUX dev / FLUX 1.1 pro)
    - **Gallery**: bounded history of uploaded and generated images

    ## API Versioning

    All endpoints are versioned under `/api/v1/`
    """,
    version=settings.APP_VERSION,
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json"
)


# =============================================================================
# Middleware
# =============================================================================

# CORS
cors_origins = settings.CORS_ORIGINS.split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request timing middleware
@app.middleware("http")
async def add_request_timing(request: Request, call_next):
    """Track request timing for metrics."""
    start_time = time.time()
    response = await call_next(request)
    duration = time.time() - start_time

    http_request_duration_seconds.labels(
        method=request.method,
        endpoint=request.url.path
    ).observe(duration)

    http_requests_total.labels(
        method=request.method,
        endpoint=request.url.path,
        status=response.status_code
    ).inc()

    response.headers["X-Process-Time"] = str(duration)

    return response


# =============================================================================
# Register Exception Handlers
# =============================================================================
register_exception_handlers(app)


# =============================================================================
# Include API Routers
# =============================================================================
app.include_router(api_v1_router)


# =============================================================================
# Static Files
# =============================================================================

# Staged source images, referenced by "uploaded" gallery entries
staging_dir = Path(settings.LOCAL_STORAGE_PATH)
staging_dir.mkdir(parents=True, exist_ok=True)
app.mount(STAGING_URL_PREFIX, StaticFiles(directory=str(staging_dir)), name="uploads")


# =============================================================================
# Root Endpoints
# =============================================================================

@app.get("/", tags=["root"])
async def root():
    """Root endpoint with API information."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "docs": "/api/docs",
        "api_v1": "/api/v1",
        "metrics": "/api/v1/metrics",
        "profiles": sorted(PROFILES)
    }


@app.get("/health", tags=["health"])
async def health():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION
    }


# =============================================================================
# Development Server
# =============================================================================
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "flux_studio.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
