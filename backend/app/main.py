"""
Tour Marketplace -- FastAPI Application
Public tour search and departure browsing, plus scheduled maintenance.
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging
import logging.config
from datetime import datetime, timezone
import time
import asyncio

from slowapi.errors import RateLimitExceeded

from app.core.config import settings
from app.core.exceptions import (
    BookingError,
    ConflictError,
    NotFoundError,
    TourSearchError,
    TourSearchValidationError,
)
from app.core.rate_limiting import limiter, rate_limit_handler
from app.db.database import SessionLocal, init_db, mark_unavailable
from app.api import health, routes_admin, routes_departures, routes_tours
from app.services.maintenance import start_scheduler

# Configure logging
logging_config = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        },
        "detailed": {
            "format": "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
        },
        "json": {
            "()": "app.core.monitoring.JSONFormatter",
        },
    },
    "handlers": {
        "default": {
            "formatter": "json" if settings.log_format == "json" else "detailed",
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stdout",
        },
    },
    "loggers": {
        "app": {"handlers": ["default"], "level": settings.log_level},
        "uvicorn": {"handlers": ["default"], "level": "INFO"},
        "sqlalchemy": {"handlers": ["default"], "level": "WARNING"},
    },
}

logging.config.dictConfig(logging_config)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown."""
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Environment: {settings.environment} | Workers: {settings.api_workers}")

    # Retry DB init up to 3 times for resilience
    for attempt in range(1, 4):
        try:
            init_db()
            logger.info("Database initialized successfully")
            break
        except Exception as e:
            if attempt < 3:
                logger.warning(f"Database init attempt {attempt}/3 failed: {e}, retrying in 2s...")
                await asyncio.sleep(2)
            else:
                logger.error(f"Database init failed after 3 attempts, serving 503 until it recovers: {e}")
                mark_unavailable()

    tasks = start_scheduler(SessionLocal) if settings.maintenance_enabled else []
    logger.info("Application startup complete -- ready to serve")

    yield

    for task in tasks:
        task.cancel()
    logger.info("Application shutting down")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Tour marketplace API -- search tours, browse departures.",
    docs_url="/docs" if settings.debug else None,
    redoc_url=None,
    openapi_url="/openapi.json" if settings.debug else None,
    lifespan=lifespan,
)

# Rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_handler)

# GZip compression (min 500 bytes)
app.add_middleware(GZipMiddleware, minimum_size=500)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)


# Combined request logging + security headers middleware (single pass)
@app.middleware("http")
async def request_middleware(request: Request, call_next):
    """Log requests with timing and add security headers."""
    start = time.perf_counter()
    request_id = request.headers.get("X-Request-ID", "")

    response = await call_next(request)

    elapsed = time.perf_counter() - start
    response.headers["X-Process-Time"] = f"{elapsed:.3f}"
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

    if request_id:
        response.headers["X-Request-ID"] = request_id

    logger.info(
        f"{request.method} {request.url.path} -> {response.status_code} in {elapsed:.3f}s",
        extra={
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": round(elapsed * 1000, 1),
            "request_id": request_id or None,
        },
    )
    return response


# ============================================================================
# EXCEPTION HANDLERS
# ============================================================================

def _error(status_code: int, error: str, detail: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "detail": detail,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )


@app.exception_handler(TourSearchValidationError)
async def validation_error_handler(request: Request, exc: TourSearchValidationError):
    return _error(400, "Bad Request", str(exc))


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    return _error(400, "Bad Request", str(exc))


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return _error(404, "Not Found", str(exc))


@app.exception_handler(ConflictError)
async def conflict_handler(request: Request, exc: ConflictError):
    return _error(409, "Conflict", str(exc))


@app.exception_handler(TourSearchError)
async def search_error_handler(request: Request, exc: TourSearchError):
    logger.error(f"Search failed on {request.url.path}: {exc}")
    return _error(500, "Internal Server Error", str(exc) if settings.debug else "Failed to search tours")


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle uncaught exceptions gracefully."""
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return _error(500, "Internal Server Error", str(exc) if settings.debug else "An unexpected error occurred")


# Include routers
app.include_router(health.router, prefix=settings.api_prefix)
app.include_router(routes_tours.router, prefix=settings.api_prefix)
app.include_router(routes_departures.router, prefix=settings.api_prefix)
app.include_router(routes_admin.router, prefix=settings.api_prefix)


# Root endpoint
@app.get("/")
async def root():
    """Root -- API information."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "status": "running",
        "health": f"{settings.api_prefix}/health",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.api_host,
        port=settings.api_port,
        workers=settings.api_workers,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
