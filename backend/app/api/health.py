"""
Health check routes.
Probes for Kubernetes/load-balancer readiness.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from sqlalchemy import text
from datetime import datetime, timezone
import time
import logging

from app.db.database import get_db
from app.db.repositories import TourRepository
from app.core.rate_limiting import limiter, HEALTH_LIMIT

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["health"])

# Track startup time for uptime reporting
_STARTUP_TIME = time.time()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/")
@limiter.limit(HEALTH_LIMIT)
def health_check(request: Request, db: Session = Depends(get_db)):
    """
    Check system health: database connectivity, searchable tour count, uptime.
    Safe when db is None.
    """
    health = {
        "status": "healthy",
        "database": "unavailable",
        "tours": 0,
        "uptime_seconds": int(time.time() - _STARTUP_TIME),
        "timestamp": _now(),
    }

    if db is None:
        health["status"] = "degraded"
        return health

    try:
        health["tours"] = TourRepository(db).count_searchable()
        health["database"] = "available"
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        health["status"] = "degraded"

    return health


@router.get("/ready")
@limiter.limit(HEALTH_LIMIT)
def readiness_check(request: Request, db: Session = Depends(get_db)):
    """Returns ready=True only when the database is accessible."""
    if db is None:
        return {"ready": False, "error": "database unavailable", "timestamp": _now()}
    try:
        db.execute(text("SELECT 1"))
        return {"ready": True, "timestamp": _now()}
    except Exception as e:
        logger.error(f"Readiness check failed: {e}")
        return {"ready": False, "error": str(e), "timestamp": _now()}


@router.get("/live")
async def liveness_check():
    """Liveness probe. Returns 200 if service is running."""
    return {"alive": True, "uptime_seconds": int(time.time() - _STARTUP_TIME), "timestamp": _now()}
