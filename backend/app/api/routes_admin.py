"""
Admin maintenance routes.
Protected by the X-API-Key header (settings.admin_api_key).
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
import logging

from app.api.deps import require_admin_key, require_db
from app.core.rate_limiting import limiter, ADMIN_LIMIT
from app.services import maintenance

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin_key)])


@router.post("/maintenance/run")
@limiter.limit(ADMIN_LIMIT)
def run_maintenance(request: Request, db: Session = Depends(require_db)):
    """Run the overdue-departure and stale-tour jobs now."""
    logger.info("Manual maintenance run requested")
    return maintenance.run_all(db)


@router.post("/maintenance/departures")
@limiter.limit(ADMIN_LIMIT)
def run_overdue_departures(request: Request, db: Session = Depends(require_db)):
    return maintenance.update_overdue_departures(db)


@router.post("/maintenance/tours")
@limiter.limit(ADMIN_LIMIT)
def run_tours_without_departures(request: Request, db: Session = Depends(require_db)):
    return maintenance.update_tours_without_departures(db)
