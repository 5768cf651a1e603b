from fastapi import APIRouter, Depends, Query, HTTPException
from sqlalchemy.orm import Session
from datetime import date
from typing import Optional
import logging

from app.api.deps import require_db
from app.db.repositories import DepartureRepository, departure_to_dict

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/departures", tags=["departures"])


@router.get("")
def search_departures(
    tour_id: Optional[int] = Query(None, description="Only departures of this tour"),
    start_date_from: Optional[date] = Query(None, description="Earliest start date (default: today)"),
    start_date_to: Optional[date] = Query(None, description="Latest start date"),
    db: Session = Depends(require_db),
):
    """Bookable departures of available tours within a date range."""
    if start_date_from and start_date_to and start_date_to < start_date_from:
        raise HTTPException(status_code=400, detail="start_date_to must not be before start_date_from")
    departures = DepartureRepository(db).search(
        tour_id=tour_id,
        start_date_from=start_date_from,
        start_date_to=start_date_to,
    )
    return [departure_to_dict(d) for d in departures]


@router.get("/{departure_id}")
def get_departure(departure_id: int, db: Session = Depends(require_db)):
    """A single bookable departure."""
    return departure_to_dict(DepartureRepository(db).get_public_departure(departure_id))
