from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from typing import Any, Dict, List
import logging

from app.api.deps import require_db
from app.core.pagination import create_pagination_metadata, get_pagination_params
from app.core.rate_limiting import limiter, SEARCH_LIMIT, DETAIL_LIMIT
from app.db.repositories import DepartureRepository, TourRepository, departure_to_dict
from app.services.range_mappers import get_duration_ranges, get_people_ranges
from app.services.tour_search import TourSearchService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tours", tags=["tours"])

# Query keys that may repeat (?destination=Hà Nội&destination=Huế)
_LIST_PARAMS = {"destination"}


def _query_to_params(request: Request):
    """Map the query string 1:1 into raw search input."""
    params: Dict[str, Any] = {}
    for key in request.query_params.keys():
        if key in _LIST_PARAMS:
            params[key] = request.query_params.getlist(key)
        else:
            params[key] = request.query_params.get(key)
    return params


# ============================================================================
# SEARCH
# ============================================================================

@router.get("/search")
@limiter.limit(SEARCH_LIMIT)
def search_tours(request: Request, db: Session = Depends(require_db)):
    """
    Search available tours.

    Filters: region, destination (repeatable), departure_location, seller_id,
    min_price, max_price, duration_range, people_range, min/max_duration,
    min/max_people, duration (legacy), num_people (legacy), departure_date,
    nearby_days. Pagination: page, limit.
    """
    params = _query_to_params(request)
    paging = get_pagination_params(params.pop("page", None), params.get("limit"))
    params["limit"] = paging["limit"]
    params["offset"] = paging["offset"]

    result = TourSearchService(db).search(params)

    return {
        "tours": result["tours"],
        "pagination": create_pagination_metadata(paging["page"], paging["limit"], result["total_items"]),
    }


@router.get("/meta/ranges", response_model=Dict[str, List[str]])
def get_search_ranges():
    """Range labels accepted by duration_range and people_range."""
    return {
        "duration_ranges": get_duration_ranges(),
        "people_ranges": get_people_ranges(),
    }


# ============================================================================
# DETAIL
# ============================================================================

@router.get("/{tour_id}")
@limiter.limit(DETAIL_LIMIT)
def get_tour(request: Request, tour_id: int, db: Session = Depends(require_db)):
    """Tour details with images."""
    return TourRepository(db).get_tour_detail(tour_id)


@router.get("/{tour_id}/departures")
def get_tour_departures(tour_id: int, db: Session = Depends(require_db)):
    """Upcoming bookable departures of an available tour."""
    TourRepository(db).get_available_tour(tour_id)
    departures = DepartureRepository(db).list_upcoming_for_tour(tour_id)
    return [departure_to_dict(d) for d in departures]
