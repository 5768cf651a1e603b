"""
Search result enrichment.
Adds images and next-departure metadata to a page of search rows, then
formats dates for display. Each lookup is one batched query keyed by the
page's tour ids; rows are never added or removed.
"""

from typing import Any, Dict, Iterable, List
from sqlalchemy import text
from sqlalchemy.orm import Session
import logging

from app.core.dates import format_date_to_local, format_datetime_to_local, today_local

logger = logging.getLogger(__name__)

DATE_FIELDS = ("start_date", "next_departure_date")

IMAGES_SQL = """
    SELECT image_id, tour_id, image_url, is_cover, upload_date
    FROM images
    WHERE tour_id = ANY(:tour_ids)
    ORDER BY tour_id, is_cover DESC, upload_date DESC, image_id DESC
"""

NEXT_DEPARTURES_SQL = """
    SELECT DISTINCT ON (tour_id)
        tour_id, departure_id, price_adult, start_date
    FROM departure
    WHERE tour_id = ANY(:tour_ids)
      AND availability = true
      AND start_date >= :today
    ORDER BY tour_id, start_date, departure_id
"""


def _image_to_dict(row: Dict[str, Any]) -> Dict[str, Any]:
    image = dict(row)
    image["upload_date"] = format_datetime_to_local(image.get("upload_date"))
    return image


class ResultEnricher:
    """Post-processes deduplicated search rows for one page."""

    def __init__(self, db: Session):
        self.db = db

    def images_by_tour(self, tour_ids: List[int]) -> Dict[int, List[Dict[str, Any]]]:
        """All images for the given tours, cover first then newest upload first."""
        grouped: Dict[int, List[Dict[str, Any]]] = {tid: [] for tid in tour_ids}
        if not tour_ids:
            return grouped
        rows = self.db.execute(text(IMAGES_SQL), {"tour_ids": tour_ids}).mappings().all()
        for row in rows:
            grouped.setdefault(row["tour_id"], []).append(_image_to_dict(row))
        return grouped

    def next_departures(self, tour_ids: List[int]) -> Dict[int, Dict[str, Any]]:
        """Earliest upcoming available departure per tour."""
        if not tour_ids:
            return {}
        rows = self.db.execute(
            text(NEXT_DEPARTURES_SQL), {"tour_ids": tour_ids, "today": today_local()}
        ).mappings().all()
        return {row["tour_id"]: dict(row) for row in rows}

    def enrich(self, rows: Iterable[Any]) -> List[Dict[str, Any]]:
        tours = [dict(row) for row in rows]
        if not tours:
            return []

        tour_ids = [tour["tour_id"] for tour in tours]
        images = self.images_by_tour(tour_ids)

        # The matched departure can differ from the next upcoming one when a
        # target date pulled in a later departure, so look it up separately.
        needs_next = [
            tour["tour_id"] for tour in tours
            if tour.get("tour_availability") and not tour.get("next_departure_id")
        ]
        upcoming = self.next_departures(needs_next)

        for tour in tours:
            tour.pop("embedding", None)
            tour["images"] = images.get(tour["tour_id"], [])

            nxt = upcoming.get(tour["tour_id"])
            if nxt is not None:
                tour["next_departure_adult_price"] = nxt["price_adult"]
                tour["next_departure_id"] = nxt["departure_id"]
                tour["next_departure_date"] = nxt["start_date"]

            for field in DATE_FIELDS:
                if tour.get(field):
                    tour[field] = format_date_to_local(tour[field])

        logger.debug(f"Enriched {len(tours)} tours ({len(upcoming)} with next departure)")
        return tours
