"""
Repository pattern for data access.
Tours and departures through the ORM; search lives in
app.services.tour_search because it needs hand-written SQL.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import func
import logging

from app.core.dates import format_date_to_local, format_datetime_to_local, today_local
from app.core.exceptions import ConflictError, NotFoundError
from app.db.models import Booking, Departure, Image, Tour

logger = logging.getLogger(__name__)

# Columns never returned to API clients
_HIDDEN_FIELDS = {"embedding"}


def model_to_dict(instance) -> Dict[str, Any]:
    """Convert an ORM instance to a plain dict of its column values."""
    return {
        column.key: getattr(instance, column.key)
        for column in instance.__table__.columns
        if column.key not in _HIDDEN_FIELDS
    }


def departure_to_dict(departure: Departure) -> Dict[str, Any]:
    data = model_to_dict(departure)
    data["start_date"] = format_date_to_local(data["start_date"])
    return data


class TourRepository:
    """Read access to tours and their images."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, tour_id: int, include_deleted: bool = False) -> Optional[Tour]:
        query = self.db.query(Tour).filter(Tour.tour_id == tour_id)
        if not include_deleted:
            query = query.filter(Tour.is_deleted.is_(False))
        return query.first()

    def get_images(self, tour_id: int) -> List[Image]:
        """Images for one tour, cover first then newest upload first."""
        return (
            self.db.query(Image)
            .filter(Image.tour_id == tour_id)
            .order_by(Image.is_cover.desc(), Image.upload_date.desc(), Image.image_id.desc())
            .all()
        )

    def get_tour_detail(self, tour_id: int) -> Dict[str, Any]:
        """Public tour view with images. Raises NotFoundError for missing or deleted tours."""
        tour = self.get_by_id(tour_id)
        if tour is None:
            raise NotFoundError("Tour not found")
        data = model_to_dict(tour)
        data["created_at"] = format_datetime_to_local(data.get("created_at"))
        data["deleted_at"] = format_datetime_to_local(data.get("deleted_at"))
        images = []
        for image in self.get_images(tour_id):
            item = model_to_dict(image)
            item["upload_date"] = format_datetime_to_local(item.get("upload_date"))
            images.append(item)
        data["images"] = images
        return data

    def get_available_tour(self, tour_id: int) -> Tour:
        tour = self.get_by_id(tour_id)
        if tour is None:
            raise NotFoundError("Tour not found")
        if not tour.availability:
            raise NotFoundError("Tour is not available")
        return tour

    def count_searchable(self) -> int:
        return (
            self.db.query(func.count(Tour.tour_id))
            .filter(Tour.availability.is_(True), Tour.is_deleted.is_(False))
            .scalar()
            or 0
        )


class DepartureRepository:
    """Departure reads plus the writes that guard departure invariants."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, departure_id: int) -> Optional[Departure]:
        return self.db.query(Departure).filter(Departure.departure_id == departure_id).first()

    def get_public_departure(self, departure_id: int) -> Departure:
        """A departure a customer may book: available, upcoming, of an available tour."""
        departure = self.get_by_id(departure_id)
        if departure is None:
            raise NotFoundError("Departure not found")
        TourRepository(self.db).get_available_tour(departure.tour_id)
        if not departure.availability or departure.start_date < today_local():
            raise NotFoundError("Departure is not available")
        return departure

    def list_upcoming_for_tour(self, tour_id: int) -> List[Departure]:
        return (
            self.db.query(Departure)
            .filter(
                Departure.tour_id == tour_id,
                Departure.availability.is_(True),
                Departure.start_date >= today_local(),
            )
            .order_by(Departure.start_date.asc())
            .all()
        )

    def search(
        self,
        tour_id: Optional[int] = None,
        start_date_from: Optional[date] = None,
        start_date_to: Optional[date] = None,
    ) -> List[Departure]:
        """Available departures of available, non-deleted tours in a date range."""
        query = (
            self.db.query(Departure)
            .join(Tour, Tour.tour_id == Departure.tour_id)
            .filter(
                Departure.availability.is_(True),
                Tour.availability.is_(True),
                Tour.is_deleted.is_(False),
                Departure.start_date >= (start_date_from or today_local()),
            )
        )
        if tour_id is not None:
            query = query.filter(Departure.tour_id == tour_id)
        if start_date_to is not None:
            query = query.filter(Departure.start_date <= start_date_to)
        return query.order_by(Departure.start_date.asc(), Departure.departure_id.asc()).all()

    def exists_on_date(self, tour_id: int, start_date: date) -> bool:
        query = self.db.query(Departure.departure_id).filter(
            Departure.tour_id == tour_id, Departure.start_date == start_date
        )
        return query.first() is not None

    def create(
        self,
        tour_id: int,
        start_date: date,
        price_adult: Decimal,
        price_child_120_140: Decimal = Decimal("0"),
        price_child_100_120: Decimal = Decimal("0"),
        availability: bool = True,
        description: Optional[str] = None,
    ) -> Departure:
        """Create a departure; one per tour and start date."""
        # Lock the tour row so two concurrent creates cannot both pass the date check
        tour = (
            self.db.query(Tour)
            .filter(Tour.tour_id == tour_id, Tour.is_deleted.is_(False))
            .with_for_update()
            .first()
        )
        if tour is None:
            self.db.rollback()
            raise NotFoundError("Tour not found")
        if self.exists_on_date(tour_id, start_date):
            self.db.rollback()
            raise ConflictError(f"Tour {tour_id} already has a departure on {start_date.isoformat()}")

        departure = Departure(
            tour_id=tour_id,
            start_date=start_date,
            price_adult=price_adult,
            price_child_120_140=price_child_120_140,
            price_child_100_120=price_child_100_120,
            availability=availability,
            description=description,
        )
        self.db.add(departure)
        self.db.commit()
        self.db.refresh(departure)
        logger.info(f"Departure created: departureId={departure.departure_id} tourId={tour_id}")
        return departure

    def delete(self, departure_id: int) -> Departure:
        """Delete a departure that has no bookings."""
        departure = (
            self.db.query(Departure)
            .filter(Departure.departure_id == departure_id)
            .with_for_update()
            .first()
        )
        if departure is None:
            self.db.rollback()
            raise NotFoundError("Departure not found")
        bookings = (
            self.db.query(func.count(Booking.booking_id))
            .filter(Booking.departure_id == departure_id)
            .scalar()
        )
        if bookings:
            self.db.rollback()
            raise ConflictError("Cannot delete departure with existing bookings")
        self.db.delete(departure)
        self.db.commit()
        logger.info(f"Departure deleted: departureId={departure_id}")
        return departure
