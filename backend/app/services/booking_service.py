"""
Booking capacity management.

Capacity check, insert and the departure availability toggle run in one
transaction holding a row lock on the departure (SELECT ... FOR UPDATE),
so concurrent bookings for the same departure are serialized and cannot
overshoot the tour's max_participants.
"""

from decimal import Decimal
from typing import Any, Dict, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session
import logging

from app.core.dates import today_local
from app.core.exceptions import BookingError, NotFoundError
from app.db.models import Booking, Departure, Tour

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = ("pending", "confirmed")


class BookingService:

    def __init__(self, db: Session):
        self.db = db

    def _lock_departure(self, departure_id: int) -> Departure:
        departure = (
            self.db.query(Departure)
            .filter(Departure.departure_id == departure_id)
            .with_for_update()
            .first()
        )
        if departure is None:
            raise NotFoundError("Departure not found")
        return departure

    def booked_participants(self, departure_id: int) -> int:
        """Participants already holding seats on a departure."""
        total = (
            self.db.query(
                func.coalesce(
                    func.sum(
                        Booking.num_adults + Booking.num_children_120_140 + Booking.num_children_100_120
                    ),
                    0,
                )
            )
            .filter(
                Booking.departure_id == departure_id,
                Booking.booking_status.in_(ACTIVE_STATUSES),
            )
            .scalar()
        )
        return int(total or 0)

    @staticmethod
    def calculate_total_price(
        departure: Departure,
        num_adults: int,
        num_children_120_140: int = 0,
        num_children_100_120: int = 0,
    ) -> Decimal:
        return (
            Decimal(departure.price_adult) * num_adults
            + Decimal(departure.price_child_120_140 or 0) * num_children_120_140
            + Decimal(departure.price_child_100_120 or 0) * num_children_100_120
        )

    def create_booking(
        self,
        departure_id: int,
        user_id: int,
        num_adults: int,
        num_children_120_140: int = 0,
        num_children_100_120: int = 0,
        special_requests: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Reserve seats on a departure. Raises BookingError when it cannot be honoured."""
        if not num_adults or num_adults < 1:
            raise BookingError("At least one adult is required")
        if num_children_120_140 < 0 or num_children_100_120 < 0:
            raise BookingError("Children counts cannot be negative")

        try:
            departure = self._lock_departure(departure_id)
            if not departure.availability or departure.start_date < today_local():
                raise BookingError("This departure is not available for booking")

            tour = self.db.query(Tour).filter(Tour.tour_id == departure.tour_id).first()
            if tour is None or tour.is_deleted:
                raise NotFoundError("Tour not found")
            if not tour.availability:
                raise BookingError("This tour is not available for booking")

            requested = num_adults + num_children_120_140 + num_children_100_120
            booked = self.booked_participants(departure_id)
            remaining = tour.max_participants - booked
            if requested > remaining:
                raise BookingError(
                    f"Booking exceeds remaining capacity: {max(remaining, 0)} of "
                    f"{tour.max_participants} places left"
                )

            booking = Booking(
                departure_id=departure_id,
                user_id=user_id,
                num_adults=num_adults,
                num_children_120_140=num_children_120_140,
                num_children_100_120=num_children_100_120,
                total_price=self.calculate_total_price(
                    departure, num_adults, num_children_120_140, num_children_100_120
                ),
                booking_status="pending",
                special_requests=special_requests or "",
            )
            self.db.add(booking)

            if booked + requested >= tour.max_participants:
                departure.availability = False
                logger.info(f"Departure {departure_id} is full, marked unavailable")

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(booking)
        logger.info(f"User {user_id} created booking {booking.booking_id} for departure {departure_id}")
        return {
            "booking_id": booking.booking_id,
            "departure_id": departure_id,
            "user_id": user_id,
            "participants": requested,
            "total_price": booking.total_price,
            "booking_status": booking.booking_status,
            "tour_title": tour.title,
            "departure_date": departure.start_date.isoformat(),
        }

    def cancel_booking(self, booking_id: int, user_id: int) -> Dict[str, Any]:
        """Cancel a booking and re-open its departure when seats free up."""
        try:
            booking = self.db.query(Booking).filter(Booking.booking_id == booking_id).first()
            if booking is None or booking.user_id != user_id:
                raise NotFoundError("Booking not found")
            if booking.booking_status == "cancelled":
                raise BookingError("Booking is already cancelled")

            departure = self._lock_departure(booking.departure_id)
            booking.booking_status = "cancelled"
            self.db.flush()

            tour = self.db.query(Tour).filter(Tour.tour_id == departure.tour_id).first()
            reopened = False
            if (
                not departure.availability
                and tour is not None
                and departure.start_date >= today_local()
                and self.booked_participants(departure.departure_id) < tour.max_participants
            ):
                departure.availability = True
                reopened = True

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Booking {booking_id} cancelled (departure reopened: {reopened})")
        return {"booking_id": booking_id, "booking_status": "cancelled", "departure_reopened": reopened}
