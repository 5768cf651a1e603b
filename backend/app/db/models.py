"""
Database models -- SQLAlchemy ORM definitions.
PostgreSQL schema for tours, scheduled departures, images and bookings.
Search reads these tables through raw SQL; the ORM classes define the
schema and serve the simple CRUD paths.
"""

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class Tour(Base):
    """
    A seller-published travel package.
    `duration` is free text ("4 ngày 3 đêm"); search reads its leading integer.
    Tours are soft-deleted so bookings keep their references.
    """
    __tablename__ = "tour"

    tour_id = Column(Integer, primary_key=True)
    seller_id = Column(Integer, nullable=False, index=True)
    title = Column(Text, nullable=False)
    duration = Column(Text)
    departure_location = Column(Text)
    description = Column(Text)
    destination = Column(ARRAY(Text), default=list)
    region = Column(Integer, index=True)
    itinerary = Column(JSONB, default=list)  # [{day_number, title, description}]
    max_participants = Column(Integer, nullable=False)
    availability = Column(Boolean, nullable=False, default=True)
    is_deleted = Column(Boolean, nullable=False, default=False)
    deleted_at = Column(DateTime)
    embedding = Column(ARRAY(Float))
    created_at = Column(DateTime, server_default=func.now())


class Departure(Base):
    """
    One scheduled run of a tour with its own pricing.
    One departure per (tour_id, start_date) is enforced by DepartureRepository.
    """
    __tablename__ = "departure"

    departure_id = Column(Integer, primary_key=True)
    tour_id = Column(Integer, ForeignKey("tour.tour_id"), nullable=False)
    start_date = Column(Date, nullable=False)
    price_adult = Column(Numeric(12, 2), nullable=False)
    price_child_120_140 = Column(Numeric(12, 2), nullable=False, default=0)
    price_child_100_120 = Column(Numeric(12, 2), nullable=False, default=0)
    availability = Column(Boolean, nullable=False, default=True)
    description = Column(Text)

    __table_args__ = (
        Index("idx_departure_tour_start", "tour_id", "start_date"),
    )


class Image(Base):
    __tablename__ = "images"

    image_id = Column(Integer, primary_key=True)
    tour_id = Column(Integer, ForeignKey("tour.tour_id"), nullable=False, index=True)
    image_url = Column(Text, nullable=False)
    is_cover = Column(Boolean, nullable=False, default=False)
    upload_date = Column(DateTime, server_default=func.now())


class Booking(Base):
    __tablename__ = "booking"

    booking_id = Column(Integer, primary_key=True)
    departure_id = Column(Integer, ForeignKey("departure.departure_id"), nullable=False, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    num_adults = Column(Integer, nullable=False)
    num_children_120_140 = Column(Integer, nullable=False, default=0)
    num_children_100_120 = Column(Integer, nullable=False, default=0)
    total_price = Column(Numeric(12, 2), nullable=False)
    booking_status = Column(Text, nullable=False, default="pending")
    special_requests = Column(Text, default="")
    booking_date = Column(DateTime, server_default=func.now())
