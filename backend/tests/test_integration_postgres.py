"""
End-to-end checks against a real PostgreSQL database.

Run with:  TEST_DATABASE_URL=postgresql+psycopg2://... pytest -m integration
The target database is wiped; never point this at real data.
"""

from datetime import timedelta
from decimal import Decimal
import os
import threading

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker

from app.core.dates import today_local
from app.core.exceptions import BookingError, ConflictError
from app.db.models import Base, Booking, Departure, Image, Tour
from app.db.repositories import DepartureRepository
from app.services import maintenance
from app.services.booking_service import BookingService
from app.services.tour_search import TourSearchService

TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL")

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(not TEST_DATABASE_URL, reason="TEST_DATABASE_URL not set"),
]


@pytest.fixture(scope="module")
def engine():
    engine = create_engine(TEST_DATABASE_URL)
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    with engine.begin() as conn:
        conn.execute(text("TRUNCATE booking, images, departure, tour RESTART IDENTITY CASCADE"))
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


def _future(days):
    return today_local() + timedelta(days=days)


def _add_tour(db, **overrides):
    values = dict(
        seller_id=1,
        title="Đà Lạt 4N3Đ",
        duration="4 ngày 3 đêm",
        departure_location="TP. Hồ Chí Minh",
        destination=["Đà Lạt"],
        region=1,
        itinerary=[],
        max_participants=4,
        availability=True,
    )
    values.update(overrides)
    tour = Tour(**values)
    db.add(tour)
    db.flush()
    return tour


def _add_departure(db, tour, start_date, price="2500000", **overrides):
    departure = Departure(
        tour_id=tour.tour_id,
        start_date=start_date,
        price_adult=Decimal(price),
        price_child_120_140=Decimal("0"),
        price_child_100_120=Decimal("0"),
        availability=overrides.pop("availability", True),
    )
    db.add(departure)
    db.flush()
    return departure


# ============================================================================
# SEARCH
# ============================================================================

def test_range_labels_find_matching_tour(db):
    tour = _add_tour(db)
    _add_departure(db, tour, _future(10))
    short = _add_tour(db, title="Sa Pa 2N1Đ", duration="2 ngày 1 đêm")
    group = _add_tour(db, title="Phú Quốc đoàn", max_participants=20)
    other_region = _add_tour(db, region=3)
    for extra in (short, group, other_region):
        _add_departure(db, extra, _future(10))
    db.add(Image(tour_id=tour.tour_id, image_url="cover.jpg", is_cover=True))
    db.commit()

    result = TourSearchService(db).search({
        "region": "1", "duration_range": "3-5 ngày", "people_range": "3-5 người",
    })

    assert result["total_items"] == 1
    found = result["tours"][0]
    assert found["tour_id"] == tour.tour_id
    assert found["duration_days"] == 4
    assert found["next_departure_date"] == _future(10).isoformat()
    assert found["images"][0]["image_url"] == "cover.jpg"


def test_target_date_prefers_exact_departure(db):
    tour = _add_tour(db)
    target = _future(20)
    for offset in (5, 2, 0):
        _add_departure(db, tour, target + timedelta(days=offset))
    db.commit()

    result = TourSearchService(db).search({"departure_date": target.isoformat(), "nearby_days": "5"})

    assert result["total_items"] == 1
    assert result["tours"][0]["start_date"] == target.isoformat()
    assert result["tours"][0]["days_from_target"] == 0


def test_target_date_falls_back_to_closest_in_window(db):
    tour = _add_tour(db)
    target = _future(20)
    _add_departure(db, tour, target + timedelta(days=5))
    _add_departure(db, tour, target - timedelta(days=2))
    db.commit()

    result = TourSearchService(db).search({"departure_date": target.isoformat()})

    assert result["tours"][0]["start_date"] == (target - timedelta(days=2)).isoformat()


def test_one_row_per_tour_with_earliest_departure(db):
    tour = _add_tour(db)
    _add_departure(db, tour, _future(30))
    _add_departure(db, tour, _future(7))
    _add_departure(db, tour, _future(14))
    db.commit()

    result = TourSearchService(db).search({})
    assert result["total_items"] == 1
    assert [t["start_date"] for t in result["tours"]] == [_future(7).isoformat()]


def test_soft_deleted_and_unavailable_tours_are_hidden(db):
    deleted = _add_tour(db, is_deleted=True)
    closed = _add_tour(db, availability=False)
    past_only = _add_tour(db)
    for tour in (deleted, closed):
        _add_departure(db, tour, _future(5))
    _add_departure(db, past_only, today_local() - timedelta(days=3))
    db.commit()

    assert TourSearchService(db).search({}) == {"tours": [], "total_items": 0}


def test_price_and_destination_filters(db):
    cheap = _add_tour(db, destination=["Huế", "Hội An"])
    pricey = _add_tour(db, destination=["Hội An"])
    _add_departure(db, cheap, _future(3), price="1000000")
    _add_departure(db, pricey, _future(3), price="9000000")
    db.commit()

    result = TourSearchService(db).search({"destination": ["Hội An"], "max_price": "5000000"})
    assert [t["tour_id"] for t in result["tours"]] == [cheap.tour_id]


def test_pagination_and_total_are_consistent(db):
    for i in range(5):
        _add_departure(db, _add_tour(db, title=f"Tour {i}"), _future(2))
    db.commit()

    service = TourSearchService(db)
    first = service.search({"limit": "2", "offset": "0"})
    last = service.search({"limit": "2", "offset": "4"})

    assert first["total_items"] == last["total_items"] == 5
    assert len(first["tours"]) == 2
    assert len(last["tours"]) == 1


def test_repeated_search_is_idempotent(db):
    for i in range(3):
        tour = _add_tour(db)
        _add_departure(db, tour, _future(4))
        _add_departure(db, tour, _future(5 + i))
    db.commit()

    service = TourSearchService(db)
    params = {"region": "1", "departure_date": _future(4).isoformat()}
    assert service.search(params) == service.search(params)


# ============================================================================
# DEPARTURES / BOOKINGS / MAINTENANCE
# ============================================================================

def test_duplicate_departure_date_is_rejected(db):
    tour = _add_tour(db)
    db.commit()
    repo = DepartureRepository(db)
    repo.create(tour.tour_id, _future(9), Decimal("100"))

    with pytest.raises(ConflictError):
        repo.create(tour.tour_id, _future(9), Decimal("200"))


def test_departure_with_bookings_cannot_be_deleted(db):
    tour = _add_tour(db)
    departure = _add_departure(db, tour, _future(9))
    db.commit()
    BookingService(db).create_booking(departure.departure_id, user_id=1, num_adults=1)

    with pytest.raises(ConflictError):
        DepartureRepository(db).delete(departure.departure_id)


def test_concurrent_bookings_never_exceed_capacity(db, session_factory):
    tour = _add_tour(db, max_participants=4)
    departure = _add_departure(db, tour, _future(15))
    db.commit()
    departure_id = departure.departure_id

    barrier = threading.Barrier(2)
    outcomes = []

    def book(user_id):
        session = session_factory()
        try:
            barrier.wait()
            BookingService(session).create_booking(departure_id, user_id=user_id, num_adults=3)
            outcomes.append("booked")
        except BookingError:
            outcomes.append("refused")
        finally:
            session.close()

    threads = [threading.Thread(target=book, args=(uid,)) for uid in (1, 2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(outcomes) == ["booked", "refused"]
    assert BookingService(db).booked_participants(departure_id) == 3


def test_full_departure_is_closed_and_reopened_on_cancel(db):
    tour = _add_tour(db, max_participants=2)
    departure = _add_departure(db, tour, _future(6))
    db.commit()
    service = BookingService(db)

    booking = service.create_booking(departure.departure_id, user_id=5, num_adults=2)
    db.refresh(departure)
    assert departure.availability is False

    result = service.cancel_booking(booking["booking_id"], user_id=5)
    db.refresh(departure)
    assert result["departure_reopened"] is True
    assert departure.availability is True
    assert db.query(Booking).count() == 1


def test_maintenance_closes_past_departures_and_empty_tours(db):
    tour = _add_tour(db)
    past = _add_departure(db, tour, today_local() - timedelta(days=1))
    db.commit()

    departures = maintenance.update_overdue_departures(db)
    tours = maintenance.update_tours_without_departures(db)

    assert departures["count"] == 1
    assert tours["count"] == 1
    db.refresh(past)
    db.refresh(tour)
    assert past.availability is False
    assert tour.availability is False
