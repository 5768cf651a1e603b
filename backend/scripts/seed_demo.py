"""
Seed the database with demo tours, departures and images.
Creates the schema if needed. Existing rows are left untouched unless
--reset is given.
Run: python scripts/seed_demo.py [--reset]
"""

import os
import sys
from datetime import date, timedelta
from decimal import Decimal

# Add backend directory to path for app imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import text

from app.db.database import SessionLocal, engine
from app.db.models import Base, Departure, Image, Tour

DEMO_TOURS = [
    {
        "seller_id": 1,
        "title": "Hạ Long Bay Cruise",
        "duration": "3 ngày 2 đêm",
        "departure_location": "Hà Nội",
        "destination": ["Hạ Long", "Cát Bà"],
        "region": 1,
        "max_participants": 20,
        "prices": (Decimal("3500000"), Decimal("2500000"), Decimal("1500000")),
        "offsets": [5, 12, 19],
    },
    {
        "seller_id": 1,
        "title": "Sa Pa Trekking",
        "duration": "4 ngày 3 đêm",
        "departure_location": "Hà Nội",
        "destination": ["Sa Pa", "Lào Cai"],
        "region": 1,
        "max_participants": 4,
        "prices": (Decimal("4200000"), Decimal("3000000"), Decimal("2000000")),
        "offsets": [7, 21],
    },
    {
        "seller_id": 2,
        "title": "Hội An & Huế Heritage",
        "duration": "6 ngày 5 đêm",
        "departure_location": "Đà Nẵng",
        "destination": ["Hội An", "Huế"],
        "region": 2,
        "max_participants": 15,
        "prices": (Decimal("7800000"), Decimal("5500000"), Decimal("3900000")),
        "offsets": [3, 10, 30],
    },
    {
        "seller_id": 3,
        "title": "Mekong Delta Discovery",
        "duration": "8 ngày 7 đêm",
        "departure_location": "TP. Hồ Chí Minh",
        "destination": ["Cần Thơ", "Châu Đốc"],
        "region": 3,
        "max_participants": 12,
        "prices": (Decimal("9900000"), Decimal("7000000"), Decimal("5000000")),
        "offsets": [14],
    },
]


def main():
    reset = "--reset" in sys.argv[1:]
    print(f"Database: {engine.url.render_as_string(hide_password=True)}")

    if reset:
        Base.metadata.drop_all(engine)
        print("Tables dropped")
    Base.metadata.create_all(engine)
    print("Tables created")

    session = SessionLocal()
    today = date.today()
    tours = 0
    departures = 0

    try:
        for demo in DEMO_TOURS:
            tour = Tour(
                seller_id=demo["seller_id"],
                title=demo["title"],
                duration=demo["duration"],
                departure_location=demo["departure_location"],
                description=f"{demo['title']} departing from {demo['departure_location']}",
                destination=demo["destination"],
                region=demo["region"],
                itinerary=[
                    {"day_number": i + 1, "title": f"Day {i + 1}", "description": ""}
                    for i in range(int(demo["duration"].split()[0]))
                ],
                max_participants=demo["max_participants"],
            )
            session.add(tour)
            session.flush()
            tours += 1

            adult, child_high, child_low = demo["prices"]
            for offset in demo["offsets"]:
                session.add(Departure(
                    tour_id=tour.tour_id,
                    start_date=today + timedelta(days=offset),
                    price_adult=adult,
                    price_child_120_140=child_high,
                    price_child_100_120=child_low,
                ))
                departures += 1

            session.add(Image(tour_id=tour.tour_id, image_url=f"https://picsum.photos/seed/{tour.tour_id}/800/600", is_cover=True))
            session.add(Image(tour_id=tour.tour_id, image_url=f"https://picsum.photos/seed/{tour.tour_id}b/800/600"))

        session.commit()

        total = session.execute(text("SELECT COUNT(*) FROM tour")).scalar()
        print(f"\nDone! Inserted {tours} tours and {departures} departures")
        print(f"Verified: {total} rows in tour")
    finally:
        session.close()
        engine.dispose()

    print("\nSeed complete!")


if __name__ == "__main__":
    main()
