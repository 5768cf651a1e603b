"""Create PostgreSQL indexes used by tour search."""
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import text

from app.db.database import engine

indexes = [
    ("idx_tour_destination_gin", "CREATE INDEX IF NOT EXISTS idx_tour_destination_gin ON tour USING GIN (destination)"),
    ("idx_tour_searchable", "CREATE INDEX IF NOT EXISTS idx_tour_searchable ON tour (region) WHERE availability AND NOT is_deleted"),
    ("idx_departure_open", "CREATE INDEX IF NOT EXISTS idx_departure_open ON departure (tour_id, start_date) WHERE availability"),
    ("idx_departure_price", "CREATE INDEX IF NOT EXISTS idx_departure_price ON departure (price_adult)"),
    ("idx_images_tour_cover", "CREATE INDEX IF NOT EXISTS idx_images_tour_cover ON images (tour_id, is_cover DESC, upload_date DESC)"),
]

with engine.begin() as conn:
    for idx_name, ddl in indexes:
        conn.execute(text(ddl))
        print(f"  Created {idx_name}")

    rows = conn.execute(
        text("SELECT indexname FROM pg_indexes WHERE tablename IN ('tour', 'departure', 'images') ORDER BY indexname")
    ).fetchall()

print(f"\nAll indexes on search tables ({len(rows)}):")
for r in rows:
    print(f"  {r[0]}")

engine.dispose()
print("\nDone.")
