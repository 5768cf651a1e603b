"""
Scheduled maintenance jobs.
Each job runs inside an explicit transaction and rolls back on failure.
The scheduler loop is started from the application lifespan.
"""

from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Tuple
from sqlalchemy import text
from sqlalchemy.orm import Session
import asyncio
import logging

from app.core.config import settings
from app.core.dates import display_zone, today_local

logger = logging.getLogger(__name__)


def update_overdue_departures(db: Session) -> Dict[str, Any]:
    """Mark departures whose start date has passed as unavailable."""
    logger.info("Starting job: Update overdue departures")
    try:
        rows = db.execute(
            text(
                "UPDATE departure SET availability = false "
                "WHERE start_date < :today AND availability = true "
                "RETURNING departure_id, tour_id, start_date"
            ),
            {"today": today_local()},
        ).mappings().all()
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error updating overdue departures: {e}", exc_info=True)
        return {"success": False, "error": str(e)}

    updated = [dict(r) for r in rows]
    if updated:
        logger.info(f"Updated {len(updated)} overdue departures to unavailable")
    else:
        logger.info("No overdue departures found to update")
    return {"success": True, "count": len(updated), "updated_departures": updated}


def update_tours_without_departures(db: Session) -> Dict[str, Any]:
    """Mark available tours with no upcoming available departure as unavailable."""
    logger.info("Starting job: Update tours without future departures")
    try:
        rows = db.execute(
            text(
                "UPDATE tour t SET availability = false "
                "WHERE t.availability = true "
                "AND NOT EXISTS ("
                "  SELECT 1 FROM departure d "
                "  WHERE d.tour_id = t.tour_id AND d.availability = true AND d.start_date >= :today"
                ") "
                "RETURNING t.tour_id, t.title"
            ),
            {"today": today_local()},
        ).mappings().all()
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error updating tours without future departures: {e}", exc_info=True)
        return {"success": False, "error": str(e)}

    updated = [dict(r) for r in rows]
    if updated:
        logger.info(f"Updated {len(updated)} tours without future departures to unavailable")
    else:
        logger.info("No tours without future departures found to update")
    return {"success": True, "count": len(updated), "updated_tours": updated}


def run_all(db: Session) -> Dict[str, Any]:
    return {
        "overdue_departures": update_overdue_departures(db),
        "tours_without_departures": update_tours_without_departures(db),
    }


# ============================================================================
# SCHEDULER
# ============================================================================

def seconds_until(hhmm: str, now: datetime) -> float:
    """Seconds from now until the next HH:MM wall-clock time in now's timezone."""
    hour, minute = (int(part) for part in hhmm.split(":", 1))
    target = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if target <= now:
        target += timedelta(days=1)
    return (target - now).total_seconds()


async def _daily(job_time: str, job: Callable[[Session], Dict[str, Any]], session_factory) -> None:
    while True:
        delay = seconds_until(job_time, datetime.now(display_zone()))
        await asyncio.sleep(delay)
        db = session_factory()
        try:
            await asyncio.to_thread(job, db)
        except Exception as e:
            logger.error(f"Maintenance job {job.__name__} crashed: {e}", exc_info=True)
        finally:
            db.close()


def start_scheduler(session_factory) -> List[asyncio.Task]:
    """Start one daily task per job; cancel the returned tasks on shutdown."""
    schedule: List[Tuple[str, Callable[[Session], Dict[str, Any]]]] = [
        (settings.departure_job_time, update_overdue_departures),
        (settings.tour_job_time, update_tours_without_departures),
    ]
    tasks = [asyncio.create_task(_daily(t, job, session_factory)) for t, job in schedule]
    logger.info(
        f"Maintenance jobs scheduled at {settings.departure_job_time} and "
        f"{settings.tour_job_time} ({settings.display_timezone})"
    )
    return tasks
