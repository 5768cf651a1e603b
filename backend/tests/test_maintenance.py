from datetime import date, datetime
from zoneinfo import ZoneInfo

from sqlalchemy.exc import OperationalError

from app.services.maintenance import (
    run_all,
    seconds_until,
    update_overdue_departures,
    update_tours_without_departures,
)
from conftest import FakeResult, FakeSession


def test_overdue_departures_are_closed_and_committed():
    db = FakeSession().on("UPDATE departure", FakeResult([
        {"departure_id": 4, "tour_id": 1, "start_date": date(2020, 1, 1)},
    ]))
    result = update_overdue_departures(db)

    assert result["success"] is True
    assert result["count"] == 1
    assert result["updated_departures"][0]["departure_id"] == 4
    assert db.committed == 1
    sql, params = db.calls[0]
    assert "start_date < :today" in sql
    assert isinstance(params["today"], date)


def test_no_overdue_departures_reports_zero():
    result = update_overdue_departures(FakeSession())
    assert result == {"success": True, "count": 0, "updated_departures": []}


def test_tours_without_upcoming_departures_are_closed():
    db = FakeSession().on("UPDATE tour", FakeResult([{"tour_id": 2, "title": "Sa Pa"}]))
    result = update_tours_without_departures(db)

    assert result["count"] == 1
    assert result["updated_tours"] == [{"tour_id": 2, "title": "Sa Pa"}]
    assert "NOT EXISTS" in db.calls[0][0]


def test_failed_job_rolls_back_and_reports_error():
    db = FakeSession().on("UPDATE departure", OperationalError("UPDATE", {}, Exception("lock timeout")))
    result = update_overdue_departures(db)

    assert result["success"] is False
    assert "lock timeout" in result["error"]
    assert db.rolled_back == 1
    assert db.committed == 0


def test_run_all_runs_both_jobs_independently():
    db = FakeSession().on("UPDATE departure", RuntimeError("boom"))
    result = run_all(db)
    assert result["overdue_departures"]["success"] is False
    assert result["tours_without_departures"]["success"] is True


def test_seconds_until_later_today():
    now = datetime(2030, 1, 1, 0, 0, 30, tzinfo=ZoneInfo("Asia/Bangkok"))
    assert seconds_until("00:01", now) == 30


def test_seconds_until_wraps_to_tomorrow():
    now = datetime(2030, 1, 1, 0, 30, tzinfo=ZoneInfo("Asia/Bangkok"))
    assert seconds_until("00:30", now) == 24 * 3600
    assert seconds_until("00:01", now) == 24 * 3600 - 29 * 60
