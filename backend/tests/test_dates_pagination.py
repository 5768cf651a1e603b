from datetime import date, datetime, timedelta, timezone

import pytest

from app.core.config import settings
from app.core.dates import format_date_to_local, format_datetime_to_local
from app.core.pagination import PG_BIGINT_MAX, create_pagination_metadata, get_pagination_params


# ============================================================================
# DATES
# ============================================================================

def test_plain_dates_are_not_shifted():
    assert format_date_to_local(date(2030, 12, 31)) == "2030-12-31"


def test_naive_datetimes_are_treated_as_utc():
    # 18:30 UTC is 01:30 the following day in Asia/Bangkok (UTC+7)
    assert format_date_to_local(datetime(2030, 1, 1, 18, 30)) == "2030-01-02"
    assert format_datetime_to_local(datetime(2030, 1, 1, 18, 30)) == "2030-01-02 01:30:00"


def test_aware_datetimes_are_converted():
    value = datetime(2030, 1, 1, 23, 0, tzinfo=timezone(timedelta(hours=9)))
    assert format_datetime_to_local(value) == "2030-01-01 21:00:00"


def test_iso_strings_are_parsed():
    assert format_date_to_local("2030-01-01T20:00:00") == "2030-01-02"


@pytest.mark.parametrize("value", [None, ""])
def test_missing_values_format_to_none(value):
    assert format_date_to_local(value) is None
    assert format_datetime_to_local(value) is None


def test_unparseable_strings_pass_through():
    assert format_date_to_local("soon") == "soon"


# ============================================================================
# PAGINATION
# ============================================================================

def test_pagination_defaults():
    assert get_pagination_params() == {
        "page": 1, "limit": settings.default_page_size, "offset": 0,
    }


def test_pagination_offset_from_page():
    assert get_pagination_params("3", "20") == {"page": 3, "limit": 20, "offset": 40}


@pytest.mark.parametrize("page, limit", [("0", "-5"), ("abc", "x"), (None, "0")])
def test_malformed_pagination_falls_back(page, limit):
    params = get_pagination_params(page, limit)
    assert params["page"] == 1
    assert params["limit"] == settings.default_page_size


def test_limit_is_capped():
    assert get_pagination_params(1, 10_000)["limit"] == settings.max_page_size


def test_oversized_page_keeps_offset_in_bigint_range():
    params = get_pagination_params("99999999999999999999", "10")
    assert params["offset"] <= PG_BIGINT_MAX
    assert params["offset"] == (params["page"] - 1) * 10


def test_pagination_metadata():
    assert create_pagination_metadata(2, 10, 25) == {
        "currentPage": 2,
        "itemsPerPage": 10,
        "totalItems": 25,
        "totalPages": 3,
        "hasNextPage": True,
        "hasPrevPage": True,
    }


def test_pagination_metadata_for_empty_results():
    meta = create_pagination_metadata(1, 10, 0)
    assert meta["totalPages"] == 0
    assert meta["hasNextPage"] is False
    assert meta["hasPrevPage"] is False
