import asyncio
import json
from types import SimpleNamespace

from starlette.requests import Request

from app.core.config import settings
from app.core.rate_limiting import SEARCH_LIMIT, rate_limit_handler


def _request(path="/api/v1/tours/search"):
    return Request({
        "type": "http",
        "method": "GET",
        "path": path,
        "query_string": b"",
        "headers": [],
        "client": ("203.0.113.7", 5000),
    })


def test_limits_come_from_settings():
    assert SEARCH_LIMIT == settings.rate_limit_search


def test_handler_returns_api_error_shape(caplog):
    exc = SimpleNamespace(detail="100 per 1 minute")

    with caplog.at_level("WARNING", logger="app.core.rate_limiting"):
        response = asyncio.run(rate_limit_handler(_request(), exc))

    assert response.status_code == 429
    assert response.headers["Retry-After"] == "60"
    body = json.loads(response.body)
    assert body["error"] == "Too Many Requests"
    assert body["detail"] == "Rate limit exceeded: 100 per 1 minute"
    assert "timestamp" in body
    assert "203.0.113.7" in caplog.records[-1].getMessage()
