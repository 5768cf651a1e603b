"""
Shared fixtures.

FakeSession stands in for a SQLAlchemy Session on the raw-SQL paths:
each execute() call is recorded and answered by the first registered
responder whose marker appears in the SQL text.
"""

from typing import Any, Dict, List, Optional, Tuple
import pytest
from fastapi.testclient import TestClient

from app.core.rate_limiting import limiter
from app.db.database import get_db
from app.main import app


class FakeResult:
    def __init__(self, rows: Optional[List[Dict[str, Any]]] = None, scalar: Any = None):
        self._rows = rows or []
        self._scalar = scalar

    def mappings(self):
        return self

    def all(self):
        return list(self._rows)

    def fetchall(self):
        return list(self._rows)

    def scalar(self):
        return self._scalar


class FakeSession:
    def __init__(self):
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self._responders: List[Tuple[str, Any]] = []
        self.committed = 0
        self.rolled_back = 0
        self.closed = False

    def on(self, marker: str, result: Any) -> "FakeSession":
        """Answer SQL containing marker with result (FakeResult or exception)."""
        self._responders.append((marker, result))
        return self

    def execute(self, statement, params=None):
        sql = str(statement)
        self.calls.append((sql, dict(params or {})))
        for marker, result in self._responders:
            if marker in sql:
                if isinstance(result, Exception):
                    raise result
                return result
        return FakeResult()

    def sql_containing(self, marker: str) -> List[Tuple[str, Dict[str, Any]]]:
        return [call for call in self.calls if marker in call[0]]

    def commit(self):
        self.committed += 1

    def rollback(self):
        self.rolled_back += 1

    def close(self):
        self.closed = True


@pytest.fixture
def fake_db():
    return FakeSession()


@pytest.fixture
def client(fake_db):
    """TestClient whose DB dependency yields the fake session."""
    def _override():
        yield fake_db

    app.dependency_overrides[get_db] = _override
    limiter.enabled = False
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        limiter.enabled = True


@pytest.fixture
def offline_client():
    """TestClient whose DB dependency reports the database as unavailable."""
    def _override():
        yield None

    app.dependency_overrides[get_db] = _override
    limiter.enabled = False
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        limiter.enabled = True
