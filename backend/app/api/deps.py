"""Shared router dependencies."""

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.database import get_db


def require_db(db: Session = Depends(get_db)) -> Session:
    """Resolve a DB session or answer 503 when the database is unreachable."""
    if db is None:
        raise HTTPException(status_code=503, detail="Service unavailable: database not connected")
    return db


def require_admin_key(request: Request) -> None:
    api_key = request.headers.get("X-API-Key", "")
    if not api_key or api_key != settings.admin_api_key:
        raise HTTPException(status_code=403, detail="Invalid or missing API key")
