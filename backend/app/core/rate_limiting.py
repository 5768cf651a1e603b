"""
Per-client request throttling (slowapi).
Limit strings come from settings so deployments can tune them in .env.
"""

from datetime import datetime, timezone
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request
from fastapi.responses import JSONResponse
import logging

from app.core.config import settings

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)

SEARCH_LIMIT = settings.rate_limit_search
DETAIL_LIMIT = settings.rate_limit_detail
ADMIN_LIMIT = settings.rate_limit_admin
HEALTH_LIMIT = settings.rate_limit_health

RETRY_AFTER_SECONDS = 60


async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """429 in the same {error, detail, timestamp} shape as the other API errors."""
    client_host = request.client.host if request.client else "unknown"
    limit = getattr(exc, "detail", None) or "rate limit"
    logger.warning(
        f"Rate limit exceeded for {client_host} on {request.url.path} ({limit})",
        extra={"path": request.url.path, "status_code": 429},
    )

    return JSONResponse(
        status_code=429,
        content={
            "error": "Too Many Requests",
            "detail": f"Rate limit exceeded: {limit}",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
        headers={"Retry-After": str(RETRY_AFTER_SECONDS)},
    )
