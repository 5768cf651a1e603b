"""Pagination helpers shared by list endpoints."""

import math
from typing import Any, Dict, Optional

from app.core.config import settings

# Largest value PostgreSQL accepts for a bigint bind (LIMIT/OFFSET)
PG_BIGINT_MAX = 2 ** 63 - 1


def _positive_int(value: Any) -> Optional[int]:
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        return None
    return parsed if parsed > 0 else None


def get_pagination_params(page: Any = None, limit: Any = None) -> Dict[str, int]:
    """Resolve page/limit query values into page, limit and offset.

    Missing or malformed values fall back to page 1 and the default page
    size; limit is capped at max_page_size. Pages past the bigint offset
    range are clamped (they are empty anyway).
    """
    page_num = _positive_int(page) or 1
    page_size = _positive_int(limit) or settings.default_page_size
    page_size = min(page_size, settings.max_page_size)
    page_num = min(page_num, PG_BIGINT_MAX // page_size + 1)
    return {
        "page": page_num,
        "limit": page_size,
        "offset": (page_num - 1) * page_size,
    }


def create_pagination_metadata(page: int, limit: int, total_items: int) -> Dict[str, Any]:
    """Pagination envelope returned alongside list results."""
    total_pages = math.ceil(total_items / limit) if limit else 0
    return {
        "currentPage": page,
        "itemsPerPage": limit,
        "totalItems": total_items,
        "totalPages": total_pages,
        "hasNextPage": page < total_pages,
        "hasPrevPage": page > 1,
    }
