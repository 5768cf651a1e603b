"""
Tour search orchestration.

    normalize -> validate -> build -> count -> page -> enrich

Validation problems surface as TourSearchValidationError before any SQL
runs. Anything that fails while querying is wrapped in TourSearchError;
partial results are never returned.
"""

from typing import Any, Dict, Mapping
from sqlalchemy import text
from sqlalchemy.orm import Session
import logging

from app.core.exceptions import TourSearchError
from app.core.monitoring import track_performance
from app.services.enricher import ResultEnricher
from app.services.query_builder import build_search_query
from app.services.search_params import prepare_search_params

logger = logging.getLogger(__name__)


class TourSearchService:
    """Runs filtered, paginated tour searches against one DB session."""

    def __init__(self, db: Session):
        if db is None:
            raise ValueError("Database session is required")
        self.db = db
        self.enricher = ResultEnricher(db)

    @track_performance("tour_search")
    def search(self, search_params: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Returns:
          {
            "tours": [...],      -- one enriched row per tour, this page only
            "total_items": int,  -- distinct matching tours, ignores pagination
          }
        """
        criteria = prepare_search_params(search_params)
        built = build_search_query(criteria)

        try:
            total_items = int(self.db.execute(text(built.count_query), built.params).scalar() or 0)
            if total_items == 0:
                return {"tours": [], "total_items": 0}

            rows = self.db.execute(
                text(built.query), {**built.params, **built.page_params}
            ).mappings().all()
            if not rows:
                return {"tours": [], "total_items": total_items}

            tours = self.enricher.enrich(rows)
        except Exception as e:
            logger.error(f"Error in tour search: {e}", exc_info=True)
            raise TourSearchError(f"Failed to search tours: {e}") from e

        logger.info(f"Tour search matched {total_items} tours, returning {len(tours)}")
        return {"tours": tours, "total_items": total_items}
