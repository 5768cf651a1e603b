"""
Tour search SQL builder.

Every filter is recorded once as a (predicate, bound values) pair on an
ordered list; the paginated row query and the count query are both
rendered from that list, so they always filter identically.

Row query shape:
  WITH tour_search AS (tour JOIN departure WHERE <predicates>)
  SELECT DISTINCT ON (tour_id) ... ORDER BY tour_id, <departure preference>

Bind names (:p1, :p2, ...) come from a counter local to one builder, so
concurrent requests never share state.
"""

from typing import Any, Dict, List, NamedTuple, Optional

from app.core.dates import today_local
from app.services.search_params import SearchCriteria

# Leading integer of the free-text duration ("4 ngày 3 đêm" -> 4)
DURATION_DAYS_SQL = "CAST(substring(t.duration from '([0-9]+)') AS INTEGER)"

_SELECT_COLUMNS = f"""
          t.tour_id,
          t.seller_id,
          t.title,
          t.duration,
          t.departure_location,
          t.description,
          t.destination,
          t.region,
          t.itinerary,
          t.max_participants,
          t.availability AS tour_availability,
          d.departure_id,
          d.start_date,
          d.price_adult,
          d.price_child_120_140,
          d.price_child_100_120,
          d.availability AS departure_availability,
          {DURATION_DAYS_SQL} AS duration_days"""

_FROM = """
        FROM tour t
        JOIN departure d ON t.tour_id = d.tour_id"""


class SearchQuery(NamedTuple):
    query: str
    count_query: str
    params: Dict[str, Any]        # filter binds, shared by both queries
    page_params: Dict[str, Any]   # LIMIT/OFFSET binds, row query only


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so user text matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SearchQueryBuilder:
    """Accumulates predicates and binds for one search."""

    def __init__(self):
        self._conditions: List[str] = [
            "t.availability = true",
            "d.availability = true",
            "t.is_deleted = false",
        ]
        self._params: Dict[str, Any] = {}
        self._index = 0
        self._extra_columns: List[str] = []
        self._order_by: List[str] = ["ts.tour_id"]

    def bind(self, value: Any) -> str:
        """Register a bound value and return its placeholder."""
        self._index += 1
        key = f"p{self._index}"
        self._params[key] = value
        return f":{key}"

    def where(self, template: str, *values: Any) -> "SearchQueryBuilder":
        """Append a predicate; each {} in template receives a fresh bind."""
        placeholders = [self.bind(v) for v in values]
        self._conditions.append(template.format(*placeholders))
        return self

    def where_raw(self, condition: str) -> "SearchQueryBuilder":
        self._conditions.append(condition)
        return self

    @property
    def params(self) -> Dict[str, Any]:
        return dict(self._params)

    # ==================================================================
    # FILTERS (fixed precedence)
    # ==================================================================

    def apply_filters(self, criteria: SearchCriteria) -> "SearchQueryBuilder":
        if criteria.region is not None:
            self.where("t.region = {}", criteria.region)

        if criteria.destination:
            self.where("t.destination && CAST({} AS TEXT[])", list(criteria.destination))

        if criteria.departure_location:
            self.where("t.departure_location ILIKE {}", f"%{escape_like(criteria.departure_location)}%")

        if criteria.seller_id is not None:
            self.where("t.seller_id = {}", criteria.seller_id)

        if criteria.min_price is not None:
            self.where("d.price_adult >= {}", criteria.min_price)
        if criteria.max_price is not None:
            self.where("d.price_adult <= {}", criteria.max_price)

        if criteria.min_duration is not None:
            self.where(f"{DURATION_DAYS_SQL} >= {{}}", criteria.min_duration)
        if criteria.max_duration is not None:
            self.where(f"{DURATION_DAYS_SQL} <= {{}}", criteria.max_duration)

        if criteria.min_people is not None:
            self.where("t.max_participants >= {}", criteria.min_people)
        if criteria.max_people is not None:
            self.where("t.max_participants <= {}", criteria.max_people)

        self._apply_date_window(criteria)
        return self

    def _apply_date_window(self, criteria: SearchCriteria) -> None:
        if criteria.departure_date is None:
            self.where("d.start_date >= CAST({} AS DATE)", today_local())
            # Earliest upcoming departure per tour; departure_id settles same-day ties
            self._order_by += ["ts.start_date", "ts.departure_id"]
            return

        target = f"CAST({self.bind(criteria.departure_date)} AS DATE)"
        self._extra_columns.append(f"ABS(d.start_date - {target}) AS days_from_target")

        if criteria.nearby_days is not None:
            window = self.bind(criteria.nearby_days)
            self.where_raw(
                f"(d.start_date = {target} OR ABS(d.start_date - {target}) <= {window})"
            )
        else:
            self.where_raw(f"d.start_date = {target}")

        self._order_by += [
            f"CASE WHEN ts.start_date = {target} THEN 0 ELSE 1 END",
            "ts.days_from_target",
            "ts.start_date",
            "ts.departure_id",
        ]

    # ==================================================================
    # RENDERING
    # ==================================================================

    def _where_sql(self) -> str:
        return "\n          AND ".join(self._conditions)

    def render_query(self, paginate: bool = False) -> str:
        columns = _SELECT_COLUMNS
        for column in self._extra_columns:
            columns += f",\n          {column}"
        sql = (
            "WITH tour_search AS (\n"
            f"        SELECT{columns}"
            f"{_FROM}\n"
            f"        WHERE {self._where_sql()}\n"
            ")\n"
            "SELECT DISTINCT ON (ts.tour_id) ts.*\n"
            "FROM tour_search ts\n"
            f"ORDER BY {', '.join(self._order_by)}"
        )
        if paginate:
            sql += "\nLIMIT :limit OFFSET :offset"
        return sql

    def render_count_query(self) -> str:
        return (
            "SELECT COUNT(DISTINCT t.tour_id) AS count"
            f"{_FROM}\n"
            f"        WHERE {self._where_sql()}"
        )


def build_search_query(criteria: SearchCriteria) -> SearchQuery:
    """Build the deduplicated row query and the matching count query."""
    builder = SearchQueryBuilder().apply_filters(criteria)

    page_params: Dict[str, Any] = {}
    paginate = criteria.limit is not None
    if paginate:
        page_params = {"limit": criteria.limit, "offset": criteria.offset or 0}

    return SearchQuery(
        query=builder.render_query(paginate=paginate),
        count_query=builder.render_count_query(),
        params=builder.params,
        page_params=page_params,
    )
