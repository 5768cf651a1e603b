"""
Search parameter normalization.
Turns raw query-string values (all text) into a typed SearchCriteria.
Pure transformation: no database access, no side effects.

Each numeric field declares what happens to malformed input:
  ignore  -- the filter is dropped (logged), the search still runs
  reject  -- TourSearchValidationError
  default -- the configured default is used
"""

from datetime import date
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple
from urllib.parse import unquote, unquote_plus
from pydantic import BaseModel, Field
import logging
import math
import re
import unicodedata

from app.core.config import settings
from app.core.exceptions import TourSearchValidationError
from app.core.pagination import PG_BIGINT_MAX
from app.services.range_mappers import (
    DURATION_RANGES,
    PEOPLE_RANGES,
    duration_label_for_days,
    map_duration_range,
    map_people_range,
)

logger = logging.getLogger(__name__)

IGNORE = "ignore"
REJECT = "reject"
DEFAULT = "default"

_LEADING_INT = re.compile(r"(\d+)")


class SearchCriteria(BaseModel):
    """Normalized, typed filter set driving the search query."""
    region: Optional[int] = None
    destination: List[str] = Field(default_factory=list)
    departure_location: Optional[str] = None
    seller_id: Optional[int] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    min_duration: Optional[int] = None
    max_duration: Optional[int] = None
    min_people: Optional[int] = None
    max_people: Optional[int] = None
    departure_date: Optional[date] = None
    nearby_days: Optional[int] = None
    limit: Optional[int] = None
    offset: Optional[int] = None


def _to_int(value: str) -> int:
    return int(value)


def _to_float(value: str) -> float:
    parsed = float(value)
    if not math.isfinite(parsed):
        raise ValueError(f"not a finite number: {value}")
    return parsed


def _to_non_negative_int(value: str) -> int:
    parsed = int(value)
    if parsed < 0:
        raise ValueError(f"negative value: {value}")
    return min(parsed, PG_BIGINT_MAX)


# field -> (parser, failure mode)
NUMERIC_FIELDS: Dict[str, Tuple[Callable[[str], Any], str]] = {
    "region": (_to_int, REJECT),
    "seller_id": (_to_int, REJECT),
    "min_price": (_to_float, IGNORE),
    "max_price": (_to_float, IGNORE),
    "min_duration": (_to_int, IGNORE),
    "max_duration": (_to_int, IGNORE),
    "min_people": (_to_int, IGNORE),
    "max_people": (_to_int, IGNORE),
    "nearby_days": (_to_non_negative_int, DEFAULT),
    "limit": (_to_non_negative_int, DEFAULT),
    "offset": (_to_non_negative_int, DEFAULT),
}


def _field_default(name: str) -> Optional[int]:
    if name == "limit":
        return settings.default_page_size
    if name == "offset":
        return 0
    if name == "nearby_days":
        return settings.default_nearby_days
    return None


def _scalar(value: Any) -> Any:
    """Repeated query keys arrive as lists; scalar fields keep the first value."""
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value


def _present(value: Any) -> bool:
    return value is not None and not (isinstance(value, str) and value.strip() == "")


def _match_label(raw: str, valid: Mapping[str, Any]) -> Optional[str]:
    """Find raw among the valid labels, trying its URL-decoded forms too."""
    candidates = [raw, unquote(raw), unquote_plus(raw)]
    for candidate in candidates:
        for form in (candidate, candidate.strip(), unicodedata.normalize("NFC", candidate.strip())):
            if form in valid:
                return form
    return None


def validate_predefined_ranges(params: Dict[str, Any]) -> None:
    """Reject unknown duration/people range labels; canonicalize known ones in place."""
    checks = (
        ("duration_range", DURATION_RANGES, "duration"),
        ("people_range", PEOPLE_RANGES, "people"),
    )
    for key, valid, label in checks:
        raw = _scalar(params.get(key))
        if not _present(raw):
            params.pop(key, None)
            continue
        matched = _match_label(str(raw), valid)
        if matched is None:
            raise TourSearchValidationError(
                f"Invalid {label} range. Valid options are: {', '.join(valid)}"
            )
        params[key] = matched


def _parse_numeric(name: str, raw: Any) -> Optional[Any]:
    parser, mode = NUMERIC_FIELDS[name]
    if not _present(raw):
        return _field_default(name) if mode == DEFAULT else None
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        raw = str(raw)
    try:
        return parser(str(raw).strip())
    except (TypeError, ValueError):
        if mode == REJECT:
            raise TourSearchValidationError(f"Invalid value for {name}: {raw!r} is not a number")
        if mode == DEFAULT:
            logger.debug(f"Malformed {name}={raw!r}, using default")
            return _field_default(name)
        logger.info(f"Ignoring malformed search filter {name}={raw!r}")
        return None


def _parse_departure_date(raw: Any) -> Optional[date]:
    if not _present(raw):
        return None
    if isinstance(raw, date):
        return raw
    try:
        return date.fromisoformat(str(raw).strip())
    except ValueError:
        raise TourSearchValidationError(
            f"Invalid departure_date: {raw!r}. Expected format YYYY-MM-DD"
        )


def _normalize_destination(raw: Any) -> List[str]:
    if raw is None:
        return []
    values = raw if isinstance(raw, (list, tuple)) else [raw]
    return [str(v).strip() for v in values if _present(v)]


def prepare_search_params(search_params: Mapping[str, Any]) -> SearchCriteria:
    """
    Normalize raw search input into SearchCriteria.

    Order matters: labels are validated first, legacy aliases are folded
    into range labels, labels are expanded into numeric bounds (overriding
    explicit bounds), then every numeric field is parsed.
    """
    params: Dict[str, Any] = {
        k: v for k, v in dict(search_params).items()
        if k == "destination" or _present(_scalar(v))
    }
    for key in list(params):
        if key != "destination":
            params[key] = _scalar(params[key])

    validate_predefined_ranges(params)

    # Legacy aliases
    if "num_people" in params and "min_people" not in params:
        params["min_people"] = params["num_people"]

    if "duration" in params and "duration_range" not in params:
        match = _LEADING_INT.search(str(params["duration"]))
        if match:
            label = duration_label_for_days(int(match.group(1)))
            if label:
                params["duration_range"] = label

    if "duration_range" in params:
        params.update(map_duration_range(params.pop("duration_range")))
    if "people_range" in params:
        params.update(map_people_range(params.pop("people_range")))

    criteria: Dict[str, Any] = {}
    for name in NUMERIC_FIELDS:
        if name == "nearby_days":
            continue
        criteria[name] = _parse_numeric(name, params.get(name))

    criteria["destination"] = _normalize_destination(params.get("destination"))

    location = params.get("departure_location")
    criteria["departure_location"] = str(location).strip() if _present(location) else None

    departure_date = _parse_departure_date(params.get("departure_date"))
    criteria["departure_date"] = departure_date
    if departure_date is not None:
        criteria["nearby_days"] = _parse_numeric("nearby_days", params.get("nearby_days"))

    return SearchCriteria(**criteria)
