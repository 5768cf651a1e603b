"""
Range label mapping for tour search.
Clients filter with bucketed Vietnamese labels; the query builder needs
numeric bounds. A max of None means the bucket is open-ended.
"""

from typing import Dict, List, Optional

from app.core.exceptions import TourSearchValidationError

DURATION_RANGES: Dict[str, Dict[str, Optional[int]]] = {
    "1-3 ngày": {"min_duration": 1, "max_duration": 3},
    "3-5 ngày": {"min_duration": 3, "max_duration": 5},
    "5-7 ngày": {"min_duration": 5, "max_duration": 7},
    "7+ ngày": {"min_duration": 7, "max_duration": None},
}

PEOPLE_RANGES: Dict[str, Dict[str, Optional[int]]] = {
    "1 người": {"min_people": 1, "max_people": 1},
    "2 người": {"min_people": 2, "max_people": 2},
    "3-5 người": {"min_people": 3, "max_people": 5},
    "5+ người": {"min_people": 5, "max_people": None},
}


def get_duration_ranges() -> List[str]:
    return list(DURATION_RANGES)


def get_people_ranges() -> List[str]:
    return list(PEOPLE_RANGES)


def map_duration_range(label: str) -> Dict[str, Optional[int]]:
    """Translate a duration label into {min_duration, max_duration}."""
    bounds = DURATION_RANGES.get(label)
    if bounds is None:
        raise TourSearchValidationError(
            f"Invalid duration range. Valid options are: {', '.join(DURATION_RANGES)}"
        )
    return dict(bounds)


def map_people_range(label: str) -> Dict[str, Optional[int]]:
    """Translate a group-size label into {min_people, max_people}."""
    bounds = PEOPLE_RANGES.get(label)
    if bounds is None:
        raise TourSearchValidationError(
            f"Invalid people range. Valid options are: {', '.join(PEOPLE_RANGES)}"
        )
    return dict(bounds)


def duration_label_for_days(days: int) -> Optional[str]:
    """Bucket a day count into the duration label that covers it."""
    if 1 <= days <= 3:
        return "1-3 ngày"
    if 3 < days <= 5:
        return "3-5 ngày"
    if 5 < days <= 7:
        return "5-7 ngày"
    if days > 7:
        return "7+ ngày"
    return None
