"""
Domain exceptions raised by services and repositories.
Routers translate them into HTTP status codes.
"""


class TourSearchValidationError(ValueError):
    """Search input rejected before any query runs (HTTP 400)."""


class TourSearchError(RuntimeError):
    """Search query execution failed (HTTP 500)."""


class NotFoundError(LookupError):
    """Requested tour, departure or booking does not exist or is hidden (HTTP 404)."""


class BookingError(ValueError):
    """Booking request cannot be honoured (HTTP 400)."""


class ConflictError(RuntimeError):
    """Write would break a data invariant (HTTP 409)."""
