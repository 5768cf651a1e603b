"""
Monitoring & Observability
Structured log output and operation timing.
"""

import time
from typing import Callable, Any
from functools import wraps
import logging
import json
from datetime import datetime, timezone
import inspect

logger = logging.getLogger(__name__)

# Extra record attributes copied into JSON output when present
_EXTRA_FIELDS = ("duration_ms", "operation", "request_id", "path", "status_code")


# ============================================================================
# STRUCTURED LOGGING
# ============================================================================

class JSONFormatter(logging.Formatter):
    """JSON formatter for structured log output (LOG_FORMAT=json)."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
        }
        for field in _EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_data[field] = value
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data, ensure_ascii=False, default=str)


# ============================================================================
# PERFORMANCE TRACKING
# ============================================================================

def _log_timing(operation_name: str, start: float, error: Exception = None) -> None:
    elapsed = round((time.perf_counter() - start) * 1000, 1)
    extra = {"operation": operation_name, "duration_ms": elapsed}
    if error is None:
        logger.info(f"{operation_name} completed in {elapsed:.0f}ms", extra=extra)
    else:
        logger.error(f"{operation_name} failed after {elapsed:.0f}ms: {error}", extra=extra)


def track_performance(operation_name: str):
    """Decorator to log operation timings for sync and async callables."""
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            start = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                _log_timing(operation_name, start, e)
                raise
            _log_timing(operation_name, start)
            return result

        @wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _log_timing(operation_name, start, e)
                raise
            _log_timing(operation_name, start)
            return result

        if inspect.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator
