"""
Reservation Service — Retry with exponential backoff

Used at startup so a database that is still booting does not kill the
service on the first attempt. After the last attempt the error propagates.
"""
import asyncio
import random
import functools
import logging

from reservation_service.core.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)


def with_backoff_retry(*exceptions: type[BaseException], max_retries: int | None = None):
    """
    Decorator for async functions. Retries on the given exceptions with
    exponential backoff + jitter.

    Usage:
        @with_backoff_retry(OSError, SQLAlchemyError)
        async def init_db():
            ...
    """
    _max = max_retries or settings.DB_STARTUP_MAX_RETRIES
    _retry_on = exceptions or (Exception,)

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            for attempt in range(1, _max + 1):
                try:
                    return await func(*args, **kwargs)
                except _retry_on as exc:
                    if attempt == _max:
                        logger.error("%s failed after %d attempts: %s", func.__name__, _max, exc)
                        raise
                    base_delay = settings.DB_STARTUP_BASE_DELAY_MS / 1000.0
                    max_delay = settings.DB_STARTUP_MAX_DELAY_MS / 1000.0
                    jitter = random.uniform(0, settings.DB_STARTUP_JITTER_MS / 1000.0)
                    delay = min(base_delay * (2 ** (attempt - 1)), max_delay) + jitter
                    logger.warning(
                        "%s failed on attempt %d/%d (%s), retrying in %.3fs",
                        func.__name__, attempt, _max, exc, delay,
                    )
                    await asyncio.sleep(delay)
        return wrapper
    return decorator
