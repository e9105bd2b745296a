"""
Order Service — Startup retry decorator (exponential backoff + jitter)
"""
import asyncio
import random
import functools
import logging

from order_service.core.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)


def with_backoff_retry(*exceptions: type[BaseException], max_retries: int | None = None):
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
                    delay = min(
                        settings.DB_STARTUP_BASE_DELAY_MS / 1000.0 * (2 ** (attempt - 1)),
                        settings.DB_STARTUP_MAX_DELAY_MS / 1000.0,
                    ) + random.uniform(0, settings.DB_STARTUP_JITTER_MS / 1000.0)
                    logger.warning(
                        "%s failed on attempt %d/%d (%s), retrying in %.3fs",
                        func.__name__, attempt, _max, exc, delay,
                    )
                    await asyncio.sleep(delay)
        return wrapper
    return decorator
