"""Retry logic with exponential backoff for Confluence API rate limits.

Only 429 responses are retried: up to 3 times, waiting 1s, 2s and 4s plus a
small random jitter. Every other error fails fast so the caller sees it
unchanged.
"""

import logging
import random
import time
from typing import Callable, TypeVar

from .errors import APIAccessError

logger = logging.getLogger(__name__)

T = TypeVar('T')

MAX_RETRIES = 3
MAX_JITTER_SECONDS = 0.5


def retry_on_rate_limit(func: Callable[..., T], *args, **kwargs) -> T:
    """Retry function on 429 rate limit with exponential backoff.

    Args:
        func: The function to execute with retry logic
        *args: Positional arguments to pass to the function
        **kwargs: Keyword arguments to pass to the function

    Returns:
        The return value of the function

    Raises:
        APIAccessError: If rate limit persists after 3 retries
        Other exceptions: Passed through immediately without retry

    Example:
        >>> result = retry_on_rate_limit(api.get_page_by_id, page_id="123")
    """
    for retry_num in range(MAX_RETRIES + 1):
        try:
            return func(*args, **kwargs)
        except Exception as e:
            if not _is_rate_limit_error(e):
                raise

            if retry_num >= MAX_RETRIES:
                logger.error(
                    f"Rate limit persisted after {MAX_RETRIES} retries, giving up"
                )
                raise APIAccessError(
                    f"Confluence API failure (after {MAX_RETRIES} retries)"
                ) from e

            wait_time = 2 ** retry_num + random.uniform(0, MAX_JITTER_SECONDS)
            logger.info(
                f"Rate limit hit, retrying in {wait_time:.1f}s "
                f"(retry {retry_num + 1}/{MAX_RETRIES})"
            )
            time.sleep(wait_time)

    raise APIAccessError(f"Confluence API failure (after {MAX_RETRIES} retries)")


def _is_rate_limit_error(exception: Exception) -> bool:
    """Check if an exception represents a rate limit (429) error.

    Args:
        exception: The exception to check

    Returns:
        True if this appears to be a rate limit error, False otherwise
    """
    error_msg = str(exception).lower()
    rate_limit_patterns = [
        '429',
        'too many requests',
        'rate limit exceeded',
        'rate limited',
    ]
    if any(pattern in error_msg for pattern in rate_limit_patterns):
        return True

    if getattr(exception, 'status_code', None) == 429:
        return True

    response = getattr(exception, 'response', None)
    if response is not None and getattr(response, 'status_code', None) == 429:
        return True

    return False
