"""Retry helpers for source adapters.

Vendors signal overload with 429 (rate limited) or 503 (temporarily unavailable); both
are retried, as are connect/read timeouts. Every other HTTP error is final.
"""

import httpx
from tenacity import retry_if_exception, wait_exponential

RETRYABLE_STATUS_CODES = frozenset({429, 503})


def should_retry_on_status(exception: BaseException) -> bool:
    """Check if exception is a retryable HTTP status (429 or 503).

    Args:
        exception: Exception to check

    Returns:
        True if this is a 429/503 that should be retried
    """
    if isinstance(exception, httpx.HTTPStatusError):
        return exception.response.status_code in RETRYABLE_STATUS_CODES
    return False


def should_retry_on_timeout(exception: BaseException) -> bool:
    """Check if exception is a timeout that should be retried.

    Args:
        exception: Exception to check

    Returns:
        True if this is a timeout exception
    """
    return isinstance(exception, (httpx.ConnectTimeout, httpx.ReadTimeout))


def should_retry_on_status_or_timeout(exception: BaseException) -> bool:
    """Combined retry condition for retryable statuses and timeouts."""
    return should_retry_on_status(exception) or should_retry_on_timeout(exception)


def wait_retry_after_with_backoff(retry_state) -> float:
    """Wait strategy that honours ``Retry-After`` and otherwise backs off exponentially.

    For 429/503 with a numeric ``Retry-After`` header the header wins, clamped to
    1..120 seconds. Everything else backs off 2s, 4s, 8s... capped at 30s.

    Args:
        retry_state: tenacity retry state

    Returns:
        Number of seconds to wait before retry
    """
    exception = retry_state.outcome.exception()

    if should_retry_on_status(exception):
        retry_after = exception.response.headers.get("Retry-After")
        if retry_after:
            try:
                return min(max(float(retry_after), 1.0), 120.0)
            except (ValueError, TypeError):
                pass

    return wait_exponential(multiplier=1, min=2, max=30)(retry_state)


retry_if_status_or_timeout = retry_if_exception(should_retry_on_status_or_timeout)
