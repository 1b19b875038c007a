"""
Retry policy for external API calls using tenacity library.

Used for every HTTP call to Google's token endpoint and the Firestore REST API.

- Exponential backoff between attempts
- Transient errors (network, 408, 429, 5xx) are retried, permanent 4xx fail fast
- Each retry is logged with the service name, so retries are never silent
- Configuration driven by settings (EXTERNAL_API_RETRY_*)
"""

import logging

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ..core.config import settings

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {408, 429}


def is_retryable_http_error(exception: BaseException) -> bool:
    """
    Determine if an HTTP error should be retried.

    Retryable: network level errors (timeouts, connection errors), 5xx,
    429 Too Many Requests and 408 Request Timeout.

    Everything else (400, 401, 403, 404, 409, 412, non-HTTP exceptions)
    fails immediately.
    """
    if isinstance(exception, (httpx.TimeoutException, httpx.NetworkError)):
        return True

    if isinstance(exception, httpx.HTTPStatusError):
        status_code = exception.response.status_code
        if 500 <= status_code < 600:
            return True
        return status_code in RETRYABLE_STATUS_CODES

    return False


def retry_external_api(service_name: str = "external_api") -> AsyncRetrying:
    """
    Create a tenacity AsyncRetrying instance for external API calls.

    Usage:
        async for attempt in retry_external_api("Firestore"):
            with attempt:
                response = await client.post(url, json=body)
                response.raise_for_status()

    Args:
        service_name: Name of the external service (for logging)
    """
    service_logger = logging.getLogger(f"{__name__}.{service_name}")

    return AsyncRetrying(
        stop=stop_after_attempt(settings.EXTERNAL_API_RETRY_ATTEMPTS),
        # With multiplier=1.0, min=0.5s, max=2.0s: 0.5s → 1.0s → 2.0s
        wait=wait_exponential(
            multiplier=settings.EXTERNAL_API_RETRY_MULTIPLIER,
            min=settings.EXTERNAL_API_RETRY_MIN_WAIT,
            max=settings.EXTERNAL_API_RETRY_MAX_WAIT,
        ),
        retry=retry_if_exception(is_retryable_http_error),
        before_sleep=before_sleep_log(service_logger, logging.WARNING),
        # Final failure re-raises the original exception
        reraise=True,
    )
