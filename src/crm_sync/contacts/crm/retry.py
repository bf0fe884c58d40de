"""Retry policy shared by the HTTP store adapters.

Network errors, 429 and 5xx responses are retried with tenacity
(3 attempts, exponential backoff 1-10s); every other error fails fast. The
final exception is re-raised unchanged so adapters can map it.
"""

from __future__ import annotations

import httpx
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential


def is_transient_http_error(exc: BaseException) -> bool:
    """Return True for failures a retry may fix."""
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status == 429 or status >= 500
    return isinstance(exc, (httpx.ConnectError, httpx.TimeoutException))


transient_http_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception(is_transient_http_error),
    reraise=True,
)
