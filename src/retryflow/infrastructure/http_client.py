"""Shared HTTP client utilities (requests + RetryExecutor).

requests is blocking, so each attempt runs in a worker thread while the
executor's waits stay on the event loop. Failures are converted into
OperationError so the classifier sees a status code and Retry-After hint.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Optional

import requests

from retryflow.application.defaults import default_executor
from retryflow.application.executor import RetryExecutor
from retryflow.domain.config.http import HttpConfig
from retryflow.domain.models.failure import OperationError
from retryflow.domain.models.result import ExecutionResult

logger = logging.getLogger(__name__)


def parse_retry_after(value: Optional[str], now: Optional[datetime] = None) -> Optional[float]:
    """Parse a Retry-After header value into seconds.

    Accepts delta-seconds ("120") or an HTTP-date. Dates in the past give 0.
    Returns None for missing or unparseable values.
    """
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        pass
    else:
        return seconds if seconds >= 0 else None

    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return max(0.0, (when - now).total_seconds())


def raise_for_status(response: requests.Response) -> requests.Response:
    """Raise OperationError for non-2xx responses, return the response otherwise"""
    status = response.status_code
    if 200 <= status < 300:
        return response
    # URL stays out of the message so path words cannot sway classification
    logger.debug(f"HTTP {status} from {response.url}")
    raise OperationError(
        f"HTTP {status} {response.reason or ''}".strip(),
        status=status,
        retry_after=parse_retry_after(response.headers.get("Retry-After")),
    )


def _send(method: str, url: str, http: HttpConfig, kwargs: dict) -> requests.Response:
    headers = {"User-Agent": http.user_agent}
    headers.update(kwargs.pop("headers", None) or {})
    logger.debug(f"HTTP {method} {url}")
    try:
        response = requests.request(method, url, headers=headers, timeout=http.timeout, **kwargs)
    except requests.exceptions.Timeout as e:
        raise OperationError(f"Request timed out after {http.timeout}s") from e
    except requests.exceptions.ConnectionError as e:
        raise OperationError(f"Network connection error: {e}") from e
    return raise_for_status(response)


async def request_with_retries(
    method: str,
    url: str,
    *,
    executor: Optional[RetryExecutor] = None,
    http: Optional[HttpConfig] = None,
    **kwargs: Any,
) -> ExecutionResult:
    """Perform an HTTP request with classified retries.

    Args:
        method: HTTP method
        url: Target URL
        executor: Executor to use (defaults to the shared default executor)
        http: HTTP settings (timeout, user agent)
        **kwargs: Passed through to ``requests.request`` (json, params, headers...)

    Returns:
        ExecutionResult whose value is the requests.Response on success
    """
    executor = executor or default_executor()
    http = http or HttpConfig()
    method = method.upper()

    async def _operation() -> requests.Response:
        return await asyncio.to_thread(_send, method, url, http, dict(kwargs))

    return await executor.execute(_operation, label=f"HTTP {method} {url}")
