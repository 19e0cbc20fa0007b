"""Retry decorators built on tenacity.

For call sites that want exceptions rather than an ExecutionResult: the
decorator retries the same failures the executor would (per the error
classifier) with the same backoff formula, then re-raises the last error.
"""

from __future__ import annotations

import logging
import random
from typing import Any, Callable, Optional

from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception,
    stop_after_attempt,
    stop_after_delay,
)
from tenacity.wait import wait_base

from retryflow.application.defaults import get_config
from retryflow.application.executor import backoff_delay
from retryflow.domain.classifier import ErrorCategory, Verdict, classify
from retryflow.domain.config.retry import RetryConfig

logger = logging.getLogger(__name__)

_UNCLASSIFIED = Verdict(ErrorCategory.UNKNOWN, True)


class wait_classified_backoff(wait_base):
    """Exponential backoff with jitter, honoring retry_after hints.

    Same delays as RetryExecutor (see ``backoff_delay``), where n is the
    attempt that just failed.
    """

    def __init__(self, config: RetryConfig, rng: Callable[[], float] = random.random):
        self.config = config
        self.rng = rng

    def __call__(self, retry_state: RetryCallState) -> float:
        verdict = _UNCLASSIFIED
        if retry_state.outcome is not None and retry_state.outcome.failed:
            verdict = classify(retry_state.outcome.exception())
        u = 0.0 if verdict.retry_after is not None else self.rng()
        return backoff_delay(self.config, retry_state.attempt_number, verdict, u)


def _should_retry(exception: BaseException) -> bool:
    """Retry only failures the classifier considers transient."""
    return classify(exception).is_retryable


def create_retry_decorator(
    config: RetryConfig,
    *,
    before_sleep: Optional[Callable[[RetryCallState], None]] = None,
    sleep: Optional[Callable[[float], Any]] = None,
    rng: Callable[[], float] = random.random,
) -> Callable[[Callable], Callable]:
    """Create a retry decorator with tenacity.

    Works for plain and async functions (tenacity picks the right runner).

    Args:
        config: Retry configuration
        before_sleep: Optional callback before sleep (defaults to logging)
        sleep: Optional sleep override; must be awaitable for async functions
        rng: Source of uniform values in [0, 1) for jitter

    Returns:
        Retry decorator
    """

    def _before_sleep_log(retry_state: RetryCallState) -> None:
        if retry_state.outcome is None:
            return
        exception = retry_state.outcome.exception()
        verdict = classify(exception)
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            f"Attempt {retry_state.attempt_number}/{config.max_attempts} failed "
            f"({verdict.category.value}): {exception}. Retrying in {delay:.3f}s..."
        )

    retry_kwargs: dict = {
        "stop": stop_after_attempt(config.max_attempts) | stop_after_delay(config.total_timeout),
        "wait": wait_classified_backoff(config, rng),
        "retry": retry_if_exception(_should_retry),
        "reraise": True,
        "before_sleep": before_sleep or _before_sleep_log,
    }
    if sleep is not None:
        retry_kwargs["sleep"] = sleep

    def decorator(func: Callable) -> Callable:
        return retry(**retry_kwargs)(func)

    return decorator


def retry_transient(config: Optional[RetryConfig] = None) -> Callable[[Callable], Callable]:
    """Decorator retrying transient failures with ``config`` (or the process default)."""
    if config is None:
        config = get_config()
    return create_retry_decorator(config)
