"""Retry executor - runs an async operation with bounded, classified retries.

The executor keeps no per-execution state on ``self``: every ``execute`` call
builds its own attempt list, so one executor can serve concurrent executions
that share only the (immutable) RetryConfig.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from retryflow.domain.classifier import ErrorCategory, Verdict, classify
from retryflow.domain.config.retry import RetryConfig
from retryflow.domain.models.attempt import Attempt, AttemptOutcome
from retryflow.domain.models.failure import (
    RetryExhaustedError,
    TotalTimeoutError,
    describe_error,
)
from retryflow.domain.models.result import ExecutionResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

Operation = Callable[[], Awaitable[T]]
SleepFunc = Callable[[float], Awaitable[Any]]
AttemptCallback = Callable[[str, Attempt], None]

# Log level used when an attempt fails, per category.
FAILURE_LOG_LEVELS: Dict[ErrorCategory, int] = {
    ErrorCategory.NETWORK: logging.WARNING,
    ErrorCategory.SERVER: logging.WARNING,
    ErrorCategory.RATE_LIMIT: logging.WARNING,
    ErrorCategory.TIMEOUT: logging.WARNING,
    ErrorCategory.THROTTLE: logging.WARNING,
    ErrorCategory.UNKNOWN: logging.WARNING,
    ErrorCategory.AUTHENTICATION: logging.ERROR,
    ErrorCategory.AUTHORIZATION: logging.ERROR,
    ErrorCategory.VALIDATION: logging.ERROR,
    ErrorCategory.NOT_FOUND: logging.ERROR,
    ErrorCategory.BAD_REQUEST: logging.ERROR,
}


def backoff_delay(config: RetryConfig, attempt_number: int, verdict: Verdict, u: float) -> float:
    """Delay before the attempt following ``attempt_number``.

    delay = min(base_delay * backoff_multiplier^(n-1) * (1 + jitter_factor * u), max_delay)
    with u uniform in [0, 1). An explicit ``retry_after`` on the verdict
    replaces the backoff math but is still capped at ``max_delay``.
    """
    if verdict.retry_after is not None:
        return min(verdict.retry_after, config.max_delay)

    exponential = config.base_delay * config.backoff_multiplier ** (attempt_number - 1)
    return min(exponential * (1 + config.jitter_factor * u), config.max_delay)


class RetryExecutor:
    """Executes async operations with exponential backoff and jitter.

    Args:
        config: Retry configuration (defaults to RetryConfig())
        sleep: Awaitable sleep used between attempts
        clock: Monotonic clock in seconds, used for the total timeout
        rng: Source of uniform values in [0, 1) for jitter
        on_attempt: Optional callback invoked with (label, attempt) as soon
            as each attempt is recorded
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        *,
        sleep: SleepFunc = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        rng: Callable[[], float] = random.random,
        on_attempt: Optional[AttemptCallback] = None,
    ):
        self.config = config or RetryConfig()
        self._sleep = sleep
        self._clock = clock
        self._random = rng
        self._on_attempt = on_attempt

    def compute_delay(self, attempt_number: int, verdict: Verdict) -> float:
        """Delay before the attempt following ``attempt_number``.

        Each call draws a fresh jitter sample, so call it once per decision.
        """
        u = 0.0 if verdict.retry_after is not None else self._random()
        return backoff_delay(self.config, attempt_number, verdict, u)

    async def execute(self, operation: Operation, label: str = "operation") -> ExecutionResult:
        """Run ``operation`` until it succeeds or retrying stops.

        Never raises for a failed operation: inspect ``result.succeeded``.

        Args:
            operation: Zero-argument coroutine function
            label: Name used in log messages

        Returns:
            ExecutionResult with every recorded attempt
        """
        config = self.config
        start = self._clock()
        attempts: List[Attempt] = []

        logger.info(f"Starting {label} with max {config.max_attempts} attempts")

        for attempt_number in range(1, config.max_attempts + 1):
            started_at = self._clock()
            elapsed = started_at - start

            if elapsed > config.total_timeout:
                error = TotalTimeoutError(config.total_timeout, elapsed)
                self._record(
                    label,
                    attempts,
                    Attempt(
                        attempt_number=attempt_number,
                        started_at=started_at,
                        outcome=AttemptOutcome.FAILURE,
                        error=error,
                        verdict=classify(error),
                    ),
                )
                logger.error(f"{label} exceeded total timeout of {config.total_timeout}s")
                return self._failed(label, attempts, error, start, attempt_number)

            logger.debug(f"{label} - Attempt {attempt_number}/{config.max_attempts}")
            try:
                value = await operation()
            except Exception as exc:
                verdict = classify(exc)
                final = not verdict.is_retryable or attempt_number == config.max_attempts
                delay = None if final else self.compute_delay(attempt_number, verdict)

                logger.log(
                    FAILURE_LOG_LEVELS[verdict.category],
                    f"{label} failed on attempt {attempt_number} "
                    f"({verdict.category.value}): {describe_error(exc)}",
                )
                self._record(
                    label,
                    attempts,
                    Attempt(
                        attempt_number=attempt_number,
                        started_at=started_at,
                        outcome=AttemptOutcome.FAILURE,
                        duration=self._clock() - started_at,
                        error=exc,
                        verdict=verdict,
                        next_delay=delay,
                    ),
                )

                if delay is None:
                    reason = "not retryable" if not verdict.is_retryable else "attempts exhausted"
                    logger.error(f"{label} failed permanently ({reason}): {describe_error(exc)}")
                    return self._failed(label, attempts, exc, start, attempt_number)

                logger.info(
                    f"{label} - Waiting {delay:.3f}s before retry {attempt_number + 1}"
                )
                await self._sleep(delay)
                continue

            self._record(
                label,
                attempts,
                Attempt(
                    attempt_number=attempt_number,
                    started_at=started_at,
                    outcome=AttemptOutcome.SUCCESS,
                    duration=self._clock() - started_at,
                ),
            )
            logger.info(f"{label} succeeded on attempt {attempt_number}")
            return ExecutionResult(
                succeeded=True,
                value=value,
                attempts=tuple(attempts),
                total_duration=self._clock() - start,
                final_attempt_number=attempt_number,
                label=label,
            )

        # Every iteration above returns or continues to a bounded next one
        return self._failed(
            label, attempts, RetryExhaustedError(config.max_attempts), start, config.max_attempts
        )

    def _record(self, label: str, attempts: List[Attempt], attempt: Attempt) -> None:
        attempts.append(attempt)
        if self._on_attempt is not None:
            self._on_attempt(label, attempt)

    def _failed(
        self,
        label: str,
        attempts: List[Attempt],
        error: BaseException,
        start: float,
        final_attempt_number: int,
    ) -> ExecutionResult:
        return ExecutionResult(
            succeeded=False,
            error=error,
            attempts=tuple(attempts),
            total_duration=self._clock() - start,
            final_attempt_number=final_attempt_number,
            label=label,
        )
