"""ExecutionResult model - the outcome of one retried execution"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Generic, Optional, Tuple, TypeVar

from retryflow.domain.classifier import Verdict
from retryflow.domain.models.attempt import Attempt
from retryflow.domain.models.failure import describe_error

T = TypeVar("T")


@dataclass(frozen=True)
class RetryStats:
    """Aggregated counts and rates over one execution's attempts"""

    total_attempts: int
    successful_attempts: int
    failed_attempts: int
    total_duration: float
    average_attempt_duration: float
    success_rate: float  # percent, two decimals

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_attempts": self.total_attempts,
            "successful_attempts": self.successful_attempts,
            "failed_attempts": self.failed_attempts,
            "total_duration": self.total_duration,
            "average_attempt_duration": self.average_attempt_duration,
            "success_rate": self.success_rate,
        }


def summarize_attempts(attempts: Tuple[Attempt, ...], total_duration: float) -> RetryStats:
    """Aggregate attempts into RetryStats"""
    total = len(attempts)
    successful = sum(1 for a in attempts if a.succeeded)
    average = total_duration / total if total else 0.0
    rate = successful / total * 100 if total else 0.0
    return RetryStats(
        total_attempts=total,
        successful_attempts=successful,
        failed_attempts=total - successful,
        total_duration=total_duration,
        average_attempt_duration=round(average, 6),
        success_rate=round(rate, 2),
    )


@dataclass(frozen=True)
class ExecutionResult(Generic[T]):
    """Result of RetryExecutor.execute

    ``value`` is only meaningful when ``succeeded`` is True and ``error`` only
    when it is False. ``attempts`` is in chronological order.
    """

    succeeded: bool
    attempts: Tuple[Attempt, ...]
    total_duration: float
    final_attempt_number: int
    value: Optional[T] = None
    error: Optional[BaseException] = None
    label: str = "operation"

    def __post_init__(self):
        """Validate result data"""
        if self.succeeded and self.error is not None:
            raise ValueError("Successful result cannot carry an error")
        if not self.succeeded and self.error is None:
            raise ValueError("Failed result must carry an error")

    @property
    def verdict(self) -> Optional[Verdict]:
        """Classification of the final failure, if any"""
        if self.succeeded or not self.attempts:
            return None
        return self.attempts[-1].verdict

    @property
    def delays(self) -> Tuple[float, ...]:
        """Delays waited between attempts, in order"""
        return tuple(a.next_delay for a in self.attempts if a.next_delay is not None)

    def stats(self) -> RetryStats:
        """Counts and rates over this execution's attempts"""
        return summarize_attempts(self.attempts, self.total_duration)


def format_retry_result(result: ExecutionResult) -> str:
    """Format a result as a single stable log line"""
    summary = {
        "success": result.succeeded,
        "attempts": result.final_attempt_number,
        "duration": round(result.total_duration, 3),
        "error": (describe_error(result.error) if result.error is not None else "") or "None",
    }
    return f"Retry Result: {json.dumps(summary)}"
