"""Attempt model - one invocation of a retried operation and its outcome"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from retryflow.domain.classifier import Verdict
from retryflow.domain.models.failure import describe_error


class AttemptOutcome(str, Enum):
    """Outcome of a single attempt"""

    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class Attempt:
    """Immutable record of one attempt.

    ``next_delay`` is the delay chosen before the following attempt; it is
    only set on failed attempts that are followed by another attempt.
    """

    attempt_number: int  # 1-indexed
    started_at: float  # clock reading, seconds
    outcome: AttemptOutcome
    duration: float = 0.0
    error: Optional[BaseException] = None
    verdict: Optional[Verdict] = None
    next_delay: Optional[float] = None

    def __post_init__(self):
        """Validate attempt data"""
        if self.attempt_number < 1:
            raise ValueError("attempt_number must be >= 1")
        if self.outcome is AttemptOutcome.SUCCESS and (
            self.error is not None or self.next_delay is not None
        ):
            raise ValueError("Successful attempt cannot carry an error or a next delay")
        if self.outcome is AttemptOutcome.FAILURE and self.error is None:
            raise ValueError("Failed attempt must carry an error")

    @property
    def succeeded(self) -> bool:
        return self.outcome is AttemptOutcome.SUCCESS

    def to_dict(self) -> dict:
        """Plain-data view for logging and CLI output"""
        return {
            "attempt_number": self.attempt_number,
            "started_at": self.started_at,
            "outcome": self.outcome.value,
            "duration": round(self.duration, 6),
            "error": describe_error(self.error) if self.error is not None else None,
            "category": self.verdict.category.value if self.verdict else None,
            "next_delay": self.next_delay,
        }
