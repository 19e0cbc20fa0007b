"""Failure types and the generic signals the classifier reads from them"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional


class OperationError(Exception):
    """Failure raised by (or on behalf of) a retried operation.

    Operations are free to raise any exception; this type exists for callers
    that want to hand the classifier explicit signals instead of relying on
    attribute sniffing.

    Attributes:
        message: Human readable failure description
        status: Optional numeric status code (HTTP-like)
        retry_after: Optional server hint, in seconds, before trying again
    """

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        retry_after: Optional[float] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        self.retry_after = retry_after


class TotalTimeoutError(OperationError):
    """The execution's wall-clock budget ran out before an attempt could start"""

    def __init__(self, total_timeout: float, elapsed: float):
        super().__init__(
            f"Operation timed out after {elapsed:.3f}s (total timeout {total_timeout}s)"
        )
        self.total_timeout = total_timeout
        self.elapsed = elapsed


class RetryExhaustedError(OperationError):
    """The attempt loop ended without reaching a terminal decision"""

    def __init__(self, attempts: int):
        super().__init__(f"Retry logic exhausted all {attempts} attempts")
        self.attempts = attempts


@dataclass(frozen=True)
class ErrorSignals:
    """Generic signals extracted from an arbitrary exception"""

    message: str
    status: Optional[int] = None
    retry_after: Optional[float] = None

    @classmethod
    def from_exception(cls, error: BaseException) -> "ErrorSignals":
        """Extract message, status and retry hint from any exception.

        Explicit OperationError fields win; otherwise the common spellings
        ``status``, ``status_code``, ``response.status_code`` and
        ``retry_after`` are probed. Never raises: a probe that fails counts
        as a missing signal, and an unprintable error is described by its
        type name.
        """
        message = _read(error, "message")
        if not isinstance(message, str):
            message = describe_error(error)

        status = _as_int(_read(error, "status"))
        if status is None:
            status = _as_int(_read(error, "status_code"))
        if status is None:
            status = _as_int(_read(_read(error, "response"), "status_code"))

        retry_after = _as_float(_read(error, "retry_after"))
        return cls(message=message, status=status, retry_after=retry_after)


def describe_error(error: BaseException) -> str:
    """``str(error)``, or the type name when the error cannot be printed"""
    try:
        return str(error)
    except Exception:
        return type(error).__name__


def _read(obj: object, name: str) -> object:
    try:
        return getattr(obj, name, None)
    except Exception:
        return None


def _as_int(value: object) -> Optional[int]:
    # bool is an int subclass but never a status code
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _as_float(value: object) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        result = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError, OverflowError):
        return None
    if math.isnan(result) or result < 0:
        return None
    return result
