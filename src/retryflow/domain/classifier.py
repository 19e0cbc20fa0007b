"""Error classifier - maps failures to retry verdicts.

Classification only looks at generic signals (lower-cased message text and an
optional status code), so it works for any operation without knowing what the
operation does. Rules are evaluated in a fixed priority order and the first
match wins; some text patterns overlap (e.g. "rate limit" is listed under both
``rate_limit`` and ``throttle``), which makes the order part of the contract.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Tuple

from retryflow.domain.models.failure import ErrorSignals

DEFAULT_RATE_LIMIT_DELAY = 60.0  # seconds


class ErrorCategory(str, Enum):
    """Closed set of failure categories"""

    NETWORK = "network"
    SERVER = "server"
    RATE_LIMIT = "rate_limit"
    TIMEOUT = "timeout"
    THROTTLE = "throttle"
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    BAD_REQUEST = "bad_request"
    UNKNOWN = "unknown"

    @property
    def is_retryable(self) -> bool:
        return self not in NON_RETRYABLE_CATEGORIES


NON_RETRYABLE_CATEGORIES = frozenset(
    {
        ErrorCategory.AUTHENTICATION,
        ErrorCategory.AUTHORIZATION,
        ErrorCategory.VALIDATION,
        ErrorCategory.NOT_FOUND,
        ErrorCategory.BAD_REQUEST,
    }
)


@dataclass(frozen=True)
class Verdict:
    """Retry decision for a single failure"""

    category: ErrorCategory
    is_retryable: bool
    retry_after: Optional[float] = None  # explicit delay override, seconds


NETWORK_PATTERNS = (
    "econnreset",
    "enotfound",
    "econnrefused",
    "etimedout",
    "network",
    "connection",
    "name or service not known",
    "temporary failure in name resolution",
)
RATE_LIMIT_PATTERNS = ("rate limit", "too many requests", "quota exceeded", "throttle")
TIMEOUT_PATTERNS = ("timeout", "timed out", "etimedout")
THROTTLE_PATTERNS = ("throttle", "throttled", "rate limit")
AUTHENTICATION_PATTERNS = ("unauthorized", "authentication", "invalid credentials", "api key")
AUTHORIZATION_PATTERNS = ("forbidden", "access denied", "insufficient permissions")
VALIDATION_PATTERNS = ("validation", "invalid", "malformed", "bad request")
NOT_FOUND_PATTERNS = ("not found", "404", "does not exist")


def _contains_any(text: str, patterns: Tuple[str, ...]) -> bool:
    return any(pattern in text for pattern in patterns)


def _is_network(text: str, status: Optional[int]) -> bool:
    return _contains_any(text, NETWORK_PATTERNS) or status == 0


def _is_server(text: str, status: Optional[int]) -> bool:
    return status is not None and 500 <= status < 600


def _is_rate_limit(text: str, status: Optional[int]) -> bool:
    return status == 429 or _contains_any(text, RATE_LIMIT_PATTERNS)


def _is_timeout(text: str, status: Optional[int]) -> bool:
    return _contains_any(text, TIMEOUT_PATTERNS) or status == 408


def _is_throttle(text: str, status: Optional[int]) -> bool:
    return _contains_any(text, THROTTLE_PATTERNS)


def _is_authentication(text: str, status: Optional[int]) -> bool:
    return status == 401 or _contains_any(text, AUTHENTICATION_PATTERNS)


def _is_authorization(text: str, status: Optional[int]) -> bool:
    return status == 403 or _contains_any(text, AUTHORIZATION_PATTERNS)


def _is_validation(text: str, status: Optional[int]) -> bool:
    return status == 400 or _contains_any(text, VALIDATION_PATTERNS)


def _is_not_found(text: str, status: Optional[int]) -> bool:
    return status == 404 or _contains_any(text, NOT_FOUND_PATTERNS)


def _is_bad_request(text: str, status: Optional[int]) -> bool:
    # Unreachable for status 400 since validation is checked first
    return status == 400


# Priority order matters: first match wins.
CLASSIFICATION_RULES: Tuple[Tuple[ErrorCategory, Callable[[str, Optional[int]], bool]], ...] = (
    (ErrorCategory.NETWORK, _is_network),
    (ErrorCategory.SERVER, _is_server),
    (ErrorCategory.RATE_LIMIT, _is_rate_limit),
    (ErrorCategory.TIMEOUT, _is_timeout),
    (ErrorCategory.THROTTLE, _is_throttle),
    (ErrorCategory.AUTHENTICATION, _is_authentication),
    (ErrorCategory.AUTHORIZATION, _is_authorization),
    (ErrorCategory.VALIDATION, _is_validation),
    (ErrorCategory.NOT_FOUND, _is_not_found),
    (ErrorCategory.BAD_REQUEST, _is_bad_request),
)


def classify_signals(signals: ErrorSignals) -> Verdict:
    """Classify already-extracted error signals"""
    text = signals.message.lower()
    for category, matches in CLASSIFICATION_RULES:
        if matches(text, signals.status):
            retry_after = None
            if category is ErrorCategory.RATE_LIMIT:
                retry_after = (
                    signals.retry_after
                    if signals.retry_after is not None
                    else DEFAULT_RATE_LIMIT_DELAY
                )
            return Verdict(category, category.is_retryable, retry_after)
    # Unknown failures are assumed transient
    return Verdict(ErrorCategory.UNKNOWN, True)


def classify(error: BaseException) -> Verdict:
    """Classify an arbitrary failure.

    Args:
        error: Exception raised by the retried operation

    Returns:
        Verdict with category, retryability and optional retry_after override
    """
    return classify_signals(ErrorSignals.from_exception(error))
