"""retryflow - bounded, classified retries for async operations"""

from retryflow.application.defaults import (
    create_executor,
    default_executor,
    execute_with_retry,
    get_config,
    get_retry_delay,
    is_retryable_error,
    reset_config,
    update_config,
)
from retryflow.application.executor import RetryExecutor
from retryflow.domain.classifier import ErrorCategory, Verdict, classify
from retryflow.domain.config import RetryConfig
from retryflow.domain.models.attempt import Attempt, AttemptOutcome
from retryflow.domain.models.failure import (
    OperationError,
    RetryExhaustedError,
    TotalTimeoutError,
)
from retryflow.domain.models.result import (
    ExecutionResult,
    RetryStats,
    format_retry_result,
)

__version__ = "0.1.0"

__all__ = [
    "Attempt",
    "AttemptOutcome",
    "ErrorCategory",
    "ExecutionResult",
    "OperationError",
    "RetryConfig",
    "RetryExecutor",
    "RetryExhaustedError",
    "RetryStats",
    "TotalTimeoutError",
    "Verdict",
    "classify",
    "create_executor",
    "default_executor",
    "execute_with_retry",
    "format_retry_result",
    "get_config",
    "get_retry_delay",
    "is_retryable_error",
    "reset_config",
    "update_config",
]
