"""Process-wide default configuration and convenience entry points.

The default RetryConfig is immutable; ``update_config`` swaps in a new,
validated instance (and a new default executor) under a lock. Executors
created before an update keep the configuration they were built with.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional

from retryflow.application.executor import Operation, RetryExecutor
from retryflow.domain.classifier import classify
from retryflow.domain.config.retry import RetryConfig
from retryflow.domain.models.result import ExecutionResult

logger = logging.getLogger(__name__)

_lock = threading.Lock()
_default_config = RetryConfig()
_default_executor: Optional[RetryExecutor] = None


def get_config() -> RetryConfig:
    """Return the current process-wide default configuration"""
    with _lock:
        return _default_config


def update_config(**changes: Any) -> RetryConfig:
    """Replace the default configuration with an updated copy.

    Args:
        **changes: RetryConfig fields to change

    Returns:
        The new default configuration

    Raises:
        pydantic.ValidationError: If the resulting configuration is invalid
    """
    global _default_config, _default_executor
    with _lock:
        updated = RetryConfig(**{**_default_config.model_dump(), **changes})
        _default_config = updated
        _default_executor = None
    logger.info(f"Default retry configuration updated: {changes}")
    return updated


def reset_config() -> RetryConfig:
    """Restore the built-in default configuration"""
    global _default_config, _default_executor
    with _lock:
        _default_config = RetryConfig()
        _default_executor = None
        return _default_config


def default_executor() -> RetryExecutor:
    """Shared executor built on the current default configuration"""
    global _default_executor
    with _lock:
        if _default_executor is None:
            _default_executor = RetryExecutor(_default_config)
        return _default_executor


def create_executor(config: Optional[RetryConfig] = None, **overrides: Any) -> RetryExecutor:
    """Create an executor with its own configuration.

    Args:
        config: Base configuration (defaults to the process-wide one)
        **overrides: RetryConfig fields to override on top of ``config``

    Returns:
        New RetryExecutor
    """
    base = config or get_config()
    if overrides:
        base = RetryConfig(**{**base.model_dump(), **overrides})
    return RetryExecutor(base)


async def execute_with_retry(
    operation: Operation,
    label: str = "operation",
    config: Optional[RetryConfig] = None,
) -> ExecutionResult:
    """Run ``operation`` with retries, using ``config`` or the shared default"""
    executor = RetryExecutor(config) if config is not None else default_executor()
    return await executor.execute(operation, label)


def is_retryable_error(error: BaseException) -> bool:
    """Check whether an error would be retried"""
    return classify(error).is_retryable


def get_retry_delay(
    error: BaseException,
    attempt: int = 1,
    config: Optional[RetryConfig] = None,
) -> float:
    """Delay that would follow a failed ``attempt`` with ``error``"""
    executor = RetryExecutor(config) if config is not None else default_executor()
    return executor.compute_delay(attempt, classify(error))
