"""Configuration models with Pydantic validation."""

from retryflow.domain.config.app import AppConfig
from retryflow.domain.config.http import HttpConfig
from retryflow.domain.config.retry import RetryConfig

__all__ = [
    "AppConfig",
    "HttpConfig",
    "RetryConfig",
]
