"""Main application configuration model."""

from pydantic import BaseModel, ConfigDict, Field

from retryflow.domain.config.http import HttpConfig
from retryflow.domain.config.retry import RetryConfig


class AppConfig(BaseModel):
    """Main application configuration.

    Root model aggregating all configuration sections. Validation is performed
    at load time to fail fast on configuration errors.

    Attributes:
        retry: Retry logic configuration
        http: HTTP adapter configuration
    """

    retry: RetryConfig = Field(default_factory=RetryConfig)
    http: HttpConfig = Field(default_factory=HttpConfig)

    model_config = ConfigDict(
        validate_assignment=True,  # Validate on attribute assignment
        extra="forbid",  # Reject unknown fields
        json_schema_extra={
            "example": {
                "retry": {
                    "max_attempts": 3,
                    "base_delay": 1.0,
                    "max_delay": 30.0,
                    "backoff_multiplier": 2.0,
                    "jitter_factor": 0.1,
                    "total_timeout": 60.0,
                },
                "http": {
                    "timeout": 10.0,
                    "user_agent": "retryflow/0.1",
                },
            }
        },
    )
