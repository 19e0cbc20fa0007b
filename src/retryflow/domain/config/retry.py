"""Retry configuration model."""

from pydantic import BaseModel, ConfigDict, Field, model_validator


class RetryConfig(BaseModel):
    """Configuration for retry logic.

    Instances are immutable: build a new one (``model_copy`` is not validated,
    so prefer ``RetryConfig(**{**old.model_dump(), **changes})``) to change a
    value.

    Attributes:
        max_attempts: Maximum number of attempts, including the first one
        base_delay: Delay before the first retry, in seconds
        max_delay: Upper bound for any single delay, in seconds
        backoff_multiplier: Exponential backoff multiplier
        jitter_factor: Random jitter factor (0.0-1.0), added on top of the backoff
        total_timeout: Wall-clock budget for a whole execution, in seconds
    """

    max_attempts: int = Field(3, ge=1)
    base_delay: float = Field(1.0, ge=0.0)  # Allow 0 for tests
    max_delay: float = Field(30.0, ge=0.0)
    backoff_multiplier: float = Field(2.0, gt=1.0)
    jitter_factor: float = Field(0.1, ge=0.0, le=1.0)
    total_timeout: float = Field(60.0, gt=0.0)

    model_config = ConfigDict(frozen=True, extra="forbid")

    @model_validator(mode="after")
    def _check_delay_bounds(self) -> "RetryConfig":
        if self.base_delay > self.max_delay:
            raise ValueError(
                f"base_delay ({self.base_delay}) must not exceed max_delay ({self.max_delay})"
            )
        return self
