"""HTTP client configuration model."""

from pydantic import BaseModel, Field


class HttpConfig(BaseModel):
    """Configuration for the HTTP adapter.

    Attributes:
        timeout: Per-request timeout in seconds (connect + read)
        user_agent: User-Agent header sent with every request
    """

    timeout: float = Field(10.0, gt=0.0)
    user_agent: str = "retryflow/0.1"
