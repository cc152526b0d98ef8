"""Process environment settings.

Values are read when ``get_environment()`` is called, so tests and
long-running processes can change them without rebuilding clients.

Environment Variables:
    LOG_LEVEL: Level of the stderr log sink
    BATCH_TIMEOUT: Firehose request timeout in milliseconds
    BATCH_RETRY: Delay between firehose retries in milliseconds
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EnvironmentVariables(BaseSettings):
    """Primitive values loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_ignore_empty=True,
        extra="ignore",
    )

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    batch_timeout_ms: float = Field(default=10000, gt=0, validation_alias="BATCH_TIMEOUT")
    batch_retry_ms: float = Field(default=5000, ge=0, validation_alias="BATCH_RETRY")

    @property
    def batch_timeout(self) -> float:
        """Firehose request timeout in seconds."""
        return self.batch_timeout_ms / 1000

    @property
    def batch_retry(self) -> float:
        """Delay between firehose retries in seconds."""
        return self.batch_retry_ms / 1000


def get_environment() -> EnvironmentVariables:
    return EnvironmentVariables()
