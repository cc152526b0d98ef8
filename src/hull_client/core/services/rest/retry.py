"""Retry policy for REST and firehose calls."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

from loguru import logger

from hull_client.core.errors import TransportError

T = TypeVar("T")


def is_transient(error: Exception) -> bool:
    """Timeouts and 5xx responses are worth retrying."""
    return isinstance(error, TransportError) and error.is_retryable


@dataclass
class RetryPolicy:
    """Bounded retry with exponential backoff.

    Attributes:
        max_attempts: Total attempts, including the first one
        backoff: Delay in seconds before the first retry
        exponential_base: Multiplier applied to the delay after each retry
        max_backoff: Upper bound for a single delay
        is_retryable: Predicate deciding whether an error is retried
    """

    max_attempts: int = 3
    backoff: float = 0.1
    exponential_base: float = 2.0
    max_backoff: float = 30.0
    is_retryable: Callable[[Exception], bool] = field(default=is_transient)

    def __post_init__(self):
        self.max_attempts = max(1, int(self.max_attempts))
        self.backoff = max(0.0, float(self.backoff))

    def get_delay(self, attempt: int) -> float:
        """Delay before retrying after the 0-indexed ``attempt`` failed."""
        return min(self.backoff * (self.exponential_base**attempt), self.max_backoff)

    def should_retry(self, error: Exception, attempt: int) -> bool:
        if attempt >= self.max_attempts - 1:
            return False
        return self.is_retryable(error)

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        on_retry: Callable[[Exception, int, float], None] | None = None,
    ) -> T:
        """Await ``operation`` until it succeeds or the policy gives up.

        The last error is re-raised when attempts are exhausted or the
        error is not retryable.
        """
        attempt = 0
        while True:
            try:
                return await operation()
            except Exception as e:
                if not self.should_retry(e, attempt):
                    raise
                delay = self.get_delay(attempt)
                if on_retry is not None:
                    on_retry(e, attempt + 1, delay)
                else:
                    logger.debug(
                        f"Retrying after {type(e).__name__} (attempt {attempt + 1}/{self.max_attempts}, delay {delay:.2f}s)"
                    )
                await asyncio.sleep(delay)
                attempt += 1


DEFAULT_RETRY = RetryPolicy(max_attempts=3, backoff=0.1)
