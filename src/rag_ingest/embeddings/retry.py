"""Rate-limit backoff for embedding requests.

Only rate-limit failures are retried; every other error propagates on the
first attempt.  Delays double per attempt starting at ``base_delay``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, TypeVar

import openai
from tenacity import AsyncRetrying, RetryCallState, RetryError, retry_if_exception, stop_after_attempt, wait_exponential

from rag_ingest.embeddings.errors import EmbeddingRetriesExhaustedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_RATE_LIMIT_MARKERS = ("rate limit", "rate_limit", "too many requests", "429")


def is_rate_limit_error(error: BaseException) -> bool:
    """Return ``True`` for HTTP 429 responses and rate-limit error payloads."""
    if isinstance(error, openai.RateLimitError):
        return True
    if getattr(error, "status_code", None) == 429:
        return True
    message = str(error).lower()
    return any(marker in message for marker in _RATE_LIMIT_MARKERS)


class RateLimitRetry:
    """Retry an async call while it keeps failing with rate-limit errors.

    Parameters
    ----------
    max_attempts:
        Total attempts, including the first one.
    base_delay:
        Seconds to wait before the first retry; doubled for each later one.
    sleep:
        Awaitable sleep function, injectable for tests.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._sleep = sleep

    async def call(
        self,
        func: Callable[..., Awaitable[T]],
        *args: Any,
        operation_name: str = "embedding",
        **kwargs: Any,
    ) -> T:
        """Await ``func(*args, **kwargs)`` under the backoff policy.

        Raises
        ------
        EmbeddingRetriesExhaustedError
            When every attempt was rate limited.
        """
        retrying = AsyncRetrying(
            retry=retry_if_exception(is_rate_limit_error),
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.base_delay, exp_base=2),
            sleep=self._sleep,
            before_sleep=lambda state: _log_backoff(operation_name, state),
        )
        try:
            return await retrying(func, *args, **kwargs)
        except RetryError as exc:
            last_error = exc.last_attempt.exception()
            logger.error(
                "%s failed after %d rate-limited attempts: %s",
                operation_name,
                self.max_attempts,
                last_error,
            )
            raise EmbeddingRetriesExhaustedError(self.max_attempts, last_error) from last_error


def _log_backoff(operation_name: str, state: RetryCallState) -> None:
    wait = state.next_action.sleep if state.next_action else 0.0
    logger.warning(
        "%s rate limited, waiting %.2fs before retry (attempt %d)",
        operation_name,
        wait,
        state.attempt_number,
    )
