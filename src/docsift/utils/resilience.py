"""Resilience utilities for handling transient failures."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Literal, TypeVar

import structlog

log = structlog.get_logger()

T = TypeVar("T")


class RetryConfig:
    """Configuration for retry behavior."""

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        backoff: Literal["linear", "exponential"] = "linear",
        exponential_base: float = 2.0,
        retryable_exceptions: tuple[type[BaseException], ...] = (Exception,),
    ) -> None:
        """Initialize retry configuration.

        Args:
            max_attempts: Maximum number of attempts (including first try)
            base_delay: Delay unit in seconds
            backoff: "linear" waits base_delay * attempt_number,
                "exponential" waits base_delay * exponential_base ** attempt_index
            exponential_base: Base for exponential backoff
            retryable_exceptions: Tuple of exception types to retry on
        """
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.backoff = backoff
        self.exponential_base = exponential_base
        self.retryable_exceptions = retryable_exceptions


# Connecting to the shared rendering backend: 3 tries, 2s, 4s between them
BROWSER_CONNECT_RETRY = RetryConfig(max_attempts=3, base_delay=2.0, backoff="linear")

# One page through fetch/extract/chunk/embed/store: 3 tries, 1s, 2s between them
PAGE_RETRY = RetryConfig(max_attempts=3, base_delay=1.0, backoff="linear")


def calculate_delay(attempt: int, config: RetryConfig) -> float:
    """Calculate the delay after a failed attempt.

    Args:
        attempt: Failed attempt number (0-indexed)
        config: Retry configuration

    Returns:
        Delay in seconds
    """
    if config.backoff == "linear":
        return config.base_delay * (attempt + 1)
    return config.base_delay * (config.exponential_base**attempt)


async def retry_call(
    func: Callable[[], Awaitable[T]],
    config: RetryConfig,
    *,
    operation: str,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    **context: object,
) -> T:
    """Call an async function, retrying transient failures.

    The last exception is re-raised once attempts are exhausted. Non-retryable
    exceptions propagate immediately.

    Args:
        func: Zero-argument coroutine factory
        config: Retry configuration
        operation: Operation name for log events
        sleep: Sleep function (injectable for tests)
        **context: Extra identifiers bound to log events (url, job_id, ...)

    Returns:
        Result of the first successful call
    """
    for attempt in range(config.max_attempts):
        try:
            return await func()
        except config.retryable_exceptions as e:
            if attempt >= config.max_attempts - 1:
                # Use log.error (not exception) to avoid traceback spam
                log.error(  # noqa: TRY400
                    "All retry attempts exhausted",
                    operation=operation,
                    attempts=config.max_attempts,
                    error=str(e),
                    **context,
                )
                raise

            delay = calculate_delay(attempt, config)
            log.warning(
                "Retrying after transient failure",
                operation=operation,
                attempt=attempt + 1,
                max_attempts=config.max_attempts,
                delay=f"{delay:.2f}s",
                error=str(e),
                **context,
            )
            await sleep(delay)

    raise RuntimeError("Retry logic error")  # pragma: no cover
