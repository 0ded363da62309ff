"""
Retry utilities for robust upstream calls.

This module provides:
- A reusable retry policy (max attempts, base delay, backoff function)
- An async retry loop that raises ExhaustedRetries once attempts run out
- Injectable sleep so callers and tests control the clock
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Tuple, Type

from .config_manager import ConfigManager, get_config_manager
from .errors import ExhaustedRetries, TransportError

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[Any]]


def exponential_backoff(base_delay: float, factor: float = 2.0, max_delay: Optional[float] = None):
    """
    Build a backoff function for the delay before attempt ``k`` (k >= 2).

    The delay is ``base_delay * factor ** (k - 2)``, optionally capped at
    ``max_delay``.
    """
    def backoff(attempt: int) -> float:
        delay = base_delay * (factor ** (attempt - 2))
        if max_delay is not None:
            delay = min(delay, max_delay)
        return delay
    return backoff


@dataclass
class RetryPolicy:
    """
    Bounded retry policy.

    Attributes:
        max_attempts: Total attempts per logical request (first call included)
        base_delay: Delay before the second attempt, in seconds
        backoff_factor: Multiplier applied to each later delay
        max_delay: Upper bound for any single delay
        retry_on: Exception types that trigger another attempt
        backoff: Optional custom function mapping attempt number to delay
    """
    max_attempts: int = 3
    base_delay: float = 1.0
    backoff_factor: float = 2.0
    max_delay: float = 30.0
    retry_on: Tuple[Type[BaseException], ...] = (TransportError,)
    backoff: Optional[Callable[[int], float]] = field(default=None, repr=False)

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.backoff is None:
            self.backoff = exponential_backoff(self.base_delay, self.backoff_factor, self.max_delay)

    def delay_before(self, attempt: int) -> float:
        """Delay to wait before ``attempt`` (1-based); the first attempt never waits."""
        if attempt <= 1:
            return 0.0
        return self.backoff(attempt)

    def should_retry(self, exc: BaseException) -> bool:
        return isinstance(exc, self.retry_on)

    @classmethod
    def from_config(cls, config_manager: Optional[ConfigManager] = None) -> "RetryPolicy":
        """Build a policy from the retry section of the configuration."""
        retry = (config_manager or get_config_manager()).config.retry
        return cls(
            max_attempts=retry.max_attempts,
            base_delay=retry.base_delay,
            backoff_factor=retry.backoff_factor,
            max_delay=retry.max_delay,
        )


async def retry_with_backoff(
    func: Callable,
    *args,
    policy: Optional[RetryPolicy] = None,
    sleep: SleepFunc = asyncio.sleep,
    operation_name: str = "operation",
    **kwargs
) -> Any:
    """
    Execute an async function under a retry policy.

    Args:
        func: Async function to execute
        *args: Positional arguments for func
        policy: Retry policy (defaults to RetryPolicy())
        sleep: Awaitable sleep used between attempts
        operation_name: Name used in log messages and the final error
        **kwargs: Keyword arguments for func

    Returns:
        Function result

    Raises:
        ExhaustedRetries: If every attempt failed with a retryable error
        Exception: Any non-retryable error, unchanged
    """
    policy = policy or RetryPolicy()
    last_exception: Optional[BaseException] = None

    for attempt in range(1, policy.max_attempts + 1):
        if attempt > 1:
            delay = policy.delay_before(attempt)
            logger.warning(
                f"[Retry] {operation_name} attempt {attempt - 1}/{policy.max_attempts} failed: "
                f"{type(last_exception).__name__}: {last_exception}. Retrying in {delay:.2f}s..."
            )
            await sleep(delay)

        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            if not policy.should_retry(e):
                raise
            last_exception = e
            continue

        if attempt > 1:
            logger.info(f"[Retry] {operation_name} succeeded on attempt {attempt}/{policy.max_attempts}")
        return result

    logger.error(
        f"[Retry] {operation_name} failed after {policy.max_attempts} attempts: "
        f"{type(last_exception).__name__}: {last_exception}"
    )
    raise ExhaustedRetries(operation_name, policy.max_attempts, last_exception)
