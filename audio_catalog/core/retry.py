"""
Retry policy for audio-catalog.

Every retried call in the pipeline goes through RetryPolicy, which decides
by error kind:

    ValidationError, NotFoundError,     -> never retried
    ConsistencyError, permanent storage/
    database errors
    TransientIOError                    -> `attempts` tries, exponential backoff + jitter
    ExternalProcessError                -> `process_attempts` tries, fixed delay
    linking writes (link=True)          -> `link_attempts` tries, exponential backoff

Usage:
    policy = RetryPolicy.from_config(config.retry)
    url = await policy.run(lambda: gateway.put_file(path, key, ctype), label=key)
"""

import asyncio
import random
from dataclasses import dataclass
from enum import Enum, auto
from typing import Awaitable, Callable, TypeVar

from audio_catalog.core.config import RetryConfig
from audio_catalog.core.exceptions import (
    CatalogError,
    ExternalProcessError,
    TransientIOError,
)
from audio_catalog.core.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

JITTER_FACTOR = 0.3  # randomness factor for backoff


class ErrorClass(Enum):
    """Classification of errors for retry strategy."""
    PERMANENT = auto()   # Validation, not found, consistency - no retry
    TRANSIENT = auto()   # Network/timeout - retry with backoff
    PROCESS = auto()     # Encoder failure - small fixed number of retries


def classify_error(error: BaseException) -> ErrorClass:
    """
    Classify an exception to determine retry strategy.

    Unknown exceptions (not CatalogError) are permanent: they are bugs or
    unexpected states that repeating will not fix.
    """
    if isinstance(error, TransientIOError):
        return ErrorClass.TRANSIENT
    if isinstance(error, ExternalProcessError):
        return ErrorClass.PROCESS
    if isinstance(error, CatalogError) and error.retryable:
        return ErrorClass.TRANSIENT
    return ErrorClass.PERMANENT


def calculate_backoff(attempt: int, base_delay: float, max_delay: float) -> float:
    """
    Calculate exponential backoff delay with jitter.

    Args:
        attempt: Current attempt number (0-indexed).
        base_delay: Base delay in seconds.
        max_delay: Cap for the un-jittered delay.

    Returns:
        Delay in seconds with jitter applied (never negative).
    """
    delay = min(base_delay * (2 ** attempt), max_delay)
    jitter = delay * JITTER_FACTOR * (2 * random.random() - 1)
    return max(0.0, delay + jitter)


@dataclass
class RetryPolicy:
    """
    Central retry decisions parameterized by error kind.

    Attributes:
        attempts: Total tries for transient errors.
        base_delay: Backoff base in seconds.
        max_delay: Backoff cap in seconds.
        process_attempts: Total tries for encoder failures.
        process_delay: Fixed delay between encoder tries.
        link_attempts: Total tries for album linking writes.
        sleep: Awaitable sleep function (replaceable in tests).
    """

    attempts: int = 3
    base_delay: float = 1.5
    max_delay: float = 15.0
    process_attempts: int = 2
    process_delay: float = 1.0
    link_attempts: int = 8
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    @classmethod
    def from_config(cls, config: RetryConfig) -> "RetryPolicy":
        return cls(
            attempts=config.attempts,
            base_delay=config.base_delay,
            max_delay=config.max_delay,
            process_attempts=config.process_attempts,
            process_delay=config.process_delay,
            link_attempts=config.link_attempts,
        )

    def max_attempts(self, error: BaseException, link: bool = False) -> int:
        error_class = classify_error(error)
        if error_class is ErrorClass.PERMANENT:
            return 1
        if link:
            return self.link_attempts
        if error_class is ErrorClass.PROCESS:
            return self.process_attempts
        return self.attempts

    def get_retry_strategy(
        self,
        error: BaseException,
        attempt: int,
        link: bool = False
    ) -> tuple[bool, float]:
        """
        Decide whether to retry after a failed attempt.

        Args:
            error: The exception raised by the attempt.
            attempt: Attempt number that just failed (0-indexed).
            link: True for the album linking write.

        Returns:
            (should_retry, delay_seconds)
        """
        if attempt + 1 >= self.max_attempts(error, link):
            return False, 0.0

        if classify_error(error) is ErrorClass.PROCESS and not link:
            return True, self.process_delay

        return True, calculate_backoff(attempt, self.base_delay, self.max_delay)

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        label: str = "operation",
        link: bool = False
    ) -> T:
        """
        Await `operation()` applying the policy until success or give-up.

        The last exception is re-raised unchanged once no retry remains.
        Cancellation is never retried.
        """
        attempt = 0
        while True:
            try:
                return await operation()
            except CatalogError as e:
                should_retry, delay = self.get_retry_strategy(e, attempt, link=link)
                if not should_retry:
                    raise
                logger.warning(
                    f"{label}: {e.message} "
                    f"(attempt {attempt + 1}/{self.max_attempts(e, link)}, retrying in {delay:.1f}s)"
                )
                await self.sleep(delay)
                attempt += 1
