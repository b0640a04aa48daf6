# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/nextup/core/retry.py

"""
Retry with exponential backoff for downloads.

Transient failures (connection resets, timeouts, 429/5xx answers) are retried
here so that the apply engine only ever sees final outcomes.
"""

import random
import time
from typing import Any, Callable, Tuple, Type

import loguru

from nextup.system.exceptions import NetworkError, TransferError

logger = loguru.logger


class RetryConfig:
    """Configuration for retry behavior"""

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        exponential_base: float = 2.0,
        jitter: bool = True,
    ):
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.jitter = jitter


# Small API calls: fail fast
API_RETRY_CONFIG = RetryConfig(
    max_attempts=3,
    base_delay=1.0,
    max_delay=10.0,
)

# File and archive downloads
TRANSFER_RETRY_CONFIG = RetryConfig(
    max_attempts=4,
    base_delay=2.0,
    max_delay=60.0,
)

# Used by tests and by callers that handle failures themselves
NO_RETRY_CONFIG = RetryConfig(max_attempts=1, base_delay=0.0, jitter=False)

RETRYABLE: Tuple[Type[Exception], ...] = (NetworkError, TransferError)


def calculate_delay(attempt: int, config: RetryConfig) -> float:
    """Calculate delay for exponential backoff with optional jitter"""
    if attempt <= 0:
        return 0.0

    delay = config.base_delay * (config.exponential_base ** (attempt - 1))
    delay = min(delay, config.max_delay)

    if config.jitter:
        jitter_range = delay * 0.1
        delay += random.uniform(-jitter_range, jitter_range)

    return max(0.0, delay)


def is_retryable_error(exception: Exception, retryable_exceptions: Tuple[Type[Exception], ...]) -> bool:
    """Determine if an exception should trigger a retry"""
    if isinstance(exception, retryable_exceptions):
        return getattr(exception, "retry_possible", True)
    return False


class RetryableOperation:
    """Runs a callable until it succeeds, fails permanently, or runs out of attempts."""

    def __init__(
        self,
        operation_name: str,
        config: RetryConfig = None,
        retryable_exceptions: Tuple[Type[Exception], ...] = RETRYABLE,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.operation_name = operation_name
        self.config = config or TRANSFER_RETRY_CONFIG
        self.retryable_exceptions = retryable_exceptions
        self.sleep = sleep
        self.attempt = 0

    def execute(self, func: Callable, *args, **kwargs) -> Any:
        last_exception = None

        for attempt in range(1, self.config.max_attempts + 1):
            self.attempt = attempt
            try:
                result = func(*args, **kwargs)
                if attempt > 1:
                    logger.info(f"{self.operation_name} succeeded on attempt {attempt}")
                return result

            except Exception as e:
                last_exception = e

                if not is_retryable_error(e, self.retryable_exceptions):
                    logger.debug(f"{self.operation_name} failed with non-retryable error: {e}")
                    raise

                if attempt >= self.config.max_attempts:
                    break

                delay = calculate_delay(attempt, self.config)
                logger.warning(
                    f"{self.operation_name} failed on attempt {attempt}/{self.config.max_attempts}: {e}. "
                    f"Retrying in {delay:.2f} seconds..."
                )
                if delay > 0:
                    self.sleep(delay)

        logger.error(f"{self.operation_name} failed after {self.config.max_attempts} attempts")
        raise last_exception
