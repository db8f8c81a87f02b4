"""
Retry with configurable backoff for mailbox and AWS calls.
"""
import random
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Any, Optional

from .logger import get_logger
from .exceptions import RetryExhaustedError

logger = get_logger(__name__)


class BackoffStrategy(str, Enum):
    """Backoff strategies for retry attempts."""
    FIXED = "fixed"
    LINEAR = "linear"
    EXPONENTIAL = "exponential"
    EXPONENTIAL_JITTER = "exponential_jitter"


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_attempts: int = 3
    base_delay: float = 1.0  # seconds
    max_delay: float = 30.0  # seconds
    backoff_strategy: BackoffStrategy = BackoffStrategy.EXPONENTIAL_JITTER
    retryable_exceptions: tuple = (Exception,)
    non_retryable_exceptions: tuple = ()


class RetryHandler:
    """
    Runs a callable until it succeeds or the attempt budget is spent.
    """

    def __init__(self, config: RetryConfig, sleep: Optional[Callable[[float], None]] = None):
        self.config = config
        self._sleep = sleep or time.sleep

    def calculate_delay(self, attempt: int) -> float:
        """
        Delay before the attempt following `attempt` (1-based), capped at max_delay.
        """
        strategy = self.config.backoff_strategy
        base = self.config.base_delay

        if strategy == BackoffStrategy.LINEAR:
            delay = base * attempt
        elif strategy == BackoffStrategy.EXPONENTIAL:
            delay = base * (2 ** (attempt - 1))
        elif strategy == BackoffStrategy.EXPONENTIAL_JITTER:
            exponential = base * (2 ** (attempt - 1))
            delay = exponential + random.uniform(0.1, 0.5) * exponential
        else:
            delay = base

        return min(delay, self.config.max_delay)

    def should_retry(self, exception: Exception, attempt: int) -> bool:
        if attempt >= self.config.max_attempts:
            return False
        if isinstance(exception, self.config.non_retryable_exceptions):
            return False
        return isinstance(exception, self.config.retryable_exceptions)

    def execute_with_retry(self, func: Callable, *args, **kwargs) -> Any:
        """
        Execute a function with retry logic.

        Exceptions that are not retryable propagate unchanged on the first
        failure; a retryable one that survives every attempt is wrapped in
        RetryExhaustedError.

        Raises:
            RetryExhaustedError: If all retry attempts are exhausted
        """
        name = getattr(func, '__name__', repr(func))
        last_exception = None

        for attempt in range(1, self.config.max_attempts + 1):
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                last_exception = e

                if not isinstance(e, self.config.retryable_exceptions) or \
                        isinstance(e, self.config.non_retryable_exceptions):
                    raise

                logger.warning(
                    f"Call failed on attempt {attempt}",
                    function=name,
                    attempt=attempt,
                    max_attempts=self.config.max_attempts,
                    error=str(e),
                    error_type=type(e).__name__
                )

                if not self.should_retry(e, attempt):
                    break

                delay = self.calculate_delay(attempt)
                logger.info(
                    f"Retrying in {delay:.2f} seconds",
                    function=name,
                    attempt=attempt,
                    delay_seconds=delay
                )
                self._sleep(delay)
                continue

            if attempt > 1:
                logger.info(f"Call succeeded after {attempt} attempts", function=name, attempt=attempt)
            return result

        raise RetryExhaustedError(
            message=f"{name} failed after {self.config.max_attempts} attempts: {last_exception}",
            max_attempts=self.config.max_attempts,
            last_error=last_exception
        )

