import random
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TypeVar

from bulk_editor.logging.logger import Log
from bulk_editor.processor.exceptions import CommunicationError, RetryExhaustedError

T = TypeVar("T")


class BackoffType(str, Enum):
    FIXED = "fixed"
    LINEAR = "linear"
    EXPONENTIAL = "exponential"
    EXPONENTIAL_WITH_JITTER = "exponential_with_jitter"


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff settings for retrying communication errors."""

    max_retries: int = 3
    base_delay: float = 0.5
    max_delay: float = 30.0
    backoff: BackoffType = BackoffType.EXPONENTIAL_WITH_JITTER
    multiplier: float = 2.0
    jitter: float = 0.2
    name: str = "http"

    def delay_for(self, attempt: int, rng: Callable[[], float] = random.random) -> float:
        """Delay in seconds before retry number ``attempt`` (0-based)."""
        if self.backoff is BackoffType.FIXED:
            delay = self.base_delay
        elif self.backoff is BackoffType.LINEAR:
            delay = self.base_delay * (attempt + 1)
        else:
            delay = self.base_delay * self.multiplier**attempt
            if self.backoff is BackoffType.EXPONENTIAL_WITH_JITTER and self.jitter > 0:
                spread = rng() * self.jitter * 2 - self.jitter
                delay = max(0.0, delay * (1 + spread))
        return min(delay, self.max_delay)


class RetryExecutor:
    """Runs a callable, retrying CommunicationError with backoff.

    Any other exception propagates on the first occurrence.
    """

    def __init__(
        self,
        policy: RetryPolicy,
        log: Log,
        sleep: Callable[[float], None] = time.sleep,
        rng: Callable[[], float] = random.random,
    ) -> None:
        self._policy = policy
        self._log = log
        self._sleep = sleep
        self._rng = rng

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    def execute(self, operation: Callable[[], T], operation_name: str = "operation") -> T:
        attempts = self._policy.max_retries + 1
        last_error: CommunicationError | None = None
        for attempt in range(attempts):
            try:
                return operation()
            except CommunicationError as exc:
                last_error = exc
                if attempt + 1 >= attempts:
                    break
                delay = self._policy.delay_for(attempt, self._rng)
                self._log.warning(
                    f"{operation_name} failed (attempt {attempt + 1}/{attempts}): {exc}; "
                    f"retrying in {delay:.2f}s"
                )
                self._sleep(delay)

        if last_error is None:
            raise ValueError("max_retries must not be negative")
        self._log.error(f"{operation_name} failed after {attempts} attempts: {last_error}")
        raise RetryExhaustedError(
            f"{operation_name} failed after {attempts} attempts: {last_error}",
            last_error,
        ) from last_error
