"""
Recovery policies for the session manager.

Two policies coexist:

- ImmediateRetry: a failed login or server-info request is retried right
  away, forever, and is not counted.
- BoundedBackoffRetry: a failed poll or an asynchronous client error is
  counted; reconnects wait a flat delay and stop after max_failures.
"""

from dataclasses import dataclass
from typing import Optional

from .const import DEFAULT_CONNECT_RETRY_DELAY, DEFAULT_MAX_FAILURES, DEFAULT_RETRY_DELAY


@dataclass(frozen=True)
class ImmediateRetry:
    """
    Connect-phase retry.

    Attributes:
        delay: Pause before the next login attempt (0 = next loop iteration)
    """

    delay: float = DEFAULT_CONNECT_RETRY_DELAY

    def __post_init__(self):
        if self.delay < 0:
            raise ValueError(f"Invalid delay: {self.delay} (must be >= 0)")

    def next_delay(self) -> float:
        return self.delay


@dataclass(frozen=True)
class BoundedBackoffRetry:
    """
    Counted retry with a single flat delay.

    Attributes:
        delay: Seconds to wait before reconnecting
        max_failures: Number of failures after which the session gives up
    """

    delay: float = DEFAULT_RETRY_DELAY
    max_failures: int = DEFAULT_MAX_FAILURES

    def __post_init__(self):
        if self.delay < 0:
            raise ValueError(f"Invalid delay: {self.delay} (must be >= 0)")
        if self.max_failures < 1:
            raise ValueError(f"Invalid max_failures: {self.max_failures} (must be >= 1)")

    def exhausted(self, failure_count: int) -> bool:
        """Check if no further reconnect is allowed."""
        return failure_count >= self.max_failures

    def next_delay(self, failure_count: int) -> Optional[float]:
        """
        Decide what to do after a failure.

        Args:
            failure_count: Failures counted so far, including this one

        Returns:
            Seconds until reconnect, or None to give up
        """
        if self.exhausted(failure_count):
            return None
        return self.delay
