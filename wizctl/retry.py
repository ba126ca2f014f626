from dataclasses import dataclass
from enum import Enum
import sys
from typing import Optional

from .constants import MAX_BACKOFF

# Used as the cap when an exponential policy has none
UNBOUNDED_INTERVAL = sys.float_info.max


class RetryStrategy(Enum):
    """How the interval between attempts evolves"""

    FIXED = 1
    EXPONENTIAL = 2


@dataclass(frozen=True)
class RetryPolicy:
    """Describes how many additional attempts to make, and how to
    space them out. Intervals are in seconds.

    The first attempt is not a retry: a consumer makes max_retries + 1
    attempts in total. The interval currently in effect during a retry
    sequence belongs to the consumer; the policy only computes the next
    one."""

    max_retries: int
    strategy: RetryStrategy = RetryStrategy.FIXED
    interval: float = 0.0
    max_interval: Optional[float] = None

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError(
                f"max_retries must be non-negative, got {self.max_retries}"
            )

    @staticmethod
    def none() -> "RetryPolicy":
        """A single attempt, no retries"""
        return RetryPolicy(max_retries=0)

    @staticmethod
    def fixed(count: int, interval: float) -> "RetryPolicy":
        """Retry count times, waiting interval seconds between attempts"""
        return RetryPolicy(
            max_retries=count, strategy=RetryStrategy.FIXED, interval=interval
        )

    @staticmethod
    def exponential(
        count: int, initial_interval: float, max_interval: Optional[float] = None
    ) -> "RetryPolicy":
        """Retry count times, doubling the wait after each retry until it
        reaches max_interval (MAX_BACKOFF if not specified)"""
        return RetryPolicy(
            max_retries=count,
            strategy=RetryStrategy.EXPONENTIAL,
            interval=initial_interval,
            max_interval=MAX_BACKOFF if max_interval is None else max_interval,
        )

    @property
    def enabled(self) -> bool:
        """True if any retries will be made"""
        return self.max_retries > 0

    @property
    def total_attempts(self) -> int:
        return self.max_retries + 1

    def next_interval(self, current: float) -> float:
        """Given the interval that was just used, returns the one to use
        for the following retry"""
        if self.strategy == RetryStrategy.FIXED:
            return self.interval

        cap = UNBOUNDED_INTERVAL if self.max_interval is None else self.max_interval
        # Compare against half the cap so that doubling never overflows
        if current >= cap / 2:
            return cap
        return min(current * 2, cap)
