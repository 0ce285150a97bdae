"""
Fixed-delay retry policy for handler invocations.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded retry with a fixed delay between attempts.

    Attempts are counted from zero; ``max_retry_attempts`` retries follow the
    first attempt, so a handler is tried at most ``max_retry_attempts + 1`` times.
    """

    max_retry_attempts: int = 10
    retry_delay_ms: int = 500

    def __post_init__(self):
        if self.max_retry_attempts < 0:
            raise ValueError('max_retry_attempts must not be negative')
        if self.retry_delay_ms < 0:
            raise ValueError('retry_delay_ms must not be negative')

    @property
    def max_attempts(self) -> int:
        return self.max_retry_attempts + 1

    @property
    def delay_seconds(self) -> float:
        return self.retry_delay_ms / 1000

    def should_retry(self, attempt: int) -> bool:
        """Whether a failure on ``attempt`` (zero-based) is followed by another attempt."""
        return attempt < self.max_retry_attempts
