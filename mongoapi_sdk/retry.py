"""
Retry policy with bounded attempts and exponential backoff
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, TypeVar

from mongoapi_sdk.exceptions import HTTPStatusError, TransportError

logger = logging.getLogger("mongoapi_sdk.retry")

T = TypeVar("T")


def is_retryable(exc: BaseException) -> bool:
    """
    Classify a failure.

    No response at all, or a 5xx response, is transient. Everything else
    (4xx, validation, malformed body) is terminal.
    """
    if isinstance(exc, TransportError):
        return True
    if isinstance(exc, HTTPStatusError):
        return exc.retryable
    return False


@dataclass
class RetryPolicy:
    """
    Wraps a call with ``max_retries`` retries (``max_retries + 1`` attempts).

    Delay before retry ``n`` (0-indexed) is ``min(cap, base * 2**n)``.
    """

    max_retries: int = 3
    backoff_base: float = 0.1
    backoff_cap: float = 10.0
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)
    on_retry: Optional[Callable[[int, BaseException, float], None]] = field(default=None, repr=False)

    def delay(self, attempt: int) -> float:
        return min(self.backoff_cap, self.backoff_base * (2 ** attempt))

    def delays(self) -> List[float]:
        return [self.delay(n) for n in range(self.max_retries)]

    def call(self, fn: Callable[[], T]) -> T:
        """
        Run ``fn`` until it succeeds, fails terminally, or attempts run out.

        Raises:
            The last failure raised by ``fn``
        """
        attempt = 0
        while True:
            try:
                return fn()
            except Exception as e:
                if attempt >= self.max_retries or not is_retryable(e):
                    raise

                wait = self.delay(attempt)
                logger.warning(
                    "Attempt %d/%d failed (%s); retrying in %.3fs",
                    attempt + 1,
                    self.max_retries + 1,
                    e,
                    wait,
                    extra={"attempt": attempt + 1},
                )
                if self.on_retry is not None:
                    self.on_retry(attempt, e, wait)
                self.sleep(wait)
                attempt += 1
