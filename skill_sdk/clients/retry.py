# =============================================================================
# Retry with Exponential Backoff
# =============================================================================
# Used by capability clients (Datalog queries, git fetch/push). The dispatch
# core never retries handler execution.
# =============================================================================

import logging
import time
from typing import Callable, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_RETRIES = 5
DEFAULT_BASE_DELAY_SECONDS = 0.5
DEFAULT_MAX_DELAY_SECONDS = 10
RETRY_BACKOFF_MULTIPLIER = 2


class AbortRetry(Exception):
    """Wrap an error in this to stop retrying immediately."""

    def __init__(self, error: Exception):
        super().__init__(str(error))
        self.error = error


def calculate_retry_delay(attempt: int, base_delay: float = DEFAULT_BASE_DELAY_SECONDS,
                          max_delay: float = DEFAULT_MAX_DELAY_SECONDS) -> float:
    """Calculate exponential backoff delay.

    Formula: min(max_delay, base_delay * (2 ^ attempt))
    """
    delay = base_delay * (RETRY_BACKOFF_MULTIPLIER ** attempt)
    return min(delay, max_delay)


def retry(
    fn: Callable[[], T],
    retries: int = DEFAULT_RETRIES,
    base_delay: float = DEFAULT_BASE_DELAY_SECONDS,
    max_delay: float = DEFAULT_MAX_DELAY_SECONDS,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], None] = None,
) -> T:
    """
    Call fn until it succeeds or retries are exhausted.

    Raising AbortRetry from fn re-raises the wrapped error without further
    attempts. The last error is re-raised once retries are exhausted.
    """
    sleep = sleep or time.sleep
    attempt = 0
    while True:
        try:
            return fn()
        except AbortRetry as e:
            raise e.error
        except retry_on as e:
            if attempt >= retries:
                raise
            delay = calculate_retry_delay(attempt, base_delay, max_delay)
            logger.warning(f"Attempt {attempt + 1} failed ({e}), retrying in {delay}s")
            sleep(delay)
            attempt += 1
