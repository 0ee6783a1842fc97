"""
Backoff retries for transient transport failures.

The SightMap client wraps its catalog page requests with this decorator and
passes only timeout and connection errors as retryable. An HTTP status error
is the service's answer, so it is never listed here and propagates on the
first attempt.
"""

import functools
import time
from typing import Callable, Optional, Tuple, Type


class RetryError(Exception):
    """Every attempt failed. ``__cause__`` holds the last failure."""


def exponential_backoff(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
    on_retry: Optional[Callable] = None,
):
    """
    Retry the wrapped call, sleeping longer after each failure.

    Args:
        max_retries: Extra attempts after the first (0 = try once)
        base_delay: Sleep before the first retry, in seconds
        max_delay: Upper bound for any single sleep
        exponential_base: Factor applied to the sleep after each retry
        exceptions: Exception types that trigger a retry; others propagate
        on_retry: Called as on_retry(attempt, exception, delay) before sleeping

    Raises:
        RetryError: Once ``max_retries + 1`` attempts have failed
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            delay = base_delay
            attempts = max_retries + 1

            for attempt in range(1, attempts + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt == attempts:
                        raise RetryError(f"Failed after {attempts} attempts: {e}") from e

                    wait = min(delay, max_delay)
                    if on_retry:
                        on_retry(attempt, e, wait)
                    time.sleep(wait)
                    delay *= exponential_base

        return wrapper
    return decorator
