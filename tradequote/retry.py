"""
Retry logic with exponential backoff for handling transient failures.

Units of work that lose a race for the database write lock fail with
"database is locked" style errors; these are safe to retry because the
failed transaction was rolled back in full.
"""

import time
import functools
from typing import Callable, Type, Tuple, Optional


class RetryError(Exception):
    """Raised when all retry attempts are exhausted."""
    pass


def exponential_backoff(
    max_retries: int = 3,
    base_delay: float = 0.05,
    max_delay: float = 2.0,
    exponential_base: float = 2.0,
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
    should_retry: Optional[Callable[[Exception], bool]] = None,
    on_retry: Optional[Callable] = None,
):
    """
    Decorator for retrying functions with exponential backoff.

    Args:
        max_retries: Maximum number of retry attempts (0 = no retries)
        base_delay: Initial delay in seconds
        max_delay: Maximum delay between retries in seconds
        exponential_base: Base for exponential calculation (delay *= base)
        exceptions: Tuple of exceptions to catch and retry
        should_retry: Optional predicate; a caught exception it rejects is
            re-raised immediately
        on_retry: Optional callback function(attempt, exception, delay)

    Example:
        @exponential_backoff(max_retries=3, exceptions=(OperationalError,),
                             should_retry=is_transient_error)
        def submit(...):
            ...
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            delay = base_delay
            last_exception = None

            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if should_retry is not None and not should_retry(e):
                        raise
                    last_exception = e

                    # Don't sleep after the last attempt
                    if attempt < max_retries:
                        current_delay = min(delay, max_delay)

                        if on_retry:
                            on_retry(attempt + 1, e, current_delay)

                        time.sleep(current_delay)
                        delay *= exponential_base
                    else:
                        raise RetryError(
                            f"Failed after {max_retries + 1} attempts: {str(e)}"
                        ) from e

            raise RetryError(
                f"Unexpected retry exhaustion: {str(last_exception)}"
            ) from last_exception

        return wrapper
    return decorator


def is_transient_error(exception: Exception) -> bool:
    """
    Determine if a database exception is likely transient and should be retried.

    Args:
        exception: Exception to check

    Returns:
        True if the error looks like lock contention or a dropped connection
    """
    error_str = str(exception).lower()

    transient_keywords = [
        'database is locked',
        'database table is locked',
        'could not serialize access',
        'deadlock detected',
        'lock timeout',
        'connection reset',
        'server closed the connection',
    ]

    return any(keyword in error_str for keyword in transient_keywords)
