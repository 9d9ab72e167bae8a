"""
Unit-of-work runner.

Each call runs one service function inside its own transaction and retries
the whole unit when it loses a race for the database write lock.
"""

from pathlib import Path
from typing import Callable

from sqlalchemy.exc import OperationalError

from .database import session_scope
from .logger import get_logger
from .retry import exponential_backoff, is_transient_error

logger = get_logger()


def _log_retry(attempt, exception, delay):
    logger.warning(
        "Transaction hit lock contention, retrying",
        attempt=attempt,
        delay=round(delay, 3),
        error=str(exception),
    )


@exponential_backoff(
    max_retries=4,
    base_delay=0.05,
    exceptions=(OperationalError,),
    should_retry=is_transient_error,
    on_retry=_log_retry,
)
def run_in_transaction(db_path: Path, work: Callable, *args, **kwargs):
    """
    Call work(session, *args, **kwargs) in a fresh transaction.

    Commits when work returns; rolls back all of it when work raises.
    """
    with session_scope(db_path) as session:
        return work(session, *args, **kwargs)
