"""
Tests for retry logic.
"""

import pytest
from sqlalchemy.exc import OperationalError

from tradequote.retry import RetryError, exponential_backoff, is_transient_error


def _locked():
    return OperationalError("BEGIN IMMEDIATE", {}, Exception("database is locked"))


class TestExponentialBackoff:
    """Test exponential backoff decorator."""

    def test_success_on_first_try(self):
        call_count = [0]

        @exponential_backoff(max_retries=3, base_delay=0.01)
        def succeeds():
            call_count[0] += 1
            return "success"

        assert succeeds() == "success"
        assert call_count[0] == 1

    def test_retry_then_succeed(self):
        call_count = [0]

        @exponential_backoff(max_retries=3, base_delay=0.01, exceptions=(OperationalError,))
        def fails_twice():
            call_count[0] += 1
            if call_count[0] < 3:
                raise _locked()
            return "success"

        assert fails_twice() == "success"
        assert call_count[0] == 3

    def test_all_retries_exhausted(self):
        call_count = [0]

        @exponential_backoff(max_retries=2, base_delay=0.01)
        def always_fails():
            call_count[0] += 1
            raise ValueError("Always fails")

        with pytest.raises(RetryError):
            always_fails()

        assert call_count[0] == 3  # Initial + 2 retries

    def test_non_matching_exception_propagates(self):
        @exponential_backoff(max_retries=3, base_delay=0.01, exceptions=(OperationalError,))
        def raises_value_error():
            raise ValueError("not retried")

        with pytest.raises(ValueError):
            raises_value_error()

    def test_should_retry_rejects_permanent_errors(self):
        call_count = [0]

        @exponential_backoff(
            max_retries=3,
            base_delay=0.01,
            exceptions=(OperationalError,),
            should_retry=is_transient_error,
        )
        def no_such_table():
            call_count[0] += 1
            raise OperationalError("SELECT", {}, Exception("no such table: jobs"))

        with pytest.raises(OperationalError):
            no_such_table()
        assert call_count[0] == 1

    def test_on_retry_callback(self):
        seen = []

        @exponential_backoff(
            max_retries=2,
            base_delay=0.01,
            on_retry=lambda attempt, exc, delay: seen.append((attempt, delay)),
        )
        def always_fails():
            raise _locked()

        with pytest.raises(RetryError):
            always_fails()

        assert [a for a, _ in seen] == [1, 2]
        assert seen[1][1] == pytest.approx(0.02)


class TestTransientErrors:
    """Test transient error detection."""

    @pytest.mark.parametrize("message", [
        "database is locked",
        "could not serialize access due to concurrent update",
        "deadlock detected",
    ])
    def test_transient(self, message):
        assert is_transient_error(Exception(message))

    def test_permanent(self):
        assert not is_transient_error(Exception("UNIQUE constraint failed"))
