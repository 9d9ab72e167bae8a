"""
Error taxonomy for TradeQuote services.

NotFound, Conflict, PermissionDenied and InvalidInput are expected outcomes
that callers can recover from; the unit of work that raised them leaves no
partial state behind. DomainInvariantViolation means an upstream invariant
was broken and is surfaced as an internal error.
"""

from typing import List, Optional


class TradeQuoteError(Exception):
    """Base class for all domain errors."""

    exit_code = 1


class NotFound(TradeQuoteError):
    """A job, profile or quote does not exist."""

    exit_code = 4


class Conflict(TradeQuoteError):
    """A quote already exists for this (job, pro) pair."""

    exit_code = 5


class PermissionDenied(TradeQuoteError):
    """The caller lacks the capability for this operation."""

    exit_code = 3


class InvalidInput(TradeQuoteError):
    """Input failed validation."""

    exit_code = 2

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = errors or [message]


class DomainInvariantViolation(TradeQuoteError):
    """A stored value broke an invariant the computation depends on."""

    exit_code = 70
