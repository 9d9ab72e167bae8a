"""
Quote aggregation and comparison.

Responsibilities:
- Compute the arithmetic mean of every quote on a job.
- Classify each quote as LOWER, ABOUT_RIGHT or HIGHER relative to that mean.

Non-Responsibilities:
- No database access.
- No permission or uniqueness checks.

Invariant:
Every quote on a job is reclassified against the same mean; a pass over an
unchanged quote set yields the same average and statuses.
"""

import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from .database import QuoteStatus
from .errors import DomainInvariantViolation, InvalidInput

# Percentage difference from the mean beyond which a quote is out of band.
# The comparison is strict: exactly 20% is still ABOUT_RIGHT.
BAND_PERCENT = 20.0

STATUS_LABELS = {
    QuoteStatus.LOWER: "Lower than average",
    QuoteStatus.ABOUT_RIGHT: "About right",
    QuoteStatus.HIGHER: "Higher than average",
}

STATUS_COLORS = {
    QuoteStatus.LOWER: "green",
    QuoteStatus.ABOUT_RIGHT: "blue",
    QuoteStatus.HIGHER: "red",
}


@dataclass
class AggregationResult:
    """Outcome of a recompute pass: the new mean and a status per quote id."""

    updated_average: Optional[float]
    status_of: Dict[str, QuoteStatus] = field(default_factory=dict)


def validate_amount(amount) -> float:
    """Return amount as a float, or raise InvalidInput if not positive and finite."""
    if isinstance(amount, bool):
        raise InvalidInput(f"Quote amount must be a number, got {amount!r}")
    try:
        value = float(amount)
    except (TypeError, ValueError):
        raise InvalidInput(f"Quote amount must be a number, got {amount!r}")
    if not math.isfinite(value) or value <= 0:
        raise InvalidInput(f"Quote amount must be a positive finite number, got {amount!r}")
    return value


def mean(amounts: Iterable[float]) -> Optional[float]:
    values = list(amounts)
    if not values:
        return None
    return math.fsum(values) / len(values)


def compare_quote_to_average(amount: float, average: float) -> QuoteStatus:
    """
    Classify a quote amount against the job's average.

    Raises:
        DomainInvariantViolation: if the average is zero or not finite
    """
    if average == 0 or not math.isfinite(average):
        raise DomainInvariantViolation(
            f"Cannot compare quote {amount} against average {average}"
        )

    percent_diff = abs(amount - average) / average * 100

    if amount < average and percent_diff > BAND_PERCENT:
        return QuoteStatus.LOWER
    if amount > average and percent_diff > BAND_PERCENT:
        return QuoteStatus.HIGHER
    return QuoteStatus.ABOUT_RIGHT


def status_label(status: QuoteStatus) -> str:
    return STATUS_LABELS.get(QuoteStatus(status), "Unknown")


def status_color(status: QuoteStatus) -> str:
    return STATUS_COLORS.get(QuoteStatus(status), "gray")


class QuoteAggregator:
    """Recomputes a job's average quote and every quote's status."""

    def recompute_job(self, job, existing_quotes, new_quote=None) -> AggregationResult:
        """
        Compute the mean over existing_quotes plus new_quote and classify all of them.

        Args:
            job: The job the quotes belong to (used for logging context only)
            existing_quotes: Every quote already stored for the job
            new_quote: The quote being added, or None to recompute the stored set

        Returns:
            AggregationResult with the new average and a status per quote id.
            An empty quote set yields an average of None.

        Raises:
            InvalidInput: if the new quote's amount is not positive and finite
            DomainInvariantViolation: if the computed average is zero
        """
        quotes: List = list(existing_quotes)
        if new_quote is not None:
            validate_amount(new_quote.amount)
            quotes.append(new_quote)

        average = mean(q.amount for q in quotes)
        if average is None:
            return AggregationResult(updated_average=None)

        status_of = {q.id: compare_quote_to_average(q.amount, average) for q in quotes}
        return AggregationResult(updated_average=average, status_of=status_of)
