"""
Quote submission and job recompute.

A submission is one unit of work: capability check, validation, a lock on
the job row, the uniqueness check, the insert, and a full reclassification
of every quote on the job against the new average. Any failure leaves the
stored average and every status as they were.
"""

from datetime import datetime
from typing import List, Optional

from storage.repositories import jobs as jobs_repo
from storage.repositories import quotes as quotes_repo
from storage.repositories import users as users_repo

from .database import Quote
from .errors import (
    Conflict,
    DomainInvariantViolation,
    InvalidInput,
    NotFound,
    PermissionDenied,
    TradeQuoteError,
)
from .logger import get_logger
from .profiles import can_submit_quotes
from .quote_comparison import AggregationResult, QuoteAggregator
from .schema import validate_quote

logger = get_logger()
aggregator = QuoteAggregator()


def _write_back(session, job, result: AggregationResult) -> None:
    jobs_repo.update_job_average(session, job.id, result.updated_average)
    quotes_repo.update_quote_statuses(session, result.status_of)


def submit_quote(
    session,
    job_id: str,
    pro_id: str,
    amount,
    comment: Optional[str] = None,
) -> Quote:
    """
    Submit a quote for a job and reclassify every quote on it.

    Args:
        session: Active session; the caller commits or rolls back
        job_id: Job being quoted
        pro_id: Submitting professional
        amount: Quoted price, positive and finite
        comment: Optional free text

    Returns:
        The stored quote with its computed status

    Raises:
        PermissionDenied: submitter is not a subscribed PRO
        InvalidInput: amount or comment failed validation
        NotFound: job does not exist
        Conflict: this professional already quoted this job
    """
    try:
        pro = users_repo.get_profile(session, pro_id)
        if not can_submit_quotes(pro):
            raise PermissionDenied("Only subscribed professionals can submit quotes")

        errors = validate_quote({"job_id": job_id, "amount": amount, "comment": comment})
        if errors:
            raise InvalidInput("Invalid quote", errors)

        # Lock the job row; concurrent submissions for this job queue here
        job = jobs_repo.get_job_with_quotes(session, job_id, lock=True)
        if job is None:
            raise NotFound(f"Job not found: {job_id}")

        if quotes_repo.find_quote(session, job_id, pro_id) is not None:
            raise Conflict("Quote already exists for this job")

        existing = list(job.quotes)
        quote = quotes_repo.insert_quote(
            session,
            Quote(
                job_id=job_id,
                pro_id=pro_id,
                amount=float(amount),
                comment=comment,
                created_at=datetime.now(),
            ),
        )

        result = aggregator.recompute_job(job, existing, quote)
        _write_back(session, job, result)
    except DomainInvariantViolation as e:
        logger.error("Quote aggregation failed", job_id=job_id, pro_id=pro_id, error=str(e))
        raise
    except TradeQuoteError as e:
        logger.record_quote_rejected(type(e).__name__)
        logger.warning(
            "Quote rejected",
            job_id=job_id,
            pro_id=pro_id,
            reason=type(e).__name__,
            error=str(e),
        )
        raise

    logger.record_quote_submitted()
    logger.info(
        "Quote submitted",
        job_id=job_id,
        quote_id=quote.id,
        amount=quote.amount,
        status=quote.status.value,
        average=result.updated_average,
        quotes_on_job=len(result.status_of),
    )
    return quote


def recompute_job_quotes(session, job_id: str) -> AggregationResult:
    """
    Recompute a job's average and every quote status from the stored set.

    Running this on an unchanged set is a no-op in effect.

    Raises:
        NotFound: job does not exist
    """
    job = jobs_repo.get_job_with_quotes(session, job_id, lock=True)
    if job is None:
        raise NotFound(f"Job not found: {job_id}")

    result = aggregator.recompute_job(job, job.quotes)
    _write_back(session, job, result)

    logger.record_job_recomputed()
    logger.debug("Job recomputed", job_id=job_id, average=result.updated_average)
    return result


def list_quotes(session, job_id: Optional[str] = None, pro_id: Optional[str] = None) -> List[Quote]:
    """Quotes filtered by job and/or professional, newest first."""
    return quotes_repo.list_quotes(session, job_id=job_id, pro_id=pro_id)
