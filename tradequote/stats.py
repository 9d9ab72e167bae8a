"""Admin views: marketplace statistics, job overview and consistency audit."""

import math
from typing import Any, Dict, List

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from storage.repositories import jobs as jobs_repo
from storage.repositories import quotes as quotes_repo
from storage.repositories import users as users_repo

from .database import Job
from .errors import PermissionDenied
from .profiles import is_admin
from .quote_comparison import QuoteAggregator

AVERAGE_TOLERANCE = 1e-9


def _require_admin(session, user_id: str) -> None:
    if not is_admin(users_repo.get_profile(session, user_id)):
        raise PermissionDenied("Admin access required")


def admin_stats(session, user_id: str) -> Dict[str, Any]:
    """
    Marketplace totals for an admin.

    Raises:
        PermissionDenied: user_id is missing or not an ADMIN
    """
    _require_admin(session, user_id)
    return {
        "total_users": users_repo.count_users(session),
        "total_jobs": jobs_repo.count_jobs(session),
        "total_quotes": quotes_repo.count_quotes(session),
        "active_pros": users_repo.count_active_pros(session),
        "average_quote_value": quotes_repo.average_amount(session),
    }


def admin_list_jobs(session, user_id: str) -> List[Dict[str, Any]]:
    """
    Every job with its quote count, newest first.

    Raises:
        PermissionDenied: user_id is missing or not an ADMIN
    """
    _require_admin(session, user_id)
    return [
        {
            "id": job.id,
            "title": job.title,
            "category": job.category,
            "status": job.status.value,
            "created_at": job.created_at,
            "quote_count": count,
        }
        for job, count in jobs_repo.list_jobs_with_quote_counts(session)
    ]


def audit_jobs(session) -> List[Dict[str, Any]]:
    """
    Compare each job's stored average and quote statuses with a fresh recompute.

    Returns:
        One entry per mismatch: {"job_id", "field", "stored", "expected"}
    """
    aggregator = QuoteAggregator()
    mismatches = []

    stmt = (
        select(Job)
        .options(selectinload(Job.quotes))
        .execution_options(populate_existing=True)
    )
    jobs = session.execute(stmt).scalars().all()
    for job in jobs:
        result = aggregator.recompute_job(job, job.quotes)

        stored, expected = job.average_quote, result.updated_average
        if (stored is None) != (expected is None) or (
            stored is not None
            and not math.isclose(stored, expected, rel_tol=AVERAGE_TOLERANCE, abs_tol=AVERAGE_TOLERANCE)
        ):
            mismatches.append(
                {"job_id": job.id, "field": "average_quote", "stored": stored, "expected": expected}
            )

        for quote in job.quotes:
            if quote.status != result.status_of[quote.id]:
                mismatches.append(
                    {
                        "job_id": job.id,
                        "field": f"quote:{quote.id}",
                        "stored": quote.status.value,
                        "expected": result.status_of[quote.id].value,
                    }
                )

    return mismatches
