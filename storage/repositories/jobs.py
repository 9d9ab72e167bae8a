"""
Jobs Repository.

Responsibilities:
- CRUD operations for the jobs table.
- Row locking for the quote-submission unit of work.

Non-Responsibilities:
- No business logic.
- No aggregation.
- No commits; the caller owns the transaction.

Invariant:
Repositories must not encode domain decisions.
"""

from typing import Optional, Tuple, List

from sqlalchemy import func, select
from sqlalchemy.orm import selectinload

from tradequote.database import Job, Quote


def get_job(session, job_id: str) -> Optional[Job]:
    return session.get(Job, job_id)


def get_job_with_quotes(session, job_id: str, lock: bool = False) -> Optional[Job]:
    """
    Load a job and all of its quotes.

    Args:
        session: Active session
        job_id: Job primary key
        lock: Take a row lock on the job (SELECT ... FOR UPDATE)

    Returns:
        Job with quotes loaded, or None
    """
    stmt = (
        select(Job)
        .where(Job.id == job_id)
        .options(selectinload(Job.quotes))
        .execution_options(populate_existing=True)
    )
    if lock:
        stmt = stmt.with_for_update()
    return session.execute(stmt).scalars().first()


def insert_job(session, job: Job) -> Job:
    session.add(job)
    session.flush()
    return job


def update_job_average(session, job_id: str, average: Optional[float]) -> None:
    job = session.get(Job, job_id)
    job.average_quote = average
    session.flush()


def delete_job(session, job: Job) -> None:
    # Reload the collection so the cascade sees every quote
    session.expire(job, ["quotes"])
    session.delete(job)
    session.flush()


def list_jobs(
    session,
    category: Optional[str] = None,
    location: Optional[str] = None,
    offset: int = 0,
    limit: int = 10,
) -> Tuple[List[Job], int]:
    """
    Newest-first page of jobs plus the total matching count.

    Location matches as a case-insensitive substring.
    """
    filters = []
    if category:
        filters.append(Job.category == category)
    if location:
        filters.append(func.lower(Job.location).contains(location.lower()))

    stmt = (
        select(Job)
        .where(*filters)
        .options(selectinload(Job.quotes))
        .execution_options(populate_existing=True)
        .order_by(Job.created_at.desc())
        .offset(offset)
        .limit(limit)
    )
    jobs = list(session.execute(stmt).scalars().all())
    total = session.execute(select(func.count(Job.id)).where(*filters)).scalar_one()
    return jobs, total


def count_jobs(session) -> int:
    return session.execute(select(func.count(Job.id))).scalar_one()


def list_jobs_with_quote_counts(session) -> List[Tuple[Job, int]]:
    """Every job, newest first, paired with its number of quotes."""
    stmt = (
        select(Job, func.count(Quote.id))
        .outerjoin(Quote, Quote.job_id == Job.id)
        .group_by(Job.id)
        .order_by(Job.created_at.desc())
    )
    return [(job, count) for job, count in session.execute(stmt).all()]
