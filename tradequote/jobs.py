"""Job posting services: create, read, list, update and delete."""

import math
from typing import Any, Dict, Optional

from storage.repositories import jobs as jobs_repo
from storage.repositories import users as users_repo

from . import config
from .database import Job, JobStatus
from .errors import InvalidInput, NotFound, PermissionDenied
from .logger import get_logger
from .schema import validate_job

logger = get_logger()

EDITABLE_FIELDS = ("title", "description", "category", "location", "budget", "status")


def _strip(value):
    return value.strip() if isinstance(value, str) else value


def create_job(session, user_id: str, data: Dict[str, Any]) -> Job:
    """
    Post a new job owned by user_id.

    Raises:
        InvalidInput: missing or malformed fields
        NotFound: the owner does not exist
    """
    errors = validate_job(data)
    if errors:
        raise InvalidInput("Invalid job", errors)
    if users_repo.get_profile(session, user_id) is None:
        raise NotFound(f"User not found: {user_id}")

    job = jobs_repo.insert_job(
        session,
        Job(
            user_id=user_id,
            title=_strip(data["title"]),
            description=_strip(data["description"]),
            category=_strip(data["category"]),
            location=_strip(data["location"]),
            budget=float(data["budget"]) if data.get("budget") is not None else None,
        ),
    )
    logger.info("Job posted", job_id=job.id, user_id=user_id, category=job.category)
    return job


def get_job(session, job_id: str) -> Job:
    job = jobs_repo.get_job_with_quotes(session, job_id)
    if job is None:
        raise NotFound(f"Job not found: {job_id}")
    return job


def list_jobs(
    session,
    category: Optional[str] = None,
    location: Optional[str] = None,
    page: int = 1,
    limit: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Page through jobs, newest first.

    Returns:
        {"jobs": [...], "pagination": {"page", "limit", "total", "pages"}}
    """
    page = max(1, page)
    limit = max(1, limit or config.page_size())
    jobs, total = jobs_repo.list_jobs(
        session,
        category=category,
        location=location,
        offset=(page - 1) * limit,
        limit=limit,
    )
    return {
        "jobs": jobs,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit),
        },
    }


def _owned_job(session, job_id: str, user_id: str) -> Job:
    job = jobs_repo.get_job(session, job_id)
    if job is None:
        raise NotFound(f"Job not found: {job_id}")
    if job.user_id != user_id:
        raise PermissionDenied("Only the job owner can change this job")
    return job


def update_job(session, job_id: str, user_id: str, data: Dict[str, Any]) -> Job:
    """
    Edit an owned job. The average quote is derived and cannot be set here.

    Raises:
        NotFound, PermissionDenied, InvalidInput
    """
    job = _owned_job(session, job_id, user_id)

    unknown = [k for k in data if k not in EDITABLE_FIELDS]
    errors = [f"Field '{k}' cannot be edited" for k in unknown]
    errors.extend(validate_job(data, partial=True))
    if errors:
        raise InvalidInput("Invalid job update", errors)

    for key, value in data.items():
        if key == "status":
            value = JobStatus(value)
        elif key == "budget":
            value = float(value) if value is not None else None
        else:
            value = _strip(value)
        setattr(job, key, value)
    session.flush()

    logger.info("Job updated", job_id=job.id, fields=sorted(data))
    return job


def delete_job(session, job_id: str, user_id: str) -> None:
    """Delete an owned job along with its quotes."""
    job = _owned_job(session, job_id, user_id)
    jobs_repo.delete_job(session, job)
    logger.info("Job deleted", job_id=job_id, user_id=user_id)
