import math
from typing import Any, Dict, List

from .database import JobStatus

REQUIRED_JOB_FIELDS = ["title", "description", "category", "location"]
PROFILE_FIELDS = [
    "name",
    "company_name",
    "trade_category",
    "description",
    "qualifications",
    "insurance_doc",
]

MAX_TITLE_LENGTH = 200
MAX_COMMENT_LENGTH = 2000


def _is_non_empty_str(v: Any) -> bool:
    return isinstance(v, str) and v.strip() != ""


def _is_positive_number(v: Any) -> bool:
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        return False
    return math.isfinite(v) and v > 0


def validate_job(data: Dict[str, Any], partial: bool = False) -> List[str]:
    """
    Returns a list of validation error messages for a job posting.
    Empty list means valid. With partial=True only the fields present are checked.
    """
    errors: List[str] = []

    for f in REQUIRED_JOB_FIELDS:
        if f not in data:
            if not partial:
                errors.append(f"Missing required field: {f}")
        elif not _is_non_empty_str(data[f]):
            errors.append(f"Field '{f}' must be a non-empty string")

    if _is_non_empty_str(data.get("title")) and len(data["title"].strip()) > MAX_TITLE_LENGTH:
        errors.append(f"Field 'title' length must be at most {MAX_TITLE_LENGTH} characters")

    # Budget is optional
    if data.get("budget") is not None and not _is_positive_number(data["budget"]):
        errors.append("Field 'budget' must be a positive number if provided")

    if "status" in data:
        try:
            JobStatus(data["status"])
        except ValueError:
            valid = sorted(s.value for s in JobStatus)
            errors.append(f"Field 'status' must be one of: {', '.join(valid)}")

    return errors


def validate_quote(data: Dict[str, Any]) -> List[str]:
    """Returns a list of validation error messages for a quote submission."""
    errors: List[str] = []

    if not _is_non_empty_str(data.get("job_id")):
        errors.append("Missing required field: job_id")

    if data.get("amount") is None:
        errors.append("Missing required field: amount")
    elif not _is_positive_number(data["amount"]):
        errors.append("Field 'amount' must be a positive finite number")

    comment = data.get("comment")
    if comment is not None:
        if not isinstance(comment, str):
            errors.append("Field 'comment' must be a string if provided")
        elif len(comment) > MAX_COMMENT_LENGTH:
            errors.append(f"Field 'comment' length must be at most {MAX_COMMENT_LENGTH} characters")

    return errors


def validate_profile_update(data: Dict[str, Any]) -> List[str]:
    """Only the editable profile fields are accepted; each must be a string or null."""
    errors: List[str] = []

    for f in data:
        if f not in PROFILE_FIELDS:
            errors.append(f"Field '{f}' cannot be edited")
        elif data[f] is not None and not isinstance(data[f], str):
            errors.append(f"Field '{f}' must be a string if provided")

    return errors
