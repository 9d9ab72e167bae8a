"""
Tests for jobs.py - job posting services.
"""

from datetime import datetime, timedelta

import pytest

from tradequote.database import Job, JobStatus, Quote, Role
from tradequote.errors import InvalidInput, NotFound, PermissionDenied
from tradequote.jobs import create_job, delete_job, get_job, list_jobs, update_job
from tradequote.quotes import submit_quote


class TestCreateJob:
    """Test job creation."""

    def test_create_job(self, session, poster, valid_job_data):
        job = create_job(session, poster.id, valid_job_data)
        assert job.title == "Bathroom Repair"
        assert job.budget == 2000.0
        assert job.average_quote is None
        assert job.status == JobStatus.ACTIVE

    def test_budget_optional(self, session, poster, valid_job_data):
        del valid_job_data["budget"]
        assert create_job(session, poster.id, valid_job_data).budget is None

    def test_missing_fields(self, session, poster):
        with pytest.raises(InvalidInput) as exc_info:
            create_job(session, poster.id, {"title": "Roof"})
        assert len(exc_info.value.errors) == 3

    def test_unknown_owner(self, session, valid_job_data):
        with pytest.raises(NotFound):
            create_job(session, "nobody", valid_job_data)


class TestListJobs:
    """Test filtering and pagination."""

    @pytest.fixture
    def many_jobs(self, session, poster):
        now = datetime.now()
        for i in range(12):
            session.add(Job(
                user_id=poster.id,
                title=f"Job {i}",
                description="desc",
                category="Kitchen" if i % 2 else "Bathroom",
                location="Greater London" if i < 4 else "Leeds",
                created_at=now - timedelta(hours=i),
            ))
        session.flush()

    def test_pagination(self, session, many_jobs):
        page = list_jobs(session, page=2, limit=5)
        assert page["pagination"] == {"page": 2, "limit": 5, "total": 12, "pages": 3}
        assert [j.title for j in page["jobs"]] == [f"Job {i}" for i in range(5, 10)]

    def test_filter_category(self, session, many_jobs):
        page = list_jobs(session, category="Kitchen", limit=50)
        assert page["pagination"]["total"] == 6
        assert all(j.category == "Kitchen" for j in page["jobs"])

    def test_filter_location_case_insensitive(self, session, many_jobs):
        page = list_jobs(session, location="LONDON", limit=50)
        assert page["pagination"]["total"] == 4

    def test_default_page_size(self, session, many_jobs, monkeypatch):
        monkeypatch.setenv("TRADEQUOTE_PAGE_SIZE", "7")
        page = list_jobs(session)
        assert page["pagination"]["limit"] == 7
        assert len(page["jobs"]) == 7

    def test_empty(self, session):
        page = list_jobs(session)
        assert page["jobs"] == []
        assert page["pagination"]["pages"] == 0


class TestUpdateDeleteJob:
    """Test owner-only edits."""

    def test_owner_updates(self, session, job, poster):
        updated = update_job(session, job.id, poster.id, {"title": "New kitchen", "status": "CLOSED"})
        assert updated.title == "New kitchen"
        assert updated.status == JobStatus.CLOSED

    def test_non_owner_denied(self, session, job, make_user):
        other = make_user()
        with pytest.raises(PermissionDenied):
            update_job(session, job.id, other.id, {"title": "Mine now"})
        with pytest.raises(PermissionDenied):
            delete_job(session, job.id, other.id)

    def test_average_not_editable(self, session, job, poster):
        with pytest.raises(InvalidInput):
            update_job(session, job.id, poster.id, {"average_quote": 1})

    def test_status_enum_member_accepted(self, session, job, poster):
        updated = update_job(session, job.id, poster.id, {"status": JobStatus.CLOSED})
        assert updated.status == JobStatus.CLOSED

    def test_invalid_status(self, session, job, poster):
        with pytest.raises(InvalidInput):
            update_job(session, job.id, poster.id, {"status": "ARCHIVED"})

    def test_unknown_job(self, session, poster):
        with pytest.raises(NotFound):
            update_job(session, "missing", poster.id, {"title": "x"})
        with pytest.raises(NotFound):
            get_job(session, "missing")

    def test_delete_removes_quotes(self, session, job, poster, make_pro):
        submit_quote(session, job.id, make_pro().id, 500)
        delete_job(session, job.id, poster.id)
        assert session.get(Job, job.id) is None
        assert session.query(Quote).count() == 0
