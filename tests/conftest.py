"""
Pytest configuration and shared fixtures.
"""

import os

# Keep test runs from writing log files into the working directory
os.environ.setdefault("TRADEQUOTE_LOG_FILE", "0")

import pytest
from datetime import datetime
from pathlib import Path
from types import SimpleNamespace
from typing import Dict, Any

from tradequote.database import Job, Quote, Role, User, init_database, get_session


@pytest.fixture
def db_path(tmp_path) -> Path:
    """Create an empty database and return its path."""
    path = tmp_path / "tradequote.db"
    init_database(path)
    return path


@pytest.fixture
def session(db_path):
    """Session on a fresh database. Tests commit as they see fit."""
    s = get_session(db_path)
    yield s
    s.rollback()
    s.close()


@pytest.fixture
def make_user(session):
    """Factory for users; defaults to a plain USER."""
    counter = [0]

    def _make(role: Role = Role.USER, subscribed: bool = False, **fields) -> User:
        counter[0] += 1
        user = User(
            email=fields.pop("email", f"user{counter[0]}@example.com"),
            role=role,
            is_subscribed=subscribed,
            **fields,
        )
        session.add(user)
        session.flush()
        return user

    return _make


@pytest.fixture
def poster(make_user) -> User:
    return make_user(Role.USER, name="Jane Doe")


@pytest.fixture
def make_pro(make_user):
    """Factory for subscribed professionals."""
    def _make(**fields) -> User:
        return make_user(Role.PRO, subscribed=True, **fields)

    return _make


@pytest.fixture
def job(session, poster) -> Job:
    job = Job(
        user_id=poster.id,
        title="Kitchen Renovation",
        description="New cabinets, countertops and appliances",
        category="Kitchen",
        location="London",
        budget=15000,
    )
    session.add(job)
    session.flush()
    return job


@pytest.fixture
def valid_job_data() -> Dict[str, Any]:
    """Valid job posting data."""
    return {
        "title": "Bathroom Repair",
        "description": "Fix leaking shower and replace tiles",
        "category": "Bathroom",
        "location": "Manchester",
        "budget": 2000,
    }


@pytest.fixture
def full_profile() -> Dict[str, Any]:
    """Profile with every checklist field present."""
    return {
        "name": "John Smith",
        "company_name": "Smith Plumbing Services",
        "trade_category": "Plumbing",
        "description": "Residential and commercial plumbing",
        "insurance_doc": "docs/insurance.pdf",
        "qualifications": "Gas Safe Registered",
        "email_verified": datetime(2024, 1, 1),
    }


def quote_stub(quote_id: str, amount: float) -> SimpleNamespace:
    """Stand-in for a stored quote in pure aggregation tests."""
    return SimpleNamespace(id=quote_id, amount=amount)
