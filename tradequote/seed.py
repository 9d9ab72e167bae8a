"""
Demo data: an admin, a subscribed professional, a job poster, two jobs and
a quote on each. Seeding is skipped for any account whose email exists.
"""

from datetime import datetime
from typing import Dict

from storage.repositories import users as users_repo

from .database import Role
from .jobs import create_job
from .logger import get_logger
from .profiles import register_user, update_profile, verify_email
from .quotes import submit_quote

logger = get_logger()

ADMIN_EMAIL = "admin@quoteajob.com"
PRO_EMAIL = "pro@example.com"
USER_EMAIL = "user@example.com"

PRO_PROFILE = {
    "company_name": "Smith Plumbing Services",
    "trade_category": "Plumbing",
    "description": (
        "Experienced plumber with 10+ years in the industry. "
        "Specializing in residential and commercial plumbing services."
    ),
    "qualifications": "City & Guilds Plumbing Level 3, Gas Safe Registered, 10+ years experience",
}

JOBS = [
    {
        "title": "Kitchen Renovation",
        "description": (
            "Complete kitchen renovation including new cabinets, countertops, "
            "and appliances. Looking for experienced contractor."
        ),
        "category": "Kitchen",
        "location": "London",
        "budget": 15000,
        "quote": (12000, "I can complete this renovation within 4 weeks. Includes all materials and labor."),
    },
    {
        "title": "Bathroom Repair",
        "description": "Fix leaking shower and replace bathroom tiles. Small job but needs to be done quickly.",
        "category": "Bathroom",
        "location": "Manchester",
        "budget": 2000,
        "quote": (1800, "Quick fix for your bathroom issues. Can start next week."),
    },
]


def seed_demo(session) -> Dict[str, int]:
    """Insert demo rows and return counts of what was created."""
    if users_repo.get_by_email(session, ADMIN_EMAIL) is not None:
        logger.info("Seed data already present, skipping")
        return {"users": 0, "jobs": 0, "quotes": 0}

    admin = register_user(session, ADMIN_EMAIL, name="Admin User", role=Role.ADMIN)
    admin.is_subscribed = True
    verify_email(session, admin.id, datetime.now())

    pro = register_user(session, PRO_EMAIL, name="John Smith", role=Role.PRO)
    pro.is_subscribed = True
    update_profile(session, pro.id, **PRO_PROFILE)

    poster = register_user(session, USER_EMAIL, name="Jane Doe", role=Role.USER)

    quotes = 0
    for entry in JOBS:
        data = {k: v for k, v in entry.items() if k != "quote"}
        job = create_job(session, poster.id, data)
        amount, comment = entry["quote"]
        submit_quote(session, job.id, pro.id, amount, comment)
        quotes += 1

    logger.info("Database seeded", users=3, jobs=len(JOBS), quotes=quotes)
    return {"users": 3, "jobs": len(JOBS), "quotes": quotes}
