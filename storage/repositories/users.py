"""
Users Repository.

Responsibilities:
- CRUD operations for users and their profile attributes.
- Write back derived profile scores.

Non-Responsibilities:
- No scoring logic.
- No commits; the caller owns the transaction.
"""

from typing import Optional

from sqlalchemy import func, select

from tradequote.database import Role, User


def get_profile(session, user_id: str) -> Optional[User]:
    return session.get(User, user_id)


def get_by_email(session, email: str) -> Optional[User]:
    return session.execute(select(User).where(User.email == email)).scalars().first()


def insert_user(session, user: User) -> User:
    session.add(user)
    session.flush()
    return user


def update_profile_fields(session, user_id: str, fields: dict) -> User:
    user = session.get(User, user_id)
    for key, value in fields.items():
        setattr(user, key, value)
    session.flush()
    return user


def update_profile_derived_scores(session, user_id: str, trust_score: int, profile_completion: int) -> None:
    user = session.get(User, user_id)
    user.trust_score = trust_score
    user.profile_completion = profile_completion
    session.flush()


def set_subscribed(session, user_id: str, subscribed: bool) -> Optional[User]:
    user = session.get(User, user_id)
    if user is not None:
        user.is_subscribed = subscribed
        session.flush()
    return user


def count_users(session) -> int:
    return session.execute(select(func.count(User.id))).scalar_one()


def count_active_pros(session) -> int:
    stmt = select(func.count(User.id)).where(User.role == Role.PRO, User.is_subscribed.is_(True))
    return session.execute(stmt).scalar_one()
