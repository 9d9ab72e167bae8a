"""
Profile services: registration, profile edits and quoting capability.

Profile edits recompute trust_score and profile_completion in the same
transaction as the field update.
"""

from datetime import datetime
from typing import Optional

from storage.repositories import users as users_repo

from .database import Role, User
from .errors import Conflict, InvalidInput, NotFound
from .logger import get_logger
from .schema import validate_profile_update
from .trust_score import TrustScoreCalculator

logger = get_logger()
calculator = TrustScoreCalculator()


def can_submit_quotes(profile) -> bool:
    """Only subscribed professionals may quote."""
    if profile is None:
        return False
    return Role(profile.role) == Role.PRO and bool(profile.is_subscribed)


def is_admin(profile) -> bool:
    if profile is None:
        return False
    return Role(profile.role) == Role.ADMIN


def _clean(value):
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def _apply_scores(session, user: User) -> User:
    result = calculator.score(user)
    users_repo.update_profile_derived_scores(
        session, user.id, result.trust_score, result.profile_completion
    )
    return user


def register_user(session, email: str, name: Optional[str] = None, role: Role = Role.USER) -> User:
    """
    Create a user account.

    Raises:
        InvalidInput: if the email is malformed or the role unknown
        Conflict: if the email is already registered
    """
    email = (email or "").strip().lower()
    if "@" not in email or email.startswith("@") or email.endswith("@"):
        raise InvalidInput(f"Invalid email address: {email!r}")
    try:
        role = Role(role)
    except ValueError:
        raise InvalidInput(f"Unknown role: {role!r}")

    if users_repo.get_by_email(session, email) is not None:
        raise Conflict(f"Email already registered: {email}")

    user = users_repo.insert_user(session, User(email=email, name=_clean(name), role=role))
    _apply_scores(session, user)
    logger.info("User registered", user_id=user.id, role=role.value)
    return user


def get_profile(session, user_id: str) -> User:
    user = users_repo.get_profile(session, user_id)
    if user is None:
        raise NotFound(f"User not found: {user_id}")
    return user


def update_profile(session, user_id: str, **fields) -> User:
    """
    Update editable profile fields and recompute the derived scores.

    Only the keys passed are changed; None or an empty string clears a field.

    Raises:
        InvalidInput: on unknown or non-string fields
        NotFound: if the user does not exist
    """
    errors = validate_profile_update(fields)
    if errors:
        raise InvalidInput("Invalid profile update", errors)

    user = get_profile(session, user_id)
    users_repo.update_profile_fields(session, user.id, {k: _clean(v) for k, v in fields.items()})
    _apply_scores(session, user)

    logger.record_profile_update()
    logger.info(
        "Profile updated",
        user_id=user.id,
        fields=sorted(fields),
        trust_score=user.trust_score,
        profile_completion=user.profile_completion,
    )
    return user


def verify_email(session, user_id: str, when: Optional[datetime] = None) -> User:
    """Mark the user's email as verified and recompute scores."""
    user = get_profile(session, user_id)
    users_repo.update_profile_fields(session, user.id, {"email_verified": when or datetime.now()})
    _apply_scores(session, user)
    logger.info("Email verified", user_id=user.id, trust_score=user.trust_score)
    return user
