"""
Profile trust scoring.

Two completeness metrics are derived from a professional's profile:

- trust_score over a 7-field checklist that includes the insurance document
- profile_completion over a 6-field checklist that leaves it out

The two checklists are intentionally left distinct; both are computed and
reported separately.
"""

import math
from dataclasses import dataclass
from typing import Dict

TRUST_SCORE_FIELDS = (
    "name",
    "company_name",
    "trade_category",
    "description",
    "insurance_doc",
    "qualifications",
    "email_verified",
)

PROFILE_COMPLETION_FIELDS = (
    "name",
    "company_name",
    "trade_category",
    "description",
    "qualifications",
    "email_verified",
)


@dataclass(frozen=True)
class TrustScoreResult:
    trust_score: int
    profile_completion: int
    label: str


def _present(value) -> bool:
    if isinstance(value, str):
        return value != ""
    return bool(value)


def _field_checklist(profile, fields) -> Dict[str, bool]:
    if profile is None:
        raise TypeError("profile is required")
    if isinstance(profile, dict):
        return {f: _present(profile.get(f)) for f in fields}
    return {f: _present(getattr(profile, f, None)) for f in fields}


def _percent(checklist: Dict[str, bool]) -> int:
    # Half-up, not banker's rounding
    return int(math.floor(sum(checklist.values()) / len(checklist) * 100 + 0.5))


def calculate_trust_score(profile) -> int:
    """Return 0-100 from the 7-field checklist."""
    return _percent(_field_checklist(profile, TRUST_SCORE_FIELDS))


def calculate_profile_completion(profile) -> int:
    """Return 0-100 from the 6-field checklist (no insurance document)."""
    return _percent(_field_checklist(profile, PROFILE_COMPLETION_FIELDS))


def trust_score_label(score: int) -> str:
    if score >= 80:
        return "Excellent"
    if score >= 60:
        return "Good"
    if score >= 40:
        return "Fair"
    return "Poor"


def trust_score_color(score: int) -> str:
    if score >= 80:
        return "green"
    if score >= 60:
        return "yellow"
    return "red"


class TrustScoreCalculator:
    """Computes both derived profile scores and the trust label."""

    def score(self, profile) -> TrustScoreResult:
        """
        Score a profile given as a User row, any object with the profile
        attributes, or a dict keyed by attribute name.

        Raises:
            TypeError: if profile is None
        """
        trust = calculate_trust_score(profile)
        completion = calculate_profile_completion(profile)
        return TrustScoreResult(
            trust_score=trust,
            profile_completion=completion,
            label=trust_score_label(trust),
        )
