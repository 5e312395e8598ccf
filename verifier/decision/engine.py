"""Decision engine: scores extracted ID card fields against a student profile.

The name carries 60% of the weight and the roll number 40%. A missing
name scores 0.0; a missing roll number scores a neutral 0.5, which keeps
"unreadable" distinct from "mismatched". Weights and thresholds are
fixed policy constants.
"""

import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import StrEnum

from verifier.utils.logger import get_logger

from .similarity import name_similarity

logger = get_logger(__name__)

NAME_WEIGHT = 0.6
ROLL_WEIGHT = 0.4

APPROVE_THRESHOLD = 0.90
REVIEW_THRESHOLD = 0.70

NEUTRAL_ROLL_SCORE = 0.5
PARTIAL_ROLL_SCORE = 0.7
MISMATCH_ROLL_SCORE = 0.3

_EMAIL_ROLL = re.compile(r"20\d{13}", re.ASCII)
_CENT = Decimal("0.01")


class DecisionCategory(StrEnum):
    """Recommendation shown to the reviewing admin."""

    LIKELY_APPROVE = "LIKELY_APPROVE"
    REVIEW_MANUALLY = "REVIEW_MANUALLY"
    FLAG_SUSPICIOUS = "FLAG_SUSPICIOUS"


@dataclass(frozen=True)
class IdentityProfile:
    """What the student told us about themselves at sign-up."""

    declared_name: str
    declared_email: str


@dataclass(frozen=True)
class DecisionOutcome:
    """Scores and recommendation for one ID card.

    ``confidence_score`` always equals
    ``round_score(name_match_score * 0.6 + roll_match_score * 0.4)``.
    """

    category: DecisionCategory
    confidence_score: float
    name_match_score: float
    roll_match_score: float


def round_score(value: float) -> float:
    """Round a score to two decimals, halves away from zero (0.625 -> 0.63)."""
    return float(Decimal(str(value)).quantize(_CENT, rounding=ROUND_HALF_UP))


def weighted_score(name_match: float, roll_match: float) -> float:
    """Combine the two match scores into a confidence score.

    Args:
        name_match: Name similarity in [0, 1].
        roll_match: Roll number match score in [0, 1].

    Returns:
        Weighted score rounded to two decimals.
    """
    return round_score(name_match * NAME_WEIGHT + roll_match * ROLL_WEIGHT)


def classify(confidence_score: float) -> DecisionCategory:
    """Map a confidence score onto a recommendation.

    Thresholds are inclusive lower bounds.

    Args:
        confidence_score: Score in [0, 1].

    Returns:
        The decision category.
    """
    if confidence_score >= APPROVE_THRESHOLD:
        return DecisionCategory.LIKELY_APPROVE
    if confidence_score >= REVIEW_THRESHOLD:
        return DecisionCategory.REVIEW_MANUALLY
    return DecisionCategory.FLAG_SUSPICIOUS


def email_local_part(email: str | None) -> str:
    """Return the part of an email address before ``@``, trimmed."""
    if not email:
        return ""
    return email.split("@", 1)[0].strip()


def roll_match_score(extracted_roll: str | None, declared_email: str | None) -> float:
    """Score an extracted roll number against the student's email address.

    Tiers, in order:

    1. no roll extracted: neutral 0.5;
    2. no usable email local part: neutral 0.5;
    3. local part embeds a 15-digit roll starting with "20": 1.0 on
       exact equality, 0.0 otherwise;
    4. otherwise 0.7 if either string contains the other, else 0.3.

    Args:
        extracted_roll: Roll number read from the card.
        declared_email: Email address the student registered with.

    Returns:
        Roll match score.
    """
    if not extracted_roll:
        return NEUTRAL_ROLL_SCORE

    local = email_local_part(declared_email)
    if not local:
        return NEUTRAL_ROLL_SCORE

    embedded = _EMAIL_ROLL.search(local)
    if embedded:
        return 1.0 if extracted_roll == embedded.group(0) else 0.0

    if extracted_roll in local or local in extracted_roll:
        return PARTIAL_ROLL_SCORE
    return MISMATCH_ROLL_SCORE


class DecisionEngine:
    """Compares extracted ID card fields with a student's profile."""

    def decide(
        self,
        extracted_name: str | None,
        extracted_roll: str | None,
        profile: IdentityProfile,
    ) -> DecisionOutcome:
        """Score the extracted fields and pick a recommendation.

        Never raises: absent inputs degrade to the documented neutral or
        penalty scores.

        Args:
            extracted_name: Name read from the card, if any.
            extracted_roll: Roll number read from the card, if any.
            profile: The requester's declared identity.

        Returns:
            The decision outcome.
        """
        name_match = round_score(
            name_similarity(extracted_name, profile.declared_name)
        )
        roll_match = round_score(
            roll_match_score(extracted_roll, profile.declared_email)
        )
        confidence = weighted_score(name_match, roll_match)
        category = classify(confidence)

        logger.info(
            "Decision %s: confidence %.2f (name %.2f x %.1f + roll %.2f x %.1f)",
            category,
            confidence,
            name_match,
            NAME_WEIGHT,
            roll_match,
            ROLL_WEIGHT,
        )
        return DecisionOutcome(
            category=category,
            confidence_score=confidence,
            name_match_score=name_match,
            roll_match_score=roll_match,
        )
