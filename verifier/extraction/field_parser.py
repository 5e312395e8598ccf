"""Rule-based identity field parsing for ID card OCR text.

Recovers the student's full name, roll/registration number and
institutional ID code. Each field owns an ordered list of candidate
matchers; the first one to capture a non-empty value wins and the rest
are skipped. A field with no match is simply left empty.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from verifier.utils.logger import get_logger

logger = get_logger(__name__)


class TextView(Enum):
    """Which rendition of the OCR text a matcher runs against."""

    COLLAPSED = "collapsed"
    RAW = "raw"


@dataclass(frozen=True)
class ExtractionResult:
    """Identity fields recovered from one ID card."""

    raw_text: str
    extracted_name: str | None = None
    extracted_roll: str | None = None
    extracted_college_id: str | None = None


@dataclass(frozen=True)
class FieldMatcher:
    """One candidate regex for a field, tried in priority order."""

    label: str
    pattern: re.Pattern[str]
    view: TextView = TextView.COLLAPSED
    transform: Callable[[str], str] = str.strip

    def match(self, views: dict[TextView, str]) -> str | None:
        found = self.pattern.search(views[self.view])
        if not found:
            return None
        value = self.transform(found.group(1))
        return value or None


# Words that start the next label on a card and must not be swallowed
# into a name, e.g. "Name: Jane Smith Roll No: ...".
_LABEL_WORDS = (
    r"Roll|Registration|Reg|Enrollment|Enrolment|Student|College|Card|Name|"
    r"Father|Mother|Date|Dob|Branch|Course|Department|Dept|Valid|Address|"
    r"Session|Batch|Year|Blood|Phone|Mobile|Email|ID|No|Number"
)
# Names run over the collapsed view, so line breaks do not end a name; only
# a label word or a non-capitalized token does.
_NAME_WORD = rf"(?!(?i:{_LABEL_WORDS})\b)[A-Z][A-Za-z]+"
_CAPITALIZED_WORDS = rf"({_NAME_WORD}(?:\s+{_NAME_WORD})*)"
_SEP = r"[:\s-]+"


def _label(text: str) -> str:
    """Case-insensitive label fragment with flexible inner whitespace."""
    return "(?i:" + r"\s+".join(text.split()) + ")"


def _upper(value: str) -> str:
    return value.strip().upper()


_NAME_MATCHERS: list[FieldMatcher] = [
    FieldMatcher(
        "student_name",
        re.compile(_label("Student Name") + _SEP + _CAPITALIZED_WORDS, re.ASCII),
    ),
    FieldMatcher(
        "full_name",
        re.compile(_label("Full Name") + _SEP + _CAPITALIZED_WORDS, re.ASCII),
    ),
    FieldMatcher(
        "name",
        re.compile(r"\b" + _label("Name") + _SEP + _CAPITALIZED_WORDS, re.ASCII),
    ),
]

# Tried against the raw text: university roll numbers are 15 digits
# starting with "20" and often appear without any label at all.
_PRECISE_ROLL = FieldMatcher(
    "fifteen_digit_roll",
    re.compile(r"\b(20\d{13})\b", re.ASCII),
    view=TextView.RAW,
)

_ROLL_MATCHERS: list[FieldMatcher] = [
    _PRECISE_ROLL,
    FieldMatcher(
        "roll_no",
        re.compile(
            r"\bRoll(?:\s+(?:No|Number))?\.?" + _SEP + r"(\d{10,15})",
            re.IGNORECASE | re.ASCII,
        ),
    ),
    FieldMatcher(
        "registration_no",
        re.compile(
            r"\bRegistration\s+No\.?" + _SEP + r"(\d{10,15})",
            re.IGNORECASE | re.ASCII,
        ),
    ),
    FieldMatcher(
        "enrollment_no",
        re.compile(
            r"\bEnrol(?:l)?ment\s+No\.?" + _SEP + r"(\d{10,15})",
            re.IGNORECASE | re.ASCII,
        ),
    ),
]

_COLLEGE_ID_MATCHERS: list[FieldMatcher] = [
    FieldMatcher(
        "college_or_student_id",
        re.compile(
            r"\b(?:(?:College|Student)\s+)?ID\b(?!\s+Number)(?:\s+No\.?)?"
            + _SEP
            + r"([A-Z0-9]+)",
            re.IGNORECASE | re.ASCII,
        ),
        transform=_upper,
    ),
    FieldMatcher(
        "id_number",
        re.compile(
            r"\bID\s+Number" + _SEP + r"([A-Z0-9]+)",
            re.IGNORECASE | re.ASCII,
        ),
        transform=_upper,
    ),
    FieldMatcher(
        "card_no",
        re.compile(
            r"\bCard\s+No\.?" + _SEP + r"([A-Z0-9]+)",
            re.IGNORECASE | re.ASCII,
        ),
        transform=_upper,
    ),
]


class FieldParser:
    """Parses identity fields out of raw OCR text.

    Parsing never fails: a field that no matcher recognises is returned
    as ``None``, and a miss on one field does not affect the others.
    """

    def __init__(self) -> None:
        self.matchers: dict[str, list[FieldMatcher]] = {
            "extracted_name": _NAME_MATCHERS,
            "extracted_roll": _ROLL_MATCHERS,
            "extracted_college_id": _COLLEGE_ID_MATCHERS,
        }

    def parse(self, text: str) -> ExtractionResult:
        """Extract name, roll number and college ID from OCR text.

        Args:
            text: Raw text returned by the OCR stage.

        Returns:
            Extraction result with every recognised field populated.
        """
        views = {
            TextView.RAW: text,
            TextView.COLLAPSED: re.sub(r"\s+", " ", text).strip(),
        }
        values = {
            field_name: self._first_match(field_name, matchers, views)
            for field_name, matchers in self.matchers.items()
        }

        logger.info(
            "Parsed fields: name=%s roll=%s college_id=%s",
            values["extracted_name"] or "not found",
            values["extracted_roll"] or "not found",
            values["extracted_college_id"] or "not found",
        )
        return ExtractionResult(raw_text=text, **values)

    @staticmethod
    def _first_match(
        field_name: str,
        matchers: list[FieldMatcher],
        views: dict[TextView, str],
    ) -> str | None:
        for matcher in matchers:
            value = matcher.match(views)
            if value is not None:
                logger.debug("%s matched by %s", field_name, matcher.label)
                return value
        return None
