"""Institutional email address and temporary password generation."""

import re
import secrets
import string
from collections.abc import Callable

_NON_LETTERS = re.compile(r"[^a-z]")
_PASSWORD_ALPHABET = string.ascii_letters + string.digits
_REQUIRED_CLASSES = (string.ascii_uppercase, string.ascii_lowercase, string.digits)


def generate_college_email(
    name: str,
    roll: str,
    exists: Callable[[str], bool],
    domain: str = "college.edu",
) -> str:
    """Build a unique college email address for a student.

    The local part is the lower-cased first name stripped to letters,
    followed by the last two characters of the roll number. Taken
    addresses get ``_1``, ``_2``, ... appended to the local part.

    Args:
        name: Student's full name.
        roll: Roll number read from the ID card.
        exists: Returns ``True`` if an address is already issued.
        domain: Mail domain of the college.

    Returns:
        An address for which ``exists`` returned ``False``.

    Raises:
        ValueError: If the name has no letters or the roll is empty.
    """
    parts = name.strip().split()
    first_name = _NON_LETTERS.sub("", parts[0].lower()) if parts else ""
    if not first_name:
        raise ValueError(f"Cannot derive an email address from name {name!r}")
    roll = roll.strip()
    if not roll:
        raise ValueError("Roll number is required to generate an email address")

    base = f"{first_name}{roll[-2:]}"
    candidate = f"{base}@{domain}"
    counter = 1
    while exists(candidate):
        candidate = f"{base}_{counter}@{domain}"
        counter += 1
    return candidate


def generate_secure_password(min_length: int = 12, max_length: int = 16) -> str:
    """Generate a random password for a newly issued account.

    The password contains at least one upper-case letter, one lower-case
    letter and one digit.

    Args:
        min_length: Shortest allowed length, at least 3.
        max_length: Longest allowed length.

    Returns:
        The generated password.
    """
    if min_length < len(_REQUIRED_CLASSES) or min_length > max_length:
        raise ValueError(f"Invalid password length bounds {min_length}..{max_length}")

    length = min_length + secrets.randbelow(max_length - min_length + 1)
    chars = [secrets.choice(alphabet) for alphabet in _REQUIRED_CLASSES]
    chars += [
        secrets.choice(_PASSWORD_ALPHABET) for _ in range(length - len(chars))
    ]
    # Shuffle so the required classes do not always lead.
    secrets.SystemRandom().shuffle(chars)
    return "".join(chars)
