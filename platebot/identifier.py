"""Licence-plate identifier shape checks and normalization."""

import re

from platebot.services.errors import InvalidIdentifierError

MIN_DIGITS = 7
MAX_DIGITS = 8

# Digits and the separators users type between plate groups
_IDENTIFIER_SHAPE = re.compile(r"^(?=.*\d)[\d\s.\-]+$", re.ASCII)
_NON_DIGITS = re.compile(r"\D", re.ASCII)


def looks_like_identifier(text: str) -> bool:
    """True when text is only digits and separators, with at least one digit."""
    return bool(text) and _IDENTIFIER_SHAPE.match(text.strip()) is not None


def normalize_identifier(text: str) -> str:
    """Strip separators, keeping digits only."""
    return _NON_DIGITS.sub("", text)


def is_valid_identifier(digits: str) -> bool:
    return (
        MIN_DIGITS <= len(digits) <= MAX_DIGITS
        and _NON_DIGITS.search(digits) is None
    )


def parse_identifier(text: str) -> str:
    """
    Normalize user input into a 7-8 digit plate number.

    Raises:
        InvalidIdentifierError: when the input has the wrong shape or length
    """
    if not text or not looks_like_identifier(text):
        raise InvalidIdentifierError(text or "", "not a plate number")

    digits = normalize_identifier(text)
    if not is_valid_identifier(digits):
        raise InvalidIdentifierError(text, f"plate must have {MIN_DIGITS}-{MAX_DIGITS} digits")

    return digits
