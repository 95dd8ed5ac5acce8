from __future__ import annotations

import pytest

from platebot.identifier import (
    is_valid_identifier,
    looks_like_identifier,
    normalize_identifier,
    parse_identifier,
)
from platebot.services.errors import InvalidIdentifierError


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("1234567", "1234567"),
        ("12345678", "12345678"),
        ("123-45-678", "12345678"),
        ("12.345.67", "1234567"),
        (" 12 345 67 ", "1234567"),
    ],
)
def test_parse_identifier_accepts_separated_plates(text, expected):
    assert parse_identifier(text) == expected


@pytest.mark.parametrize("text", ["", "123", "123456789", "abc1234567", "12-34", "---"])
def test_parse_identifier_rejects(text):
    with pytest.raises(InvalidIdentifierError):
        parse_identifier(text)


def test_looks_like_identifier_requires_a_digit():
    assert looks_like_identifier("123")
    assert not looks_like_identifier("- . -")
    assert not looks_like_identifier("hello")


def test_non_ascii_digits_are_not_plates():
    assert not looks_like_identifier("١٢٣٤٥٦٧")


def test_normalize_and_validate():
    assert normalize_identifier("12-345.67") == "1234567"
    assert is_valid_identifier("1234567")
    assert not is_valid_identifier("123456")
