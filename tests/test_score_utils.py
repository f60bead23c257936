from decimal import Decimal

import pytest

from gradebook.utils.score_utils import (
    format_score,
    is_absent_marker,
    is_participating,
    parse_score_value,
    validate_score_range,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("87.5", Decimal("87.5")),
        (" 90 ", Decimal("90.0")),
        (75, Decimal("75.0")),
        (Decimal("0"), Decimal("0.0")),
        ("100.0", Decimal("100.0")),
    ],
)
def test_parse_score_value(raw, expected):
    assert parse_score_value(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "   "])
def test_parse_empty_score_value(raw):
    assert parse_score_value(raw) is None


@pytest.mark.parametrize("raw", ["abc", "-1", "87.55", "NaN", "Infinity", "10000"])
def test_parse_invalid_score_value(raw):
    with pytest.raises(ValueError):
        parse_score_value(raw)


def test_validate_score_range():
    assert validate_score_range(Decimal("100"), Decimal("100")) == (True, None)
    assert validate_score_range(Decimal("0"), Decimal("100")) == (True, None)

    is_valid, message = validate_score_range(Decimal("100.5"), Decimal("100"))
    assert not is_valid
    assert "100.5" in message
    assert "between 0 and 100" in message


def test_absent_or_missing_score_is_always_in_range():
    assert validate_score_range(None, Decimal("100")) == (True, None)
    assert validate_score_range(Decimal("500"), Decimal("100"), absent=True) == (True, None)


def test_absent_markers():
    assert is_absent_marker("ABS")
    assert is_absent_marker(" absent ")
    assert not is_absent_marker("85")
    assert not is_absent_marker(85)
    assert not is_absent_marker(None)


def test_format_score():
    assert format_score(Decimal("100.0")) == "100"
    assert format_score(Decimal("87.5")) == "87.5"


def test_is_participating():
    assert is_participating(Decimal("0"), False)
    assert not is_participating(None, False)
    assert not is_participating(Decimal("80"), True)
