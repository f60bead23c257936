"""Utility functions for score validation and parsing."""

from decimal import Decimal, InvalidOperation

ABSENT_MARKERS = ("A", "AA", "ABS", "ABSENT")
# NUMERIC(5, 1) column bound
MAX_STORABLE_SCORE = Decimal("10000")


def format_score(value: Decimal) -> str:
    """Render a score without a trailing '.0' for whole numbers."""
    if value == value.to_integral_value():
        return str(int(value))
    return str(value.normalize())


def is_absent_marker(value: str | float | Decimal | None) -> bool:
    """Check if a raw cell value marks the student as absent."""
    if value is None or isinstance(value, (int, float, Decimal)):
        return False
    return str(value).strip().upper() in ABSENT_MARKERS


def parse_score_value(value: str | float | Decimal | None) -> Decimal | None:
    """
    Parse and normalize a raw score value.
    Returns: None for empty input, otherwise a non-negative Decimal with at most one fractional digit.
    Raises ValueError if the value is not a number, is negative or carries more than one decimal place.
    """
    if value is None:
        return None

    value_str = str(value).strip()
    if not value_str:
        return None

    try:
        num_value = Decimal(value_str)
    except InvalidOperation:
        raise ValueError(f"Score must be a number (>=0). Got: {value_str}")

    if not num_value.is_finite():
        raise ValueError(f"Score must be a number (>=0). Got: {value_str}")
    if num_value < 0:
        raise ValueError(f"Score cannot be negative: {value_str}")
    if num_value >= MAX_STORABLE_SCORE:
        raise ValueError(f"Score is too large: {value_str}")
    if num_value != num_value.quantize(Decimal("0.1")):
        raise ValueError(f"Score can have at most one decimal place: {value_str}")
    return num_value.quantize(Decimal("0.1"))


def validate_score_range(score: Decimal | None, full_score: Decimal, absent: bool = False) -> tuple[bool, str | None]:
    """
    Validate that a score lies between 0 and the course full score.

    Absent entries and entries without a score are always in range.

    Returns:
        Tuple of (is_valid, error_message). error_message is None if valid.
    """
    if absent or score is None:
        return True, None

    full_score_display = format_score(full_score)
    if score < 0:
        return False, f"Score cannot be negative. Please enter a value between 0 and {full_score_display}"
    if score > full_score:
        return (
            False,
            f"Score {format_score(score)} exceeds the full score of {full_score_display}. "
            f"Please enter a value between 0 and {full_score_display}",
        )
    return True, None


def is_participating(score: Decimal | None, absent: bool) -> bool:
    """A score takes part in ranking and averages only when present and not absent."""
    return not absent and score is not None
