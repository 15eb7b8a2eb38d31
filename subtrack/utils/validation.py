"""
Validation utilities for identifiers and MM-YYYY months
"""
import re
import uuid
from datetime import date

from subtrack.application.errors import SubscriptionValidationError

_MONTH_RE = re.compile(r"^(0[1-9]|1[0-2])-(\d{4})$")


def parse_month(value: str, field: str = "date") -> date:
    """
    Parse a month in MM-YYYY form

    Args:
        value: Month string, e.g. "07-2025"
        field: Field name used in the error message

    Returns:
        date pinned to the 1st day of the month

    Raises:
        SubscriptionValidationError: if the string is not MM-YYYY

    Example:
        >>> parse_month("07-2025")
        datetime.date(2025, 7, 1)
    """
    match = _MONTH_RE.match(value.strip())
    if not match or int(match.group(2)) < 1:
        raise SubscriptionValidationError(f"Invalid {field} format, expected MM-YYYY")
    return date(int(match.group(2)), int(match.group(1)), 1)


def format_month(value: date) -> str:
    """date -> "MM-YYYY" """
    return f"{value.month:02d}-{value.year:04d}"


def parse_uuid(value: str, field: str = "id") -> uuid.UUID:
    """Parse a UUID, raising SubscriptionValidationError on malformed input"""
    try:
        return uuid.UUID(value.strip())
    except (ValueError, AttributeError):
        raise SubscriptionValidationError(f"Invalid {field} format")
