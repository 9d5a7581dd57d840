"""
Validation utilities for input validation and error handling.
"""
import re
from datetime import date, datetime
from typing import Any

from .error_handlers import ValidationError, get_error_message

EMAIL_PATTERN = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
# 12 digits, optionally written yyyyMMdd-xxxx
PERSON_NUMBER_PATTERN = r'^(\d{8})-?(\d{4})$'
USERNAME_PATTERN = r'^[A-Za-z0-9._-]+$'


def validate_email(email: Any) -> str:
    """Validate email format."""
    if not email or not isinstance(email, str):
        raise ValidationError("Email is required", code="INVALID_EMAIL")

    email = email.strip().lower()
    if len(email) > 255:
        raise ValidationError("Email too long (max 255 characters)", code="INVALID_EMAIL")

    if not re.match(EMAIL_PATTERN, email):
        raise ValidationError("Invalid email format", code="INVALID_EMAIL")

    return email


def validate_password(password: Any) -> None:
    """Validate password strength."""
    if not password or not isinstance(password, str):
        raise ValidationError("Password is required", code="WEAK_PASSWORD")

    if len(password) < 6:
        raise ValidationError(get_error_message("weak_password"), code="WEAK_PASSWORD")

    if len(password.encode("utf-8")) > 72:
        raise ValidationError("Password too long (max 72 bytes)", code="WEAK_PASSWORD")


def validate_username(username: Any) -> str:
    if not username or not isinstance(username, str):
        raise ValidationError("Username is required", code="INVALID_USERNAME")

    username = username.strip()
    if not 3 <= len(username) <= 64:
        raise ValidationError("Username must be between 3 and 64 characters", code="INVALID_USERNAME")

    if not re.match(USERNAME_PATTERN, username):
        raise ValidationError(
            "Username may only contain letters, digits, dots, dashes and underscores",
            code="INVALID_USERNAME",
        )

    return username


def validate_person_number(person_number: Any) -> str:
    """
    Validate a personal number and return it in canonical `yyyyMMdd-xxxx` form.
    The leading eight digits must be a real calendar date.
    """
    if not person_number or not isinstance(person_number, str):
        raise ValidationError("Person number is required", code="INVALID_PERSON_NUMBER")

    match = re.match(PERSON_NUMBER_PATTERN, person_number.strip())
    if not match:
        raise ValidationError(
            "Invalid person number format. Use yyyyMMdd-xxxx",
            code="INVALID_PERSON_NUMBER",
        )

    birth, serial = match.groups()
    try:
        datetime.strptime(birth, "%Y%m%d")
    except ValueError:
        raise ValidationError("Person number contains an invalid date", code="INVALID_PERSON_NUMBER")

    return f"{birth}-{serial}"


def validate_string_field(
    value: Any,
    field_name: str,
    min_length: int = 1,
    max_length: int = 255,
) -> str:
    """Validate a required string field."""
    if value is None or not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} is required", code="MISSING_FIELDS")

    value = value.strip()
    if len(value) < min_length:
        raise ValidationError(f"{field_name} must be at least {min_length} characters")

    if len(value) > max_length:
        raise ValidationError(f"{field_name} must not exceed {max_length} characters")

    return value


# Largest id the database integer column can hold.
MAX_ID = 2**63 - 1


def is_positive_int(value: Any) -> bool:
    # bool is an int subclass; `true` is not an id.
    return isinstance(value, int) and not isinstance(value, bool) and 0 < value <= MAX_ID


def validate_positive_int(value: Any, field_name: str) -> int:
    if not is_positive_int(value):
        raise ValidationError(f"Invalid {field_name}. It must be a positive number.")
    return value


def parse_date(value: Any, field_name: str) -> date:
    """Parse `YYYY-MM-DD` (a trailing time part, as browsers send, is ignored)."""
    if not value or not isinstance(value, str):
        raise ValidationError(f"{field_name} is required")
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        raise ValidationError("Invalid date format. Please provide valid dates.")
