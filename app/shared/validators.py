"""Shared validation utilities"""

import re
from typing import Optional

SERVICE_CODE_PATTERN = r"^[A-Z_]{2,50}$"
HHMM_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


def validate_phone(phone: Optional[str]) -> Optional[str]:
    """
    Validate and normalize a Korean phone number.

    Args:
        phone: Phone number string in various formats (010-1234-5678, 01012345678, +82 10 ...)

    Returns:
        Normalized phone number with dashes (010-1234-5678, 02-123-4567)

    Raises:
        ValueError: If phone number is invalid
    """
    if not phone:
        return phone

    # Remove all non-digit characters
    digits = re.sub(r"\D", "", phone)

    # Handle +82 country prefix
    if digits.startswith("82"):
        digits = "0" + digits[2:]

    if not digits.startswith("0") or not 9 <= len(digits) <= 11:
        raise ValueError("Phone number must be 9 to 11 digits starting with 0")

    # Seoul landlines use a two-digit area code
    if digits.startswith("02"):
        return f"{digits[:2]}-{digits[2:-4]}-{digits[-4:]}"
    return f"{digits[:3]}-{digits[3:-4]}-{digits[-4:]}"


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Args:
        email: Email address string

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()

    # Basic email validation pattern
    email_pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"

    if not re.match(email_pattern, email):
        raise ValueError("Invalid email format")

    return email


def validate_service_code(code: str) -> str:
    """Service codes are upper-case letters and underscores, 2-50 characters."""
    if not code or not re.match(SERVICE_CODE_PATTERN, code):
        raise ValueError("Service code may only contain upper-case letters and underscores (2-50)")
    return code


def validate_hhmm(value: str) -> str:
    """Validate a 24h HH:MM time-of-day string"""
    if not value or not re.match(HHMM_PATTERN, value):
        raise ValueError("Time must be in HH:MM format")
    return value
