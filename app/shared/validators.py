"""Shared validation utilities"""

import re
import uuid
from typing import Optional


def validate_uuid(value: str) -> bool:
    """Validate UUID format"""
    try:
        uuid.UUID(value)
        return True
    except (ValueError, AttributeError, TypeError):
        return False


def validate_phone(phone: Optional[str]) -> Optional[str]:
    """
    Normalize a phone number to E.164 for SMS delivery.

    Ten-digit numbers (optionally prefixed with 1) are treated as US numbers;
    anything written with a leading + is accepted as international when it has
    8-15 digits.

    Raises:
        ValueError: If phone number is invalid
    """
    if not phone:
        return phone

    phone = phone.strip()
    digits = re.sub(r"\D", "", phone)

    if phone.startswith("+") and not (digits.startswith("1") and len(digits) == 11):
        if not 8 <= len(digits) <= 15:
            raise ValueError("International phone numbers must have 8-15 digits")
        return f"+{digits}"

    # Handle +1 prefix
    if digits.startswith("1") and len(digits) == 11:
        digits = digits[1:]

    if len(digits) != 10:
        raise ValueError("Phone number must be 10 digits for US numbers")

    return f"+1{digits}"


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()

    email_pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"

    if not re.match(email_pattern, email):
        raise ValueError("Invalid email format")

    return email


def validate_identifier(value: Optional[str]) -> str:
    """
    Validate a holder or specialist identifier.

    Identifiers become part of the slot resource key ``{specialist}|{start}``,
    so they must be non-empty and must not contain ``|``.

    Raises:
        ValueError: If the identifier is empty or contains '|'
    """
    value = (value or "").strip()
    if not value:
        raise ValueError("Identifier must not be empty")
    if "|" in value:
        raise ValueError("Identifier must not contain '|'")
    return value
