# utils.py
"""
Utility functions for the CRM application.
"""

import re
from typing import Optional


def camel_to_snake(name: str) -> str:
    """
    Convert a camelCase JSON key to snake_case. snake_case keys pass through.

    Args:
        name: Key to convert

    Returns:
        snake_case key
    """
    name = re.sub(r'(.)([A-Z][a-z]+)', r'\1_\2', name)
    return re.sub(r'([a-z0-9])([A-Z])', r'\1_\2', name).lower()


def format_phone_number(phone: Optional[str]) -> Optional[str]:
    """
    Normalize a phone number.
    Ten-digit numbers become (XXX) XXX-XXXX; international numbers keep a
    leading + followed by digits only.

    Args:
        phone: Phone number string

    Returns:
        Formatted phone number or None if invalid
    """
    if not phone:
        return None

    is_international = phone.strip().startswith('+')

    # Remove any non-digit characters
    digits = ''.join(filter(str.isdigit, phone))

    if is_international:
        if 8 <= len(digits) <= 15:
            return f"+{digits}"
        return None

    # Handle numbers with or without country code
    if len(digits) == 11 and digits.startswith('1'):
        digits = digits[1:]  # Remove leading 1

    # If we don't have exactly 10 digits, return None
    if len(digits) != 10:
        return None

    # Format as (XXX) XXX-XXXX
    return f"({digits[0:3]}) {digits[3:6]}-{digits[6:]}"
