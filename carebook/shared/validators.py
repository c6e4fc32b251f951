"""Shared validation utilities"""

import re
from typing import Optional


def to_e164(phone: Optional[str], country_code: str = "+91") -> str:
    """
    Normalize a phone number to E.164 format.

    Numbers already carrying a "+" prefix keep their country code; bare
    national numbers get country_code prepended.

    Raises:
        ValueError: If phone number is invalid
    """
    if not phone:
        raise ValueError("Phone number is required")

    phone = phone.strip()
    digits = re.sub(r"\D", "", phone)

    if phone.startswith("+"):
        if not 8 <= len(digits) <= 15:
            raise ValueError("Phone number must have 8 to 15 digits")
        return f"+{digits}"

    code_digits = re.sub(r"\D", "", country_code)
    # Drop a leading trunk zero (e.g. 098765 43210)
    digits = digits.lstrip("0")
    if not 6 <= len(digits) <= 12:
        raise ValueError("Phone number must have 6 to 12 digits")
    return f"+{code_digits}{digits}"


def mask_phone(phone: Optional[str]) -> Optional[str]:
    """Mask all but the last four digits: +********3210"""
    if not phone:
        return phone
    return re.sub(r"\d(?=\d{4})", "*", phone)
