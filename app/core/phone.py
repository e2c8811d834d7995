"""Phone number utilities for consistent handling across the application."""

import logging
import re

logger = logging.getLogger(__name__)

HOME_COUNTRY_CODE = "852"
US_COUNTRY_CODE = "1"


def _is_e164_length(candidate: str) -> bool:
    # '+' plus 7-15 digits
    return 8 <= len(candidate) <= 16


def normalize_phone_e164(phone: str | None, default_country_code: str = HOME_COUNTRY_CODE) -> str | None:
    """Normalize a free-form phone number to E.164.

    Handles various input formats:
        +852 9123 4567   → +85291234567
        00852 91234567   → +85291234567
        9123 4567        → +85291234567   (7-9 digits get the default code)
        212-555-0100     → +12125550100   (10 digits, non-HK default)
        1 212 555 0100   → +12125550100

    Exactly 10 digits only keep the default code when the default is the
    home (Hong Kong) code; any other default assumes a US number.

    Returns:
        Phone in E.164 format or None if nothing matches
    """
    if not phone:
        return None

    cleaned = re.sub(r"[^\d+]", "", phone)

    if cleaned.startswith("+") and _is_e164_length(cleaned):
        return cleaned

    if cleaned.startswith("00"):
        cleaned = "+" + cleaned[2:]
        if _is_e164_length(cleaned):
            return cleaned

    length = len(cleaned)

    if 7 <= length <= 9:
        return f"+{default_country_code}{cleaned}"

    if length == 10:
        if default_country_code == HOME_COUNTRY_CODE:
            return f"+{default_country_code}{cleaned}"
        return f"+{US_COUNTRY_CODE}{cleaned}"

    if length == 11 and cleaned.startswith("1"):
        return f"+{cleaned}"

    if 10 <= length <= 15:
        return f"+{default_country_code}{cleaned}"

    return None


def normalize_phone_with_fallbacks(phone: str | None, default_country_code: str = HOME_COUNTRY_CODE) -> str | None:
    """Normalize a phone trying the default code, then US, then Hong Kong.

    The US retry only applies to 10 or 11 digit inputs.

    Returns:
        Phone in E.164 format or None if every attempt fails
    """
    if not phone:
        return None

    normalized = normalize_phone_e164(phone, default_country_code)
    if normalized:
        return normalized

    digits = re.sub(r"\D", "", phone)
    if len(digits) in (10, 11):
        normalized = normalize_phone_e164(phone, US_COUNTRY_CODE)
        if normalized:
            return normalized

    normalized = normalize_phone_e164(phone, HOME_COUNTRY_CODE)
    if normalized:
        return normalized

    logger.warning(f"Could not normalize phone number: {phone}")
    return None
