"""US phone number normalization and display helpers."""

from __future__ import annotations

import re

_NON_DIGITS = re.compile(r"[^\d+]")
_US_NUMBER = re.compile(r"^[2-9]\d{9}$")


def normalize_phone(phone: str | None) -> str | None:
    """Normalize a US number to E.164 (``+1XXXXXXXXXX``).

    Accepts ``(555) 123-4567``, ``555.123.4567``, ``1-555-123-4567``,
    ``+15551234567`` and similar. Returns None for anything else,
    including non-US ``+`` numbers.
    """
    if not phone:
        return None

    digits = _NON_DIGITS.sub("", phone)
    if digits.startswith("+1"):
        digits = digits[2:]
    elif digits.startswith("1") and len(digits) == 11:
        digits = digits[1:]
    elif digits.startswith("+"):
        return None

    if not _US_NUMBER.match(digits):
        return None
    return f"+1{digits}"


def is_valid_phone(phone: str | None) -> bool:
    return normalize_phone(phone) is not None


def format_phone_display(phone: str | None) -> str:
    """``(555) 123-4567``; the input unchanged if it cannot be normalized."""
    if not phone:
        return "-"
    normalized = normalize_phone(phone)
    if normalized is None:
        return phone
    digits = normalized[2:]
    return f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"


def phone_last4(phone: str | None) -> str:
    normalized = normalize_phone(phone)
    if normalized is None:
        return "****"
    return normalized[-4:]
