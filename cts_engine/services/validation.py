"""
Input checks shared by every command.
"""

import re
from typing import Optional

from .errors import ValidationError

_NON_DIGITS = re.compile(r"\D")


def normalize_phone(raw: Optional[str], country_code: str = "+1", digits: int = 10) -> str:
    """
    Strip everything but digits and prefix the country code.

    "555-0123-456" -> "+15550123456"
    """
    cleaned = _NON_DIGITS.sub("", raw or "")
    if len(cleaned) != digits:
        raise ValidationError(
            f"Phone number must contain exactly {digits} digits, got {len(cleaned)}."
        )
    return f"{country_code}{cleaned}"


def require_text(value: Optional[str], field: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{field} is required.")
    return value.strip()


def require_reason(reason: Optional[str]) -> str:
    """Every audited command needs a reason; we never default one."""
    return require_text(reason, "reason")
