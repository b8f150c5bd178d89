import re
from decimal import Decimal, InvalidOperation
from typing import Optional


EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
FRENCH_ZIP_RE = re.compile(r"^[0-9]{5}$")


def ensure_positive_int(value, field: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{field} must be an integer")
    if number < 1:
        raise ValueError(f"{field} must be >= 1")
    return number


def parse_amount(value, field: str) -> Decimal:
    """Non-negative money amount from JSON input (number or numeric string)."""
    if value is None or isinstance(value, bool) or value == "":
        raise ValueError(f"{field} must be a number")
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError(f"{field} must be a number")
    if not amount.is_finite() or amount < 0:
        raise ValueError(f"{field} must be >= 0")
    return amount


def is_valid_email(value: Optional[str]) -> bool:
    return bool(value) and len(value) <= 255 and bool(EMAIL_RE.match(value))


def clean_zip(value: Optional[str]) -> str:
    return re.sub(r"[^0-9]", "", value or "")


def is_valid_french_zip(value: Optional[str]) -> bool:
    return bool(FRENCH_ZIP_RE.match(clean_zip(value)))
