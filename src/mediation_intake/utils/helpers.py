"""
General helper functions
"""
import re
from typing import Any, Dict, Optional
from datetime import date, datetime, timezone


def utcnow() -> datetime:
    """Naive UTC timestamp, the format stored in every DateTime column"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def format_date(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


def clean_optional_string(value: Any) -> Optional[str]:
    """Trim a string; blank strings become None"""
    if value is None:
        return None
    if not isinstance(value, str):
        return value
    trimmed = value.strip()
    return trimmed or None


def normalize_name(value: Optional[str]) -> str:
    """Lowercase, collapse whitespace, drop punctuation other than hyphens/apostrophes"""
    if not value:
        return ""
    cleaned = re.sub(r"[^\w\s'-]", " ", value.lower())
    return " ".join(cleaned.split())


def normalize_email(value: Optional[str]) -> str:
    return value.strip().lower() if value else ""


def normalize_phone(value: Optional[str]) -> str:
    """
    Digits only; North American numbers are compared on their last ten
    digits so "+1 (410) 555-0100" and "410.555.0100" match.
    """
    if not value:
        return ""
    digits = re.sub(r"\D", "", value)
    if len(digits) == 11 and digits.startswith("1"):
        digits = digits[1:]
    return digits


def split_full_name(full_name: Optional[str]) -> Dict[str, str]:
    """Split "First Middle Last" into first name and the remainder"""
    parts = (full_name or "").strip().split()
    if not parts:
        return {"first_name": "", "last_name": ""}
    if len(parts) == 1:
        return {"first_name": parts[0], "last_name": ""}
    return {"first_name": parts[0], "last_name": " ".join(parts[1:])}
