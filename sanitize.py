"""
Input cleaning shared by the cart store and the cart validator.
"""
import math
import re
from typing import Any, Optional

_NON_ID_CHARS = re.compile(r"[^a-zA-Z0-9-]")
_HTML_TAG = re.compile(r"<[^>]*>")
_UNSAFE_URI_CHARS = re.compile(r"[<>\"']")
_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def clean_id(value: Any) -> str:
    """Keep letters, digits and hyphens only."""
    if not value:
        return ""
    return _NON_ID_CHARS.sub("", str(value))


def clean_name(value: Any, max_length: int = 100) -> str:
    if not value:
        return ""
    return _HTML_TAG.sub("", str(value))[:max_length]


def clean_uri(value: Any) -> str:
    if not value:
        return ""
    return _UNSAFE_URI_CHARS.sub("", str(value))


def parse_int(value: Any) -> Optional[int]:
    """Parse a leading integer the lenient way form fields need ("3 pcs" -> 3)."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    if isinstance(value, str):
        m = _LEADING_INT.match(value)
        return int(m.group(1)) if m else None
    return None


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(value, high))
