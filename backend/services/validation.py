"""
Input validation helpers shared by API models and services.
"""

import html
import re
from typing import Optional

SYMBOL_PATTERN = re.compile(r"^[A-Z0-9]{1,10}$")
_UNSAFE_CHARS = re.compile(r"[<>]")


def normalize_symbol(symbol: str) -> str:
    """Upper-case and strip a ticker; raises ValueError if it is not 1-10 letters/digits."""
    value = str(symbol or "").strip().upper()
    if not SYMBOL_PATTERN.match(value):
        raise ValueError(f"Invalid symbol format: {symbol}")
    return value


def ensure_safe_text(value: Optional[str], field_name: str, max_length: int) -> Optional[str]:
    """Strip free text and reject markup characters or overlong values."""
    if value is None:
        return None
    text = str(value).strip()
    if len(text) > max_length:
        raise ValueError(f"{field_name} must be at most {max_length} characters")
    if _UNSAFE_CHARS.search(text):
        raise ValueError(f"{field_name} contains invalid characters")
    return text


def sanitize_text(value: Optional[str], max_length: int = 1000) -> str:
    """HTML-escape and truncate text destined for notifications or logs."""
    if not value:
        return ""
    return html.escape(str(value).strip()[:max_length])
