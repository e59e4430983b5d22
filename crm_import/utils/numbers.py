"""
Lenient numeric parsing for spreadsheet cells.
"""
import math
import re
from typing import Any, Optional

CURRENCY_NOISE = re.compile(r"[$€£¥,\s]")
PERCENT_NOISE = re.compile(r"[%,\s]")


def as_text(value: Any) -> str:
    """Cell value as trimmed text; None/NaN become "", lists are comma-joined."""
    if value is None:
        return ""
    if isinstance(value, float) and math.isnan(value):
        return ""
    if isinstance(value, (list, tuple)):
        return ",".join(str(item) for item in value if item is not None).strip()
    return str(value).strip()


def parse_float(text: str) -> Optional[float]:
    """Parse a plain decimal/scientific number; None for anything else (incl. NaN/inf)."""
    text = text.strip()
    if not text or "_" in text:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number
