"""
Date parsing utilities for flexible date format handling.

This module provides utilities to parse dates from various formats and
standardize them to ISO 8601 calendar dates (YYYY-MM-DD) for storage.
"""

import pandas as pd
from typing import Any, Optional
import re
import logging
import threading

from crm_import.core.config import settings

logger = logging.getLogger(__name__)

FAILED_SAMPLE_LIMIT = 5
SUPPRESSION_NOTICE_EVERY = 100

_failure_stats: dict = {}
_failure_lock = threading.Lock()  # chunk workers record failures concurrently

_NUMERIC_DATE_PREFIX = re.compile(r'^\d{1,2}[/-]\d{1,2}[/-]\d{2,4}')


def _record_parse_failure(value: Any, context: Optional[str], error: Exception) -> None:
    """
    Collect failure stats and emit limited logs (sampled warnings + periodic summaries).
    """
    key = context or "default"
    with _failure_lock:
        stats = _failure_stats.setdefault(key, {"count": 0, "samples": []})
        stats["count"] += 1
        count = stats["count"]
        sampled = len(stats["samples"]) < FAILED_SAMPLE_LIMIT
        if sampled:
            stats["samples"].append(value)
        samples = list(stats["samples"])

    if sampled:
        logger.debug("Failed to parse date%s value '%s': %s", f" ({key})" if context else "", value, error)
        return

    # Emit a single summary when suppression starts, then periodically.
    if count == FAILED_SAMPLE_LIMIT + 1 or count % SUPPRESSION_NOTICE_EVERY == 0:
        logger.info(
            "Suppressed additional date parse messages after %d failures%s; sample values=%s",
            count,
            f" ({key})" if context else "",
            samples,
        )


def _prefers_dayfirst(value: str) -> Optional[bool]:
    """Return the more plausible day/month order for numeric dates, or None for other shapes."""
    match = _NUMERIC_DATE_PREFIX.match(value)
    if not match:
        return None
    parts = re.split(r'[/-]', match.group(0))
    first = int(parts[0])
    second = int(parts[1])

    if first > 12 and second <= 31:
        return True
    if second > 12 and first <= 12:
        return False
    return settings.date_default_dayfirst


def parse_flexible_date(value: Any, *, log_context: Optional[str] = None, log_failures: bool = True) -> Optional[pd.Timestamp]:
    """
    Parse a date value from various formats.

    Supports formats:
    - ISO 8601: "2024-09-04", "2024-09-04T23:09:18Z"
    - MM/DD/YYYY and DD/MM/YYYY (the unambiguous reading wins, otherwise
      ``settings.date_default_dayfirst`` decides)
    - Written dates: "5 Feb 2024", "February 5, 2024"
    - And many others via pandas inference

    Returns:
        A pandas Timestamp, or None if parsing fails. Never raises.
    """
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return None

    if isinstance(value, str):
        value = value.strip()
        if value == "":
            return None

    parse_attempts = []

    if isinstance(value, str):
        dayfirst_preferred = _prefers_dayfirst(value)
        if dayfirst_preferred is not None:
            parse_attempts.append(
                lambda v, df=dayfirst_preferred: pd.to_datetime(v, dayfirst=df, errors='raise')
            )
            # Always try the alternate interpretation as a fallback
            parse_attempts.append(
                lambda v, df=not dayfirst_preferred: pd.to_datetime(v, dayfirst=df, errors='raise')
            )

    # Fallback: let pandas infer the format (default behavior)
    parse_attempts.append(lambda v: pd.to_datetime(v, errors='raise'))

    last_error = None
    for attempt in parse_attempts:
        try:
            parsed = attempt(value)
        except (ValueError, TypeError, OverflowError) as exc:
            last_error = exc
            continue
        if parsed is not None and not pd.isna(parsed):
            return parsed

    if log_failures:
        _record_parse_failure(value, log_context, last_error or ValueError("Unable to determine format"))
    return None


def to_iso_date(value: Any, *, log_context: Optional[str] = None) -> Optional[str]:
    """Parse ``value`` and return it as ``YYYY-MM-DD``, or None when it is not a date."""
    parsed = parse_flexible_date(value, log_context=log_context)
    if parsed is None:
        return None
    return parsed.strftime('%Y-%m-%d')
