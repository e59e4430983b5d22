"""
Phone number normalization utilities.

Imported phone numbers are stored in international digit form: an optional
leading ``+`` followed by digits only, whatever separators the source used.
"""

import re
from typing import Any, Optional
import logging

logger = logging.getLogger(__name__)

_NON_DIGITS = re.compile(r'\D')


def to_international_digits(value: Any) -> Optional[str]:
    """
    Strip every separator from a phone number, keeping a leading ``+``.

    Handles various input formats:
    - (415) 555-1234   -> 4155551234
    - +1 415 555 1234  -> +14155551234
    - +44 (0)20.7946   -> +440207946

    Returns:
        Normalized phone string, or None if the value holds no digits
    """
    if value is None:
        return None

    text = str(value).strip()
    if not text:
        return None

    digits = _NON_DIGITS.sub('', text)
    if not digits:
        logger.debug("Phone value '%s' contains no digits", value)
        return None

    return f"+{digits}" if text.startswith('+') else digits
