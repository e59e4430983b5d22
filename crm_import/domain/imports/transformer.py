"""
Coerce validated raw values to their canonical storage form.

Transformation performs no validation and never raises: values that cannot
be coerced either pass through unchanged (dates) or become None (numbers).
Running a transformed row through again yields the same values.
"""
import logging
import re
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from crm_import.api.schemas.imports import ColumnMapping
from crm_import.domain.imports.field_definitions import FieldType, field_by_name
from crm_import.utils.date import to_iso_date
from crm_import.utils.numbers import CURRENCY_NOISE, PERCENT_NOISE, as_text, parse_float
from crm_import.utils.phone import to_international_digits

logger = logging.getLogger(__name__)

_HAS_SCHEME = re.compile(r"^https?://", re.IGNORECASE)


def _to_email(text: str) -> str:
    return text.lower()


def _to_url(text: str) -> str:
    return text if _HAS_SCHEME.match(text) else f"https://{text}"


def _to_date(text: str) -> str:
    return to_iso_date(text, log_context="transform") or text


def _to_number(text: str) -> Optional[float]:
    return parse_float(PERCENT_NOISE.sub("", text))


def _to_currency(text: str) -> Optional[float]:
    return parse_float(CURRENCY_NOISE.sub("", text))


def _to_tags(text: str) -> List[str]:
    return [tag.strip() for tag in text.split(",") if tag.strip()]


def _to_enum(text: str) -> str:
    return text.lower()


def _to_string(text: str) -> str:
    return text


TRANSFORMS: Dict[FieldType, Callable[[str], Any]] = {
    FieldType.EMAIL: _to_email,
    FieldType.PHONE: to_international_digits,
    FieldType.URL: _to_url,
    FieldType.DATE: _to_date,
    FieldType.NUMBER: _to_number,
    FieldType.PERCENTAGE: _to_number,
    FieldType.CURRENCY: _to_currency,
    FieldType.TAGS: _to_tags,
    FieldType.ENUM: _to_enum,
    FieldType.STRING: _to_string,
}

_missing_transforms = set(FieldType) - set(TRANSFORMS)
if _missing_transforms:
    raise RuntimeError(f"No transform registered for field types: {sorted(t.value for t in _missing_transforms)}")


def transform_value(value: Any, field_type) -> Any:
    """
    Canonical form of ``value`` for ``field_type``; empty values are always None.

    Unknown type tags fall back to trimmed string handling.
    """
    text = as_text(value)
    if not text:
        return None

    try:
        transform = TRANSFORMS[FieldType(field_type)]
    except ValueError:
        transform = _to_string

    try:
        return transform(text)
    except Exception as e:  # transformation must never break a row
        logger.warning("Could not transform value '%s' as %s: %s", text, field_type, e)
        return text


def transform_row(
    row: Mapping[str, Any],
    mappings: Sequence[ColumnMapping],
    entity_type,
) -> Dict[str, Any]:
    """Map a raw row onto canonical field names, transforming every mapped value."""
    result: Dict[str, Any] = {}
    for mapping in mappings:
        if not mapping.db_field:
            continue
        field = field_by_name(entity_type, mapping.db_field)
        if field is None:
            continue
        result[mapping.db_field] = transform_value(row.get(mapping.csv_column), field.type)
    return result
