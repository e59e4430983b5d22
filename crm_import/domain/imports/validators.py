"""
Per-cell and per-row validation of raw import values.

Validation never raises: every problem becomes a human-readable message
(cell level) or a ``RowValidationError`` (row level) collected by the caller.
"""

import re
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from crm_import.api.schemas.imports import ColumnMapping, RowValidationError, SampleValidationResult
from crm_import.domain.imports.field_definitions import (
    FieldDefinition,
    FieldType,
    field_by_name,
    required_fields_for,
)
from crm_import.utils.date import parse_flexible_date
from crm_import.utils.numbers import CURRENCY_NOISE, as_text, parse_float


# Patterns for the format-checked field types
FIELD_PATTERNS = {
    "email": r"^[^\s@]+@[^\s@]+\.[^\s@]+$",
    # 7-20 characters of digits and common separators
    "phone": r"^[\d\s\-+().]{7,20}$",
    "url": r"^(https?://)?[\w.-]+\.[\w.-]+(/[\w\-._~:/?#\[\]@!$&'()*+,;=%]*)?$",
}

DATE_PATTERNS = (
    r"^\d{4}-\d{2}-\d{2}$",            # YYYY-MM-DD
    r"^\d{2}/\d{2}/\d{4}$",            # MM/DD/YYYY or DD/MM/YYYY
    r"^\d{2}-\d{2}-\d{4}$",            # MM-DD-YYYY or DD-MM-YYYY
    r"^\d{1,2}/\d{1,2}/\d{2,4}$",      # M/D/YY or MM/DD/YYYY
)

_EMAIL_RE = re.compile(FIELD_PATTERNS["email"])
_PHONE_RE = re.compile(FIELD_PATTERNS["phone"])
_URL_RE = re.compile(FIELD_PATTERNS["url"], re.IGNORECASE)
_DATE_RES = tuple(re.compile(p) for p in DATE_PATTERNS)

DEFAULT_PERCENTAGE_MIN = 0
DEFAULT_PERCENTAGE_MAX = 100


def _format_bound(bound: float) -> str:
    return str(int(bound)) if float(bound).is_integer() else str(bound)


def _check_email(text: str, field: FieldDefinition) -> Optional[str]:
    return None if _EMAIL_RE.match(text) else "Invalid email format"


def _check_phone(text: str, field: FieldDefinition) -> Optional[str]:
    return None if _PHONE_RE.match(text) else "Invalid phone format"


def _check_url(text: str, field: FieldDefinition) -> Optional[str]:
    return None if _URL_RE.match(text) else "Invalid URL format"


def _check_date(text: str, field: FieldDefinition) -> Optional[str]:
    if any(pattern.match(text) for pattern in _DATE_RES):
        return None
    if parse_flexible_date(text, log_context=field.name) is None:
        return "Invalid date format (use YYYY-MM-DD)"
    return None


def _check_number(text: str, field: FieldDefinition) -> Optional[str]:
    number = parse_float(text.replace(",", ""))
    if number is None:
        return "Must be a number"
    if field.min_value is not None and number < field.min_value:
        return f"Minimum value is {_format_bound(field.min_value)}"
    if field.max_value is not None and number > field.max_value:
        return f"Maximum value is {_format_bound(field.max_value)}"
    return None


def _check_currency(text: str, field: FieldDefinition) -> Optional[str]:
    if parse_float(CURRENCY_NOISE.sub("", text)) is None:
        return "Invalid currency value"
    return None


def _check_percentage(text: str, field: FieldDefinition) -> Optional[str]:
    pct = parse_float(text.replace("%", ""))
    if pct is None:
        return "Invalid percentage"
    low = field.min_value if field.min_value is not None else DEFAULT_PERCENTAGE_MIN
    high = field.max_value if field.max_value is not None else DEFAULT_PERCENTAGE_MAX
    if pct < low or pct > high:
        return f"Percentage must be between {_format_bound(low)} and {_format_bound(high)}"
    return None


def _check_enum(text: str, field: FieldDefinition) -> Optional[str]:
    if not field.enum_values:
        return None
    lowered = text.lower()
    if any(option.lower() == lowered for option in field.enum_values):
        return None
    return f"Invalid value. Allowed: {', '.join(field.enum_values)}"


def _no_check(text: str, field: FieldDefinition) -> Optional[str]:
    return None


TYPE_CHECKS: Dict[FieldType, Callable[[str, FieldDefinition], Optional[str]]] = {
    FieldType.EMAIL: _check_email,
    FieldType.PHONE: _check_phone,
    FieldType.URL: _check_url,
    FieldType.DATE: _check_date,
    FieldType.NUMBER: _check_number,
    FieldType.CURRENCY: _check_currency,
    FieldType.PERCENTAGE: _check_percentage,
    FieldType.ENUM: _check_enum,
    FieldType.TAGS: _no_check,
    FieldType.STRING: _no_check,
}


def validate_field_value(value: Any, field: FieldDefinition) -> Optional[str]:
    """
    Validate one raw cell against its field definition.

    Returns:
        An error message, or None when the value is acceptable. The first
        type error wins; the length limit is only reported once the
        type-specific check has passed.
    """
    text = as_text(value)

    if field.required and not text:
        return f"{field.label} is required"
    if not text:
        return None

    error = TYPE_CHECKS[field.type](text, field)
    if error:
        return error

    if field.max_length and len(text) > field.max_length:
        return f"Maximum length is {field.max_length} characters"

    return None


def _mapped_values(row: Mapping[str, Any], mappings: Sequence[ColumnMapping]) -> Dict[str, Any]:
    return {m.db_field: row.get(m.csv_column) for m in mappings if m.db_field}


def validate_row(
    row: Mapping[str, Any],
    mappings: Sequence[ColumnMapping],
    entity_type,
    row_index: int,
) -> List[RowValidationError]:
    """
    Validate a raw source row under ``mappings``.

    Required fields are checked first against the mapped values (so a
    required-but-unmapped field is reported), then every mapped column is
    validated on its own. A required empty cell therefore yields both errors.
    """
    errors: List[RowValidationError] = []
    mapped = _mapped_values(row, mappings)

    for required in required_fields_for(entity_type):
        value = mapped.get(required.name)
        if not as_text(value):
            errors.append(RowValidationError(
                row=row_index,
                field=required.name,
                value=value,
                message=f"{required.label} is required",
            ))

    for mapping in mappings:
        if not mapping.db_field:
            continue
        field = field_by_name(entity_type, mapping.db_field)
        if field is None:
            continue
        value = row.get(mapping.csv_column)
        message = validate_field_value(value, field)
        if message:
            errors.append(RowValidationError(
                row=row_index,
                field=mapping.db_field,
                value=value,
                message=message,
            ))

    return errors


def validate_all_rows(
    rows: Sequence[Mapping[str, Any]],
    mappings: Sequence[ColumnMapping],
    entity_type,
) -> SampleValidationResult:
    """Validate every row; counts rows with at least one error as invalid."""
    result = SampleValidationResult()
    for index, row in enumerate(rows, start=1):
        row_errors = validate_row(row, mappings, entity_type, index)
        if row_errors:
            result.invalid += 1
            result.errors.extend(row_errors)
        else:
            result.valid += 1
    return result


_missing_checks = set(FieldType) - set(TYPE_CHECKS)
if _missing_checks:
    raise RuntimeError(f"No validator registered for field types: {sorted(t.value for t in _missing_checks)}")
