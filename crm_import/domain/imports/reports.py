"""
Downloadable import artifacts: blank templates and error reports.
"""
import csv
import io
from datetime import date
from typing import Iterable, Optional

from openpyxl import Workbook
from openpyxl.utils import get_column_letter

from crm_import.api.schemas.imports import RowValidationError
from crm_import.domain.imports.field_definitions import fields_for, resolve_entity_type

ERROR_REPORT_HEADER = "Row,Field,Value,Error"
MIN_TEMPLATE_COLUMN_WIDTH = 15


def template_filename(entity_type, file_format: str) -> str:
    return f"{resolve_entity_type(entity_type).value}_import_template.{file_format}"


def error_report_filename(entity_type, on: Optional[date] = None) -> str:
    on = on or date.today()
    return f"import_errors_{resolve_entity_type(entity_type).value}_{on.isoformat()}.csv"


def generate_csv_template(entity_type) -> str:
    """Header row of field labels, no data rows."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow([f.label for f in fields_for(entity_type)])
    return buffer.getvalue()


def generate_excel_template(entity_type) -> bytes:
    """Single-sheet workbook named after the entity with a label header row."""
    entity = resolve_entity_type(entity_type)
    labels = [f.label for f in fields_for(entity)]

    workbook = Workbook()
    sheet = workbook.active
    sheet.title = entity.value
    sheet.append(labels)
    for index, label in enumerate(labels, start=1):
        width = max(len(label) + 2, MIN_TEMPLATE_COLUMN_WIDTH)
        sheet.column_dimensions[get_column_letter(index)].width = width

    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def _report_value(value) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ",".join(str(v) for v in value)
    return str(value)


def build_error_report(errors: Iterable[RowValidationError]) -> str:
    """
    ``Row,Field,Value,Error`` CSV, one line per error.

    Row numbers are written bare; every other value is double-quoted with
    embedded quotes doubled.
    """
    buffer = io.StringIO()
    buffer.write(ERROR_REPORT_HEADER + "\n")
    writer = csv.writer(buffer, quoting=csv.QUOTE_NONNUMERIC, lineterminator="\n")
    for error in errors:
        writer.writerow([
            int(error.row),
            error.field or "",
            _report_value(error.value),
            error.message,
        ])
    return buffer.getvalue()
