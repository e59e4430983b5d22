"""
Tests for import templates and error reports.
"""

import io
from datetime import date

from openpyxl import load_workbook

from crm_import.api.schemas.imports import RowValidationError
from crm_import.domain.imports.field_definitions import fields_for
from crm_import.domain.imports.reports import (
    build_error_report,
    error_report_filename,
    generate_csv_template,
    generate_excel_template,
    template_filename,
)


def test_filenames():
    assert template_filename("leads", "csv") == "leads_import_template.csv"
    assert template_filename("clients", "xlsx") == "clients_import_template.xlsx"
    assert error_report_filename("contacts", date(2024, 2, 5)) == "import_errors_contacts_2024-02-05.csv"


def test_csv_template_is_label_header_only():
    content = generate_csv_template("clients")
    assert content == (
        "Name,Email,Phone,Company,Website,Address,City,Country,Industry,Source,Status,Notes,Tags\n"
    )


def test_excel_template():
    workbook = load_workbook(io.BytesIO(generate_excel_template("contacts")))
    sheet = workbook.active

    assert sheet.title == "contacts"
    assert [cell.value for cell in sheet[1]] == [f.label for f in fields_for("contacts")]
    assert sheet.max_row == 1
    # "Preferred Contact Method" is wider than the minimum column width
    assert sheet.column_dimensions["S"].width == len("Preferred Contact Method") + 2


def test_error_report_quoting():
    errors = [
        RowValidationError(row=2, field="email", value='say "hi"', message="Invalid email format"),
        RowValidationError(row=3, field="tags", value=["a", "b"], message="Bad tags"),
        RowValidationError(row=4, field="", value=None, message="Insert failed: boom"),
    ]
    assert build_error_report(errors).splitlines() == [
        "Row,Field,Value,Error",
        '2,"email","say ""hi""","Invalid email format"',
        '3,"tags","a,b","Bad tags"',
        '4,"","","Insert failed: boom"',
    ]


def test_empty_error_report_has_header():
    assert build_error_report([]) == "Row,Field,Value,Error\n"
