"""
Tests for per-cell and per-row validation of raw import values.
"""

import pytest

from crm_import.api.schemas.imports import ColumnMapping
from crm_import.domain.imports.field_definitions import field_by_name
from crm_import.domain.imports.validators import (
    FIELD_PATTERNS,
    validate_all_rows,
    validate_field_value,
    validate_row,
)


def lead_field(name):
    return field_by_name("leads", name)


def contact_field(name):
    return field_by_name("contacts", name)


class TestFieldPatterns:

    def test_known_patterns(self):
        assert set(FIELD_PATTERNS) == {"email", "phone", "url"}


class TestValidateFieldValue:

    @pytest.mark.parametrize("value", ["", "   ", None])
    def test_required(self, value):
        assert validate_field_value(value, contact_field("first_name")) == "First Name is required"

    @pytest.mark.parametrize("value", ["", None])
    def test_optional_empty_passes(self, value):
        assert validate_field_value(value, contact_field("email")) is None

    @pytest.mark.parametrize("value,expected", [
        ("ada@example.com", None),
        ("ada@example", "Invalid email format"),
        ("ada example.com", "Invalid email format"),
    ])
    def test_email(self, value, expected):
        assert validate_field_value(value, contact_field("email")) == expected

    @pytest.mark.parametrize("value,expected", [
        ("(415) 555-1234", None),
        ("+44 20 7946 0958", None),
        ("123", "Invalid phone format"),
        ("call me", "Invalid phone format"),
    ])
    def test_phone(self, value, expected):
        assert validate_field_value(value, contact_field("phone")) == expected

    @pytest.mark.parametrize("value,expected", [
        ("example.com", None),
        ("https://www.example.com/about?x=1", None),
        ("not a url", "Invalid URL format"),
    ])
    def test_url(self, value, expected):
        assert validate_field_value(value, lead_field("website")) == expected

    @pytest.mark.parametrize("value,expected", [
        ("2024-02-05", None),
        ("02/05/2024", None),
        ("5 Feb 2024", None),
        ("not a date", "Invalid date format (use YYYY-MM-DD)"),
    ])
    def test_date(self, value, expected):
        assert validate_field_value(value, lead_field("next_follow_up")) == expected

    @pytest.mark.parametrize("value,expected", [
        ("42", None),
        ("1e1", None),
        ("abc", "Must be a number"),
        ("nan", "Must be a number"),
        ("150", "Maximum value is 100"),
        ("-5", "Minimum value is 0"),
    ])
    def test_number(self, value, expected):
        assert validate_field_value(value, lead_field("score")) == expected

    @pytest.mark.parametrize("value,expected", [
        ("$1,200.50", None),
        ("€ 300", None),
        ("lots", "Invalid currency value"),
    ])
    def test_currency(self, value, expected):
        assert validate_field_value(value, lead_field("estimated_value")) == expected

    @pytest.mark.parametrize("value,expected", [
        ("45%", None),
        ("100", None),
        ("150%", "Percentage must be between 0 and 100"),
        ("half", "Invalid percentage"),
    ])
    def test_percentage(self, value, expected):
        assert validate_field_value(value, lead_field("probability")) == expected

    def test_enum_is_case_insensitive(self):
        assert validate_field_value("Qualified", lead_field("status")) is None

    def test_enum_lists_allowed_values(self):
        assert validate_field_value("maybe", lead_field("priority")) == (
            "Invalid value. Allowed: low, medium, high, urgent"
        )

    def test_max_length(self):
        message = validate_field_value("x" * 101, contact_field("first_name"))
        assert message == "Maximum length is 100 characters"

    def test_type_error_reported_before_length(self):
        field = contact_field("email")
        assert validate_field_value("x" * 300, field) == "Invalid email format"

    def test_whitespace_is_trimmed(self):
        assert validate_field_value("  ada@example.com  ", contact_field("email")) is None


class TestValidateRow:

    mappings = [
        ColumnMapping(csv_column="First", db_field="first_name"),
        ColumnMapping(csv_column="Mail", db_field="email"),
        ColumnMapping(csv_column="Ignored", db_field=None),
    ]

    def test_valid_row(self):
        row = {"First": "Ada", "Mail": "ada@example.com", "Ignored": "???"}
        assert validate_row(row, self.mappings, "contacts", 1) == []

    def test_required_empty_cell_yields_two_errors(self):
        row = {"First": "", "Mail": "bad", "Ignored": ""}
        errors = validate_row(row, self.mappings, "contacts", 7)

        assert [(e.field, e.message) for e in errors] == [
            ("first_name", "First Name is required"),
            ("first_name", "First Name is required"),
            ("email", "Invalid email format"),
        ]
        assert {e.row for e in errors} == {7}
        assert errors[2].value == "bad"

    def test_required_field_not_mapped(self):
        mappings = [ColumnMapping(csv_column="Mail", db_field="email")]
        errors = validate_row({"Mail": "ada@example.com"}, mappings, "contacts", 1)
        assert len(errors) == 1
        assert errors[0].field == "first_name"
        assert errors[0].value is None

    def test_validate_all_rows(self):
        rows = [
            {"First": "Ada", "Mail": "ada@example.com"},
            {"First": "", "Mail": "grace@example.com"},
            {"First": "Alan", "Mail": "nope"},
        ]
        result = validate_all_rows(rows, self.mappings, "contacts")
        assert (result.valid, result.invalid) == (1, 2)
        assert [e.row for e in result.errors] == [2, 2, 3]
