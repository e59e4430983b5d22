"""
Tests for the canonical field registry.
"""

import pytest

from crm_import.domain.imports.field_definitions import (
    EntityType,
    FieldType,
    UnknownEntityTypeError,
    default_duplicate_key,
    field_by_name,
    fields_for,
    required_fields_for,
    resolve_entity_type,
)


class TestRegistry:

    @pytest.mark.parametrize("entity_type", list(EntityType))
    def test_field_names_are_unique(self, entity_type):
        names = [f.name for f in fields_for(entity_type)]
        assert len(names) == len(set(names))

    def test_required_fields(self):
        assert [f.name for f in required_fields_for("contacts")] == ["first_name"]
        assert [f.name for f in required_fields_for("leads")] == ["name"]
        assert [f.name for f in required_fields_for("clients")] == ["name"]

    def test_field_order_is_stable(self):
        names = [f.name for f in fields_for(EntityType.CONTACTS)]
        assert names[:3] == ["first_name", "last_name", "email"]
        assert names[-1] == "notes"

    def test_lead_bounds(self):
        probability = field_by_name("leads", "probability")
        assert probability.type is FieldType.PERCENTAGE
        assert (probability.min_value, probability.max_value) == (0, 100)

    def test_enum_values(self):
        status = field_by_name("clients", "status")
        assert status.enum_values == ("active", "inactive", "churned", "prospect")

    def test_field_by_name_missing(self):
        assert field_by_name("contacts", "does_not_exist") is None
        assert field_by_name("contacts", None) is None

    def test_fields_for_returns_copy(self):
        fields = fields_for("leads")
        fields.clear()
        assert fields_for("leads")


class TestEntityResolution:

    def test_string_is_resolved(self):
        assert resolve_entity_type(" Leads ") is EntityType.LEADS

    def test_unknown_entity_type(self):
        with pytest.raises(UnknownEntityTypeError):
            fields_for("widgets")

    def test_default_duplicate_keys(self):
        assert default_duplicate_key("contacts") == "email"
        assert default_duplicate_key("leads") == "name"
        assert default_duplicate_key("clients") == "name"
