"""
Tests for the import API endpoints.
"""

import io

from openpyxl import load_workbook

from crm_import.core.config import settings


def _upload(client, content, file_name="contacts.csv", entity_type="contacts"):
    return client.post(
        "/api/import/parse",
        files={"file": (file_name, content, "text/csv")},
        data={"entity_type": entity_type},
    )


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestFieldsEndpoint:

    def test_list_lead_fields(self, client):
        response = client.get("/api/import/fields/leads")
        assert response.status_code == 200
        data = response.json()
        assert data["default_duplicate_key"] == "name"
        assert len(data["fields"]) == 23
        assert data["fields"][0]["required"] is True

    def test_unknown_entity(self, client):
        assert client.get("/api/import/fields/widgets").status_code == 422


class TestParseEndpoint:

    def test_parse_and_auto_map(self, client, contacts_csv):
        response = _upload(client, contacts_csv)
        assert response.status_code == 200
        data = response.json()

        assert len(data["file_id"]) == 64
        assert data["total_rows"] == 2
        assert [m["db_field"] for m in data["mappings"]] == ["first_name", "last_name", "email", "phone", "tags"]
        assert data["mapping_validation"] == {"valid": True, "missing_fields": []}

    def test_missing_required_mapping_is_reported(self, client):
        response = _upload(client, b"Mail\nada@example.com\n")
        assert response.status_code == 200
        assert response.json()["mapping_validation"]["missing_fields"] == ["First Name"]

    def test_unsupported_format(self, client):
        response = _upload(client, b"{}", file_name="contacts.json")
        assert response.status_code == 400
        assert "Unsupported file format" in response.json()["detail"]

    def test_no_data_rows(self, client):
        response = _upload(client, b"First Name,Email\n")
        assert response.status_code == 400

    def test_too_large(self, client, contacts_csv, monkeypatch):
        monkeypatch.setattr(settings, "upload_max_file_size_mb", 0)
        response = _upload(client, contacts_csv)
        assert response.status_code == 413
        assert response.json()["detail"].startswith("File is too large")

    def test_discard_cached_file(self, client, contacts_csv):
        file_id = _upload(client, contacts_csv).json()["file_id"]
        assert client.delete(f"/api/import/files/{file_id}").status_code == 200
        assert client.delete(f"/api/import/files/{file_id}").status_code == 404


class TestMappingValidation:

    def test_missing_required(self, client):
        response = client.post("/api/import/mappings/validate", json={
            "entity_type": "contacts",
            "mappings": [{"csv_column": "Mail", "db_field": "email"}],
        })
        assert response.status_code == 200
        assert response.json() == {"valid": False, "missing_fields": ["First Name"]}

    def test_duplicate_targets_rejected(self, client):
        response = client.post("/api/import/mappings/validate", json={
            "entity_type": "contacts",
            "mappings": [
                {"csv_column": "Mail", "db_field": "email"},
                {"csv_column": "E-mail", "db_field": "email"},
            ],
        })
        assert response.status_code == 422


class TestValidateAndImport:

    def test_file_workflow(self, client, contacts_csv, sql_store):
        parsed = _upload(client, contacts_csv).json()
        source = {"entity_type": "contacts", "file_id": parsed["file_id"], "mappings": parsed["mappings"]}

        preview = client.post("/api/import/validate", json=source)
        assert preview.status_code == 200
        assert preview.json()["valid"] == 2
        assert preview.json()["duplicates"] == 0

        first = client.post("/api/import", json=source)
        assert first.status_code == 200
        assert first.json()["imported"] == 2

        stored = sql_store.find_existing("contacts", "email", "ada@example.com")
        assert stored["phone"] == "4155551234"
        assert stored["tags"] == ["math", "engines"]

        preview_again = client.post("/api/import/validate", json=source)
        assert preview_again.json()["duplicates"] == 2

        second = client.post("/api/import", json=source)
        assert second.json()["skipped"] == 2
        assert second.json()["imported"] == 0

    def test_canonical_rows_without_mappings(self, client):
        response = client.post("/api/import", json={
            "entity_type": "leads",
            "rows": [
                {"name": "Acme", "score": "abc"},
                {"name": "Globex", "estimated_value": "$1,000"},
            ],
            "config": {"skip_invalid_rows": False},
        })
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is False
        assert (data["imported"], data["failed"]) == (1, 1)
        assert data["errors"][0]["field"] == "score"
        assert data["errors"][0]["row"] == 1

    def test_rows_and_file_id_are_exclusive(self, client):
        response = client.post("/api/import", json={"entity_type": "leads", "rows": [{"name": "x"}], "file_id": "abc"})
        assert response.status_code == 422
        response = client.post("/api/import", json={"entity_type": "leads"})
        assert response.status_code == 422

    def test_unknown_file_id(self, client):
        response = client.post("/api/import/validate", json={"entity_type": "leads", "file_id": "missing"})
        assert response.status_code == 404

    def test_empty_rows(self, client):
        response = client.post("/api/import", json={"entity_type": "leads", "rows": []})
        assert response.status_code == 400

    def test_invalid_duplicate_key(self, client):
        response = client.post("/api/import", json={
            "entity_type": "leads",
            "rows": [{"name": "Acme"}],
            "config": {"duplicate_key": "favourite_colour"},
        })
        assert response.status_code == 400


class TestDownloads:

    def test_csv_template(self, client):
        response = client.get("/api/import/templates/contacts")
        assert response.status_code == 200
        assert response.headers["content-disposition"] == 'attachment; filename="contacts_import_template.csv"'
        assert response.text.startswith("First Name,Last Name,Email")

    def test_excel_template(self, client):
        response = client.get("/api/import/templates/leads", params={"format": "xlsx"})
        assert response.status_code == 200
        workbook = load_workbook(io.BytesIO(response.content))
        assert workbook.active.title == "leads"
        assert workbook.active["A1"].value == "Name"

    def test_unknown_template_format(self, client):
        assert client.get("/api/import/templates/leads", params={"format": "pdf"}).status_code == 422

    def test_error_report(self, client):
        response = client.post(
            "/api/import/errors/report",
            params={"entity_type": "contacts"},
            json={"errors": [{"row": 2, "field": "email", "value": "bad", "message": "Invalid email format"}]},
        )
        assert response.status_code == 200
        assert "import_errors_contacts_" in response.headers["content-disposition"]
        assert response.text == 'Row,Field,Value,Error\n2,"email","bad","Invalid email format"\n'
