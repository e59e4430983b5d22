"""
Pytest configuration and fixtures for CRM import tests.

Tests run against an in-memory SQLite database; the application's own
database bootstrap is skipped.
"""

import os

os.environ.setdefault("SKIP_DB_INIT", "1")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from crm_import.api import dependencies
from crm_import.db.models import create_entity_tables
from crm_import.domain.imports.store import InMemoryRecordStore, SqlRecordStore


@pytest.fixture
def sqlite_engine():
    """Fresh in-memory database with the entity tables created."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_entity_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def sql_store(sqlite_engine):
    return SqlRecordStore(sqlite_engine, tenant_id="tenant-a", user_id="user-1")


@pytest.fixture
def memory_store():
    return InMemoryRecordStore(tenant_id="tenant-a")


@pytest.fixture
def client(sql_store):
    """Test client whose record store is the SQLite-backed fixture store."""
    from crm_import.main import app

    app.dependency_overrides[dependencies.get_record_store] = lambda: sql_store
    dependencies.parsed_files_cache.clear()
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        dependencies.parsed_files_cache.clear()


@pytest.fixture
def contacts_csv():
    return (
        "First Name,Last Name,E-mail Address,Phone,Tags\n"
        "Ada,Lovelace,ADA@Example.com,(415) 555-1234,\"math, engines\"\n"
        "Grace,Hopper,grace@example.com,+1 212 555 0000,navy\n"
    ).encode("utf-8")
