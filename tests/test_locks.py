"""
Tests for per-target import locks.
"""

import threading

import pytest

from crm_import.api.schemas.imports import ColumnMapping, ImportConfig
from crm_import.domain.imports.executor import execute_import
from crm_import.domain.imports.store import InMemoryRecordStore
from crm_import.utils.locks import ImportLockManager


class TestImportLockManager:

    def test_entry_is_removed_after_release(self):
        with ImportLockManager.acquire("sql:acme:contacts"):
            assert "sql:acme:contacts" in ImportLockManager.active_targets()
        assert "sql:acme:contacts" not in ImportLockManager.active_targets()

    def test_entry_is_removed_when_the_body_raises(self):
        with pytest.raises(RuntimeError):
            with ImportLockManager.acquire("sql:acme:leads"):
                raise RuntimeError("write failed")
        assert "sql:acme:leads" not in ImportLockManager.active_targets()

    def test_same_target_is_serialized(self):
        target = ImportLockManager.target_key("sql:acme", "clients")
        first_inside = threading.Event()
        release_first = threading.Event()
        order = []

        def first():
            with ImportLockManager.acquire(target):
                order.append("first in")
                first_inside.set()
                release_first.wait(timeout=5)
                order.append("first out")

        def second():
            first_inside.wait(timeout=5)
            with ImportLockManager.acquire(target):
                order.append("second in")

        threads = [threading.Thread(target=first), threading.Thread(target=second)]
        for thread in threads:
            thread.start()
        first_inside.wait(timeout=5)
        release_first.set()
        for thread in threads:
            thread.join(timeout=5)

        assert order == ["first in", "first out", "second in"]
        assert target not in ImportLockManager.active_targets()

    def test_imports_into_throwaway_stores_leave_no_locks(self):
        mappings = [ColumnMapping(csv_column="Lead", db_field="name")]
        before = set(ImportLockManager.active_targets())

        for n in range(50):
            store = InMemoryRecordStore()
            execute_import([{"Lead": f"Lead {n}"}], mappings, "leads", ImportConfig(), store)

        assert set(ImportLockManager.active_targets()) == before
