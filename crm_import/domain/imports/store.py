"""
Record stores: the insert/update interface the import executor writes through.

The executor only needs three operations: look a record up by one canonical
field, insert a record, and update a record. Each call is its own atomic unit;
no transaction spans several rows.
"""
import copy
import itertools
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.engine import Engine

from crm_import.db.models import ENTITIES_WITH_CREATED_BY, SYSTEM_COLUMNS, get_entity_table
from crm_import.domain.imports.field_definitions import resolve_entity_type

logger = logging.getLogger(__name__)


class RecordStore(ABC):
    """Tenant-scoped access to stored records of every entity type."""

    target: str = "default"

    @abstractmethod
    def find_existing(self, entity_type, key: str, value: Any) -> Optional[Dict[str, Any]]:
        """Return the first stored record whose ``key`` equals ``value``, or None."""

    @abstractmethod
    def insert(self, entity_type, data: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a record and return it with its ``id``."""

    @abstractmethod
    def update(self, entity_type, record_id: Any, data: Dict[str, Any]) -> Dict[str, Any]:
        """Merge ``data`` into the stored record ``record_id`` and return the result."""


class InMemoryRecordStore(RecordStore):
    """Dictionary-backed store used for dry runs and tests."""

    def __init__(self, tenant_id: str = "default"):
        self.tenant_id = tenant_id
        self.target = f"memory:{id(self)}"
        self._records: Dict[str, List[Dict[str, Any]]] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def records(self, entity_type) -> List[Dict[str, Any]]:
        entity = resolve_entity_type(entity_type).value
        with self._lock:
            return copy.deepcopy(self._records.get(entity, []))

    def seed(self, entity_type, records: List[Dict[str, Any]]) -> None:
        for record in records:
            self.insert(entity_type, record)

    def find_existing(self, entity_type, key, value):
        entity = resolve_entity_type(entity_type).value
        with self._lock:
            for record in self._records.get(entity, []):
                if record.get(key) == value:
                    return copy.deepcopy(record)
        return None

    def insert(self, entity_type, data):
        entity = resolve_entity_type(entity_type).value
        with self._lock:
            record = {**copy.deepcopy(data), "id": next(self._ids), "tenant_id": self.tenant_id}
            self._records.setdefault(entity, []).append(record)
            return copy.deepcopy(record)

    def update(self, entity_type, record_id, data):
        entity = resolve_entity_type(entity_type).value
        with self._lock:
            for record in self._records.get(entity, []):
                if record["id"] == record_id:
                    record.update(copy.deepcopy(data))
                    return copy.deepcopy(record)
        raise LookupError(f"Record {record_id} not found in {entity}")


class SqlRecordStore(RecordStore):
    """SQLAlchemy-backed store scoped to one tenant; one transaction per write."""

    def __init__(self, engine: Engine, tenant_id: str, user_id: Optional[str] = None):
        self.engine = engine
        self.tenant_id = tenant_id
        self.user_id = user_id or None
        self.target = f"sql:{tenant_id}"

    def _writable(self, table, data: Dict[str, Any]) -> Dict[str, Any]:
        return {
            key: value
            for key, value in data.items()
            if key in table.c and key not in SYSTEM_COLUMNS
        }

    def find_existing(self, entity_type, key, value):
        table = get_entity_table(entity_type)
        if key not in table.c or key in SYSTEM_COLUMNS:
            raise ValueError(f"Cannot look up {table.name} by unknown column '{key}'")

        stmt = (
            select(table)
            .where(table.c.tenant_id == self.tenant_id)
            .where(table.c[key] == value)
            .order_by(table.c.id)
            .limit(1)
        )
        with self.engine.connect() as conn:
            row = conn.execute(stmt).mappings().first()
        return dict(row) if row is not None else None

    def insert(self, entity_type, data):
        entity = resolve_entity_type(entity_type)
        table = get_entity_table(entity)
        values = self._writable(table, data)
        values["tenant_id"] = self.tenant_id
        if entity in ENTITIES_WITH_CREATED_BY:
            values["created_by"] = self.user_id

        with self.engine.begin() as conn:
            result = conn.execute(table.insert().values(**values))
            record_id = result.inserted_primary_key[0]
        return {**values, "id": record_id}

    def update(self, entity_type, record_id, data):
        table = get_entity_table(entity_type)
        values = self._writable(table, data)
        if not values:
            return {"id": record_id}

        with self.engine.begin() as conn:
            result = conn.execute(
                table.update()
                .where(table.c.id == record_id)
                .where(table.c.tenant_id == self.tenant_id)
                .values(**values)
            )
            if result.rowcount == 0:
                raise LookupError(f"Record {record_id} not found in {table.name}")
        return {**values, "id": record_id}
