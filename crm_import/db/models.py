"""
SQLAlchemy tables for imported entities.

One table per entity type, with a column per canonical field from the
field registry plus tenant/audit columns. Transformed values map onto
columns directly (dates are stored as ISO ``YYYY-MM-DD`` strings, tags as JSON).
"""
import logging
from typing import Dict

from sqlalchemy import JSON, Column, DateTime, Float, Integer, MetaData, String, Table, Text, func
from sqlalchemy.engine import Engine

from crm_import.domain.imports.field_definitions import (
    EntityType,
    FieldDefinition,
    FieldType,
    fields_for,
    resolve_entity_type,
)

logger = logging.getLogger(__name__)

SYSTEM_COLUMNS = {"id", "tenant_id", "created_by", "created_at", "updated_at"}

# Entities whose tables record the importing user
ENTITIES_WITH_CREATED_BY = {EntityType.CONTACTS, EntityType.LEADS}

DEFAULT_STRING_LENGTH = 255

metadata = MetaData()


def _column_for(field: FieldDefinition) -> Column:
    if field.type in (FieldType.NUMBER, FieldType.CURRENCY, FieldType.PERCENTAGE):
        return Column(field.name, Float, nullable=True)
    if field.type is FieldType.TAGS:
        return Column(field.name, JSON, nullable=True)
    if field.type is FieldType.DATE:
        return Column(field.name, String(32), nullable=True)
    if field.max_length and field.max_length > DEFAULT_STRING_LENGTH:
        return Column(field.name, Text, nullable=True)
    return Column(field.name, String(field.max_length or DEFAULT_STRING_LENGTH), nullable=True)


def _build_entity_table(entity_type: EntityType) -> Table:
    columns = [
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("tenant_id", String(64), nullable=False, index=True),
    ]
    if entity_type in ENTITIES_WITH_CREATED_BY:
        columns.append(Column("created_by", String(64), nullable=True))
    columns.extend(_column_for(f) for f in fields_for(entity_type))
    columns.extend([
        Column("created_at", DateTime(timezone=True), server_default=func.now()),
        Column("updated_at", DateTime(timezone=True), server_default=func.now(), onupdate=func.now()),
    ])
    return Table(entity_type.value, metadata, *columns)


ENTITY_TABLES: Dict[EntityType, Table] = {
    entity_type: _build_entity_table(entity_type) for entity_type in EntityType
}


def get_entity_table(entity_type) -> Table:
    return ENTITY_TABLES[resolve_entity_type(entity_type)]


def create_entity_tables(engine: Engine) -> None:
    """Create the contacts/leads/clients tables if they do not exist yet."""
    metadata.create_all(engine, tables=list(ENTITY_TABLES.values()))
    logger.info("Entity tables ready: %s", ", ".join(t.name for t in ENTITY_TABLES.values()))
