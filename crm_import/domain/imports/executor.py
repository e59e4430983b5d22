"""
Sample validation and partial-failure-tolerant import execution.

Rows are validated and transformed in parallel chunks (pure work, no shared
state) and re-assembled in source order. Duplicate lookups and writes then
run row by row in that order, each write being its own atomic unit: a crash
mid-batch leaves a well-defined prefix imported. Failed rows are recorded and
never retried.
"""
import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from crm_import.api.schemas.imports import (
    ColumnMapping,
    DuplicateHandling,
    ImportConfig,
    ImportResult,
    RowValidationError,
    SampleValidationResult,
)
from crm_import.core.config import settings
from crm_import.domain.imports.field_definitions import (
    default_duplicate_key,
    field_by_name,
    fields_for,
    resolve_entity_type,
)
from crm_import.domain.imports.parsers import ParsedFile
from crm_import.domain.imports.store import RecordStore
from crm_import.domain.imports.transformer import transform_row
from crm_import.domain.imports.validators import validate_row
from crm_import.utils.locks import ImportLockManager

logger = logging.getLogger(__name__)


class InvalidImportConfigError(ValueError):
    """Raised when an import configuration cannot be applied to the entity type."""


@dataclass
class PreparedRow:
    row_number: int  # 1-based position in the source rows
    record: Dict[str, Any]
    errors: List[RowValidationError] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def identity_mappings(entity_type, rows: Optional[Sequence[Mapping[str, Any]]] = None) -> List[ColumnMapping]:
    """
    Mappings for rows that are already keyed by canonical field name.

    With ``rows`` only the fields that appear in at least one row are mapped;
    required fields that never appear are still caught by row validation.
    """
    present = None
    if rows is not None:
        present = set()
        for row in rows:
            present.update(row.keys())
    return [
        ColumnMapping(csv_column=f.name, db_field=f.name)
        for f in fields_for(entity_type)
        if present is None or f.name in present
    ]


def _resolve_duplicate_key(entity_type, duplicate_key: Optional[str]) -> str:
    key = duplicate_key or default_duplicate_key(entity_type)
    if field_by_name(entity_type, key) is None:
        raise InvalidImportConfigError(
            f"Duplicate key '{key}' is not a field of {resolve_entity_type(entity_type).value}"
        )
    return key


def resolve_import_config(config: Optional[ImportConfig], entity_type) -> ImportConfig:
    """Validate ``config`` for ``entity_type`` and fill in the default duplicate key."""
    config = config or ImportConfig()
    key = _resolve_duplicate_key(entity_type, config.duplicate_key)
    return config.model_copy(update={"duplicate_key": key})


def _prepare_chunk(
    rows: Sequence[Mapping[str, Any]],
    offset: int,
    mappings: Sequence[ColumnMapping],
    entity_type,
) -> List[PreparedRow]:
    prepared = []
    for position, row in enumerate(rows, start=offset + 1):
        prepared.append(PreparedRow(
            row_number=position,
            record=transform_row(row, mappings, entity_type),
            errors=validate_row(row, mappings, entity_type, position),
        ))
    return prepared


def prepare_rows(
    rows: Sequence[Mapping[str, Any]],
    mappings: Sequence[ColumnMapping],
    entity_type,
    *,
    max_workers: Optional[int] = None,
    chunk_size: Optional[int] = None,
) -> List[PreparedRow]:
    """
    Validate and transform every row, in parallel chunks, preserving row order.
    """
    max_workers = max_workers or settings.import_parallel_max_workers
    chunk_size = chunk_size or settings.import_chunk_size

    chunks = [rows[start:start + chunk_size] for start in range(0, len(rows), chunk_size)]
    if len(chunks) <= 1 or max_workers <= 1:
        return _prepare_chunk(rows, 0, mappings, entity_type)

    logger.info("Validating %d rows in %d chunks with %d workers", len(rows), len(chunks), max_workers)
    chunk_results: Dict[int, List[PreparedRow]] = {}
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        future_to_chunk = {
            executor.submit(_prepare_chunk, chunk, chunk_num * chunk_size, mappings, entity_type): chunk_num
            for chunk_num, chunk in enumerate(chunks)
        }
        for future in as_completed(future_to_chunk):
            chunk_results[future_to_chunk[future]] = future.result()

    prepared: List[PreparedRow] = []
    for chunk_num in range(len(chunks)):
        prepared.extend(chunk_results[chunk_num])
    return prepared


def _rows_of(source: Union[ParsedFile, Sequence[Mapping[str, Any]]]) -> Sequence[Mapping[str, Any]]:
    return source.rows if isinstance(source, ParsedFile) else source


def validate_sample(
    source: Union[ParsedFile, Sequence[Mapping[str, Any]]],
    mappings: Sequence[ColumnMapping],
    entity_type,
    duplicate_key: Optional[str],
    store: RecordStore,
    *,
    sample_size: Optional[int] = None,
) -> SampleValidationResult:
    """
    Dry-run validation over the first ``sample_size`` rows only.

    Duplicates are counted among the sampled rows whose transformed
    duplicate-key value matches an existing record; rows beyond the sample
    are neither validated nor looked up here.
    """
    sample_size = sample_size or settings.import_sample_size
    key = _resolve_duplicate_key(entity_type, duplicate_key)
    sample = list(_rows_of(source)[:sample_size])

    result = SampleValidationResult()
    for row in prepare_rows(sample, mappings, entity_type):
        if row.is_valid:
            result.valid += 1
        else:
            result.invalid += 1
            result.errors.extend(row.errors)

        key_value = row.record.get(key)
        if key_value in (None, "", []):
            continue
        try:
            if store.find_existing(entity_type, key, key_value) is not None:
                result.duplicates += 1
        except Exception as e:
            logger.warning("Duplicate lookup failed for sample row %d: %s", row.row_number, e)

    logger.info(
        "Sample validation for %s: %d valid, %d invalid, %d duplicates (%d rows sampled)",
        resolve_entity_type(entity_type).value,
        result.valid,
        result.invalid,
        result.duplicates,
        len(sample),
    )
    return result


def _execution_error(row: PreparedRow, message: str) -> RowValidationError:
    return RowValidationError(row=row.row_number, field="", value=None, message=message)


def _write_row(
    row: PreparedRow,
    entity_type,
    config: ImportConfig,
    store: RecordStore,
    result: ImportResult,
) -> None:
    """Upsert one valid row according to the duplicate policy; failures are recorded, not raised."""
    data = {k: v for k, v in row.record.items() if v is not None and v != ""}
    key_value = data.get(config.duplicate_key)

    if config.duplicate_handling is not DuplicateHandling.CREATE_NEW and key_value is not None:
        try:
            existing = store.find_existing(entity_type, config.duplicate_key, key_value)
        except Exception as e:
            logger.warning("Row %d: duplicate lookup failed: %s", row.row_number, e)
            result.failed += 1
            result.errors.append(_execution_error(row, f"Duplicate lookup failed: {e}"))
            return

        if existing is not None:
            if config.duplicate_handling is DuplicateHandling.SKIP:
                result.skipped += 1
                return
            try:
                store.update(entity_type, existing["id"], data)
            except Exception as e:
                logger.warning("Row %d: update of record %s failed: %s", row.row_number, existing.get("id"), e)
                result.failed += 1
                result.errors.append(_execution_error(row, f"Update failed: {e}"))
            else:
                result.updated += 1
            return

    try:
        store.insert(entity_type, data)
    except Exception as e:
        logger.warning("Row %d: insert failed: %s", row.row_number, e)
        result.failed += 1
        result.errors.append(_execution_error(row, f"Insert failed: {e}"))
    else:
        result.imported += 1


def execute_import(
    rows: Sequence[Mapping[str, Any]],
    mappings: Sequence[ColumnMapping],
    entity_type,
    config: Optional[ImportConfig],
    store: RecordStore,
) -> ImportResult:
    """
    Validate, transform and write every row; one row's failure never aborts the batch.

    Invalid rows are counted as skipped when ``skip_invalid_rows`` is set and
    as failed otherwise; either way nothing is written for them. Valid rows
    are inserted, or resolved against an existing record by the duplicate key
    (skip / update / create_new).
    """
    entity = resolve_entity_type(entity_type)
    config = resolve_import_config(config, entity)
    started = time.time()

    prepared = prepare_rows(rows, mappings, entity)
    result = ImportResult()

    with ImportLockManager.acquire(ImportLockManager.target_key(store.target, entity.value)):
        for row in prepared:
            if not row.is_valid:
                if config.skip_invalid_rows:
                    result.skipped += 1
                else:
                    result.failed += 1
                result.errors.extend(row.errors)
                continue
            _write_row(row, entity, config, store, result)

    result.success = result.failed == 0 or config.skip_invalid_rows
    logger.info(
        "Import of %d %s rows finished in %.2fs: %d imported, %d updated, %d skipped, %d failed",
        len(prepared),
        entity.value,
        time.time() - started,
        result.imported,
        result.updated,
        result.skipped,
        result.failed,
    )
    return result
