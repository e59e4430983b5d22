"""
Import wizard endpoints: parse, map, validate, execute, templates and reports.
"""
import hashlib
import logging
from typing import Any, Dict, List, Literal, Sequence

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from fastapi.responses import Response

from crm_import.api.dependencies import (
    cache_parsed_file,
    discard_parsed_file,
    get_cached_parsed_file,
    get_record_store,
)
from crm_import.api.schemas.imports import (
    ColumnMapping,
    EntityFieldsResponse,
    ErrorReportRequest,
    FieldDefinitionResponse,
    ImportRequest,
    ImportResult,
    MappingValidationRequest,
    MappingValidationResult,
    ParseFileResponse,
    SampleValidationResult,
    ValidateImportRequest,
)
from crm_import.domain.imports.executor import (
    InvalidImportConfigError,
    execute_import,
    identity_mappings,
    validate_sample,
)
from crm_import.domain.imports.field_definitions import (
    EntityType,
    default_duplicate_key,
    fields_for,
)
from crm_import.domain.imports.mapper import auto_map_columns, validate_mappings
from crm_import.domain.imports.parsers import (
    FileParseError,
    FileSizeError,
    max_upload_size_bytes,
    parse_file,
)
from crm_import.domain.imports.reports import (
    build_error_report,
    error_report_filename,
    generate_csv_template,
    generate_excel_template,
    template_filename,
)
from crm_import.domain.imports.store import RecordStore

router = APIRouter(prefix="/api/import", tags=["imports"])

logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _attachment(filename: str) -> Dict[str, str]:
    return {"Content-Disposition": f'attachment; filename="{filename}"'}


def _resolve_rows(request) -> List[Dict[str, Any]]:
    if request.rows is not None:
        return request.rows
    parsed = get_cached_parsed_file(request.file_id)
    if parsed is None:
        raise HTTPException(status_code=404, detail="Parsed file not found or expired; upload it again")
    return parsed.rows


def _resolve_mappings(request, rows: Sequence[Dict[str, Any]]) -> List[ColumnMapping]:
    if request.mappings is not None:
        return request.mappings
    return identity_mappings(request.entity_type, rows)


@router.get("/fields/{entity_type}", response_model=EntityFieldsResponse)
async def list_fields(entity_type: EntityType):
    """Canonical field definitions for an entity type."""
    return EntityFieldsResponse(
        entity_type=entity_type,
        fields=[FieldDefinitionResponse.from_definition(f) for f in fields_for(entity_type)],
        default_duplicate_key=default_duplicate_key(entity_type),
    )


@router.post("/parse", response_model=ParseFileResponse)
async def parse_upload(
    file: UploadFile = File(...),
    entity_type: EntityType = Form(...),
):
    """
    Parse an uploaded CSV/Excel file and suggest a column mapping.

    The parsed rows are cached under the returned ``file_id`` so follow-up
    validate/import requests can reference the file instead of re-posting it.

    Errors:
    - 400: unsupported extension, missing headers or no data rows
    - 413: file larger than the configured ceiling
    """
    limit = max_upload_size_bytes()
    if file.size is not None and file.size > limit:
        raise HTTPException(status_code=413, detail=str(FileSizeError(file.size, limit)))

    file_content = await file.read()
    file_name = file.filename or ""
    logger.info("Received import upload '%s' (%d bytes) for %s", file_name, len(file_content), entity_type.value)

    try:
        parsed = parse_file(file_content, file_name)
    except FileSizeError as e:
        raise HTTPException(status_code=413, detail=str(e))
    except FileParseError as e:
        logger.info("Rejected upload '%s': %s", file_name, e)
        raise HTTPException(status_code=400, detail=str(e))

    file_id = hashlib.sha256(file_content).hexdigest()
    cache_parsed_file(file_id, parsed)

    mappings = auto_map_columns(parsed.headers, parsed.rows, entity_type)
    return ParseFileResponse(
        success=True,
        file_id=file_id,
        file_name=parsed.file_name,
        file_type=parsed.file_type,
        headers=parsed.headers,
        rows=parsed.rows,
        total_rows=parsed.total_rows,
        mappings=mappings,
        mapping_validation=validate_mappings(mappings, entity_type),
    )


@router.delete("/files/{file_id}")
async def discard_upload(file_id: str):
    """Drop a cached parse when the wizard session ends. Already-imported rows are untouched."""
    if not discard_parsed_file(file_id):
        raise HTTPException(status_code=404, detail="Parsed file not found or expired")
    return {"success": True, "file_id": file_id}


@router.post("/mappings/validate", response_model=MappingValidationResult)
async def validate_mapping_set(request: MappingValidationRequest):
    """Check that every required field is mapped; missing fields are reported by label."""
    return validate_mappings(request.mappings, request.entity_type)


@router.post("/validate", response_model=SampleValidationResult)
def validate_import(
    request: ValidateImportRequest,
    store: RecordStore = Depends(get_record_store),
):
    """Validate a bounded sample of rows and count likely duplicates."""
    rows = _resolve_rows(request)
    mappings = _resolve_mappings(request, rows)
    try:
        return validate_sample(rows, mappings, request.entity_type, request.duplicate_key, store)
    except InvalidImportConfigError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("", response_model=ImportResult)
def run_import(
    request: ImportRequest,
    store: RecordStore = Depends(get_record_store),
):
    """
    Import every row. Per-row failures are reported in the result, never as an HTTP error.
    """
    rows = _resolve_rows(request)
    if not rows:
        raise HTTPException(status_code=400, detail="No data provided")
    mappings = _resolve_mappings(request, rows)
    try:
        return execute_import(rows, mappings, request.entity_type, request.config, store)
    except InvalidImportConfigError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/templates/{entity_type}")
async def download_template(
    entity_type: EntityType,
    format: Literal["csv", "xlsx"] = Query("csv"),
):
    """Blank import template whose header row holds the field labels."""
    filename = template_filename(entity_type, format)
    if format == "xlsx":
        return Response(
            content=generate_excel_template(entity_type),
            media_type=XLSX_MEDIA_TYPE,
            headers=_attachment(filename),
        )
    return Response(
        content=generate_csv_template(entity_type),
        media_type="text/csv; charset=utf-8",
        headers=_attachment(filename),
    )


@router.post("/errors/report")
async def download_error_report(
    request: ErrorReportRequest,
    entity_type: EntityType = Query(...),
):
    """CSV (Row,Field,Value,Error) of the errors returned by an import."""
    return Response(
        content=build_error_report(request.errors),
        media_type="text/csv; charset=utf-8",
        headers=_attachment(error_report_filename(entity_type)),
    )
