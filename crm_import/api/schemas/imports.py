from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from crm_import.domain.imports.field_definitions import EntityType, FieldDefinition


def ensure_unique_targets(mappings: List["ColumnMapping"]) -> List["ColumnMapping"]:
    """Reject mapping sets where two columns target the same canonical field."""
    seen: Dict[str, str] = {}
    for mapping in mappings:
        if not mapping.db_field:
            continue
        if mapping.db_field in seen:
            raise ValueError(
                f"Columns '{seen[mapping.db_field]}' and '{mapping.csv_column}' "
                f"are both mapped to '{mapping.db_field}'"
            )
        seen[mapping.db_field] = mapping.csv_column
    return mappings


class ColumnMapping(BaseModel):
    """One source column and the canonical field it feeds (None = skipped)."""
    csv_column: str
    db_field: Optional[str] = None
    sample_values: List[str] = Field(default_factory=list)

    @field_validator("db_field")
    def normalize_skip(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        if not value or value.lower() == "skip":
            return None
        return value


class MappingValidationResult(BaseModel):
    valid: bool
    missing_fields: List[str] = Field(default_factory=list)  # Field labels, not names


class RowValidationError(BaseModel):
    """A single per-cell or per-row problem; produced, never mutated."""
    model_config = ConfigDict(frozen=True)

    row: int  # 1-based index into the source rows
    field: str
    value: Any = None
    message: str


class DuplicateHandling(str, Enum):
    SKIP = "skip"
    UPDATE = "update"
    CREATE_NEW = "create_new"


class ImportConfig(BaseModel):
    duplicate_handling: DuplicateHandling = DuplicateHandling.SKIP
    duplicate_key: Optional[str] = None  # Defaults per entity type when omitted
    skip_invalid_rows: bool = True


class SampleValidationResult(BaseModel):
    valid: int = 0
    invalid: int = 0
    duplicates: int = 0
    errors: List[RowValidationError] = Field(default_factory=list)


class ImportResult(BaseModel):
    success: bool = True
    imported: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    errors: List[RowValidationError] = Field(default_factory=list)


class FieldDefinitionResponse(BaseModel):
    name: str
    label: str
    type: str
    required: bool
    aliases: List[str] = Field(default_factory=list)
    enum_values: Optional[List[str]] = None
    max_length: Optional[int] = None
    min_value: Optional[float] = None
    max_value: Optional[float] = None

    @classmethod
    def from_definition(cls, field_def: FieldDefinition) -> "FieldDefinitionResponse":
        return cls(
            name=field_def.name,
            label=field_def.label,
            type=field_def.type.value,
            required=field_def.required,
            aliases=list(field_def.aliases),
            enum_values=list(field_def.enum_values) if field_def.enum_values is not None else None,
            max_length=field_def.max_length,
            min_value=field_def.min_value,
            max_value=field_def.max_value,
        )


class EntityFieldsResponse(BaseModel):
    entity_type: EntityType
    fields: List[FieldDefinitionResponse]
    default_duplicate_key: str


class ParseFileResponse(BaseModel):
    success: bool
    file_id: str
    file_name: str
    file_type: str
    headers: List[str]
    rows: List[Dict[str, str]]
    total_rows: int
    mappings: List[ColumnMapping]
    mapping_validation: MappingValidationResult


class MappingValidationRequest(BaseModel):
    entity_type: EntityType
    mappings: List[ColumnMapping]

    @field_validator("mappings")
    def validate_unique_targets(cls, value: List[ColumnMapping]) -> List[ColumnMapping]:
        return ensure_unique_targets(value)


class _RowsSourceRequest(BaseModel):
    """
    Rows come either inline or from a previously parsed file (``file_id``).

    When ``mappings`` is omitted the rows are taken to be keyed by canonical
    field name already (the wizard posts transformed rows that way).
    """
    entity_type: EntityType
    rows: Optional[List[Dict[str, Any]]] = None
    file_id: Optional[str] = None
    mappings: Optional[List[ColumnMapping]] = None

    @field_validator("mappings")
    def validate_unique_targets(cls, value: Optional[List[ColumnMapping]]) -> Optional[List[ColumnMapping]]:
        if value is None:
            return value
        return ensure_unique_targets(value)

    @model_validator(mode="after")
    def require_single_source(self):
        if (self.rows is None) == (self.file_id is None):
            raise ValueError("Provide exactly one of 'rows' or 'file_id'")
        return self


class ValidateImportRequest(_RowsSourceRequest):
    duplicate_key: Optional[str] = None


class ImportRequest(_RowsSourceRequest):
    config: ImportConfig = Field(default_factory=ImportConfig)


class ErrorReportRequest(BaseModel):
    errors: List[RowValidationError]
