"""
Automatic column mapping from arbitrary spreadsheet headers to canonical fields.

Each header is scored against every still-unclaimed field's name, label and
aliases; the best field is claimed in two passes (high confidence first, then
the remaining matches above the threshold), always in header order.

This is a greedy heuristic, not an optimal bipartite assignment: header sets
with many near-threshold ties can produce order-dependent mappings.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from crm_import.api.schemas.imports import ColumnMapping, MappingValidationResult
from crm_import.domain.imports.field_definitions import (
    FieldDefinition,
    fields_for,
    required_fields_for,
)

logger = logging.getLogger(__name__)

# Minimum similarity for a header to be mapped at all (recall vs precision).
MATCH_THRESHOLD = 0.6
# Matches at or above this score claim their field in the first pass.
HIGH_CONFIDENCE_THRESHOLD = 0.8

SAMPLE_ROW_LIMIT = 10
SAMPLE_VALUE_LIMIT = 3


def normalize(value: str) -> str:
    """Lower-case and drop underscores, hyphens and whitespace."""
    return "".join(ch for ch in value.lower() if ch not in "_-" and not ch.isspace())


def levenshtein_distance(a: str, b: str) -> int:
    """Edit distance with unit insert/delete/substitute costs."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            if char_a == char_b:
                current.append(previous[j - 1])
            else:
                current.append(min(previous[j - 1], previous[j], current[j - 1]) + 1)
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """Similarity of two header strings in [0, 1]."""
    norm_a = normalize(a)
    norm_b = normalize(b)

    if norm_a == norm_b:
        return 1.0
    if norm_b in norm_a or norm_a in norm_b:
        return 0.8

    max_len = max(len(norm_a), len(norm_b))
    if max_len == 0:
        return 1.0
    return 1 - levenshtein_distance(norm_a, norm_b) / max_len


@dataclass
class MatchResult:
    header: str
    field: Optional[FieldDefinition]
    score: float
    sample_values: List[str]


def find_best_match(
    header: str,
    fields: Sequence[FieldDefinition],
    claimed: Optional[set] = None,
) -> MatchResult:
    """
    Best unclaimed field for ``header``; ``field`` is None below MATCH_THRESHOLD.

    An exact normalized match on a field's name or label wins immediately.
    Otherwise the highest score across aliases, name and label is kept, with
    the earliest field winning ties.
    """
    claimed = claimed or set()
    normalized_header = normalize(header)
    best_field: Optional[FieldDefinition] = None
    best_score = 0.0

    if not normalized_header:
        return MatchResult(header=header, field=None, score=0.0, sample_values=[])

    for field_def in fields:
        if field_def.name in claimed:
            continue

        if normalized_header in (normalize(field_def.name), normalize(field_def.label)):
            return MatchResult(header=header, field=field_def, score=1.0, sample_values=[])

        for alias in field_def.aliases:
            alias_score = similarity(header, alias)
            if alias_score > best_score:
                best_score = alias_score
                best_field = field_def

        own_score = max(similarity(header, field_def.name), similarity(header, field_def.label))
        if own_score > best_score:
            best_score = own_score
            best_field = field_def

    if best_score >= MATCH_THRESHOLD:
        return MatchResult(header=header, field=best_field, score=best_score, sample_values=[])
    return MatchResult(header=header, field=None, score=0.0, sample_values=[])


def extract_sample_values(rows: Sequence[Dict[str, Any]], header: str) -> List[str]:
    """First distinct, non-empty, trimmed values of ``header`` within the first rows."""
    values: List[str] = []
    seen = set()
    for row in rows[:SAMPLE_ROW_LIMIT]:
        raw = row.get(header)
        if raw is None:
            continue
        text = str(raw).strip()
        if text and text not in seen:
            seen.add(text)
            values.append(text)
            if len(values) >= SAMPLE_VALUE_LIMIT:
                break
    return values


def auto_map_columns(
    headers: Sequence[str],
    rows: Sequence[Dict[str, Any]],
    entity_type,
) -> List[ColumnMapping]:
    """
    Suggest a mapping for every header.

    First pass: in header order, each header searches the fields not yet
    claimed by a high-confidence match, and claims its best field immediately
    when the score is >= HIGH_CONFIDENCE_THRESHOLD.
    Second pass: in header order, the remaining matches claim their field if
    nobody has it yet; otherwise the header is left unmapped.
    """
    fields = fields_for(entity_type)
    claimed: Dict[str, str] = {}  # field name -> header that owns it
    results: List[MatchResult] = []

    for header in headers:
        match = find_best_match(header, fields, set(claimed))
        match.sample_values = extract_sample_values(rows, header)
        results.append(match)
        if match.field is not None and match.score >= HIGH_CONFIDENCE_THRESHOLD:
            claimed[match.field.name] = header

    owners: List[Optional[str]] = []
    for index, match in enumerate(results):
        if match.field is None:
            owners.append(None)
            continue
        if match.score >= HIGH_CONFIDENCE_THRESHOLD:
            owners.append(match.field.name)
            continue
        if match.field.name not in claimed:
            claimed[match.field.name] = match.header
            owners.append(match.field.name)
        else:
            logger.debug(
                "Header '%s' lost field '%s' to '%s'",
                match.header,
                match.field.name,
                claimed[match.field.name],
            )
            owners.append(None)

    mappings = [
        ColumnMapping(csv_column=match.header, db_field=owner, sample_values=match.sample_values)
        for match, owner in zip(results, owners)
    ]

    mapped = sum(1 for m in mappings if m.db_field)
    logger.info("Auto-mapped %d of %d columns for %s", mapped, len(mappings), entity_type)
    return mappings


def validate_mappings(mappings: Sequence[ColumnMapping], entity_type) -> MappingValidationResult:
    """A mapping set is valid when every required field is targeted; missing ones are reported by label."""
    mapped_fields = {m.db_field for m in mappings if m.db_field}
    missing = [f.label for f in required_fields_for(entity_type) if f.name not in mapped_fields]
    return MappingValidationResult(valid=not missing, missing_fields=missing)


def available_fields(
    mappings: Sequence[ColumnMapping],
    entity_type,
    current_index: Optional[int] = None,
) -> List[FieldDefinition]:
    """Fields not targeted by any mapping other than the one at ``current_index``."""
    taken = {
        m.db_field
        for i, m in enumerate(mappings)
        if m.db_field and i != current_index
    }
    return [f for f in fields_for(entity_type) if f.name not in taken]


def assign_field(
    mappings: Sequence[ColumnMapping],
    index: int,
    db_field: Optional[str],
) -> List[ColumnMapping]:
    """
    Manually point the mapping at ``index`` to ``db_field`` (None to skip).

    Any other mapping that targeted the same field is released, so the set
    never holds two columns for one field.
    """
    if not 0 <= index < len(mappings):
        raise IndexError(f"Mapping index {index} out of range")

    target = db_field.strip() if db_field else None
    if not target or target.lower() == "skip":
        target = None

    updated: List[ColumnMapping] = []
    for i, mapping in enumerate(mappings):
        if i == index:
            updated.append(mapping.model_copy(update={"db_field": target}))
        elif target and mapping.db_field == target:
            updated.append(mapping.model_copy(update={"db_field": None}))
        else:
            updated.append(mapping)
    return updated
