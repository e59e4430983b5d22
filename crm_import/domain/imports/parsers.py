"""
Turn uploaded CSV / Excel files into a uniform tabular structure.

Both paths converge on ``ParsedFile``: ordered raw headers plus ordered rows
mapping header -> string value, so nothing downstream needs to know which
format was uploaded.
"""
import csv
import io
import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, Dict, Iterable, List, Optional, Sequence

import pandas as pd
from openpyxl import load_workbook

from crm_import.core.config import settings

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = ("csv", "xlsx", "xls")


class FileParseError(ValueError):
    """Base class for fatal upload errors; nothing is partially parsed."""


class FileFormatError(FileParseError):
    def __init__(self, file_name: str):
        self.file_name = file_name
        super().__init__(
            "Unsupported file format. Please upload a CSV or Excel file (.csv, .xlsx, .xls)."
        )


class FileSizeError(FileParseError):
    def __init__(self, size_bytes: int, max_size_bytes: int):
        self.size_bytes = size_bytes
        self.max_size_bytes = max_size_bytes
        max_mb = max_size_bytes / (1024 * 1024)
        super().__init__(f"File is too large. Maximum file size is {max_mb:g}MB.")


class FileStructureError(FileParseError):
    """Raised when a file has no usable header row or no data rows."""


@dataclass(frozen=True)
class ParsedFile:
    headers: List[str]
    rows: List[Dict[str, str]]
    total_rows: int
    file_name: str
    file_type: str


def detect_file_type(file_name: Optional[str]) -> Optional[str]:
    """Return ``csv``, ``xlsx`` or ``xls`` from the file extension, or None."""
    if not file_name or "." not in file_name:
        return None
    extension = file_name.rsplit(".", 1)[-1].strip().lower()
    return extension if extension in SUPPORTED_EXTENSIONS else None


def max_upload_size_bytes() -> int:
    return settings.upload_max_file_size_mb * 1024 * 1024


def parse_file(file_content: bytes, file_name: str, max_size_bytes: Optional[int] = None) -> ParsedFile:
    """
    Parse an uploaded file into a ``ParsedFile``.

    Raises:
        FileFormatError: extension is not .csv, .xlsx or .xls
        FileSizeError: content exceeds the configured ceiling (checked before parsing)
        FileStructureError: no header row, or zero data rows after parsing
    """
    file_type = detect_file_type(file_name)
    if file_type is None:
        raise FileFormatError(file_name)

    limit = max_size_bytes if max_size_bytes is not None else max_upload_size_bytes()
    if len(file_content) > limit:
        raise FileSizeError(len(file_content), limit)

    if file_type == "csv":
        headers, rows = _parse_csv(file_content, limit)
    elif file_type == "xlsx":
        headers, rows = _parse_xlsx(file_content)
    else:
        headers, rows = _parse_xls(file_content)

    logger.info(
        "Parsed %s file '%s': %d columns, %d data rows",
        file_type,
        file_name,
        len(headers),
        len(rows),
    )
    return ParsedFile(
        headers=headers,
        rows=rows,
        total_rows=len(rows),
        file_name=file_name,
        file_type=file_type,
    )


def _decode_text(file_content: bytes) -> str:
    try:
        return file_content.decode("utf-8-sig")
    except UnicodeDecodeError:
        logger.warning("CSV is not valid UTF-8; decoding as cp1252")
        return file_content.decode("cp1252", errors="replace")


def _is_blank_row(values: Iterable[str]) -> bool:
    return all(not value.strip() for value in values)


def _build_rows(headers: List[str], raw_rows: Iterable[Sequence[str]], source: str) -> List[Dict[str, str]]:
    """Zip raw value lists onto the header row, skipping fully blank lines."""
    rows: List[Dict[str, str]] = []
    width = len(headers)
    overflow_rows = 0
    for raw in raw_rows:
        if _is_blank_row(raw):
            continue
        values = list(raw)
        if len(values) > width:
            if any(v.strip() for v in values[width:]):
                overflow_rows += 1
            values = values[:width]
        elif len(values) < width:
            values.extend([""] * (width - len(values)))
        rows.append(dict(zip(headers, values)))

    if overflow_rows:
        logger.warning(
            "%s: %d rows had more cells than header columns; extra cells were dropped",
            source,
            overflow_rows,
        )
    return rows


def _require_structure(headers: List[str], rows: List[Dict[str, str]], kind: str) -> None:
    if not headers:
        raise FileStructureError(f"{kind} file has no headers.")
    if not rows:
        raise FileStructureError(f"{kind} file has no data rows.")


def _header_columns(header_cells: List[str]):
    """(index, header) pairs for non-blank headers; columns without a header cannot be addressed by a mapping."""
    return [(idx, h) for idx, h in enumerate(header_cells) if h]


def _parse_csv(file_content: bytes, max_field_size: int):
    # A single cell may be as large as the upload itself; the csv module's
    # default field limit (128 KiB) would reject long notes columns.
    csv.field_size_limit(max(max_field_size, csv.field_size_limit()))
    reader = csv.reader(io.StringIO(_decode_text(file_content), newline=""))
    try:
        header_row = next(reader, None)
    except csv.Error as e:
        raise FileStructureError(f"Failed to parse CSV: {e}") from e

    # The first line is always the header row; a blank first line means no headers.
    if header_row is None or _is_blank_row(header_row):
        raise FileStructureError("CSV file has no headers.")

    columns = _header_columns([h.strip() for h in header_row])
    headers = [h for _, h in columns]
    width = len(header_row)
    # Cells past the header row are carried along so _build_rows can report them.
    raw_rows = (
        [row[idx] if idx < len(row) else "" for idx, _ in columns] + row[width:]
        for row in reader
    )
    try:
        rows = _build_rows(headers, raw_rows, "CSV")
    except csv.Error as e:
        raise FileStructureError(f"CSV parsing error at line {reader.line_num}: {e}") from e

    _require_structure(headers, rows, "CSV")
    return headers, rows


def _cell_to_string(value: Any) -> str:
    """Coerce a spreadsheet cell to its display string."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
        return str(value)
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.strftime("%Y-%m-%d")
        return value.isoformat(sep=" ")
    if isinstance(value, (date, time)):
        return value.isoformat()
    # Rich text cells (CellRichText) stringify to their fragments joined in order.
    return str(value).strip()


def _sheet_to_table(raw_rows: List[List[Any]], kind: str):
    """Convert the first sheet's raw cell values (row 1 = headers) into headers + rows."""
    if not raw_rows:
        raise FileStructureError(f"{kind} file has no headers.")

    columns = _header_columns([_cell_to_string(v) for v in raw_rows[0]])
    if not columns:
        raise FileStructureError(f"{kind} file has no headers.")

    headers = [h for _, h in columns]
    string_rows = (
        [_cell_to_string(row[idx]) if idx < len(row) else "" for idx, _ in columns]
        for row in raw_rows[1:]
    )
    rows = _build_rows(headers, string_rows, kind)
    _require_structure(headers, rows, kind)
    return headers, rows


def _parse_xlsx(file_content: bytes):
    try:
        # data_only returns the cached result of formula cells; rich_text keeps
        # segmented text as CellRichText so fragments survive in order.
        workbook = load_workbook(io.BytesIO(file_content), data_only=True, rich_text=True)
    except Exception as e:
        raise FileStructureError(f"Failed to parse Excel file: {e}") from e

    try:
        if not workbook.sheetnames:
            raise FileStructureError("Excel file has no sheets.")
        sheet = workbook.worksheets[0]
        raw_rows = [list(row) for row in sheet.iter_rows(values_only=True)]
    finally:
        workbook.close()

    return _sheet_to_table(raw_rows, "Excel")


def _parse_xls(file_content: bytes):
    try:
        # Legacy workbooks go through pandas (xlrd engine); cached formula
        # results are what xlrd exposes for formula cells.
        df = pd.read_excel(io.BytesIO(file_content), sheet_name=0, header=None, dtype=object)
    except Exception as e:
        raise FileStructureError(f"Failed to parse Excel file: {e}") from e

    raw_rows = df.where(pd.notna(df), None).values.tolist()
    return _sheet_to_table(raw_rows, "Excel")
