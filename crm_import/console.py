#!/usr/bin/env python3
"""
Operator console for running imports outside the web wizard.

Parses a file, shows the suggested column mapping and a validation preview,
then imports it either as a dry run (in-memory store) or into the database.
"""
import argparse
import logging
import sys
from pathlib import Path
from typing import List

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .api.schemas.imports import ColumnMapping, DuplicateHandling, ImportConfig, ImportResult
from .core.config import settings
from .core.logging_config import configure_logging
from .domain.imports.executor import InvalidImportConfigError, execute_import, validate_sample
from .domain.imports.field_definitions import EntityType, field_by_name
from .domain.imports.mapper import auto_map_columns, validate_mappings
from .domain.imports.parsers import FileParseError, parse_file
from .domain.imports.reports import build_error_report
from .domain.imports.store import InMemoryRecordStore, RecordStore, SqlRecordStore

logger = logging.getLogger(__name__)


class ImportConsole:
    """Renders each import step with rich."""

    def __init__(self, entity_type: EntityType):
        self.console = Console()
        self.entity_type = entity_type

    def print_mappings(self, mappings: List[ColumnMapping]) -> None:
        table = Table(title=f"Column mapping ({self.entity_type.value})")
        table.add_column("Column", style="cyan", no_wrap=True)
        table.add_column("Field", style="green")
        table.add_column("Samples", style="dim")

        for mapping in mappings:
            field_def = field_by_name(self.entity_type, mapping.db_field)
            target = f"{field_def.label} ({field_def.name})" if field_def else "[yellow]skip[/yellow]"
            table.add_row(mapping.csv_column, target, ", ".join(mapping.sample_values))

        self.console.print(table)

    def print_result(self, result: ImportResult, dry_run: bool) -> None:
        title = "Dry run" if dry_run else "Import"
        style = "green" if result.success else "red"
        self.console.print(Panel(
            f"Imported: {result.imported}\n"
            f"Updated:  {result.updated}\n"
            f"Skipped:  {result.skipped}\n"
            f"Failed:   {result.failed}",
            title=f"{title} {'succeeded' if result.success else 'failed'}",
            border_style=style,
        ))

    def print_errors(self, result: ImportResult, limit: int) -> None:
        if not result.errors or limit <= 0:
            return
        table = Table(title=f"Row errors (first {min(limit, len(result.errors))} of {len(result.errors)})")
        table.add_column("Row", justify="right")
        table.add_column("Field", style="cyan")
        table.add_column("Value")
        table.add_column("Error", style="red")
        for error in result.errors[:limit]:
            table.add_row(str(error.row), error.field, "" if error.value is None else str(error.value), error.message)
        self.console.print(table)


def _build_store(execute: bool, tenant_id: str, user_id: str) -> RecordStore:
    if not execute:
        return InMemoryRecordStore(tenant_id=tenant_id)

    from .db.models import create_entity_tables
    from .db.session import get_engine

    engine = get_engine()
    create_entity_tables(engine)
    return SqlRecordStore(engine, tenant_id=tenant_id, user_id=user_id)


def main(argv=None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="CRM Import Console - import contacts, leads and clients from CSV/Excel",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s contacts.csv --entity contacts                 # Dry run with preview
  %(prog)s leads.xlsx --entity leads --execute            # Import into the database
  %(prog)s clients.csv --entity clients --errors-out e.csv
        """
    )
    parser.add_argument('file', type=Path, help='CSV or Excel file to import')
    parser.add_argument(
        '--entity',
        choices=[e.value for e in EntityType],
        required=True,
        help='Entity type the rows describe'
    )
    parser.add_argument(
        '--duplicate-handling',
        choices=[d.value for d in DuplicateHandling],
        default=DuplicateHandling.SKIP.value,
        help='What to do when a row matches an existing record (default: skip)'
    )
    parser.add_argument('--duplicate-key', help='Field used to detect duplicates (default per entity)')
    parser.add_argument(
        '--fail-invalid',
        action='store_true',
        help='Count invalid rows as failed instead of skipped'
    )
    parser.add_argument('--execute', action='store_true', help='Write to the database instead of a dry run')
    parser.add_argument('--tenant', default=settings.default_tenant_id, help='Tenant the records belong to')
    parser.add_argument('--user', default=settings.default_user_id, help='User recorded as creator')
    parser.add_argument('--show-errors', type=int, default=20, help='Number of row errors to print')
    parser.add_argument('--errors-out', type=Path, help='Write all row errors to this CSV file')

    args = parser.parse_args(argv)
    configure_logging(settings.log_level)

    entity_type = EntityType(args.entity)
    ui = ImportConsole(entity_type)

    try:
        parsed = parse_file(args.file.read_bytes(), args.file.name)
    except FileNotFoundError:
        ui.console.print(f"[red]File not found: {args.file}[/red]")
        return 1
    except FileParseError as e:
        ui.console.print(f"[red]Could not read file: {e}[/red]")
        return 1

    ui.console.print(f"[bold]{parsed.file_name}[/bold]: {parsed.total_rows} rows, {len(parsed.headers)} columns")
    mappings = auto_map_columns(parsed.headers, parsed.rows, entity_type)
    ui.print_mappings(mappings)

    mapping_check = validate_mappings(mappings, entity_type)
    if not mapping_check.valid:
        ui.console.print(f"[red]Required fields are not mapped: {', '.join(mapping_check.missing_fields)}[/red]")
        return 1

    config = ImportConfig(
        duplicate_handling=DuplicateHandling(args.duplicate_handling),
        duplicate_key=args.duplicate_key,
        skip_invalid_rows=not args.fail_invalid,
    )
    store = _build_store(args.execute, args.tenant, args.user)

    try:
        preview = validate_sample(parsed, mappings, entity_type, config.duplicate_key, store)
        ui.console.print(
            f"Preview: {preview.valid} valid, {preview.invalid} invalid, "
            f"{preview.duplicates} duplicates in the first {settings.import_sample_size} rows"
        )
        with ui.console.status("Importing..."):
            result = execute_import(parsed.rows, mappings, entity_type, config, store)
    except InvalidImportConfigError as e:
        ui.console.print(f"[red]{e}[/red]")
        return 1

    ui.print_result(result, dry_run=not args.execute)
    ui.print_errors(result, args.show_errors)
    if args.errors_out and result.errors:
        args.errors_out.write_text(build_error_report(result.errors), encoding="utf-8")
        ui.console.print(f"Wrote {len(result.errors)} errors to {args.errors_out}")

    return 0 if result.success else 2


if __name__ == "__main__":
    sys.exit(main())
