"""
Schema input loading.

Parses the column catalog CSV and the YAML/JSON description files into a
SchemaContext. Everything here is pure file IO and parsing; the store decides
when to call it.
"""

import csv
import io
import logging
import re
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from querygpt.config import SchemaSettings
from querygpt.models.errors import SchemaLoadError
from querygpt.models.schema import (
    ColumnToTableMapping,
    Relationship,
    SchemaContext,
    TableField,
    TableSchema,
)

logger = logging.getLogger(__name__)

# Word joiner, zero-width space and ordinary whitespace found in exported catalogs
_NAME_NOISE = re.compile(r"[\u2060\u200b\ufeff\s]+")

DEFAULT_EXCLUDED_MARKERS = ("_bkp_", "_backup")


def _clean_name(value: str) -> str:
    return _NAME_NOISE.sub("", value).strip()


def parse_schema_csv(
    text: str,
    excluded_markers: Iterable[str] = DEFAULT_EXCLUDED_MARKERS,
) -> list[TableSchema]:
    """
    Parse a column catalog export into tables.

    Expected columns (header row is skipped):
        table_name, column_name, data_type, is_nullable, column_key[, column_default]

    Rows with fewer than four fields or empty names are skipped, as are tables
    whose name contains an excluded marker. Duplicate columns keep the first
    occurrence.
    """
    markers = tuple(excluded_markers)
    fields_by_table: dict[str, list[TableField]] = {}
    seen_columns: dict[str, set[str]] = {}

    reader = csv.reader(io.StringIO(text.strip()), skipinitialspace=True)
    next(reader, None)

    for parts in reader:
        if len(parts) < 4:
            continue
        parts = [part.strip() for part in parts]
        table_name = _clean_name(parts[0])
        column_name = _clean_name(parts[1])
        if not table_name or not column_name:
            continue
        if any(marker in table_name for marker in markers):
            continue

        columns = seen_columns.setdefault(table_name, set())
        if column_name in columns:
            continue
        columns.add(column_name)

        column_key = parts[4] if len(parts) > 4 else ""
        default_value = parts[5] if len(parts) > 5 and parts[5] else None
        fields_by_table.setdefault(table_name, []).append(
            TableField(
                name=column_name,
                type=parts[2] or "varchar",
                is_primary=column_key == "PRI",
                is_nullable=parts[3] != "NO",
                default_value=default_value,
            )
        )

    tables = [TableSchema(name=name, fields=fields) for name, fields in fields_by_table.items()]
    return sorted(tables, key=lambda table: (table.name.lower(), table.name))


def read_structured_file(path: Path) -> Any:
    """Read a YAML or JSON file (JSON is valid YAML)."""
    try:
        with open(path, encoding="utf-8") as f:
            return yaml.safe_load(f)
    except FileNotFoundError as e:
        raise SchemaLoadError(f"Schema input not found: {path}", context={"path": str(path)}) from e
    except yaml.YAMLError as e:
        raise SchemaLoadError(
            f"Schema input is not valid YAML/JSON: {path}", context={"path": str(path)}
        ) from e


def _read_mapping(path: Path | None) -> dict[str, Any]:
    if path is None:
        return {}
    data = read_structured_file(path)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise SchemaLoadError(f"Expected a mapping in {path}", context={"path": str(path)})
    return data


def _read_list(path: Path | None) -> list[Any]:
    if path is None:
        return []
    data = read_structured_file(path)
    if data is None:
        return []
    if not isinstance(data, list):
        raise SchemaLoadError(f"Expected a list in {path}", context={"path": str(path)})
    return data


def load_schema_context(settings: SchemaSettings) -> SchemaContext:
    """
    Build a SchemaContext from the configured input files.

    Missing optional inputs yield empty sections. Unreadable or malformed
    inputs raise SchemaLoadError.
    """
    tables: list[TableSchema] = []
    if settings.csv_path is not None:
        try:
            text = settings.csv_path.read_text(encoding="utf-8")
        except OSError as e:
            raise SchemaLoadError(
                f"Schema CSV could not be read: {settings.csv_path}",
                context={"path": str(settings.csv_path)},
            ) from e
        tables = parse_schema_csv(text, settings.excluded_table_markers)

    try:
        context = SchemaContext(
            table_descriptions={
                str(name): str(description or "")
                for name, description in _read_mapping(settings.table_descriptions_path).items()
            },
            column_descriptions=_read_mapping(settings.column_descriptions_path),
            tables=tables,
            relationships=[
                Relationship.model_validate(item)
                for item in _read_list(settings.relationships_path)
            ],
            column_mappings=[
                ColumnToTableMapping.model_validate(item)
                for item in _read_list(settings.column_mappings_path)
            ],
        )
    except ValidationError as e:
        raise SchemaLoadError(f"Schema inputs are invalid: {e}") from e

    logger.info(
        "Schema context loaded",
        extra={
            "tables": len(context.tables),
            "described_tables": len(context.table_descriptions),
            "relationships": len(context.relationships),
            "column_mappings": len(context.column_mappings),
        },
    )
    return context
