"""
Schema Context Models

Pydantic models describing the tenant's table catalog, human descriptions,
relationships and generic join hints. A SchemaContext is immutable once
built; reloading produces a new instance.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TableField(BaseModel):
    """Single column of a table."""

    name: str = Field(..., min_length=1, description="Column name")
    type: str = Field(default="varchar", description="Declared data type")
    is_primary: bool = Field(default=False, description="Part of the primary key")
    is_nullable: bool = Field(default=True, description="Column accepts NULL")
    default_value: str | None = Field(None, description="Column default, if any")

    model_config = ConfigDict(frozen=True)


def _field_sort_key(field: TableField) -> tuple[bool, str, str]:
    # Primary keys first, then alphabetical
    return (not field.is_primary, field.name.lower(), field.name)


class TableSchema(BaseModel):
    """Table with its ordered fields."""

    name: str = Field(..., min_length=1, description="Table name")
    fields: list[TableField] = Field(default_factory=list, description="Ordered columns")

    model_config = ConfigDict(frozen=True)

    @field_validator("fields")
    @classmethod
    def sort_fields(cls, v: list[TableField]) -> list[TableField]:
        return sorted(v, key=_field_sort_key)

    def field_names(self) -> list[str]:
        return [field.name for field in self.fields]


class ColumnDescription(BaseModel):
    """Human description of a column with an optional example value."""

    description: str = Field(default="", description="What the column holds")
    example: str | None = Field(None, description="Example value")

    model_config = ConfigDict(frozen=True)

    @field_validator("example", mode="before")
    @classmethod
    def coerce_example(cls, v: Any) -> str | None:
        if v is None or v == "":
            return None
        return str(v)


class Relationship(BaseModel):
    """Foreign-key style relationship between two tables."""

    from_table: str
    from_column: str
    to_table: str
    to_column: str
    description: str | None = None

    model_config = ConfigDict(frozen=True)

    def render(self) -> str:
        line = f"{self.from_table}.{self.from_column} = {self.to_table}.{self.to_column}"
        if self.description:
            line = f"{line} ({self.description})"
        return line


class ColumnToTableMapping(BaseModel):
    """Generic hint: columns with any of these names reference ``to_table.to_column``."""

    from_columns: frozenset[str] = Field(..., min_length=1)
    to_table: str
    to_column: str
    description: str | None = None

    model_config = ConfigDict(frozen=True)

    @field_validator("from_columns", mode="before")
    @classmethod
    def coerce_columns(cls, v: Any) -> Any:
        if isinstance(v, str):
            return frozenset(part.strip() for part in v.split(",") if part.strip())
        return v


class SchemaContext(BaseModel):
    """
    Everything the prompt compiler knows about a tenant's database.

    Invariants:
        - tables are sorted alphabetically by name
        - each table's fields are sorted primary-key-first, then alphabetically
    """

    table_descriptions: dict[str, str] = Field(default_factory=dict)
    column_descriptions: dict[str, dict[str, ColumnDescription]] = Field(default_factory=dict)
    tables: list[TableSchema] = Field(default_factory=list)
    relationships: list[Relationship] = Field(default_factory=list)
    column_mappings: list[ColumnToTableMapping] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @field_validator("column_descriptions", mode="before")
    @classmethod
    def coerce_column_descriptions(cls, v: Any) -> Any:
        """Accept ``{"col": "text"}`` as shorthand for ``{"col": {"description": "text"}}``."""
        if not isinstance(v, dict):
            return v
        coerced: dict[str, dict[str, Any]] = {}
        for table, columns in v.items():
            if not isinstance(columns, dict):
                continue
            coerced[table] = {
                column: {"description": value} if isinstance(value, str) else value
                for column, value in columns.items()
            }
        return coerced

    @field_validator("tables")
    @classmethod
    def sort_tables(cls, v: list[TableSchema]) -> list[TableSchema]:
        return sorted(v, key=lambda table: (table.name.lower(), table.name))

    def table_names(self) -> list[str]:
        """All known table names: catalog tables plus described-only tables."""
        names = [table.name for table in self.tables]
        seen = {name.lower() for name in names}
        for name in self.table_descriptions:
            if name.lower() not in seen:
                seen.add(name.lower())
                names.append(name)
        return names

    def get_table(self, name: str) -> TableSchema | None:
        lowered = name.lower()
        for table in self.tables:
            if table.name.lower() == lowered:
                return table
        return None

    def canonical_table_name(self, name: str) -> str | None:
        """Resolve ``name`` case-insensitively to its stored casing."""
        lowered = name.strip().lower()
        for candidate in self.table_names():
            if candidate.lower() == lowered:
                return candidate
        return None

    def describe_table(self, name: str) -> str:
        if name in self.table_descriptions:
            return self.table_descriptions[name]
        lowered = name.lower()
        for key, value in self.table_descriptions.items():
            if key.lower() == lowered:
                return value
        return ""

    def describe_column(self, table: str, column: str) -> ColumnDescription | None:
        columns = self.column_descriptions.get(table)
        if columns is None:
            lowered = table.lower()
            columns = next(
                (value for key, value in self.column_descriptions.items() if key.lower() == lowered),
                None,
            )
        if not columns:
            return None
        if column in columns:
            return columns[column]
        lowered_column = column.lower()
        for key, value in columns.items():
            if key.lower() == lowered_column:
                return value
        return None

    def descriptions_map(self) -> dict[str, str]:
        """``{table: description}`` for every known table (empty string if undescribed)."""
        return {name: self.describe_table(name) for name in self.table_names()}

    def search(self, term: str) -> list[TableSchema]:
        """Tables whose name or any field name contains ``term`` (case-insensitive)."""
        needle = term.strip().lower()
        if not needle:
            return list(self.tables)
        return [
            table
            for table in self.tables
            if needle in table.name.lower()
            or any(needle in field.name.lower() for field in table.fields)
        ]
