"""DDL generation for a database's declared tables."""

import getpass
from datetime import datetime
from typing import TYPE_CHECKING, Any

from tom.models.column import Column

if TYPE_CHECKING:
    from tom.services.database import Database
    from tom.services.table import Table


class SchemaGenerator:
    """Renders ``CREATE TABLE`` statements in the database's dialect.

    Only mapped columns are emitted. Column types, nullability and default
    literals come from each column's mapping; the primary key becomes the
    table's key constraint.
    """

    def __init__(self, database: "Database", user: str | None = None, now: datetime | None = None) -> None:
        self._database = database
        self._dialect = database.context.dialect
        self._user = user
        self._now = now

    def create_schema(self) -> str:
        """Render a script: a header comment followed by every table."""
        separator = self._dialect.batch_separator
        lines = [f"-- Generated {self._generated_at().isoformat()} by {self._generated_by()}", ""]
        lines.extend(self._dialect.schema_preamble)
        if self._dialect.schema_preamble and separator:
            lines.append(separator)
        for statement in self.create_statements():
            lines.append("")
            lines.append(f"{statement}\n{separator}" if separator else f"{statement};")
        return "\n".join(lines) + "\n"

    def create_statements(self) -> list[str]:
        """One ``CREATE TABLE`` statement per table, without batch separators."""
        return [self.create_table(table) for table in self._database.tables]

    def create_table(self, table: "Table[Any]") -> str:
        declarations = [self.create_column(table, column) for column in table.columns]
        key_columns = [column.name for column in table.primary_key]
        return self._dialect.build_create_table(table.table_name, declarations, key_columns)

    def create_column(self, table: "Table[Any]", column: Column) -> str:
        field = column.field
        return self._dialect.build_column(
            table.table_name,
            column.name,
            self._dialect.ddl_type(field.storage_kind, column.arguments),
            field.is_nullable,
            self._dialect.ddl_default(column.default),
        )

    def _generated_at(self) -> datetime:
        return self._now or datetime.now().astimezone()

    def _generated_by(self) -> str:
        if self._user:
            return self._user
        try:
            return getpass.getuser()
        except (KeyError, OSError):
            return "unknown"
