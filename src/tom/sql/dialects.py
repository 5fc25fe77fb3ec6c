"""
SQL dialect implementations.

A dialect decides identifier quoting, the schema prefix on table
references, the paging clause, the SQLAlchemy bind type for each storage
kind, DDL type names and default literals, and how to recognise the
driver's "paging needs ORDER BY" failure.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

import sqlalchemy as sa
from sqlalchemy.dialects import mssql
from sqlalchemy.engine import URL, make_url
from sqlalchemy.types import TypeDecorator, TypeEngine

from tom.errors import ConfigurationError
from tom.models.enums import StorageKind


class IsoDateTimeOffset(TypeDecorator):
    """Offset-aware datetime stored as ISO-8601 text, for backends without DATETIMEOFFSET."""

    impl = sa.String(40)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return value.isoformat()

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return datetime.fromisoformat(value)


class Dialect(ABC):
    """Abstract base dialect: bracket-quoted identifiers and generic SQLAlchemy bind types.

    Subclasses provide the paging clause and the DDL rendering.
    """

    name = "generic"
    schema: str | None = None
    batch_separator: str | None = None
    missing_order_by_markers: tuple[str, ...] = ()
    schema_preamble: tuple[str, ...] = ()

    def __init__(self, schema: str | None = None) -> None:
        if schema is not None:
            self.schema = schema

    def quote(self, identifier: str) -> str:
        """Quote an identifier with brackets, doubling any closing bracket."""
        escaped = identifier.replace("]", "]]")
        return f"[{escaped}]"

    def qualify(self, table: str) -> str:
        """Create a table reference with the dialect's schema prefix."""
        quoted = self.quote(table)
        if self.schema:
            return f"{self.schema}.{quoted}"
        return quoted

    @abstractmethod
    def paging_clause(self, page_parameter: str, size_parameter: str) -> str:
        ...

    def sql_type(self, kind: StorageKind) -> TypeEngine:
        """SQLAlchemy type used to bind values of ``kind``."""
        return _GENERIC_BIND_TYPES[kind]

    def type_for_value(self, value: Any) -> TypeEngine | None:
        """Bind type for a free-standing value, or None to let SQLAlchemy infer it."""
        if isinstance(value, UUID):
            return self.sql_type(StorageKind.UNIQUE_IDENTIFIER)
        if isinstance(value, datetime):
            if value.tzinfo is not None:
                return self.sql_type(StorageKind.DATETIME_OFFSET)
            return self.sql_type(StorageKind.DATETIME2)
        if isinstance(value, Decimal):
            return self.sql_type(StorageKind.DECIMAL)
        return None

    @abstractmethod
    def ddl_type(self, kind: StorageKind, arguments: str | None) -> str:
        ...

    def ddl_default(self, literal: str | None) -> str | None:
        return literal

    @abstractmethod
    def build_column(self, table: str, column: str, ddl_type: str, nullable: bool, default: str | None) -> str:
        ...

    @abstractmethod
    def build_create_table(self, table: str, column_declarations: list[str], key_columns: list[str]) -> str:
        ...

    def is_missing_order_by(self, error: BaseException) -> bool:
        message = str(getattr(error, "orig", None) or error)
        return any(marker in message for marker in self.missing_order_by_markers)


class SqlServerDialect(Dialect):
    """Microsoft SQL Server (T-SQL) dialect."""

    name = "sqlserver"
    schema = "dbo"
    batch_separator = "GO"
    missing_order_by_markers = ("Invalid usage of the option NEXT in the FETCH statement",)
    schema_preamble = ("SET ANSI_NULLS ON", "SET QUOTED_IDENTIFIER ON", "SET ANSI_PADDING ON")

    def paging_clause(self, page_parameter: str, size_parameter: str) -> str:
        return (
            f"\nOFFSET (@{page_parameter} - 1) * @{size_parameter} ROWS"
            f"\nFETCH NEXT @{size_parameter} ROWS ONLY"
        )

    def sql_type(self, kind: StorageKind) -> TypeEngine:
        if kind == StorageKind.DATETIME_OFFSET:
            return mssql.DATETIMEOFFSET()
        if kind == StorageKind.DATETIME2:
            return mssql.DATETIME2()
        return super().sql_type(kind)

    def ddl_type(self, kind: StorageKind, arguments: str | None) -> str:
        return f"[{kind.value.lower()}]{arguments or ''}"

    def build_column(self, table: str, column: str, ddl_type: str, nullable: bool, default: str | None) -> str:
        declaration = f"{self.quote(column)} {ddl_type} {'NULL' if nullable else 'NOT NULL'}"
        if default is not None:
            declaration += f" CONSTRAINT [DF_{table}_{column}]  DEFAULT {default}"
        return declaration

    def build_create_table(self, table: str, column_declarations: list[str], key_columns: list[str]) -> str:
        fields_text = ",\n    ".join(column_declarations)
        key_text = ", ".join(self.quote(name) for name in key_columns)
        return (
            f"CREATE TABLE {self.qualify(table)} (\n"
            f"    {fields_text},\n"
            f"    CONSTRAINT [PK_{table}] PRIMARY KEY CLUSTERED (\n"
            f"        {key_text}\n"
            "    )\n"
            "    WITH (\n"
            "        PAD_INDEX = OFF, \n"
            "        STATISTICS_NORECOMPUTE = OFF, \n"
            "        IGNORE_DUP_KEY = OFF, \n"
            "        ALLOW_ROW_LOCKS = ON, \n"
            "        ALLOW_PAGE_LOCKS = ON\n"
            "    ) ON [PRIMARY]\n"
            ") ON [PRIMARY]"
        )


class SqliteDialect(Dialect):
    """SQLite dialect, used for local databases and tests.

    SQLite accepts bracket-quoted identifiers and ``main.`` as the schema of
    the primary database. T-SQL default literals are translated where SQLite
    has an equivalent.
    """

    name = "sqlite"
    schema = "main"

    _DDL_TYPES = {
        StorageKind.UNIQUE_IDENTIFIER: "CHAR(32)",
        StorageKind.INT: "INTEGER",
        StorageKind.DECIMAL: "NUMERIC",
        StorageKind.FLOAT: "REAL",
        StorageKind.DATETIME2: "DATETIME",
        StorageKind.DATETIME_OFFSET: "VARCHAR(40)",
        StorageKind.BIT: "BOOLEAN",
        StorageKind.NVARCHAR: "TEXT",
        StorageKind.VARBINARY: "BLOB",
    }

    _DEFAULT_TRANSLATIONS = {
        "(0x)": "(X'')",
        "('00000000-0000-0000-0000-000000000000')": "('00000000000000000000000000000000')",
        "(newid())": "(lower(hex(randomblob(16))))",
        "(sysutcdatetime())": "(CURRENT_TIMESTAMP)",
        "(sysdatetimeoffset())": "(strftime('%Y-%m-%dT%H:%M:%f+00:00', 'now'))",
    }

    def paging_clause(self, page_parameter: str, size_parameter: str) -> str:
        return f"\nLIMIT @{size_parameter} OFFSET (@{page_parameter} - 1) * @{size_parameter}"

    def sql_type(self, kind: StorageKind) -> TypeEngine:
        if kind == StorageKind.DATETIME_OFFSET:
            return IsoDateTimeOffset()
        return super().sql_type(kind)

    def ddl_type(self, kind: StorageKind, arguments: str | None) -> str:
        return self._DDL_TYPES[kind]

    def ddl_default(self, literal: str | None) -> str | None:
        if literal is None:
            return None
        return self._DEFAULT_TRANSLATIONS.get(literal, literal)

    def build_column(self, table: str, column: str, ddl_type: str, nullable: bool, default: str | None) -> str:
        declaration = f"{self.quote(column)} {ddl_type} {'NULL' if nullable else 'NOT NULL'}"
        if default is not None:
            declaration += f" DEFAULT {default}"
        return declaration

    def build_create_table(self, table: str, column_declarations: list[str], key_columns: list[str]) -> str:
        fields_text = ",\n    ".join(column_declarations)
        key_text = ", ".join(self.quote(name) for name in key_columns)
        return (
            f"CREATE TABLE IF NOT EXISTS {self.qualify(table)} (\n"
            f"    {fields_text},\n"
            f"    PRIMARY KEY ({key_text})\n"
            ")"
        )


_GENERIC_BIND_TYPES: dict[StorageKind, TypeEngine] = {
    StorageKind.UNIQUE_IDENTIFIER: sa.Uuid(),
    StorageKind.INT: sa.Integer(),
    StorageKind.DECIMAL: sa.Numeric(),
    StorageKind.FLOAT: sa.Float(),
    StorageKind.DATETIME2: sa.DateTime(),
    StorageKind.DATETIME_OFFSET: sa.DateTime(timezone=True),
    StorageKind.BIT: sa.Boolean(),
    StorageKind.NVARCHAR: sa.Unicode(),
    StorageKind.VARBINARY: sa.LargeBinary(),
}

_DIALECTS: dict[str, type[Dialect]] = {
    "sqlserver": SqlServerDialect,
    "mssql": SqlServerDialect,
    "sqlite": SqliteDialect,
}


def get_dialect(name: str) -> Dialect:
    try:
        return _DIALECTS[name.lower()]()
    except KeyError:
        raise ConfigurationError(f"Unsupported SQL dialect '{name}'") from None


def dialect_for_url(url: str | URL) -> Dialect:
    """Pick the dialect matching a SQLAlchemy database URL's backend."""
    return get_dialect(make_url(url).get_backend_name())
