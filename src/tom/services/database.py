"""Database: the owner of tables, the engine and the open unit of work.

Subclasses declare their tables as class annotations::

    class Shop(Database):
        customers: Table[Customer]
        orders: Table[Order]

        def configure(self) -> None:
            self.customers.configure_column("Email", lambda column: column.secure())

Uses SQLAlchemy's native async support; with aiosqlite it runs against
local SQLite files.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, get_args, get_origin, get_type_hints

import structlog
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from tom.errors import ConfigurationError, NoOpenWorkError
from tom.models.mapping import element_type
from tom.services.context import DEFAULT_PAGE, MappingContext
from tom.services.query import QueryExecutor
from tom.services.schema import SchemaGenerator
from tom.services.table import Table
from tom.services.work import UnitOfWork
from tom.sql.dialects import dialect_for_url


class Database:
    """Owns an engine, the declared tables and at most one unit of work.

    The unit of work is closed until the first write (or ``request_work``)
    opens it, and closed again by ``commit`` or ``dispose``. Writes that are
    never committed are rolled back when the unit of work is disposed.

    Without an engine the database can still describe its schema, but every
    operation that needs a connection raises ``ConfigurationError``.
    """

    def __init__(
        self,
        engine: AsyncEngine | str | None = None,
        context: MappingContext | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._owns_engine = isinstance(engine, str)
        self._engine = create_async_engine_from_url(engine) if isinstance(engine, str) else engine
        if context is None and self._engine is not None:
            context = MappingContext(dialect=dialect_for_url(self._engine.url))
        elif context is None:
            context = MappingContext()
        self._context = context
        self._logger = logger or structlog.get_logger(__name__)
        self._work: UnitOfWork | None = None
        self._scalars = QueryExecutor(BaseModel, context, fields=[], logger=self._logger)

        self.tables = self.create_tables()
        self.unmap_foreign_references()
        self.configure()

    @property
    def context(self) -> MappingContext:
        return self._context

    @property
    def engine(self) -> AsyncEngine | None:
        return self._engine

    @property
    def work(self) -> UnitOfWork | None:
        """The open unit of work, if any."""
        if self._work is not None and self._work.is_open:
            return self._work
        return None

    def create_tables(self) -> list[Table[Any]]:
        """Create one ``Table`` per ``Table[Model]`` class annotation."""
        tables: list[Table[Any]] = []
        for attribute, hint in get_type_hints(type(self)).items():
            if get_origin(hint) is not Table:
                continue
            (model_type,) = get_args(hint)
            table = Table(self, model_type, logger=self._logger)
            setattr(self, attribute, table)
            tables.append(table)
        return tables

    def unmap_foreign_references(self) -> None:
        """Unmap columns that hold another table's model rather than its key."""
        model_types = {table.model_type for table in self.tables}
        for table in self.tables:
            for column in table.columns:
                if element_type(column.field.annotation) in model_types:
                    column.field.is_mapped = False
                    self._logger.debug(
                        "foreign_reference_unmapped",
                        table=table.table_name,
                        column=column.name,
                    )

    def configure(self) -> None:
        """Override to configure tables, for example to secure columns."""

    def table_for(self, model_type: type[BaseModel]) -> Table[Any] | None:
        for table in self.tables:
            if table.model_type is model_type:
                return table
        return None

    @asynccontextmanager
    async def connect(self) -> AsyncIterator[AsyncConnection]:
        """Open a connection that is released when the block exits."""
        engine = self._require_engine("connect")
        async with engine.connect() as connection:
            yield connection

    async def request_work(self) -> UnitOfWork:
        """Return the open unit of work, opening one if needed."""
        work = self.work
        if work is None:
            engine = self._require_engine("request_work")
            work = await UnitOfWork.create(engine, logger=self._logger)
            self._work = work
        return work

    async def commit(self) -> None:
        """Commit the open unit of work and close it.

        Raises:
            NoOpenWorkError: If no unit of work is open.
        """
        work = self.work
        if work is None:
            raise NoOpenWorkError("commit")
        self._work = None
        await work.commit()

    async def dispose(self) -> None:
        """Close the open unit of work, if any, without committing."""
        work, self._work = self._work, None
        if work is not None:
            await work.dispose()

    async def close(self) -> None:
        """Dispose the unit of work, and the engine when this database created it."""
        await self.dispose()
        if self._owns_engine and self._engine is not None:
            await self._engine.dispose()

    async def list(
        self,
        model_type: type[BaseModel],
        query: str,
        parameters: Any = None,
        page: int = DEFAULT_PAGE,
        page_size: int | None = None,
    ) -> list[Any]:
        """Run free-form SELECT text and materialize rows as ``model_type``.

        Rows of a model type with a declared table use that table's column
        configuration, so secure columns are decrypted.
        """
        table = self.table_for(model_type)
        executor = table.query if table is not None else QueryExecutor(model_type, self._context, logger=self._logger)
        async with self.connect() as connection:
            return await executor.list(connection, query, parameters, page=page, page_size=page_size)

    async def scalar(self, query: str, parameters: Any = None, result_type: Any = None) -> Any:
        async with self.connect() as connection:
            return await self._scalars.scalar(connection, query, parameters, result_type=result_type)

    async def initialize_schema(self) -> None:
        """Create the declared tables."""
        statements = SchemaGenerator(self).create_statements()
        engine = self._require_engine("initialize_schema")
        async with engine.begin() as connection:
            for statement in statements:
                await connection.exec_driver_sql(statement)
        self._logger.info("schema_initialized", tables=len(statements))

    def _require_engine(self, operation: str) -> AsyncEngine:
        if self._engine is None:
            raise ConfigurationError(f"No database engine configured; cannot {operation}")
        return self._engine

    async def __aenter__(self) -> "Database":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


def create_async_engine_from_url(url: str) -> AsyncEngine:
    """Create an async SQLAlchemy engine for ``url``.

    Args:
        url: SQLAlchemy URL with an async driver, e.g. ``sqlite+aiosqlite:///tom.db``.

    Returns:
        AsyncEngine instance.
    """
    return create_async_engine(url)
