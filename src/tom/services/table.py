"""Table mapper: one model type bound to one database table."""

from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Any, Generic, TypeVar
from uuid import UUID

import structlog
from pydantic import BaseModel

from tom.errors import ConfigurationError, FieldNotFoundError
from tom.models.column import Column
from tom.models.enums import StorageKind
from tom.models.field import create_fields_from_type
from tom.services.command import Command
from tom.services.context import DEFAULT_PAGE
from tom.services.query import QueryExecutor
from tom.sql.parameters import parameter_name

if TYPE_CHECKING:
    from tom.services.database import Database

ModelT = TypeVar("ModelT", bound=BaseModel)


class Table(Generic[ModelT]):
    """Reads and writes rows of ``model_type``.

    The table is named after the model type and its first field is the
    primary key. Reads open and release their own connection. Writes run in
    the database's unit of work and are persisted only by
    ``Database.commit()``.
    """

    def __init__(
        self,
        database: "Database",
        model_type: type[ModelT],
        table_name: str | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        context = database.context
        self._database = database
        self._model_type = model_type
        self._logger = logger or structlog.get_logger(__name__)
        self.table_name = table_name or model_type.__name__
        self._columns = [
            Column(field, context.registry) for field in create_fields_from_type(model_type, context.registry)
        ]
        if not self._columns:
            raise ConfigurationError(f"{model_type.__name__} declares no fields")

        fields = [column.field for column in self._columns]
        self.command = Command(model_type, context, fields=fields, logger=self._logger)
        self.query = QueryExecutor(model_type, context, fields=fields, logger=self._logger)

        key = self._columns[0]
        self.primary_key = [key]
        if key.field.storage_kind == StorageKind.UNIQUE_IDENTIFIER:
            key.default = context.registry.new_value_default(UUID)

    @property
    def database(self) -> "Database":
        return self._database

    @property
    def model_type(self) -> type[ModelT]:
        return self._model_type

    @property
    def columns(self) -> list[Column]:
        """Mapped columns, in declaration order."""
        return [column for column in self._columns if column.field.is_mapped]

    @property
    def unmapped_columns(self) -> list[Column]:
        return [column for column in self._columns if not column.field.is_mapped]

    @property
    def all_columns(self) -> list[Column]:
        return list(self._columns)

    @property
    def qualified_name(self) -> str:
        return self._database.context.dialect.qualify(self.table_name)

    def column(self, name: str) -> Column:
        """Find a column by name, ignoring case."""
        lowered = name.lower()
        for column in self._columns:
            if column.name.lower() == lowered:
                return column
        raise FieldNotFoundError(name, self._model_type)

    def configure_column(self, name: str, action: Callable[[Column], Any]) -> "Table[ModelT]":
        action(self.column(name))
        return self

    def configure_all_columns(
        self,
        action: Callable[[Column], Any],
        predicate: Callable[[Column], bool] | None = None,
    ) -> "Table[ModelT]":
        for column in self._columns:
            if predicate is None or predicate(column):
                action(column)
        return self

    def to_select_text(self, where: str | None = None, order_by: str | None = None) -> str:
        where_text = f" where {where}" if where else ""
        return (
            f"select {self.command.to_field_names_text()} from {self.qualified_name}"
            f"{where_text} order by {order_by or self._primary_key_select()}"
        )

    def to_insert_text(self) -> str:
        return (
            f"insert into {self.qualified_name} ({self.command.to_field_names_text()}) "
            f"values ({self.command.to_parameter_names_text()})"
        )

    def to_update_text(self) -> str:
        keys = {column.name for column in self.primary_key}
        updatable = [column.field for column in self.columns if column.name not in keys]
        if not updatable:
            raise ConfigurationError(f"Table {self.table_name} has no columns to update")
        return (
            f"update {self.qualified_name} set {self.command.to_update_fields_text(updatable)} "
            f"where {self._primary_key_filter()}"
        )

    def to_delete_text(self) -> str:
        return f"delete from {self.qualified_name} where {self._primary_key_filter()}"

    async def list(
        self,
        where: str | None = None,
        parameters: Any = None,
        order_by: str | None = None,
        page: int = DEFAULT_PAGE,
        page_size: int | None = None,
    ) -> list[ModelT]:
        """List rows, optionally filtered, ordered and paged.

        Args:
            where: Filter text using ``@Name`` placeholders.
            parameters: Holder of the placeholder values; unused values are ignored.
            order_by: ORDER BY text; defaults to the primary key.
            page: One-based page number; 0 returns every row.
            page_size: Rows per page.

        Returns:
            Models in the requested order.
        """
        async with self._database.connect() as connection:
            return await self.query.list(
                connection,
                self.to_select_text(where, order_by),
                parameters,
                page=page,
                page_size=page_size,
            )

    async def add(self, model: ModelT) -> int:
        return await self.add_range([model])

    async def add_range(self, models: Iterable[ModelT]) -> int:
        return await self._execute(self.to_insert_text(), models)

    async def update(self, model: ModelT) -> int:
        return await self.update_range([model])

    async def update_range(self, models: Iterable[ModelT]) -> int:
        return await self._execute(self.to_update_text(), models)

    async def remove(self, model: ModelT) -> int:
        return await self.remove_range([model])

    async def remove_range(self, models: Iterable[ModelT]) -> int:
        return await self._execute(self.to_delete_text(), models)

    async def single_or_default(self, where: str | None = None, parameters: Any = None) -> ModelT | None:
        """Return the only matching row, or None when nothing matches.

        Raises:
            ValueError: If more than one row matches.
        """
        rows = await self.list(where, parameters)
        if len(rows) > 1:
            raise ValueError(f"Expected at most one {self.table_name} row, found {len(rows)}")
        return rows[0] if rows else None

    async def scalar(
        self,
        select: str,
        where: str | None = None,
        parameters: Any = None,
        result_type: Any = None,
    ) -> Any:
        """Select one value, e.g. ``max([Int])``, from this table."""
        if not select:
            raise ValueError("select is required")
        where_text = f" where {where}" if where else ""
        return await self._database.scalar(
            f"select {select} from {self.qualified_name}{where_text}",
            parameters,
            result_type=result_type,
        )

    async def count(self, where: str | None = None, parameters: Any = None) -> int:
        return await self.scalar("count(*)", where, parameters, result_type=int) or 0

    async def exists(self, where: str | None = None, parameters: Any = None) -> bool:
        return await self.count(where, parameters) > 0

    async def _execute(self, sql: str, models: Iterable[ModelT]) -> int:
        models = list(models)
        if not models:
            return 0
        work = await self._database.request_work()
        return await self.command.execute(work.connection, sql, models, work.transaction)

    def _primary_key_filter(self) -> str:
        quote = self._database.context.dialect.quote
        return " and ".join(f"{quote(column.name)} = {parameter_name(column.name)}" for column in self.primary_key)

    def _primary_key_select(self) -> str:
        quote = self._database.context.dialect.quote
        return ", ".join(quote(column.name) for column in self.primary_key)

    def __repr__(self) -> str:
        return f"Table({self.table_name!r}, columns={len(self.columns)})"
