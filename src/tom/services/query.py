"""Query execution and row materialization."""

from collections.abc import Mapping
from typing import Any, TypeVar

import structlog
from pydantic import BaseModel, TypeAdapter
from sqlalchemy import bindparam, text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncConnection
from sqlalchemy.sql.elements import TextClause

from tom.errors import MissingOrderByError
from tom.models.field import FieldDescriptor, create_fields_from_type
from tom.services.context import DEFAULT_PAGE, MappingContext
from tom.services.transforms import from_storage
from tom.sql.parameters import match_parameters, to_bind_syntax

ModelT = TypeVar("ModelT", bound=BaseModel)

PAGE_PARAMETER = "ListCurrentPage"
PAGE_SIZE_PARAMETER = "ListPageSize"


class QueryExecutor:
    """Runs SELECT text and turns result rows into model instances.

    Placeholders in the query are bound from a parameter holder by name,
    ignoring case; holder values no placeholder references are ignored.
    Result columns without a matching mapped field are ignored too.
    """

    def __init__(
        self,
        model_type: type[ModelT],
        context: MappingContext,
        fields: list[FieldDescriptor] | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._model_type = model_type
        self._context = context
        self._fields = fields if fields is not None else create_fields_from_type(model_type, context.registry)
        self._logger = logger or structlog.get_logger(__name__)

    async def list(
        self,
        connection: AsyncConnection,
        query: str,
        parameters: Any = None,
        page: int = DEFAULT_PAGE,
        page_size: int | None = None,
    ) -> list[ModelT]:
        """Run ``query`` and materialize every row.

        Args:
            connection: Open connection to read from.
            query: SELECT text using ``@Name`` placeholders.
            parameters: Mapping, pydantic model or object holding placeholder values.
            page: One-based page number; 0 disables paging.
            page_size: Rows per page, defaulting to the context's page size.

        Returns:
            Model instances in result order.

        Raises:
            MissingOrderByError: If paging was requested and the driver
                rejected the query for lacking ORDER BY.
        """
        values = match_parameters(query, parameters)
        if page > 0:
            page_size = page_size or self._context.default_page_size
            query += self._context.dialect.paging_clause(PAGE_PARAMETER, PAGE_SIZE_PARAMETER)
            values[PAGE_PARAMETER] = page
            values[PAGE_SIZE_PARAMETER] = page_size

        try:
            result = await connection.execute(self._create_statement(query, values), values)
        except DBAPIError as exc:
            if page > 0 and self._context.dialect.is_missing_order_by(exc):
                self._logger.warning(
                    "paging_missing_order_by",
                    model=self._model_type.__name__,
                    page=page,
                    page_size=page_size,
                )
                raise MissingOrderByError(query, exc) from exc
            raise

        models = [self.materialize(row) for row in result.mappings()]
        self._logger.debug(
            "query_listed",
            model=self._model_type.__name__,
            rows=len(models),
            page=page,
        )
        return models

    async def scalar(
        self,
        connection: AsyncConnection,
        query: str,
        parameters: Any = None,
        result_type: Any = None,
    ) -> Any:
        """Run ``query`` and return the first column of the first row.

        When ``result_type`` is given the value is coerced to it with
        pydantic; ``None`` is returned as is.
        """
        values = match_parameters(query, parameters)
        result = await connection.execute(self._create_statement(query, values), values)
        value = result.scalar()
        if result_type is None or value is None:
            return value
        return TypeAdapter(result_type).validate_python(value)

    async def scalar_int(self, connection: AsyncConnection, query: str, parameters: Any = None) -> int:
        value = await self.scalar(connection, query, parameters, result_type=int)
        return value or 0

    def materialize(self, row: Mapping[str, Any]) -> ModelT:
        """Build a model from one result row, assigning mapped fields only."""
        codec = self._context.codec
        fields = {field.name: field for field in self._fields if field.is_mapped}
        values = {
            name: from_storage(fields[name], value, codec)
            for name, value in row.items()
            if name in fields
        }
        return self._model_type.model_construct(**values)

    def _create_statement(self, query: str, values: dict[str, Any]) -> TextClause:
        statement = text(to_bind_syntax(query))
        dialect = self._context.dialect
        binds = []
        for name, value in values.items():
            bind_type = dialect.type_for_value(value)
            if bind_type is not None:
                binds.append(bindparam(name, type_=bind_type))
        if binds:
            statement = statement.bindparams(*binds)
        return statement
