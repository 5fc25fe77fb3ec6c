"""Batch command execution over a model type's mapped fields.

A ``Command`` owns the field descriptors of one model type. It renders the
field, parameter and assignment lists used to build INSERT/UPDATE/DELETE
text, and executes such text once per model instance, sharing a single
transaction across the batch.
"""

from collections.abc import Callable, Iterable
from typing import Any

import structlog
from pydantic import BaseModel
from sqlalchemy import bindparam, text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncTransaction
from sqlalchemy.sql.elements import BindParameter, TextClause

from tom.errors import FieldNotFoundError
from tom.models.field import FieldDescriptor, create_fields_from_type
from tom.services.context import MappingContext
from tom.services.transforms import to_storage
from tom.sql.dialects import Dialect
from tom.sql.parameters import find_parameter_names, parameter_name, to_bind_syntax


class ExecutionParameter:
    """A bound parameter slot for one field, reused for every row of a batch."""

    def __init__(self, field: FieldDescriptor, dialect: Dialect, name: str | None = None) -> None:
        self.field = field
        self._name = name or field.name
        self.bind: BindParameter = bindparam(self._name, type_=dialect.sql_type(field.storage_kind))
        self.value: Any = None

    @property
    def name(self) -> str:
        """The placeholder name as spelled in the SQL text."""
        return self._name

    def assign(self, model: BaseModel, context: MappingContext) -> Any:
        """Read the field from ``model`` and store its storage value in this slot."""
        self.value = to_storage(self.field, getattr(model, self.field.name, None), context.codec)
        return self.value


class Command:
    """Executes SQL text against batches of one model type.

    Fields may be reconfigured through ``configure_field`` and
    ``configure_all_fields`` until the command first executes; changes made
    later apply to subsequent executions.
    """

    def __init__(
        self,
        model_type: type[BaseModel],
        context: MappingContext,
        fields: list[FieldDescriptor] | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._model_type = model_type
        self._context = context
        self._fields = fields if fields is not None else create_fields_from_type(model_type, context.registry)
        self._logger = logger or structlog.get_logger(__name__)

    @property
    def model_type(self) -> type[BaseModel]:
        return self._model_type

    @property
    def context(self) -> MappingContext:
        return self._context

    @property
    def fields(self) -> list[FieldDescriptor]:
        """Mapped fields, in declaration order."""
        return [field for field in self._fields if field.is_mapped]

    @property
    def unmapped_fields(self) -> list[FieldDescriptor]:
        return [field for field in self._fields if not field.is_mapped]

    @property
    def all_fields(self) -> list[FieldDescriptor]:
        return list(self._fields)

    def field(self, name: str) -> FieldDescriptor:
        """Find a field by name, ignoring case.

        Raises:
            FieldNotFoundError: If the model type has no such field.
        """
        lowered = name.lower()
        for field in self._fields:
            if field.name.lower() == lowered:
                return field
        raise FieldNotFoundError(name, self._model_type)

    def configure_field(self, name: str, action: Callable[[FieldDescriptor], Any]) -> "Command":
        action(self.field(name))
        return self

    def configure_all_fields(
        self,
        action: Callable[[FieldDescriptor], Any],
        predicate: Callable[[FieldDescriptor], bool] | None = None,
    ) -> "Command":
        for field in self._fields:
            if predicate is None or predicate(field):
                action(field)
        return self

    def to_field_names_text(self, fields: Iterable[FieldDescriptor] | None = None) -> str:
        """``[A], [B], [C]`` over the mapped fields, or over ``fields``."""
        quote = self._context.dialect.quote
        return ", ".join(quote(field.name) for field in self._select(fields))

    def to_parameter_names_text(self, fields: Iterable[FieldDescriptor] | None = None) -> str:
        """``@A, @B, @C`` over the mapped fields, or over ``fields``."""
        return ", ".join(parameter_name(field.name) for field in self._select(fields))

    def to_update_fields_text(self, fields: Iterable[FieldDescriptor] | None = None) -> str:
        """``[A] = @A, [B] = @B`` over the mapped fields, or over ``fields``."""
        quote = self._context.dialect.quote
        return ", ".join(
            f"{quote(field.name)} = {parameter_name(field.name)}" for field in self._select(fields)
        )

    async def execute(
        self,
        connection: AsyncConnection,
        sql: str,
        models: Iterable[BaseModel] | None = None,
        transaction: AsyncTransaction | None = None,
    ) -> int:
        """Execute ``sql`` once per model, or once with no parameters.

        Without an external ``transaction`` the whole batch runs inside a new
        transaction that is committed at the end and rolled back if any row
        fails. With one, committing and rolling back is left to its owner.

        Args:
            connection: Open connection to execute on.
            sql: Statement text using ``@Name`` placeholders.
            models: Model instances supplying the placeholder values.
            transaction: Caller-owned transaction already begun on ``connection``.

        Returns:
            The sum of affected row counts reported by the driver.
        """
        models = list(models) if models is not None else []
        if transaction is None:
            async with connection.begin():
                affected = await self._execute_batch(connection, sql, models)
        else:
            affected = await self._execute_batch(connection, sql, models)

        self._logger.debug(
            "command_executed",
            model=self._model_type.__name__,
            rows=len(models),
            affected=affected,
            owns_transaction=transaction is None,
        )
        return affected

    async def _execute_batch(self, connection: AsyncConnection, sql: str, models: list[BaseModel]) -> int:
        if not models:
            result = await connection.execute(text(to_bind_syntax(sql)))
            return result.rowcount

        parameters = self._create_parameters(sql)
        statement = self._create_statement(sql, parameters)
        affected = 0
        for model in models:
            values = {parameter.name: parameter.assign(model, self._context) for parameter in parameters}
            result = await connection.execute(statement, values)
            affected += result.rowcount
        return affected

    def _create_parameters(self, sql: str) -> list[ExecutionParameter]:
        # Placeholders match field names ignoring case and keep their spelling in the SQL.
        referenced = find_parameter_names(sql)
        dialect = self._context.dialect
        return [
            ExecutionParameter(field, dialect, name)
            for field in self.fields
            for name in referenced
            if name.lower() == field.name.lower()
        ]

    def _create_statement(self, sql: str, parameters: list[ExecutionParameter]) -> TextClause:
        statement = text(to_bind_syntax(sql))
        if parameters:
            statement = statement.bindparams(*(parameter.bind for parameter in parameters))
        return statement

    def _select(self, fields: Iterable[FieldDescriptor] | None) -> list[FieldDescriptor]:
        return self.fields if fields is None else list(fields)
