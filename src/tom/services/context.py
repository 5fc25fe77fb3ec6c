"""Explicit mapping configuration handed to every table, command and query."""

from pydantic import BaseModel, ConfigDict, Field

from tom.models.mapping import TypeRegistry
from tom.services.codec import SecureValueCodec
from tom.sql.dialects import Dialect, SqlServerDialect

DEFAULT_PAGE = 0
DEFAULT_PAGE_SIZE = 25


class MappingContext(BaseModel):
    """Registry, dialect and codec shared by the objects of one database."""

    registry: TypeRegistry = Field(default_factory=TypeRegistry)
    dialect: Dialect = Field(default_factory=SqlServerDialect)
    codec: SecureValueCodec | None = None
    default_page_size: int = Field(default=DEFAULT_PAGE_SIZE, gt=0)

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)
