"""Factory functions wiring settings into contexts and databases."""

from typing import TypeVar

import structlog

from tom.config import Settings
from tom.models.mapping import TypeRegistry
from tom.services.codec import SecureValueCodec
from tom.services.context import MappingContext
from tom.services.database import Database
from tom.sql.dialects import dialect_for_url, get_dialect

DatabaseT = TypeVar("DatabaseT", bound=Database)


def create_context(settings: Settings) -> MappingContext:
    """Build the mapping context described by ``settings``.

    The dialect is taken from ``settings.dialect`` or inferred from the
    database URL. A codec is created only when an encryption key is set.

    Args:
        settings: Loaded settings.

    Returns:
        MappingContext to pass to a ``Database``.
    """
    dialect = get_dialect(settings.dialect) if settings.dialect else dialect_for_url(settings.database_url)
    codec = None
    if settings.encryption_key is not None:
        codec = SecureValueCodec(settings.encryption_key.get_secret_value())
    return MappingContext(
        registry=TypeRegistry(strict=settings.strict_types),
        dialect=dialect,
        codec=codec,
        default_page_size=settings.default_page_size,
    )


def create_database(database_type: type[DatabaseT], settings: Settings | None = None) -> DatabaseT:
    """Create a ``database_type`` connected to ``settings.database_url``.

    The database owns its engine; ``close()`` or ``async with`` disposes it.

    Args:
        database_type: ``Database`` subclass declaring the tables.
        settings: Settings to use; loaded from the environment when omitted.

    Returns:
        Configured database instance.
    """
    settings = settings or Settings()
    logger = structlog.get_logger(__name__)
    return database_type(settings.database_url, context=create_context(settings), logger=logger)


def create_offline_database(database_type: type[DatabaseT], dialect: str = "sqlserver") -> DatabaseT:
    """Create a ``database_type`` without an engine, for schema generation only."""
    return database_type(None, context=MappingContext(dialect=get_dialect(dialect)))
