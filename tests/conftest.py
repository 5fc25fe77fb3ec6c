"""Shared fixtures: registries, codecs, contexts and SQLite-backed databases."""

from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine

from sample_models import TEST_KEY, SampleDatabase
from tom.models.mapping import TypeRegistry
from tom.services.codec import SecureValueCodec
from tom.services.context import MappingContext
from tom.services.database import create_async_engine_from_url
from tom.sql.dialects import SqliteDialect, SqlServerDialect


@pytest.fixture
def registry() -> TypeRegistry:
    return TypeRegistry()


@pytest.fixture
def codec() -> SecureValueCodec:
    return SecureValueCodec(TEST_KEY)


@pytest.fixture
def sqlserver_context(codec: SecureValueCodec) -> MappingContext:
    return MappingContext(dialect=SqlServerDialect(), codec=codec)


@pytest.fixture
def sqlite_context(codec: SecureValueCodec) -> MappingContext:
    return MappingContext(dialect=SqliteDialect(), codec=codec)


@pytest.fixture
async def sqlite_engine(tmp_path: Path) -> AsyncEngine:
    """Async engine on a fresh SQLite file, disposed after the test."""
    engine = create_async_engine_from_url(f"sqlite+aiosqlite:///{tmp_path / 'tom.db'}")
    yield engine
    await engine.dispose()


@pytest.fixture
async def database(sqlite_engine: AsyncEngine, sqlite_context: MappingContext) -> SampleDatabase:
    """SampleDatabase with its schema created; any open unit of work is disposed afterwards."""
    database = SampleDatabase(sqlite_engine, context=sqlite_context)
    await database.initialize_schema()
    yield database
    await database.dispose()
