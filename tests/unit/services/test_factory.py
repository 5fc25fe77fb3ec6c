"""Tests for the service factory module."""

from pathlib import Path

from sample_models import TEST_KEY, PlainDatabase
from tom.config import Settings
from tom.services.codec import SecureValueCodec, format_key
from tom.services.factory import create_context, create_database, create_offline_database
from tom.sql.dialects import SqliteDialect, SqlServerDialect


def _settings(**values) -> Settings:
    return Settings(_env_file=None, **values)


class TestCreateContext:
    """Tests for create_context."""

    def test_dialect_is_inferred_from_url(self) -> None:
        context = create_context(_settings(database_url="sqlite+aiosqlite:///app.db"))

        assert isinstance(context.dialect, SqliteDialect)

    def test_mssql_url_selects_sqlserver(self) -> None:
        context = create_context(_settings(database_url="mssql+aioodbc://user:pw@host/app"))

        assert isinstance(context.dialect, SqlServerDialect)

    def test_explicit_dialect_wins_over_url(self) -> None:
        context = create_context(_settings(database_url="sqlite+aiosqlite:///app.db", dialect="sqlserver"))

        assert isinstance(context.dialect, SqlServerDialect)

    def test_no_codec_without_key(self) -> None:
        context = create_context(_settings())

        assert context.codec is None

    def test_codec_uses_configured_key(self) -> None:
        context = create_context(_settings(encryption_key=format_key(TEST_KEY)))

        encrypted = context.codec.encrypt(b"Created")

        assert SecureValueCodec(TEST_KEY).decrypt(encrypted) == b"Created"

    def test_strict_types_and_page_size(self) -> None:
        context = create_context(_settings(strict_types=True, default_page_size=50))

        assert context.registry.strict is True
        assert context.default_page_size == 50


class TestCreateDatabase:
    """Tests for create_database and create_offline_database."""

    async def test_database_owns_engine_for_url(self, tmp_path: Path) -> None:
        settings = _settings(database_url=f"sqlite+aiosqlite:///{tmp_path / 'app.db'}")

        async with create_database(PlainDatabase, settings) as database:
            assert isinstance(database, PlainDatabase)
            assert database.engine is not None
            assert isinstance(database.context.dialect, SqliteDialect)

    def test_offline_database_has_no_engine(self) -> None:
        database = create_offline_database(PlainDatabase)

        assert database.engine is None
        assert isinstance(database.context.dialect, SqlServerDialect)
        assert database.foos.qualified_name == "dbo.[Foo]"

    def test_offline_database_with_sqlite_dialect(self) -> None:
        database = create_offline_database(PlainDatabase, "sqlite")

        assert database.foos.qualified_name == "main.[Foo]"
