"""Tests for UnitOfWork against a SQLite file."""

import pytest
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from tom.services.work import UnitOfWork


@pytest.fixture
async def engine(sqlite_engine: AsyncEngine) -> AsyncEngine:
    async with sqlite_engine.begin() as connection:
        await connection.execute(text("create table Item (Name text not null)"))
    return sqlite_engine


async def _count(engine: AsyncEngine) -> int:
    async with engine.connect() as connection:
        return (await connection.execute(text("select count(*) from Item"))).scalar()


class TestUnitOfWork:
    """Tests for the open, commit and dispose transitions."""

    async def test_create_opens_connection_and_transaction(self, engine: AsyncEngine) -> None:
        work = await UnitOfWork.create(engine)

        assert work.is_open is True
        assert work.transaction.is_active is True
        assert not work.connection.closed

        await work.dispose()

    async def test_commit_persists_and_closes(self, engine: AsyncEngine) -> None:
        work = await UnitOfWork.create(engine)
        await work.connection.execute(text("insert into Item (Name) values ('kept')"))

        await work.commit()

        assert work.is_open is False
        assert work.connection.closed
        assert await _count(engine) == 1

    async def test_dispose_rolls_back(self, engine: AsyncEngine) -> None:
        work = await UnitOfWork.create(engine)
        await work.connection.execute(text("insert into Item (Name) values ('dropped')"))

        await work.dispose()

        assert work.is_open is False
        assert await _count(engine) == 0

    async def test_dispose_twice_is_harmless(self, engine: AsyncEngine) -> None:
        work = await UnitOfWork.create(engine)

        await work.dispose()
        await work.dispose()

        assert work.is_open is False

    async def test_context_manager_disposes_without_commit(self, engine: AsyncEngine) -> None:
        async with await UnitOfWork.create(engine) as work:
            await work.connection.execute(text("insert into Item (Name) values ('dropped')"))

        assert work.is_open is False
        assert await _count(engine) == 0
