"""Integration tests running tables against a real SQLite file.

Writes go through the database's unit of work and are committed explicitly;
reads open their own connection and only see committed rows.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import UUID, uuid4

import pytest
from pydantic import BaseModel, Field
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine

from sample_models import Address, Foo, SampleDatabase, Secure
from tom.services.codec import SecureValueCodec
from tom.services.context import MappingContext
from tom.services.database import Database
from tom.services.table import Table


class IntFilter(BaseModel):
    Int: int
    Nvarchar: str = "never bound"
    Created: datetime = datetime(1999, 1, 1)


class Price(BaseModel):
    Id: UUID = Field(default_factory=uuid4)
    Amount: Decimal = Decimal(0)


class PriceDatabase(Database):
    prices: Table[Price]


async def _add_foos(database: SampleDatabase, count: int) -> list[Foo]:
    foos = [Foo(Int=number, Nvarchar=f"foo {number}") for number in range(1, count + 1)]
    await database.foos.add_range(foos)
    await database.commit()
    return foos


class TestRoundTrip:
    """Values written through a table read back unchanged."""

    async def test_plain_round_trip(self, database: SampleDatabase) -> None:
        foo = Foo(Int=7, Nvarchar="Created")

        assert await database.foos.add(foo) == 1
        await database.commit()

        (loaded,) = await database.foos.list()
        assert loaded == foo
        assert loaded.Created.microsecond == 123456

    async def test_secure_round_trip(self, database: SampleDatabase) -> None:
        secure = Secure(
            Int=42,
            NullableInt=None,
            Amount=Decimal("1234.5678"),
            Ratio=0.25,
            Moment=datetime(2024, 1, 15, 10, 30, 0, 123456),
            Stamp=datetime(2024, 1, 15, 10, 30, tzinfo=timezone(timedelta(hours=-5))),
            Flag=True,
            Text="Created",
            Blob=b"\x00\x01\x02",
            Home=Address(Street="1 Main St", City="Springfield"),
            Tags=["a", "b"],
        )

        await database.secures.add(secure)
        await database.commit()

        loaded = await database.secures.single_or_default("[Id] = @Id", secure)
        assert loaded.model_dump() == secure.model_dump()
        assert loaded.Stamp.utcoffset() == timedelta(hours=-5)

    async def test_null_secure_values_stay_null(self, database: SampleDatabase) -> None:
        secure = Secure()
        await database.secures.add(secure)
        await database.commit()

        raw = await database.scalar("select [NullableText] from main.[Secure] where [Id] = @Id", secure)
        loaded = await database.secures.single_or_default()

        assert raw is None
        assert loaded.NullableText is None
        assert loaded.Home is None

    async def test_decimal_keeps_its_digits(self, database: SampleDatabase) -> None:
        secure = Secure(Amount=Decimal("0.1"))
        await database.secures.add(secure)
        await database.commit()

        loaded = await database.secures.single_or_default()

        assert loaded.Amount == Decimal("0.1")
        assert isinstance(loaded.Amount, Decimal)


class TestSecureStorage:
    """Secure columns hold ciphertext."""

    async def test_stored_bytes_are_encrypted(self, database: SampleDatabase, codec: SecureValueCodec) -> None:
        secure = Secure(Text="Created")
        await database.secures.add(secure)
        await database.commit()

        raw = await database.scalar("select [Text] from main.[Secure] where [Id] = @Id", secure)

        assert isinstance(raw, bytes)
        assert b"Created" not in raw
        assert codec.decrypt(raw) == b"Created"

    async def test_update_re_encrypts(self, database: SampleDatabase, codec: SecureValueCodec) -> None:
        secure = Secure(Text="Created")
        await database.secures.add(secure)
        await database.commit()
        query = "select [Text] from main.[Secure] where [Id] = @Id"
        before = await database.scalar(query, secure)

        secure.Text = "Updated"
        assert await database.secures.update(secure) == 1
        await database.commit()

        after = await database.scalar(query, secure)
        assert after != before
        assert codec.decrypt(after) == b"Updated"
        assert (await database.secures.single_or_default()).Text == "Updated"


class TestBatches:
    """Batch writes share one statement and one transaction."""

    @pytest.mark.parametrize("failing_row", [1, 4, 9])
    async def test_failed_batch_leaves_no_rows(self, database: SampleDatabase, failing_row: int) -> None:
        foos = [Foo(Int=number) for number in range(10)]
        foos[failing_row] = foos[0].model_copy(update={"Int": 99})

        with pytest.raises(IntegrityError):
            await database.foos.add_range(foos)
        await database.dispose()

        assert await database.foos.count() == 0

    async def test_empty_ranges_write_nothing(self, database: SampleDatabase) -> None:
        await _add_foos(database, 2)

        assert await database.foos.add_range([]) == 0
        assert await database.foos.update_range([]) == 0
        assert await database.foos.remove_range(iter([])) == 0

        assert database.work is None
        assert await database.foos.count() == 2

    async def test_update_and_remove(self, database: SampleDatabase) -> None:
        first, second = await _add_foos(database, 2)

        first.Nvarchar = "changed"
        await database.foos.update(first)
        await database.foos.remove(second)
        await database.commit()

        assert [foo.Nvarchar for foo in await database.foos.list()] == ["changed"]

    async def test_rowcount_of_missing_row_is_zero(self, database: SampleDatabase) -> None:
        await _add_foos(database, 1)

        assert await database.foos.remove(Foo()) == 0
        await database.commit()

    @pytest.mark.slow
    async def test_remove_range_of_500_rows(self, database: SampleDatabase) -> None:
        foos = await _add_foos(database, 500)
        assert await database.foos.count() == 500

        removed = await database.foos.remove_range(foos)
        await database.commit()

        assert removed == 500
        assert await database.foos.count() == 0


class TestQueries:
    """Filtering, paging and aggregate helpers."""

    async def test_paging_returns_the_requested_window(self, database: SampleDatabase) -> None:
        await _add_foos(database, 250)

        page = await database.foos.list(order_by="[Int]", page=2, page_size=100)

        assert [foo.Int for foo in page] == list(range(101, 201))

    async def test_last_page_is_partial(self, database: SampleDatabase) -> None:
        await _add_foos(database, 250)

        page = await database.foos.list(order_by="[Int]", page=3, page_size=100)

        assert [foo.Int for foo in page] == list(range(201, 251))

    async def test_page_zero_returns_everything(self, database: SampleDatabase) -> None:
        await _add_foos(database, 250)

        assert len(await database.foos.list(page=0, page_size=100)) == 250

    async def test_only_referenced_parameters_are_bound(self, database: SampleDatabase) -> None:
        await _add_foos(database, 5)

        rows = await database.foos.list("[Int] >= @Int", IntFilter(Int=4), order_by="[Int]")

        assert [foo.Int for foo in rows] == [4, 5]

    async def test_single_or_default(self, database: SampleDatabase) -> None:
        await _add_foos(database, 3)

        assert (await database.foos.single_or_default("[Int] = @Int", {"Int": 2})).Nvarchar == "foo 2"
        assert await database.foos.single_or_default("[Int] = @Int", {"Int": 9}) is None
        with pytest.raises(ValueError):
            await database.foos.single_or_default()

    async def test_count_exists_and_scalar(self, database: SampleDatabase) -> None:
        await _add_foos(database, 4)

        assert await database.foos.count() == 4
        assert await database.foos.count("[Int] > @Int", {"Int": 2}) == 2
        assert await database.foos.exists("[Int] = @Int", {"Int": 4}) is True
        assert await database.foos.exists("[Int] = @Int", {"Int": 5}) is False
        assert await database.foos.scalar("max([Int])", result_type=int) == 4

    async def test_uncommitted_rows_are_not_visible_to_reads(self, database: SampleDatabase) -> None:
        await database.foos.add(Foo())

        assert await database.foos.count() == 0


async def test_plain_decimal_round_trips_through_sqlite(
    sqlite_engine: AsyncEngine, sqlite_context: MappingContext
) -> None:
    database = PriceDatabase(sqlite_engine, context=sqlite_context)
    await database.initialize_schema()
    price = Price(Amount=Decimal("12.5"))

    await database.prices.add(price)
    await database.commit()

    (loaded,) = await database.prices.list()
    assert loaded.Amount == Decimal("12.5")
    assert isinstance(loaded.Amount, Decimal)
