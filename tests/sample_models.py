"""Models and databases shared by the tests."""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID, uuid4

from pydantic import AwareDatetime, BaseModel, Field

from tom.services.database import Database
from tom.services.table import Table

TEST_KEY = bytes(range(32))


class Foo(BaseModel):
    Id: UUID = Field(default_factory=uuid4)
    Int: int = 0
    Nvarchar: str | None = None
    Created: datetime = Field(default_factory=lambda: datetime(2024, 1, 15, 10, 30, 0, 123456))


class Bar(BaseModel):
    Id: UUID = Field(default_factory=uuid4)
    FooId: UUID = Field(default_factory=uuid4)
    Name: str = ""
    Owner: Foo | None = None
    Children: list[Foo] = Field(default_factory=list)


class Address(BaseModel):
    Street: str
    City: str
    Zip: str | None = None


class Secure(BaseModel):
    Id: UUID = Field(default_factory=uuid4)
    Guid: UUID = Field(default_factory=uuid4)
    NullableGuid: UUID | None = None
    Int: int = 0
    NullableInt: int | None = None
    Amount: Decimal = Decimal("0")
    Ratio: float = 0.0
    Moment: datetime = datetime.min
    NullableMoment: datetime | None = None
    Stamp: AwareDatetime = datetime.min.replace(tzinfo=timezone.utc)
    Flag: bool = False
    Text: str = ""
    NullableText: str | None = None
    Blob: bytes = b""
    Home: Address | None = None
    Tags: list[str] = Field(default_factory=list)
    Parent: Bar | None = None


class SampleDatabase(Database):
    foos: Table[Foo]
    bars: Table[Bar]
    secures: Table[Secure]

    def configure(self) -> None:
        key = self.secures.primary_key[0]
        self.secures.configure_all_columns(
            lambda column: column.secure(),
            lambda column: column.field.is_mapped and column is not key,
        )


class PlainDatabase(Database):
    foos: Table[Foo]
    bars: Table[Bar]
