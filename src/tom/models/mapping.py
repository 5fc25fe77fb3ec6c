"""Semantic type to SQL storage mappings.

A ``TypeMapping`` describes how one in-memory value type is stored: its
storage kind, whether the column is nullable, the DDL argument clause and
default literal, and the factory producing the in-memory empty value used
when a model leaves the value unset. ``TypeRegistry`` resolves model field
annotations to mappings, unwrapping ``Optional[X]`` into the nullable
variant of ``X``.
"""

from collections.abc import Callable, Iterable, Sequence
from datetime import datetime, timezone
from decimal import Decimal
from types import NoneType, UnionType
from typing import Annotated, Any, Union, get_args, get_origin
from uuid import UUID

from pydantic import AwareDatetime, BaseModel, ConfigDict, NaiveDatetime

from tom.errors import UnmappedTypeError
from tom.models.enums import StorageKind

_COLLECTION_ORIGINS = (list, set, frozenset, tuple, Sequence, Iterable)


class TypeMapping(BaseModel):
    semantic_type: Any
    storage_kind: StorageKind
    is_nullable: bool
    arguments: str | None = None
    default: str | None = None
    empty_value_factory: Callable[[], Any] = lambda: None
    is_mapped: bool = True
    is_serialized: bool = False

    model_config = ConfigDict(frozen=True, extra="forbid")

    def empty_value(self) -> Any:
        return self.empty_value_factory()


def _value_mappings(
    semantic_type: Any,
    storage_kind: StorageKind,
    default: str | None,
    empty_value_factory: Callable[[], Any],
    arguments: str | None = None,
) -> list[TypeMapping]:
    return [
        TypeMapping(
            semantic_type=semantic_type,
            storage_kind=storage_kind,
            is_nullable=False,
            arguments=arguments,
            default=default,
            empty_value_factory=empty_value_factory,
        ),
        TypeMapping(
            semantic_type=semantic_type,
            storage_kind=storage_kind,
            is_nullable=True,
            arguments=arguments,
        ),
    ]


def default_mappings() -> list[TypeMapping]:
    return [
        *_value_mappings(
            UUID,
            StorageKind.UNIQUE_IDENTIFIER,
            "('00000000-0000-0000-0000-000000000000')",
            lambda: UUID(int=0),
        ),
        *_value_mappings(int, StorageKind.INT, "(0)", lambda: 0),
        *_value_mappings(Decimal, StorageKind.DECIMAL, "(0)", lambda: Decimal(0), arguments="(18, 0)"),
        *_value_mappings(float, StorageKind.FLOAT, "(0)", lambda: 0.0),
        *_value_mappings(
            datetime,
            StorageKind.DATETIME2,
            "('0001-01-01T00:00:00.0000000')",
            lambda: datetime.min,
            arguments="(7)",
        ),
        *_value_mappings(
            NaiveDatetime,
            StorageKind.DATETIME2,
            "('0001-01-01T00:00:00.0000000')",
            lambda: datetime.min,
            arguments="(7)",
        ),
        *_value_mappings(
            AwareDatetime,
            StorageKind.DATETIME_OFFSET,
            "('0001-01-01T00:00:00.0000000+00:00')",
            lambda: datetime.min.replace(tzinfo=timezone.utc),
            arguments="(7)",
        ),
        *_value_mappings(bool, StorageKind.BIT, "(0)", lambda: False),
        *_value_mappings(str, StorageKind.NVARCHAR, "('')", lambda: "", arguments="(100)"),
        *_value_mappings(bytes, StorageKind.VARBINARY, "(0x)", lambda: b"", arguments="(max)"),
        TypeMapping(
            semantic_type=object,
            storage_kind=StorageKind.NVARCHAR,
            is_nullable=True,
            arguments="(max)",
            is_serialized=True,
        ),
    ]


DEFAULT_NEW_VALUE_DEFAULTS: dict[Any, str] = {
    UUID: "(newid())",
    datetime: "(sysutcdatetime())",
    NaiveDatetime: "(sysutcdatetime())",
    AwareDatetime: "(sysdatetimeoffset())",
}


def resolve_annotation(annotation: Any) -> tuple[Any, bool]:
    """Split a field annotation into its base type and nullability.

    ``int | None`` resolves to ``(int, True)``. Unions of several non-None
    types are returned whole, which sends them to the catch-all mapping.
    """
    origin = get_origin(annotation)
    if origin is Annotated:
        return resolve_annotation(get_args(annotation)[0])
    if origin is Union or origin is UnionType:
        args = get_args(annotation)
        non_null = [arg for arg in args if arg is not NoneType]
        nullable = len(non_null) < len(args)
        if len(non_null) == 1:
            base, _ = resolve_annotation(non_null[0])
            return base, nullable
        return annotation, nullable
    return annotation, False


def element_type(annotation: Any) -> Any:
    """Return the model type a field refers to, looking through Optional and collections."""
    base, _ = resolve_annotation(annotation)
    if get_origin(base) in _COLLECTION_ORIGINS:
        args = [arg for arg in get_args(base) if arg is not Ellipsis]
        if args:
            return resolve_annotation(args[0])[0]
    return base


class TypeRegistry:
    """Lookup table from (semantic type, nullable) to ``TypeMapping``.

    In loose mode (the default) types without an entry fall back to the
    catch-all serialized mapping; in strict mode they raise
    ``UnmappedTypeError``.
    """

    def __init__(
        self,
        mappings: Iterable[TypeMapping] | None = None,
        strict: bool = False,
        new_value_defaults: dict[Any, str] | None = None,
    ) -> None:
        self.strict = strict
        self._mappings: dict[tuple[Any, bool], TypeMapping] = {}
        for mapping in mappings if mappings is not None else default_mappings():
            self.register(mapping)
        self._new_value_defaults = dict(
            new_value_defaults if new_value_defaults is not None else DEFAULT_NEW_VALUE_DEFAULTS
        )

    def register(self, mapping: TypeMapping) -> None:
        self._mappings[(mapping.semantic_type, mapping.is_nullable)] = mapping

    def lookup(self, semantic_type: Any, nullable: bool = False) -> TypeMapping:
        try:
            mapping = self._mappings.get((semantic_type, nullable))
        except TypeError:
            mapping = None
        if mapping is not None:
            return mapping
        if self.strict:
            raise UnmappedTypeError(semantic_type)
        return self.catch_all

    def resolve(self, annotation: Any) -> TypeMapping:
        base, nullable = resolve_annotation(annotation)
        return self.lookup(base, nullable)

    @property
    def catch_all(self) -> TypeMapping:
        return self._mappings[(object, True)]

    @property
    def secure_mapping(self) -> TypeMapping:
        """The raw-bytes mapping secure fields switch to."""
        return self._mappings[(bytes, True)]

    def new_value_default(self, semantic_type: Any) -> str | None:
        return self._new_value_defaults.get(semantic_type)
