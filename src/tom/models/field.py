from datetime import datetime
from typing import Any

from pydantic import AwareDatetime, BaseModel, NaiveDatetime, TypeAdapter

from tom.errors import SecureFieldError, TransformError
from tom.models.enums import StorageKind, Transform
from tom.models.mapping import TypeRegistry, resolve_annotation

DATETIME_TYPES = (datetime, NaiveDatetime, AwareDatetime)
SERIALIZED_STORAGE_KINDS = (StorageKind.NVARCHAR, StorageKind.VARBINARY)


class FieldDescriptor:
    """Mapping metadata for one model field.

    Name and annotation are fixed at construction. Mapping flags and the
    storage kind may be reconfigured until the owning command first runs;
    once ``secure()`` has been called the storage kind is pinned to the
    registry's raw-bytes mapping.
    """

    def __init__(self, name: str, annotation: Any, registry: TypeRegistry) -> None:
        mapping = registry.resolve(annotation)
        self._registry = registry
        self._name = name
        self._annotation = annotation
        self._semantic_type = resolve_annotation(annotation)[0]
        self._storage_kind = mapping.storage_kind
        self._is_secure = False
        self._adapter: TypeAdapter[Any] | None = None
        self.is_mapped = mapping.is_mapped
        self.is_nullable = mapping.is_nullable
        self.is_serialized = mapping.is_serialized
        self.empty_value_factory = mapping.empty_value_factory
        # Secure fields keep the semantic empty value for the cleartext side.
        self.cleartext_empty_factory = mapping.empty_value_factory

    @property
    def name(self) -> str:
        return self._name

    @property
    def annotation(self) -> Any:
        return self._annotation

    @property
    def semantic_type(self) -> Any:
        return self._semantic_type

    @property
    def is_secure(self) -> bool:
        return self._is_secure

    @property
    def storage_kind(self) -> StorageKind:
        return self._storage_kind

    @storage_kind.setter
    def storage_kind(self, value: StorageKind) -> None:
        if self._is_secure:
            raise SecureFieldError(self._name)
        self._storage_kind = StorageKind(value)

    def secure(self) -> None:
        """Encrypt this field's value at rest. Calling it again changes nothing."""
        mapping = self._registry.secure_mapping
        self._storage_kind = mapping.storage_kind
        self.empty_value_factory = mapping.empty_value_factory
        self._is_secure = True

    @property
    def is_datetime(self) -> bool:
        return self._semantic_type in DATETIME_TYPES

    @property
    def is_aware_datetime(self) -> bool:
        return self._semantic_type is AwareDatetime

    @property
    def transform(self) -> Transform:
        if self._is_secure:
            if self.is_serialized:
                return Transform.SECURE_SERIALIZED
            if self._semantic_type is bytes:
                return Transform.SECURE_BYTES
            if self.is_datetime:
                return Transform.SECURE_DATETIME
            return Transform.SECURE_SCALAR
        if self.is_serialized:
            if self._storage_kind == StorageKind.NVARCHAR:
                return Transform.SERIALIZED_TEXT
            if self._storage_kind == StorageKind.VARBINARY:
                return Transform.SERIALIZED_BINARY
            raise TransformError(self._name, self._storage_kind, "serialize")
        return Transform.PLAIN

    @property
    def adapter(self) -> TypeAdapter[Any]:
        """pydantic adapter over the full annotation, used for object serialization."""
        if self._adapter is None:
            self._adapter = TypeAdapter(self._annotation)
        return self._adapter

    def __repr__(self) -> str:
        flags = [
            flag
            for flag, enabled in (
                ("mapped", self.is_mapped),
                ("secure", self._is_secure),
                ("serialized", self.is_serialized),
                ("nullable", self.is_nullable),
            )
            if enabled
        ]
        return f"FieldDescriptor({self._name!r}, {self._storage_kind}, {'|'.join(flags) or '-'})"


def create_fields_from_type(model_type: type[BaseModel], registry: TypeRegistry) -> list[FieldDescriptor]:
    """Build one descriptor per model field, in declaration order."""
    if model_type is None:
        raise ValueError("model_type is required")
    if not (isinstance(model_type, type) and issubclass(model_type, BaseModel)):
        raise TypeError(f"{model_type!r} is not a pydantic model type")

    return [
        FieldDescriptor(name, info.annotation, registry)
        for name, info in model_type.model_fields.items()
    ]
