from tom.models.column import Column
from tom.models.enums import KeyLength, StorageKind, Transform
from tom.models.field import FieldDescriptor, create_fields_from_type
from tom.models.mapping import TypeMapping, TypeRegistry

__all__ = [
    "Column",
    "FieldDescriptor",
    "KeyLength",
    "StorageKind",
    "Transform",
    "TypeMapping",
    "TypeRegistry",
    "create_fields_from_type",
]
