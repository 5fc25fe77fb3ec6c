"""Value transforms between model values and database storage values.

Each field resolves to one ``Transform`` variant and both directions
dispatch on it. On write, object serialization happens before encryption
(object -> JSON/BSON -> encrypt); reads run the reverse. Secure date-times
skip text entirely and are packed as fixed-width microsecond ticks so that
no precision is lost.
"""

import struct
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID

import bson

from tom.errors import ConfigurationError
from tom.models.enums import Transform
from tom.models.field import DATETIME_TYPES, FieldDescriptor
from tom.services.codec import SecureValueCodec

_TICK = timedelta(microseconds=1)
_NAIVE_TICKS = struct.Struct("<q")
_AWARE_TICKS = struct.Struct("<qi")
_BSON_ROOT_KEY = "value"


def to_storage(field: FieldDescriptor, value: Any, codec: SecureValueCodec | None = None) -> Any:
    """Convert a model value into the value bound for ``field``'s column."""
    transform = field.transform
    if value is None:
        value = field.cleartext_empty_factory()
    if value is None:
        return field.empty_value_factory()

    if transform == Transform.PLAIN:
        return value
    if transform == Transform.SERIALIZED_TEXT:
        return serialize_text(field, value)
    if transform == Transform.SERIALIZED_BINARY:
        return serialize_binary(field, value)

    codec = _require_codec(field, codec)
    if transform == Transform.SECURE_SERIALIZED:
        clear_data = serialize_binary(field, value)
    elif transform == Transform.SECURE_BYTES:
        clear_data = bytes(value)
    elif transform == Transform.SECURE_DATETIME:
        clear_data = pack_datetime(field, value)
    else:
        clear_data = str(value).encode("utf-8")
    return codec.encrypt(clear_data)


def from_storage(field: FieldDescriptor, value: Any, codec: SecureValueCodec | None = None) -> Any:
    """Convert a column value read from the database back into a model value."""
    transform = field.transform
    if value is None:
        return None if field.is_nullable else field.cleartext_empty_factory()

    if transform == Transform.PLAIN:
        return coerce(field, value)
    if transform == Transform.SERIALIZED_TEXT:
        return deserialize_text(field, value)
    if transform == Transform.SERIALIZED_BINARY:
        return deserialize_binary(field, value)

    clear_data = _require_codec(field, codec).decrypt(bytes(value))
    if transform == Transform.SECURE_SERIALIZED:
        return deserialize_binary(field, clear_data)
    if transform == Transform.SECURE_BYTES:
        return clear_data
    if transform == Transform.SECURE_DATETIME:
        return unpack_datetime(field, clear_data)
    return parse_scalar(field, clear_data.decode("utf-8"))


def serialize_text(field: FieldDescriptor, value: Any) -> str:
    return field.adapter.dump_json(value).decode("utf-8")


def deserialize_text(field: FieldDescriptor, value: str | bytes) -> Any:
    return field.adapter.validate_json(value)


def serialize_binary(field: FieldDescriptor, value: Any) -> bytes:
    # BSON documents need a mapping at the root, so the value is wrapped.
    return bson.encode({_BSON_ROOT_KEY: field.adapter.dump_python(value, mode="json")})


def deserialize_binary(field: FieldDescriptor, value: bytes) -> Any:
    return field.adapter.validate_python(bson.decode(bytes(value))[_BSON_ROOT_KEY])


def pack_datetime(field: FieldDescriptor, value: datetime) -> bytes:
    if field.is_aware_datetime:
        local_ticks = (value.replace(tzinfo=None) - datetime.min) // _TICK
        offset = value.utcoffset() or timedelta(0)
        return _AWARE_TICKS.pack(local_ticks, int(offset.total_seconds()))
    if value.tzinfo is not None:
        # Naive fields hold UTC wall time for offset-carrying values.
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return _NAIVE_TICKS.pack((value - datetime.min) // _TICK)


def unpack_datetime(field: FieldDescriptor, data: bytes) -> datetime:
    if field.is_aware_datetime:
        ticks, offset_seconds = _AWARE_TICKS.unpack(data)
        tz = timezone(timedelta(seconds=offset_seconds))
        return (datetime.min + ticks * _TICK).replace(tzinfo=tz)
    (ticks,) = _NAIVE_TICKS.unpack(data)
    return datetime.min + ticks * _TICK


def parse_scalar(field: FieldDescriptor, text: str) -> Any:
    semantic_type = field.semantic_type
    if semantic_type is str:
        return text
    if semantic_type is bool:
        return text == "True"
    if semantic_type is UUID:
        return UUID(text)
    if semantic_type is Decimal:
        return Decimal(text)
    if semantic_type is int:
        return int(text)
    if semantic_type is float:
        return float(text)
    return field.adapter.validate_python(text)


def coerce(field: FieldDescriptor, value: Any) -> Any:
    """Normalise a raw driver value to the field's semantic type.

    Drivers differ: SQLite hands back UUIDs as hex text, date-times as
    ISO text, booleans as integers and decimals as floats.
    """
    semantic_type = field.semantic_type
    if semantic_type is UUID:
        if isinstance(value, UUID):
            return value
        if isinstance(value, (bytes, memoryview)):
            return UUID(bytes=bytes(value))
        return UUID(str(value))
    if semantic_type is Decimal:
        return value if isinstance(value, Decimal) else Decimal(str(value))
    if semantic_type is bool:
        return bool(value)
    if semantic_type is int:
        return int(value)
    if semantic_type is float:
        return float(value)
    if semantic_type in DATETIME_TYPES:
        if not isinstance(value, datetime):
            value = datetime.fromisoformat(str(value))
        if field.is_aware_datetime and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value
    if semantic_type is bytes:
        return bytes(value)
    return value


def _require_codec(field: FieldDescriptor, codec: SecureValueCodec | None) -> SecureValueCodec:
    if codec is None:
        raise ConfigurationError(
            f"Field '{field.name}' is secure but no encryption key is configured"
        )
    return codec
