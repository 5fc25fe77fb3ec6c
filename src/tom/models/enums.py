from enum import IntEnum, StrEnum


class StorageKind(StrEnum):
    UNIQUE_IDENTIFIER = "UniqueIdentifier"
    INT = "Int"
    DECIMAL = "Decimal"
    FLOAT = "Float"
    DATETIME2 = "DateTime2"
    DATETIME_OFFSET = "DateTimeOffset"
    BIT = "Bit"
    NVARCHAR = "NVarChar"
    VARBINARY = "VarBinary"


class Transform(StrEnum):
    PLAIN = "plain"
    SERIALIZED_TEXT = "serialized_text"
    SERIALIZED_BINARY = "serialized_binary"
    SECURE_SCALAR = "secure_scalar"
    SECURE_DATETIME = "secure_datetime"
    SECURE_BYTES = "secure_bytes"
    SECURE_SERIALIZED = "secure_serialized"


class KeyLength(IntEnum):
    K128 = 16
    K192 = 24
    K256 = 32
