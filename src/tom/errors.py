"""Exception hierarchy.

Configuration mistakes, value transform failures and the paging diagnostic
are kept apart so callers can tell setup errors from driver failures.
Driver errors themselves are never wrapped except for the paging case.
"""

from typing import Any


class TomError(Exception):
    """Base class for every error raised by tom."""


class ConfigurationError(TomError):
    """A mapping, key or unit-of-work was set up incorrectly."""


class UnmappedTypeError(ConfigurationError):
    def __init__(self, semantic_type: Any) -> None:
        self.semantic_type = semantic_type
        super().__init__(f"No type mapping registered for {semantic_type!r}")


class InvalidKeyError(ConfigurationError):
    def __init__(self, message: str, key_length: int | None = None) -> None:
        self.key_length = key_length
        super().__init__(message)


class FieldNotFoundError(ConfigurationError):
    def __init__(self, field_name: str, model_type: type) -> None:
        self.field_name = field_name
        self.model_type = model_type
        super().__init__(f"{model_type.__name__} has no field named '{field_name}'")


class SecureFieldError(ConfigurationError):
    def __init__(self, field_name: str) -> None:
        self.field_name = field_name
        super().__init__(f"Field '{field_name}' is secure; its storage kind must stay binary")


class NoOpenWorkError(ConfigurationError):
    def __init__(self, operation: str = "commit") -> None:
        self.operation = operation
        super().__init__(
            f"No open connection. `request_work` must be called prior to calling `{operation}`."
        )


class TransformError(TomError):
    def __init__(self, field_name: str, storage_kind: str, operation: str) -> None:
        self.field_name = field_name
        self.storage_kind = storage_kind
        self.operation = operation
        super().__init__(
            f"Cannot {operation} field '{field_name}' with storage kind {storage_kind}. "
            "Only NVarChar and VarBinary are supported."
        )


class MissingOrderByError(TomError):
    """Paging was requested on a query the driver rejected for lacking ORDER BY.

    The driver exception is kept as ``original`` and chained as ``__cause__``.
    """

    hint = "Paging results requires an ORDER BY statement."

    def __init__(self, query: str, original: BaseException) -> None:
        self.query = query
        self.original = original
        super().__init__(f"{self.hint} Driver said: {original}")
