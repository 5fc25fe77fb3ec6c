"""
SQL text helpers: dialects and ``@Name`` placeholder handling.
"""

from .dialects import Dialect, SqliteDialect, SqlServerDialect, dialect_for_url, get_dialect
from .parameters import find_parameter_names, match_parameters, parameter_name, to_bind_syntax

__all__ = [
    "Dialect",
    "SqlServerDialect",
    "SqliteDialect",
    "dialect_for_url",
    "get_dialect",
    "find_parameter_names",
    "match_parameters",
    "parameter_name",
    "to_bind_syntax",
]
