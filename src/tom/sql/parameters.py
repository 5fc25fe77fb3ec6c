"""
SQL parameter placeholder utilities.

Generated and caller-supplied SQL uses ``@Name`` placeholders. Before
execution they are rewritten into SQLAlchemy ``:Name`` binds so that every
SQLAlchemy dialect can translate them into its own driver paramstyle.
"""

import re
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel

PARAMETER_MARKER = "@"

# ``@@ROWCOUNT`` style system functions and ``user@host`` text are not placeholders.
_PARAMETER_PATTERN = re.compile(r"(?<![@\w])@([A-Za-z0-9_]+)")


def find_parameter_names(sql: str) -> list[str]:
    """
    List the placeholder names referenced by ``sql``, first occurrence first.

    Examples:
        >>> find_parameter_names("select * from dbo.[Foo] where Id in (@Guid1, @Guid2, @Guid1)")
        ['Guid1', 'Guid2']
    """
    names: list[str] = []
    for match in _PARAMETER_PATTERN.finditer(sql):
        name = match.group(1)
        if name not in names:
            names.append(name)
    return names


def to_bind_syntax(sql: str) -> str:
    """
    Rewrite ``@Name`` placeholders into SQLAlchemy ``:Name`` binds.

    Examples:
        >>> to_bind_syntax("update dbo.[Foo] set [Int] = @Int where [Id] = @Id")
        'update dbo.[Foo] set [Int] = :Int where [Id] = :Id'
    """
    return _PARAMETER_PATTERN.sub(r":\1", sql)


def parameter_name(name: str) -> str:
    return f"{PARAMETER_MARKER}{name}"


def holder_values(holder: Any) -> dict[str, Any]:
    """Read the public named values of a parameter holder."""
    if holder is None:
        return {}
    if isinstance(holder, Mapping):
        return dict(holder)
    if isinstance(holder, BaseModel):
        return {name: getattr(holder, name) for name in type(holder).model_fields}
    if hasattr(holder, "_asdict"):
        return dict(holder._asdict())
    return {key: value for key, value in vars(holder).items() if not key.startswith("_")}


def match_parameters(sql: str, holder: Any) -> dict[str, Any]:
    """
    Pick the holder values referenced by ``sql``.

    Names match case-insensitively and are keyed by their spelling in
    ``sql``. Holder values that no placeholder references are ignored.

    Examples:
        >>> match_parameters("Nvarchar = @nvarchar", {"Nvarchar": "Needle", "Int": 3})
        {'nvarchar': 'Needle'}
    """
    values = {key.lower(): value for key, value in holder_values(holder).items()}
    return {
        name: values[name.lower()]
        for name in find_parameter_names(sql)
        if name.lower() in values
    }
