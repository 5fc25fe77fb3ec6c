"""tom - A small async micro-ORM mapping pydantic models to SQL tables, with encrypted columns."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("tom-orm")
except PackageNotFoundError:
    __version__ = "unknown"

__all__ = ["__version__"]
