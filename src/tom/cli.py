"""Tom command line tools.

Generates table DDL for a database class and creates encryption keys.
"""

import importlib
import sys

import structlog
import typer

from tom import __version__
from tom.config import Settings, configure_logging
from tom.errors import TomError
from tom.models.enums import KeyLength
from tom.services.codec import SecureValueCodec, format_key
from tom.services.database import Database
from tom.services.factory import create_offline_database
from tom.services.schema import SchemaGenerator

logger = structlog.get_logger(__name__)

app = typer.Typer(
    name="tom",
    help="""Schema and key tools for tom databases.

Examples:

  # Print SQL Server DDL for a database class
  tom schema myapp.db:ShopDatabase

  # Print SQLite DDL instead
  tom schema myapp.db:ShopDatabase --dialect sqlite

  # Create a 256-bit encryption key for TOM_ENCRYPTION_KEY
  tom create-key --length 32""",
    rich_markup_mode="markdown",
)


@app.callback()
def main() -> None:
    configure_logging(Settings())


def load_database_type(path: str) -> type[Database]:
    """Import ``package.module:ClassName`` and check it is a ``Database`` subclass."""
    module_name, _, class_name = path.partition(":")
    if not module_name or not class_name:
        raise typer.BadParameter("Expected MODULE:CLASS, e.g. myapp.db:ShopDatabase")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise typer.BadParameter(f"Cannot import module '{module_name}': {exc}") from exc
    database_type = getattr(module, class_name, None)
    if not (isinstance(database_type, type) and issubclass(database_type, Database)):
        raise typer.BadParameter(f"'{path}' is not a Database subclass")
    return database_type


@app.command()
def schema(
    database: str = typer.Argument(
        ...,
        help="Database class as MODULE:CLASS",
    ),
    dialect: str = typer.Option(
        "sqlserver",
        "--dialect",
        "-d",
        help="SQL dialect of the generated DDL (sqlserver or sqlite)",
    ),
) -> None:
    """Print CREATE TABLE statements for every table of a database class."""
    database_type = load_database_type(database)
    try:
        instance = create_offline_database(database_type, dialect)
        typer.echo(SchemaGenerator(instance).create_schema(), nl=False)
    except TomError as exc:
        logger.error("schema_generation_failed", database=database, error=str(exc))
        raise typer.Exit(1) from exc


@app.command("create-key")
def create_key(
    length: int = typer.Option(
        16,
        "--length",
        "-l",
        help="Key length in bytes (16, 24 or 32)",
    ),
) -> None:
    """Print a new random encryption key."""
    try:
        key_length = KeyLength(length)
    except ValueError:
        typer.echo("Key length must be 16, 24 or 32", err=True)
        raise typer.Exit(2) from None
    typer.echo(format_key(SecureValueCodec.create_key(key_length)))


@app.command()
def version() -> None:
    """Print the installed version."""
    typer.echo(__version__)


if __name__ == "__main__":
    sys.exit(app())
