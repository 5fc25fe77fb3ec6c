"""Configuration management using Pydantic Settings."""

import logging
import sys
from typing import Literal

import structlog
from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from ``TOM_``-prefixed environment variables or ``.env``."""

    model_config = SettingsConfigDict(
        env_prefix="TOM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    database_url: str = "sqlite+aiosqlite:///tom.db"
    dialect: Literal["sqlserver", "mssql", "sqlite"] | None = None

    # Mapping
    encryption_key: SecretStr | None = None
    default_page_size: int = Field(default=25, gt=0)
    strict_types: bool = False

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "console"] = "console"


def configure_logging(settings: Settings | None = None) -> None:
    """Install the structlog pipeline: ISO timestamps, level filter, stderr renderer."""
    settings = settings or Settings()
    renderer = (
        structlog.processors.JSONRenderer()
        if settings.log_format == "json"
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        logger_factory=lambda name=None: structlog.PrintLogger(file=sys.stderr),
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, settings.log_level)),
        context_class=dict,
        cache_logger_on_first_use=True,
    )
