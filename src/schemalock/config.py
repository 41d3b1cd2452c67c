"""Configuration for a schemalock database.

A configuration file is JSON::

    {
        "database": {"url": "mysql+pymysql://app:secret@db/app"},
        "migration": {"path": "migrations", "pattern": "^\\\\d{14}_.+\\\\.py$"}
    }

Instead of ``url`` the connection may be given as separate fields
(``dialect``, ``username``, ``password``, ``host``, ``port``, ``database``).
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

from loguru import logger
from sqlalchemy import URL

from schemalock.exceptions import ConfigurationError
from schemalock.lib.database import normalize_db_url
from schemalock.services.migration_source import DEFAULT_PATTERN


@dataclass
class DatabaseConfig:
    url: Optional[str] = None
    dialect: str = "sqlite"
    database: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    host: Optional[str] = None
    port: Optional[int] = None
    echo: bool = False

    def to_url(self):
        """Return the SQLAlchemy URL for this connection."""
        if self.url:
            return normalize_db_url(self.url)
        if not self.database:
            raise ConfigurationError("database.url or database.database is required")
        try:
            port = int(self.port) if self.port is not None else None
        except (TypeError, ValueError):
            raise ConfigurationError(f"database.port must be an integer, got {self.port!r}")
        return URL.create(
            self.dialect,
            username=self.username,
            password=self.password,
            host=self.host,
            port=port,
            database=self.database,
        )


@dataclass
class MigrationConfig:
    path: str = "migrations"
    pattern: str = DEFAULT_PATTERN
    up_name: str = "upgrade"
    down_name: str = "downgrade"


@dataclass
class Config:
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    migration: MigrationConfig = field(default_factory=MigrationConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Config":
        if not isinstance(data, dict):
            raise ConfigurationError("Configuration must be a JSON object")
        return cls(
            database=_build(DatabaseConfig, data.get("database"), "database"),
            migration=_build(MigrationConfig, data.get("migration"), "migration"),
        )


def _build(klass, section, name):
    if section is None:
        return klass()
    if not isinstance(section, dict):
        raise ConfigurationError(f"'{name}' must be an object")
    known = {f.name for f in fields(klass)}
    unknown = sorted(set(section) - known)
    if unknown:
        raise ConfigurationError(f"Unknown '{name}' setting(s): {', '.join(unknown)}")
    return klass(**section)


def load_config(path: str | Path) -> Config:
    """Load and validate a JSON configuration file."""
    p = Path(path)
    if not p.exists():
        raise ConfigurationError(f"Config file does not exist: {p}")
    logger.debug(f"Loading config from: {p}")
    try:
        with p.open("r", encoding="utf-8") as fh:
            data = json.load(fh)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Failed to read config file {p}: {e}") from e
    return Config.from_dict(data)
