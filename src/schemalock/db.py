"""Wire a schemalock database from its configuration."""
from __future__ import annotations

from pathlib import Path

from schemalock.config import Config, load_config
from schemalock.lib.database import get_engine
from schemalock.lib.db_lock import LockStore
from schemalock.lib.version_store import SchemaVersionStore
from schemalock.services.lock_service import LockService
from schemalock.services.migration_source import MigrationSource
from schemalock.services.migrator import Migrator
from schemalock.services.schema_updater import SchemaUpdater


class SchemaDb:
    """Engine, lock service and migrator sharing one database.

    Usage:
        db = SchemaDb.from_file("config.json")
        db.migration.up("1.2.0")
        db.dispose()
    """

    def __init__(self, config: Config):
        self.config = config
        self.engine = get_engine(config.database.to_url(), echo=config.database.echo)
        self.lock_service = LockService(LockStore(self.engine))
        self.schema_updater = SchemaUpdater(self.lock_service, SchemaVersionStore(self.engine))
        self.migration = Migrator(
            self.engine,
            self.schema_updater,
            MigrationSource(
                path=config.migration.path,
                pattern=config.migration.pattern,
                up_name=config.migration.up_name,
                down_name=config.migration.down_name,
            ),
        )

    @classmethod
    def from_file(cls, path: str | Path) -> "SchemaDb":
        return cls(load_config(path))

    def dispose(self) -> None:
        self.engine.dispose()
