"""Database-backed named locks and lock-serialized schema migrations."""
from schemalock.config import Config, load_config
from schemalock.db import SchemaDb
from schemalock.exceptions import (
    ConfigurationError,
    InvalidVersion,
    LockUnavailable,
    MigrationError,
    MigrationNotFound,
    SchemaLockError,
    StoreUnavailable,
)
from schemalock.lib.db_lock import LockStore
from schemalock.lib.version_store import SchemaVersionStore
from schemalock.services.lock_service import LockOptions, LockService
from schemalock.services.migration_source import MigrationSource, MigrationStep
from schemalock.services.migrator import MigrationState, MigrationStatus, Migrator
from schemalock.services.schema_updater import UPDATE_SCHEMA_LOCK, SchemaUpdater

__version__ = "0.1.0"
