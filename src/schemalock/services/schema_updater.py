from typing import Callable, Optional, TypeVar

from loguru import logger

from schemalock.exceptions import ConfigurationError, InvalidVersion
from schemalock.lib.version_store import SchemaVersionStore
from schemalock.services.lock_service import LockOptions, LockService

T = TypeVar("T")

UPDATE_SCHEMA_LOCK = "UPDATE_SCHEMA"
# Five attempts five seconds apart; the lock expires after two minutes
UPDATE_SCHEMA_OPTIONS = LockOptions(timeout_seconds=120, max_attempts=5, retry_delay_ms=5000)


class SchemaUpdater:
    """Serializes schema changes across processes and records the resulting version."""

    def __init__(self, lock_service: LockService, version_store: SchemaVersionStore,
                 lock_options: Optional[LockOptions] = None):
        if lock_service is None or version_store is None:
            raise ConfigurationError("SchemaUpdater requires a lock service and a version store")
        self.lock_service = lock_service
        self.version_store = version_store
        self.lock_options = lock_options or UPDATE_SCHEMA_OPTIONS

    def update_schema(self, version: str, action: Callable[[], T]) -> T:
        """Get the 'UPDATE_SCHEMA' lock, call ``action`` and update the schema version.

        1. Get the lock 'UPDATE_SCHEMA'
        2. If lock is acquired Then:
          2.1 Call the action
          2.2 Update schema version (only if the action returned)
          2.3 Release the lock

        Raises:
            InvalidVersion: If version is empty, before the lock is touched
            LockUnavailable: If the lock could not be acquired; action is not called
        """
        if not isinstance(version, str) or not version:
            raise InvalidVersion(version)

        def _update():
            result = action()
            self.version_store.write(version)
            return result

        logger.debug(f"Updating schema to version {version}")
        return self.lock_service.with_lock(UPDATE_SCHEMA_LOCK, _update, self.lock_options)

    def current_version(self) -> Optional[str]:
        return self.version_store.read()
