class SchemaLockError(Exception):
    """Base class for schemalock exceptions"""
    pass


class ConfigurationError(SchemaLockError):
    """Raised when a component is missing a required capability or setting"""
    pass


class LockUnavailable(SchemaLockError):
    """Raised when every attempt to acquire a lock has failed"""
    def __init__(self, name: str, attempts: int = 1):
        self.name = name
        self.attempts = attempts
        self.message = f"Cannot acquire the lock '{name}' after {attempts} attempt(s)"
        super().__init__(self.message)


class InvalidVersion(SchemaLockError):
    """Raised when a schema version is missing or empty"""
    def __init__(self, version):
        self.version = version
        self.message = f"Schema version is not defined: {version!r}"
        super().__init__(self.message)


class StoreUnavailable(SchemaLockError):
    """Raised when the database cannot serve a store operation"""
    def __init__(self, operation: str, original_error: Exception):
        self.operation = operation
        self.message = f"Store operation '{operation}' failed: {original_error}"
        super().__init__(self.message)


class MigrationError(SchemaLockError):
    """Raised when a migration step fails.

    ``completed`` holds the ids processed earlier in the same call; they
    stay recorded.
    """
    def __init__(self, migration_id: str, completed=None, reason: str = "failed"):
        self.migration_id = migration_id
        self.completed = list(completed or [])
        self.message = f"Migration {migration_id} {reason}"
        super().__init__(self.message)


class MigrationNotFound(MigrationError):
    """Raised when an executed migration has no matching step"""
    def __init__(self, migration_id: str, completed=None):
        super().__init__(migration_id, completed, reason="not found in the migration source")
