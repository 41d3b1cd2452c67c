from sqlalchemy.orm import declarative_base

Base = declarative_base()

from .lock import Lock  # noqa: F401
from .schema_version import SchemaVersion  # noqa: F401
from .migration_file import MigrationFile  # noqa: F401
