from typing import Optional

from loguru import logger
from sqlalchemy import select

from schemalock.lib.database import TableStore
from schemalock.models.schema_version import SchemaVersion, SCHEMA_ID


class SchemaVersionStore(TableStore):
    """Reads and upserts the single schema version row."""

    model = SchemaVersion

    def read(self) -> Optional[str]:
        self.ensure_ready()
        with self.Session() as session:
            return session.scalar(select(SchemaVersion.version).where(SchemaVersion.id == SCHEMA_ID))

    def write(self, version: str) -> None:
        """Create the row if absent, overwrite the version otherwise."""
        self.ensure_ready()
        logger.info(f"Update schema version to {version}")
        with self.Session() as session:
            session.merge(SchemaVersion(id=SCHEMA_ID, version=version))
            session.commit()
