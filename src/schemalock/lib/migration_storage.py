from datetime import datetime
from typing import Callable

from sqlalchemy import delete, insert, select

from schemalock.lib.database import TableStore
from schemalock.lib.timeutil import utcnow
from schemalock.models.migration_file import MigrationFile


class MigrationStorage(TableStore):
    """Bookkeeping of executed migration steps.

    Writes take the caller's connection so the record commits or rolls back
    together with the step that produced it.
    """

    model = MigrationFile

    def __init__(self, engine, clock: Callable[[], datetime] = utcnow):
        super().__init__(engine)
        self.clock = clock

    def executed(self) -> list[str]:
        self.ensure_ready()
        with self.Session() as session:
            return list(session.scalars(select(MigrationFile.migration).order_by(MigrationFile.migration)))

    def log_migration(self, migration_id: str, connection) -> None:
        connection.execute(insert(MigrationFile.__table__).values(migration=migration_id, applied_at=self.clock()))

    def unlog_migration(self, migration_id: str, connection) -> None:
        connection.execute(delete(MigrationFile.__table__).where(MigrationFile.__table__.c.migration == migration_id))
