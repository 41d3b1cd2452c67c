from sqlalchemy import Column, String, DateTime
from schemalock.models import Base


class MigrationFile(Base):
    """One executed migration step. Deleted again when the step is reverted."""
    __tablename__ = "migration_files"

    migration = Column(String(255), primary_key=True)
    applied_at = Column(DateTime, nullable=False)
