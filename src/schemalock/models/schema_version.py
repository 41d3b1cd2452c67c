from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from schemalock.models import Base

SCHEMA_ID = "SCHEMA"


class SchemaVersion(Base):
    """Singleton row holding the currently applied schema version."""
    __tablename__ = "schema_versions"

    id = Column(String(255), primary_key=True, default=SCHEMA_ID)
    version = Column(String(50), nullable=True)
    created_at = Column(DateTime, server_default=func.current_timestamp(), nullable=False)
    updated_at = Column(DateTime, server_default=func.current_timestamp(), onupdate=func.current_timestamp(), nullable=False)
