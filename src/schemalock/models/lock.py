"""Lock model for database-level process coordination."""
from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from schemalock.models import Base


class Lock(Base):
    """Named, time-bounded lock row.

    The primary key on ``name`` is what makes acquisition atomic: only one
    INSERT for a given name can succeed while the row exists. A row is live
    while ``expires_at`` is in the future; expired rows are swept by the next
    acquirer.

    Example names:
    - "UPDATE_SCHEMA": schema migration in progress
    """
    __tablename__ = "locks"

    name = Column(String(255), primary_key=True)
    expires_at = Column(DateTime, nullable=False, index=True)
    created_at = Column(DateTime, server_default=func.current_timestamp(), nullable=False)
